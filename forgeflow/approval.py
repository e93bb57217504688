# ============================================================================
#  File: approval.py
#  Version: 1.0
#  Purpose: Human-in-the-loop decisions taken by the workflow engine when
#           auto_approve is off
#  Created: 03OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from forgeflow.models import StepError

_YES = {"y", "yes", "true", "1"}
_NO = {"n", "no", "false", "0"}
#
# ============================================================================
# SECTION 2: ApprovalHandler Abstract Class
# ============================================================================
# Class 2.1: ApprovalHandler
# ============================================================================
#
class ApprovalHandler(ABC):
    """Answers the two questions the engine asks between iterations."""

    @abstractmethod
    async def confirm_retry(self, errors: List[StepError]) -> bool:
        """Return True to run another iteration after step failures."""
        raise NotImplementedError

    @abstractmethod
    async def confirm_continue(self, outputs: Dict[str, Any]) -> bool:
        """Return True to run another iteration when the workflow is not complete."""
        raise NotImplementedError
#
# ============================================================================
# Class 2.2: StaticApprovalHandler
# ============================================================================
#
class StaticApprovalHandler(ApprovalHandler):
    """Fixed answers; handy for headless runs and tests."""

    def __init__(self, retry: bool = False, proceed: bool = False):
        self.retry = retry
        self.proceed = proceed
        self.retry_requests = 0
        self.continue_requests = 0

    async def confirm_retry(self, errors: List[StepError]) -> bool:
        self.retry_requests += 1
        return self.retry

    async def confirm_continue(self, outputs: Dict[str, Any]) -> bool:
        self.continue_requests += 1
        return self.proceed
#
# ============================================================================
# Class 2.3: ConsoleApprovalHandler
# ============================================================================
#
class ConsoleApprovalHandler(ApprovalHandler):
    """
    Asks an operator on the terminal. Empty answers take the default (yes).
    The blocking ``input`` call runs in a worker thread.
    """

    def __init__(self, input_func: Optional[Callable[[str], str]] = None, default: bool = True):
        self.input_func = input_func or input
        self.default = default

    async def confirm_retry(self, errors: List[StepError]) -> bool:
        logger.error("Workflow encountered errors:")
        for item in errors:
            logger.error(f"  x {item.step}: {item.message}")
        return await self._ask("Would you like to retry?")

    async def confirm_continue(self, outputs: Dict[str, Any]) -> bool:
        logger.info("Current workflow outputs:")
        for key, value in outputs.items():
            preview = json.dumps(value, default=str)[:100]
            logger.info(f"  {key}: {preview}...")
        return await self._ask("Continue with next iteration?")

    async def _ask(self, question: str) -> bool:
        suffix = "[Y/n]" if self.default else "[y/N]"
        while True:
            answer = await asyncio.to_thread(self.input_func, f"{question} {suffix} ")
            answer = (answer or "").strip().lower()
            if not answer:
                return self.default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            logger.warning(f"Unrecognised answer '{answer}'; please answer y or n")


#
#
## END: approval.py
