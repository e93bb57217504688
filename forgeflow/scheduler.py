# ============================================================================
#  File: scheduler.py
#  Version: 1.0
#  Purpose: Dependency-ordered, round-based concurrent execution of the
#           steps of one workflow iteration
#  Created: 03OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from forgeflow.error_handling import StepCancelledError, WorkflowConfigurationError
from forgeflow.event_bus import EventBus
from forgeflow.interpolation import evaluate_condition
from forgeflow.models import Artifact, ExecutionContext, StepError, WorkflowStep
from forgeflow.step_executor import StepExecutor

_SKIPPED = object()
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
# Class 2.1: SchedulerOutcome
# ============================================================================
#
@dataclass
class SchedulerOutcome:
    """What one scheduler run (one workflow iteration) produced."""

    outputs: Dict[str, Any] = field(default_factory=dict)
    errors: List[StepError] = field(default_factory=list)
    artifacts: List[Artifact] = field(default_factory=list)
    executed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    rounds: int = 0
    cancelled: bool = False
#
# ============================================================================
# SECTION 3: DependencyScheduler Class
# ============================================================================
# Class 3.1: DependencyScheduler
# ============================================================================
#
class DependencyScheduler:
    """
    Runs every dependency-satisfied step concurrently, round after round,
    until all steps have executed, a round reports a failure, or the run is
    cancelled.
    """

    #
    # =========================================================================
    # Method 3.1.1: __init__
    # =========================================================================
    #
    def __init__(self, executor: StepExecutor, event_bus: Optional[EventBus] = None):
        self.executor = executor
        self.event_bus = event_bus or executor.event_bus

    #
    # =========================================================================
    # Async Method 3.1.2: run
    # =========================================================================
    #
    async def run(
        self,
        steps: Sequence[WorkflowStep],
        context: ExecutionContext,
        cancel_event: asyncio.Event,
        execution_id: Optional[str] = None,
        on_step_done: Optional[Callable[[str], None]] = None,
    ) -> SchedulerOutcome:
        """
        Execute all steps of one iteration in dependency order.

        Successful outputs are written into ``context.outputs`` as soon as
        each step finishes, so later rounds can interpolate them.

        Raises:
            WorkflowConfigurationError: no step is ready although some remain
                (cycle or dependency on an unknown step)
        """
        outcome = SchedulerOutcome()
        executed: set = set()

        while len(executed) < len(steps):
            if cancel_event.is_set():
                outcome.cancelled = True
                logger.info(f"[Scheduler] Execution '{execution_id}' cancelled; no further rounds")
                break

            ready = [
                step
                for step in steps
                if step.id not in executed
                and all(dep in executed for dep in step.dependencies)
            ]
            if not ready:
                remaining = [step.id for step in steps if step.id not in executed]
                raise WorkflowConfigurationError(
                    f"No executable steps found; circular or unresolved dependencies among {remaining}"
                )

            outcome.rounds += 1
            logger.debug(
                f"[Scheduler] Round {outcome.rounds}: running {[step.id for step in ready]}"
            )

            # All siblings settle before the round is judged
            results = await asyncio.gather(
                *(self._run_step(step, context, cancel_event, execution_id) for step in ready),
                return_exceptions=True,
            )

            for step, result in zip(ready, results):
                if isinstance(result, Exception):
                    outcome.errors.append(StepError(step=step.id, error=result))
                    continue
                if isinstance(result, BaseException):
                    raise result

                executed.add(step.id)
                if result is _SKIPPED:
                    outcome.skipped.append(step.id)
                else:
                    outcome.executed.append(step.id)
                    outcome.outputs[step.id] = result.content
                    outcome.artifacts.append(result)
                if on_step_done:
                    on_step_done(step.id)

            if outcome.errors:
                if cancel_event.is_set() and all(
                    isinstance(item.error, StepCancelledError) for item in outcome.errors
                ):
                    outcome.cancelled = True
                logger.error(
                    f"[Scheduler] Round {outcome.rounds} failed for steps "
                    f"{[item.step for item in outcome.errors]}; stopping iteration"
                )
                break

        return outcome

    #
    # =========================================================================
    # Async Method 3.1.3: _run_step
    # =========================================================================
    #
    async def _run_step(
        self,
        step: WorkflowStep,
        context: ExecutionContext,
        cancel_event: asyncio.Event,
        execution_id: Optional[str],
    ) -> Any:
        """Returns the step's Artifact, or _SKIPPED when its condition is false."""
        if cancel_event.is_set():
            raise StepCancelledError(step.id)

        if not await self._should_run(step, context):
            logger.debug(f"[Scheduler] Skipping step '{step.id}' due to condition")
            await self.event_bus.emit(
                "step:skipped", {"workflowId": execution_id, "step": step.id}
            )
            return _SKIPPED

        step_outcome = await self.executor.execute(step, context, cancel_event, execution_id)
        context.outputs[step.id] = step_outcome.output
        return Artifact(step=step.id, type=step.type.value, content=step_outcome.output)

    #
    # =========================================================================
    # Async Method 3.1.4: _should_run
    # =========================================================================
    #
    @staticmethod
    async def _should_run(step: WorkflowStep, context: ExecutionContext) -> bool:
        if step.condition is None:
            return True
        if isinstance(step.condition, str):
            return evaluate_condition(step.condition, context.view())
        result = step.condition(context.view())
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


#
#
## END: scheduler.py
