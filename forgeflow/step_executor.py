# ============================================================================
#  File: step_executor.py
#  Version: 1.0
#  Purpose: Runs one workflow step against the text provider with typed
#           prompt wrapping, schema validation, retries and cancellation
#  Created: 03OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import jsonschema
from loguru import logger
from pydantic import ValidationError

from forgeflow.config import RETRY_BASE_DELAY
from forgeflow.error_handling import (
    OutputSchemaError,
    StepCancelledError,
    StepExecutionError,
    StepTimeoutError,
)
from forgeflow.event_bus import EventBus
from forgeflow.interpolation import interpolate_prompt
from forgeflow.json_extract import parse_json_output
from forgeflow.models import ExecutionContext, StepType, WorkflowStep
from forgeflow.provider import TextProvider
from forgeflow.telemetry import record_telemetry
#
# ============================================================================
# SECTION 2: Step Instruction Templates
# ============================================================================
#
VALIDATE_TEMPLATE = """
{prompt}

Context:
{context}

Please validate the output and return a JSON object with:
1. "valid": true/false
2. "errors": array of validation errors (if any)
3. "suggestions": array of improvement suggestions
"""

OPTIMIZE_TEMPLATE = """
{prompt}

Current Output:
{outputs}

Please optimize the output for:
1. Performance
2. Readability
3. Best practices
4. Code reduction

Return the optimized version.
"""

REVIEW_TEMPLATE = """
{prompt}

Output to Review:
{outputs}

Please provide a comprehensive review including:
1. Quality assessment
2. Potential issues
3. Improvement suggestions
4. Security considerations
"""

ANALYZE_TEMPLATE = """
{prompt}

Data to Analyze:
{outputs}

Provide detailed analysis including patterns, insights, and recommendations.
"""


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)
#
# ============================================================================
# SECTION 3: Data Structures
# ============================================================================
# Class 3.1: StepOutcome
# ============================================================================
#
@dataclass
class StepOutcome:
    output: Any
    attempts: int
    duration_ms: int
#
# ============================================================================
# SECTION 4: StepExecutor Class
# ============================================================================
# Class 4.1: StepExecutor
# ============================================================================
#
class StepExecutor:
    """
    Executes a single step: interpolate, dispatch by type, validate the
    output schema, retry with linear backoff, honour cancellation.
    """

    #
    # ========================================================================
    # Method 4.1.1: __init__
    # ========================================================================
    #
    def __init__(
        self,
        provider: TextProvider,
        event_bus: Optional[EventBus] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        self.provider = provider
        self.event_bus = event_bus or EventBus()
        self.retry_base_delay = retry_base_delay
        self._handlers: Dict[StepType, Callable[..., Awaitable[Any]]] = {
            StepType.GENERATE: self._run_generate,
            StepType.VALIDATE: self._run_validate,
            StepType.OPTIMIZE: self._run_optimize,
            StepType.REVIEW: self._run_review,
            StepType.TRANSFORM: self._run_transform,
            StepType.ANALYZE: self._run_analyze,
        }

    #
    # ========================================================================
    # Async Method 4.1.2: execute
    # ========================================================================
    #
    @record_telemetry("StepExecutor", "execute")
    async def execute(
        self,
        step: WorkflowStep,
        context: ExecutionContext,
        cancel_event: asyncio.Event,
        execution_id: Optional[str] = None,
    ) -> StepOutcome:
        """
        Execute one step with retries.

        Args:
            step: The step definition
            context: The execution context of the owning run
            cancel_event: Set when the run is being stopped
            execution_id: Owning execution, used in events

        Returns:
            StepOutcome with the (possibly parsed and validated) output

        Raises:
            StepCancelledError: cancellation observed before or during an attempt
            StepExecutionError: every attempt failed
        """
        started = time.monotonic()
        max_attempts = step.retries
        last_error: Optional[BaseException] = None

        await self.event_bus.emit(
            "step:start",
            {"workflowId": execution_id, "step": step.id, "name": step.name},
        )

        try:
            if max_attempts == 0:
                logger.warning(f"[StepExecutor] Step '{step.id}' allows no attempts")
            for attempt in range(max_attempts):
                if attempt > 0:
                    await self._backoff(step, attempt, cancel_event)
                self._check_cancelled(step, cancel_event)

                try:
                    output = await self._run_attempt(step, context, cancel_event)
                except StepCancelledError:
                    raise
                except Exception as e:
                    last_error = e
                    logger.warning(
                        f"[StepExecutor] Step '{step.id}' attempt {attempt + 1}/{max_attempts} failed: {e}"
                    )
                    if attempt < max_attempts - 1:
                        await self.event_bus.emit(
                            "step:retry",
                            {"workflowId": execution_id, "step": step.id, "attempt": attempt + 1, "error": e},
                        )
                    continue

                duration_ms = int((time.monotonic() - started) * 1000)
                logger.info(f"[StepExecutor] Step '{step.id}' completed in {duration_ms} ms")
                await self.event_bus.emit(
                    "step:complete",
                    {"workflowId": execution_id, "step": step.id, "output": output},
                )
                return StepOutcome(output=output, attempts=attempt + 1, duration_ms=duration_ms)

            raise StepExecutionError(step.id, max_attempts, last_error) from last_error

        except Exception as e:
            logger.error(f"[StepExecutor] Step '{step.id}' failed: {e}")
            await self.event_bus.emit(
                "step:error", {"workflowId": execution_id, "step": step.id, "error": e}
            )
            raise

    #
    # ========================================================================
    # Async Method 4.1.3: _run_attempt
    # ========================================================================
    #
    async def _run_attempt(
        self, step: WorkflowStep, context: ExecutionContext, cancel_event: asyncio.Event
    ) -> Any:
        prompt = interpolate_prompt(step.prompt, context.view())
        handler = self._handlers[step.type]
        output = await handler(step, prompt, context, cancel_event)
        self._check_cancelled(step, cancel_event)

        if step.output_schema is not None:
            output = validate_output_schema(step, output)
        return output

    #
    # ========================================================================
    # Async Methods 4.1.4: per-type handlers
    # ========================================================================
    #
    async def _run_generate(self, step, prompt, context, cancel_event):
        return await self._call_provider(
            step, prompt, cancel_event, {"timeout_ms": step.timeout_ms}
        )

    async def _run_validate(self, step, prompt, context, cancel_event):
        validation_prompt = VALIDATE_TEMPLATE.format(
            prompt=prompt, context=_to_json(context.view())
        )
        raw = await self._call_provider(step, validation_prompt, cancel_event)
        return parse_json_output(raw)

    async def _run_optimize(self, step, prompt, context, cancel_event):
        optimization_prompt = OPTIMIZE_TEMPLATE.format(
            prompt=prompt, outputs=_to_json(context.outputs)
        )
        return await self._call_provider(step, optimization_prompt, cancel_event)

    async def _run_review(self, step, prompt, context, cancel_event):
        review_prompt = REVIEW_TEMPLATE.format(
            prompt=prompt, outputs=_to_json(context.outputs)
        )
        return await self._call_provider(step, review_prompt, cancel_event)

    async def _run_transform(self, step, prompt, context, cancel_event):
        return await self._call_provider(step, prompt, cancel_event)

    async def _run_analyze(self, step, prompt, context, cancel_event):
        analysis_prompt = ANALYZE_TEMPLATE.format(
            prompt=prompt, outputs=_to_json(context.outputs)
        )
        return await self._call_provider(step, analysis_prompt, cancel_event)

    #
    # ========================================================================
    # Async Method 4.1.5: _call_provider
    # ========================================================================
    #
    async def _call_provider(
        self,
        step: WorkflowStep,
        prompt: str,
        cancel_event: asyncio.Event,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Await one provider call, bounded by the step timeout and abandoned as
        soon as the cancel event fires.
        """
        logger.debug(f"[StepExecutor] Prompt preview for '{step.id}': {prompt[:200]}...")
        call = asyncio.ensure_future(self.provider.generate(prompt, options))
        cancel_wait = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {call, cancel_wait},
                timeout=step.timeout_ms / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            cancel_wait.cancel()
            await asyncio.gather(cancel_wait, return_exceptions=True)

        if call in done:
            return call.result()

        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        if cancel_event.is_set():
            raise StepCancelledError(step.id)
        raise StepTimeoutError(step.id, step.timeout_ms)

    #
    # ========================================================================
    # Async Method 4.1.6: _backoff
    # ========================================================================
    #
    async def _backoff(self, step: WorkflowStep, attempt: int, cancel_event: asyncio.Event) -> None:
        """Sleep retry_base_delay * attempt, waking early on cancellation."""
        self._check_cancelled(step, cancel_event)
        delay = self.retry_base_delay * attempt
        if delay <= 0:
            return
        logger.info(f"[StepExecutor] Retrying step '{step.id}' in {delay:.2f} seconds...")
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise StepCancelledError(step.id)

    @staticmethod
    def _check_cancelled(step: WorkflowStep, cancel_event: asyncio.Event) -> None:
        if cancel_event.is_set():
            raise StepCancelledError(step.id)
#
# ============================================================================
# SECTION 5: Output Schema Validation
# ============================================================================
# Function 5.1: validate_output_schema
# ============================================================================
#
def validate_output_schema(step: WorkflowStep, output: Any) -> Any:
    """
    Check a step output against its schema. String outputs are JSON-parsed
    first. Pydantic schemas return the validated data as a plain dict.
    """
    data = parse_json_output(output) if isinstance(output, str) else output
    schema = step.output_schema

    if isinstance(schema, dict):
        try:
            jsonschema.validate(instance=data, schema=schema)
        except jsonschema.ValidationError as e:
            raise OutputSchemaError(f"step '{step.id}': {e.message}") from e
        except jsonschema.SchemaError as e:
            raise OutputSchemaError(f"step '{step.id}' has an invalid schema: {e.message}") from e
        return data

    try:
        return schema.model_validate(data).model_dump()
    except ValidationError as e:
        raise OutputSchemaError(f"step '{step.id}': {e}") from e


#
#
## END: step_executor.py
