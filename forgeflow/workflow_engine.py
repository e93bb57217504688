# ============================================================================
#  File: workflow_engine.py
#  Version: 3.0
#  Purpose: Iterate-until-done execution of dependency-ordered workflows with
#           operator recovery prompts, cancellation and status tracking
#  Created: 03OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
import asyncio
import inspect
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger
from pydantic import ValidationError

from forgeflow.approval import ApprovalHandler, StaticApprovalHandler
from forgeflow.config import RETRY_BASE_DELAY, WORKFLOW_ERROR_STEP
from forgeflow.config_manager import EngineSettings
from forgeflow.error_handling import (
    StepCancelledError,
    WorkflowCancelledError,
    WorkflowConfigurationError,
)
from forgeflow.event_bus import EventBus
from forgeflow.models import (
    ExecutionContext,
    StepError,
    Workflow,
    WorkflowResult,
    validate_dependency_graph,
)
from forgeflow.provider import TextProvider
from forgeflow.scheduler import DependencyScheduler
from forgeflow.step_executor import StepExecutor
from forgeflow.telemetry import record_telemetry

CompletionCheck = Callable[[Workflow, ExecutionContext, int], Any]
#
# ============================================================================
# SECTION 2: Workflow Data Structures
# ============================================================================
# Class 2.1: ExecutionHandle
# ============================================================================
#
@dataclass
class ExecutionHandle:
    """Tracks one in-flight execution inside the engine registry."""

    execution_id: str
    workflow_id: str
    name: str
    total_steps: int
    max_iterations: int
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    status: str = "running"  # running, cancelling
    iteration: int = 0
    completed_steps: List[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
#
# ============================================================================
# Class 2.2: WorkflowEngine
# ============================================================================
# Owns the outer iteration loop around the dependency scheduler. Each
# execution gets its own context, id and cancellation event; the registry of
# running executions belongs to the engine instance.
# ============================================================================
class WorkflowEngine:
    #
    # =========================================================================
    # Method 2.2.1: __init__
    # =========================================================================
    #
    def __init__(
        self,
        provider: TextProvider,
        event_bus: Optional[EventBus] = None,
        approval_handler: Optional[ApprovalHandler] = None,
        completion_check: Optional[CompletionCheck] = None,
        retry_base_delay: Optional[float] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.provider = provider
        self.event_bus = event_bus or EventBus()
        # Headless default: never retry after errors, never ask for more iterations
        self.approval_handler = approval_handler or StaticApprovalHandler()
        self.completion_check = completion_check
        self.settings = settings

        if retry_base_delay is None:
            retry_base_delay = settings.retry_base_delay if settings else RETRY_BASE_DELAY

        self.executor = StepExecutor(provider, self.event_bus, retry_base_delay=retry_base_delay)
        self.scheduler = DependencyScheduler(self.executor, self.event_bus)
        self._executions: Dict[str, ExecutionHandle] = {}
    #
    # =========================================================================
    # Async Method 2.2.2: execute_workflow
    # =========================================================================
    #
    @record_telemetry("WorkflowEngine", "execute_workflow")
    async def execute_workflow(
        self,
        workflow: Union[Workflow, Mapping[str, Any]],
        initial_input: Any = None,
        execution_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Runs a workflow to completion and returns its result.

        Configuration problems, step failures and cancellation are all
        reported inside the returned WorkflowResult; this method does not
        raise for them.

        Args:
            workflow: A Workflow model or a plain definition mapping
            initial_input: Value exposed to prompts as ``{{input}}``
            execution_id: Optional caller-chosen id, used with stop_workflow

        Returns:
            WorkflowResult: Outputs, errors, artifacts and timing of the run
        """
        started = time.monotonic()
        result = WorkflowResult(execution_id=execution_id)

        try:
            definition = self._parse_workflow(workflow)
        except WorkflowConfigurationError as e:
            logger.error(f"[WorkflowEngine] Workflow rejected: {e}")
            return await self._fail_early(result, e, started)

        execution_id = execution_id or f"{definition.id}-{uuid.uuid4().hex[:12]}"
        result.execution_id = execution_id
        if execution_id in self._executions:
            error = WorkflowConfigurationError(f"Execution id '{execution_id}' is already running")
            logger.error(f"[WorkflowEngine] {error}")
            return await self._fail_early(result, error, started)

        handle = ExecutionHandle(
            execution_id=execution_id,
            workflow_id=definition.id,
            name=definition.name,
            total_steps=len(definition.steps),
            max_iterations=self._max_iterations(definition),
        )
        self._executions[execution_id] = handle
        context = ExecutionContext(input=initial_input, static=dict(definition.context))

        logger.info(f"[WorkflowEngine] Starting workflow '{definition.name}' as '{execution_id}'")
        await self.event_bus.emit(
            "workflow:start",
            {"workflowId": execution_id, "workflow": definition.id, "name": definition.name},
        )

        try:
            await self._run_iterations(definition, context, handle, result)
        except Exception as e:
            logger.exception(f"[WorkflowEngine] Workflow '{execution_id}' aborted: {e}")
            result.success = False
            result.errors.append(StepError(step=WORKFLOW_ERROR_STEP, error=e))
            await self.event_bus.emit("workflow:error", {"workflowId": execution_id, "error": e})
        finally:
            self._executions.pop(execution_id, None)

        result.outputs = dict(context.outputs)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"[WorkflowEngine] Workflow '{execution_id}' finished: success={result.success}, "
            f"iterations={result.iterations}, duration={result.duration_ms} ms"
        )
        await self.event_bus.emit("workflow:complete", {"workflowId": execution_id, "result": result})
        return result
    #
    # =========================================================================
    # Async Method 2.2.3: _run_iterations
    # =========================================================================
    #
    async def _run_iterations(
        self,
        definition: Workflow,
        context: ExecutionContext,
        handle: ExecutionHandle,
        result: WorkflowResult,
    ) -> None:
        auto_approve = self._auto_approve(definition)

        while True:
            if handle.cancel_event.is_set():
                await self._record_cancellation(result, handle)
                return

            if result.iterations >= handle.max_iterations:
                logger.info(
                    f"[WorkflowEngine] '{handle.execution_id}' reached max iterations ({handle.max_iterations})"
                )
                return

            result.iterations += 1
            handle.iteration = result.iterations
            handle.completed_steps = []
            await self.event_bus.emit(
                "workflow:iteration:start",
                {"workflowId": handle.execution_id, "iteration": result.iterations},
            )

            outcome = await self.scheduler.run(
                definition.steps,
                context,
                handle.cancel_event,
                execution_id=handle.execution_id,
                on_step_done=handle.completed_steps.append,
            )
            result.artifacts.extend(outcome.artifacts)

            await self.event_bus.emit(
                "workflow:iteration:end",
                {
                    "workflowId": handle.execution_id,
                    "iteration": result.iterations,
                    "executed": list(outcome.executed),
                    "skipped": list(outcome.skipped),
                    "errors": len(outcome.errors),
                },
            )

            if outcome.cancelled or handle.cancel_event.is_set():
                result.errors.extend(
                    item for item in outcome.errors if not isinstance(item.error, StepCancelledError)
                )
                await self._record_cancellation(result, handle)
                return

            if outcome.errors:
                result.errors.extend(outcome.errors)
                result.success = False
                if auto_approve:
                    logger.error(
                        f"[WorkflowEngine] '{handle.execution_id}' stopped after step errors (auto-approve)"
                    )
                    return
                if not await self.approval_handler.confirm_retry(list(outcome.errors)):
                    logger.info(f"[WorkflowEngine] Retry declined for '{handle.execution_id}'")
                    return
                logger.info(f"[WorkflowEngine] Retrying '{handle.execution_id}' in a new iteration")
                continue

            if await self.check_completion(definition, context, result.iterations):
                logger.info(f"[WorkflowEngine] '{handle.execution_id}' reports completion")
                return
            if not auto_approve and not await self.approval_handler.confirm_continue(dict(context.outputs)):
                logger.info(f"[WorkflowEngine] Further iterations declined for '{handle.execution_id}'")
                return
    #
    # =========================================================================
    # Async Method 2.2.4: check_completion
    # =========================================================================
    #
    async def check_completion(
        self, workflow: Workflow, context: ExecutionContext, iteration: int
    ) -> bool:
        """
        Decides whether a clean iteration finished the workflow. Uses the
        ``completion_check`` callable when one was given, otherwise True.
        Subclasses may override.
        """
        if self.completion_check is None:
            return True
        verdict = self.completion_check(workflow, context, iteration)
        if inspect.isawaitable(verdict):
            verdict = await verdict
        return bool(verdict)
    #
    # =========================================================================
    # Method 2.2.5: stop_workflow
    # =========================================================================
    #
    def stop_workflow(self, execution_id: str) -> None:
        """Signals cancellation to a running execution. Unknown or finished ids are ignored."""
        handle = self._executions.get(execution_id)
        if handle is None:
            logger.debug(f"[WorkflowEngine] stop_workflow: '{execution_id}' is not running")
            return
        if not handle.cancel_event.is_set():
            logger.info(f"[WorkflowEngine] Cancelling workflow '{execution_id}'")
            handle.status = "cancelling"
            handle.cancel_event.set()
    #
    # =========================================================================
    # Method 2.2.6: running_executions / get_execution_status
    # =========================================================================
    #
    def running_executions(self) -> List[str]:
        return list(self._executions)

    def get_execution_status(self, execution_id: str) -> Optional[Dict[str, Any]]:
        """
        Gets the progress of a running execution.

        Returns:
            Optional[Dict[str, Any]]: Status information, or None when the id
            is not running on this engine
        """
        handle = self._executions.get(execution_id)
        if handle is None:
            return None
        return {
            "execution_id": handle.execution_id,
            "workflow_id": handle.workflow_id,
            "name": handle.name,
            "status": handle.status,
            "iteration": handle.iteration,
            "max_iterations": handle.max_iterations,
            "completed_steps": len(handle.completed_steps),
            "total_steps": handle.total_steps,
            "start_time": handle.start_time.isoformat(),
        }
    #
    # =========================================================================
    # Method 2.2.7: _parse_workflow
    # =========================================================================
    #
    @staticmethod
    def _parse_workflow(workflow: Union[Workflow, Mapping[str, Any]]) -> Workflow:
        if isinstance(workflow, Workflow):
            definition = workflow
        elif isinstance(workflow, Mapping):
            try:
                definition = Workflow.model_validate(dict(workflow))
            except ValidationError as e:
                raise WorkflowConfigurationError(str(e)) from e
        else:
            raise WorkflowConfigurationError(
                f"Expected a Workflow or a mapping, got {type(workflow).__name__}"
            )

        try:
            validate_dependency_graph(definition.steps)
        except ValueError as e:
            raise WorkflowConfigurationError(str(e)) from e
        return definition
    #
    # =========================================================================
    # Helper Methods 2.2.8
    # =========================================================================
    #
    def _max_iterations(self, definition: Workflow) -> int:
        if self.settings and self.settings.max_iterations is not None:
            return self.settings.max_iterations
        return definition.options.max_iterations

    def _auto_approve(self, definition: Workflow) -> bool:
        if self.settings and self.settings.auto_approve is not None:
            return self.settings.auto_approve
        return definition.options.auto_approve

    async def _fail_early(
        self, result: WorkflowResult, error: Exception, started: float
    ) -> WorkflowResult:
        result.success = False
        result.errors.append(StepError(step=WORKFLOW_ERROR_STEP, error=error))
        result.duration_ms = int((time.monotonic() - started) * 1000)
        await self.event_bus.emit(
            "workflow:error", {"workflowId": result.execution_id, "error": error}
        )
        return result

    async def _record_cancellation(self, result: WorkflowResult, handle: ExecutionHandle) -> None:
        logger.warning(
            f"[WorkflowEngine] Workflow '{handle.execution_id}' cancelled during iteration {handle.iteration}"
        )
        result.success = False
        result.errors.append(
            StepError(
                step=WORKFLOW_ERROR_STEP,
                error=WorkflowCancelledError(f"Execution '{handle.execution_id}' was stopped"),
            )
        )
        await self.event_bus.emit(
            "workflow:cancelled",
            {"workflowId": handle.execution_id, "iteration": handle.iteration},
        )


#
#
## END: workflow_engine.py
