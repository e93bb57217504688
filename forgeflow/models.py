# ============================================================================
#  File: models.py
#  Version: 1.0
#  Purpose: Workflow definitions (pydantic) and execution records
#           (dataclasses)
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from forgeflow.config import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_STEP_RETRIES,
    DEFAULT_STEP_TIMEOUT_MS,
    DEFAULT_WORKFLOW_VERSION,
)
#
# ============================================================================
# SECTION 2: Workflow Definition Models
# ============================================================================
# Class 2.1: StepType
# ============================================================================
#
class StepType(str, Enum):
    """The six kinds of provider work a step can perform."""

    GENERATE = "generate"
    VALIDATE = "validate"
    OPTIMIZE = "optimize"
    REVIEW = "review"
    TRANSFORM = "transform"
    ANALYZE = "analyze"
#
# ============================================================================
# Class 2.2: WorkflowStep
# ============================================================================
#
class WorkflowStep(BaseModel):
    """One declared unit of work inside a workflow."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    id: str = Field(min_length=1)
    name: str
    type: StepType
    prompt: str
    description: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    retries: int = Field(default=DEFAULT_STEP_RETRIES, ge=0)
    timeout_ms: int = Field(default=DEFAULT_STEP_TIMEOUT_MS, gt=0)
    # JSON-schema dict or a pydantic model class
    output_schema: Optional[Any] = None
    # Callable(context) -> bool (sync or async), or a path expression string
    condition: Optional[Any] = None

    @field_validator("output_schema")
    @classmethod
    def _check_output_schema(cls, value: Any) -> Any:
        if value is None or isinstance(value, dict):
            return value
        if isinstance(value, type) and issubclass(value, BaseModel):
            return value
        raise ValueError("output_schema must be a JSON-schema dict or a pydantic model class")

    @field_validator("condition")
    @classmethod
    def _check_condition(cls, value: Any) -> Any:
        if value is None or callable(value) or isinstance(value, str):
            return value
        raise ValueError("condition must be a callable or a path expression string")
#
# ============================================================================
# Class 2.3: WorkflowOptions
# ============================================================================
#
class WorkflowOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    auto_approve: bool = False
    save_intermediate_results: bool = True
    parallel_execution: bool = False
#
# ============================================================================
# Class 2.4: Workflow
# ============================================================================
#
class Workflow(BaseModel):
    """
    A named, versioned collection of steps plus execution options.

    Validation rejects duplicate step ids, dependencies on unknown steps
    and dependency cycles.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    version: str = DEFAULT_WORKFLOW_VERSION
    steps: List[WorkflowStep] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    options: WorkflowOptions = Field(default_factory=WorkflowOptions)

    @model_validator(mode="after")
    def _check_dependency_graph(self) -> "Workflow":
        validate_dependency_graph(self.steps)
        return self

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((step for step in self.steps if step.id == step_id), None)
#
# ============================================================================
# SECTION 3: Dependency Graph Checks
# ============================================================================
# Function 3.1: find_dependency_cycle
# ============================================================================
#
def find_dependency_cycle(steps: List[WorkflowStep]) -> Optional[List[str]]:
    """
    Depth-first search for a dependency cycle.

    Returns:
        The step ids forming the first cycle found (first id repeated at the
        end), or None when the graph is acyclic.
    """
    step_deps = {step.id: list(step.dependencies) for step in steps}
    visited: set = set()

    def walk(current: str, path: List[str]) -> Optional[List[str]]:
        if current in path:
            return path[path.index(current):] + [current]
        if current in visited:
            return None

        visited.add(current)
        path.append(current)
        for dependency in step_deps.get(current, []):
            cycle = walk(dependency, path)
            if cycle:
                return cycle
        path.pop()
        return None

    for step in steps:
        if step.id not in visited:
            cycle = walk(step.id, [])
            if cycle:
                return cycle
    return None

#
# ============================================================================
# Function 3.2: validate_dependency_graph
# ============================================================================
#
def validate_dependency_graph(steps: List[WorkflowStep]) -> None:
    """Raise ValueError for duplicate ids, unknown dependencies or cycles."""
    seen: set = set()
    for step in steps:
        if step.id in seen:
            raise ValueError(f"Duplicate step id '{step.id}'")
        seen.add(step.id)

    for step in steps:
        for dependency in step.dependencies:
            if dependency not in seen:
                raise ValueError(
                    f"Step '{step.id}' depends on non-existent step '{dependency}'"
                )

    cycle = find_dependency_cycle(steps)
    if cycle:
        raise ValueError(f"Circular dependency detected: {' -> '.join(cycle)}")
#
# ============================================================================
# SECTION 4: Execution Records
# ============================================================================
# Class 4.1: ExecutionContext
# ============================================================================
#
@dataclass
class ExecutionContext:
    """Mutable state threaded through one workflow run."""

    input: Any = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    static: Dict[str, Any] = field(default_factory=dict)

    def view(self) -> Dict[str, Any]:
        """Flat mapping used for interpolation and step conditions."""
        merged = dict(self.static)
        merged["input"] = self.input
        merged["outputs"] = self.outputs
        return merged
#
# ============================================================================
# Class 4.2: Artifact
# ============================================================================
#
@dataclass(frozen=True)
class Artifact:
    step: str
    type: str
    content: Any
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
#
# ============================================================================
# Class 4.3: StepError
# ============================================================================
#
@dataclass(frozen=True)
class StepError:
    step: str
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)
#
# ============================================================================
# Class 4.4: WorkflowResult
# ============================================================================
#
@dataclass
class WorkflowResult:
    """Terminal summary of one execution."""

    success: bool = True
    outputs: Dict[str, Any] = field(default_factory=dict)
    errors: List[StepError] = field(default_factory=list)
    duration_ms: int = 0
    iterations: int = 0
    artifacts: List[Artifact] = field(default_factory=list)
    execution_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "success": self.success,
            "outputs": self.outputs,
            "errors": [
                {"step": item.step, "error": item.message, "type": type(item.error).__name__}
                for item in self.errors
            ],
            "duration_ms": self.duration_ms,
            "iterations": self.iterations,
            "artifacts": [
                {
                    "step": artifact.step,
                    "type": artifact.type,
                    "content": artifact.content,
                    "timestamp": artifact.timestamp,
                }
                for artifact in self.artifacts
            ],
        }


#
#
## END: models.py
