# ============================================================================
#  File: workflow_registry.py
#  Version: 1.0
#  Purpose: Loads, validates and serves the predefined workflow library
#  Created: 04OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
import os
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from forgeflow.config_manager import DEFAULT_WORKFLOWS_PATH, read_workflow_file
from forgeflow.config_validate import validate_workflow_definition
from forgeflow.error_handling import WorkflowConfigurationError
from forgeflow.models import Workflow

_registry_cache: Dict[str, Dict[str, Workflow]] = {}
#
# ============================================================================
# SECTION 2: Loading
# ============================================================================
# Function 2.1: load_workflows
# ============================================================================
#
def load_workflows(path: str = DEFAULT_WORKFLOWS_PATH) -> Dict[str, Workflow]:
    """
    Reads a YAML workflow file and builds Workflow models from it.

    Every definition is checked against the JSON schema first and then
    parsed by pydantic. An entry without an ``id`` takes its mapping key.

    Raises:
        WorkflowConfigurationError: a definition is invalid
    """
    workflows: Dict[str, Workflow] = {}
    for key, definition in read_workflow_file(path).items():
        if isinstance(definition, dict):
            definition = {"id": key, **definition}

        is_valid, message = validate_workflow_definition(definition)
        if not is_valid:
            raise WorkflowConfigurationError(f"Workflow '{key}' in {path}: {message}")

        try:
            workflows[key] = Workflow.model_validate(definition)
        except ValidationError as e:
            raise WorkflowConfigurationError(f"Workflow '{key}' in {path}: {e}") from e

    logger.info(f"[WorkflowRegistry] Loaded {len(workflows)} workflow(s) from {path}")
    return workflows


def _registry(path: Optional[str]) -> Dict[str, Workflow]:
    key = os.path.abspath(path or DEFAULT_WORKFLOWS_PATH)
    if key not in _registry_cache:
        _registry_cache[key] = load_workflows(key)
    return _registry_cache[key]
#
# ============================================================================
# SECTION 3: Lookup
# ============================================================================
# Function 3.1: get_workflow
# ============================================================================
#
def get_workflow(workflow_id: str, path: Optional[str] = None) -> Optional[Workflow]:
    """Returns the predefined workflow with this id, or None."""
    return _registry(path).get(workflow_id)

#
# ============================================================================
# Function 3.2: list_workflows
# ============================================================================
#
def list_workflows(path: Optional[str] = None) -> List[Dict[str, Any]]:
    return [
        {
            "id": key,
            "name": workflow.name,
            "description": workflow.description,
            "steps": len(workflow.steps),
        }
        for key, workflow in _registry(path).items()
    ]


#
#
## END: workflow_registry.py
