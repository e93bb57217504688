# ============================================================================
#  File: config_validate.py
#  Version: 2.0
#  Purpose: JSON-schema validation of raw workflow definitions (dicts loaded
#           from YAML/JSON) before they become Workflow models
#  Created: 03OCT26
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================

import json
import os
from typing import Any, Optional, Tuple

import jsonschema

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas", "workflow_schema.json")

_schema_cache = {}

# ============================================================================
# SECTION 2: Functions
# ============================================================================
# Function 2.1: load_schema
# ============================================================================
def load_schema(schema_path: str = SCHEMA_PATH) -> dict:
    """Load (and cache) a JSON schema file."""
    if schema_path not in _schema_cache:
        with open(schema_path, "r", encoding="utf-8") as f:
            _schema_cache[schema_path] = json.load(f)
    return _schema_cache[schema_path]

# ============================================================================
# Function 2.2: validate_workflow_definition
# ============================================================================
def validate_workflow_definition(
    definition: Any, schema_path: str = SCHEMA_PATH
) -> Tuple[bool, Optional[str]]:
    """
    Validates a raw workflow definition against the JSON schema.

    Args:
        definition: Workflow definition as a dictionary
        schema_path: Path to the JSON schema file

    Returns:
        Tuple of (is_valid: bool, error_message: Optional[str])
    """
    try:
        schema = load_schema(schema_path)
        jsonschema.validate(instance=definition, schema=schema)
        return True, None

    except FileNotFoundError as e:
        return False, f"Schema file not found: {e}"
    except json.JSONDecodeError as e:
        return False, f"Invalid schema JSON format: {e}"
    except jsonschema.ValidationError as e:
        location = ".".join(str(part) for part in e.path)
        if location:
            return False, f"Workflow definition error at '{location}': {e.message}"
        return False, f"Workflow definition error: {e.message}"
    except jsonschema.SchemaError as e:
        return False, f"Schema validation error: {e.message}"

# ============================================================================
# Function 2.3: get_validation_errors
# ============================================================================
def get_validation_errors(definition: Any, schema_path: str = SCHEMA_PATH) -> list[dict]:
    """
    Get every validation error for a workflow definition.

    Returns:
        list[dict]: List of error dictionaries, each containing:
            - path (list): Path to the invalid field (e.g., ['steps', 0, 'type'])
            - message (str): Description of the validation error
            - invalid_value (any): The problematic value that failed validation

    Example:
        >>> errors = get_validation_errors({"id": "wf", "name": "x", "steps": [{}]})
        >>> errors[0]["path"]
        ['steps', 0]
    """
    if not isinstance(definition, dict):
        return [{
            "path": [],
            "message": f"Expected dict for workflow definition, got {type(definition).__name__}",
            "invalid_value": definition
        }]

    try:
        schema = load_schema(schema_path)
    except (OSError, json.JSONDecodeError) as e:
        return [{
            "path": [],
            "message": f"Error reading schema file: {e}",
            "invalid_value": None
        }]

    validator = jsonschema.Draft7Validator(schema)
    return [
        {
            "path": list(error.path),
            "message": error.message,
            "invalid_value": error.instance,
        }
        for error in sorted(validator.iter_errors(definition), key=lambda item: [str(part) for part in item.path])
    ]
#
#
## END config_validate.py
