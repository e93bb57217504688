# ============================================================================
#  File: interpolation.py
#  Version: 1.0
#  Purpose: {{placeholder}} substitution and dotted-path lookup over an
#           execution context
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import json
import re
from typing import Any, Mapping, Tuple

from loguru import logger

# {{name}}, {{name.field}}, {{outputs.step-id.field}}
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w-]+(?:\.[\w-]+)*)\s*\}\}")

_MISSING = object()
#
# ============================================================================
# SECTION 2: Path Lookup
# ============================================================================
# Function 2.1: resolve_path
# ============================================================================
#
def resolve_path(context: Any, path: str) -> Tuple[bool, Any]:
    """
    Walk a dotted path through nested mappings, sequences and attributes.

    Returns:
        Tuple of (found, value). ``found`` is False as soon as a segment
        cannot be resolved; ``None`` values count as missing.
    """
    current = context
    for segment in path.split("."):
        current = _lookup_segment(current, segment)
        if current is _MISSING or current is None:
            return False, None
    return True, current


def _lookup_segment(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, _MISSING)
    if isinstance(current, (list, tuple)) and segment.isdigit():
        index = int(segment)
        return current[index] if index < len(current) else _MISSING
    return getattr(current, segment, _MISSING)
#
# ============================================================================
# SECTION 3: Prompt Interpolation
# ============================================================================
# Function 3.1: render_value
# ============================================================================
#
def render_value(value: Any) -> str:
    """Render a resolved context value for inclusion in a prompt."""
    if isinstance(value, str):
        return value
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    try:
        return json.dumps(value, indent=2, default=str)
    except (TypeError, ValueError):
        return str(value)

#
# ============================================================================
# Function 3.2: interpolate_prompt
# ============================================================================
#
def interpolate_prompt(template: str, context: Any) -> str:
    """
    Substitute every resolvable placeholder in ``template``.

    Unresolved placeholders are left verbatim; they may resolve in a later
    iteration once the step they name has produced output.
    """

    def _replace(match: "re.Match[str]") -> str:
        found, value = resolve_path(context, match.group(1))
        if not found:
            logger.debug(f"[interpolation] Placeholder left unresolved: {match.group(0)}")
            return match.group(0)
        return render_value(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)
#
# ============================================================================
# SECTION 4: Declarative Conditions
# ============================================================================
# Function 4.1: evaluate_condition
# ============================================================================
#
def evaluate_condition(expression: str, context: Any) -> bool:
    """
    Evaluate a declarative step condition against the context.

    Supported forms::

        outputs.review.approved           truthiness of a path
        not outputs.validate.valid        negated truthiness
        input.framework == "react"        equality with a JSON literal
        input.framework != "vue"          inequality with a JSON literal

    Missing paths are falsy.
    """
    text = expression.strip()
    negate = False
    if text.startswith("not "):
        negate = True
        text = text[4:].strip()

    for operator in ("==", "!="):
        if operator in text:
            path, literal = (part.strip() for part in text.split(operator, 1))
            found, value = resolve_path(context, path)
            expected = _parse_literal(literal)
            matched = (found and value == expected) if operator == "==" else not (found and value == expected)
            return not matched if negate else matched

    found, value = resolve_path(context, text)
    truthy = bool(value) if found else False
    return not truthy if negate else truthy


def _parse_literal(literal: str) -> Any:
    try:
        return json.loads(literal)
    except json.JSONDecodeError:
        return literal.strip("'\"")


#
#
## END: interpolation.py
