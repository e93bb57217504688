# ============================================================================
#  File: json_extract.py
#  Version: 1.0
#  Purpose: Pull the first balanced {...} block out of free-form model output
#           and parse it
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import json
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from forgeflow.error_handling import JsonExtractionError
#
# ============================================================================
# SECTION 2: Result Type
# ============================================================================
# Class 2.1: JsonExtraction
# ============================================================================
#
@dataclass(frozen=True)
class JsonExtraction:
    """Outcome of an extraction: either ``value`` or ``error`` is meaningful."""

    ok: bool
    value: Any = None
    error: Optional[str] = None
    raw: Optional[str] = None

    def unwrap(self) -> Any:
        if not self.ok:
            raise JsonExtractionError(self.error)
        return self.value
#
# ============================================================================
# SECTION 3: Extraction
# ============================================================================
# Function 3.1: find_balanced_block
# ============================================================================
#
def find_balanced_block(text: str, start_char: str = "{", end_char: str = "}") -> Optional[Tuple[int, int]]:
    """
    Locate the first balanced block opened by ``start_char``.

    Characters inside JSON string literals (including escaped quotes) do not
    count towards the balance.

    Returns:
        (start, end) slice bounds, or None when no balanced block exists.
    """
    start = text.find(start_char)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == start_char:
                depth += 1
            elif char == end_char:
                depth -= 1
                if depth == 0:
                    return start, index + 1
        # Unbalanced from this opener; try the next one
        start = text.find(start_char, start + 1)
    return None

#
# ============================================================================
# Function 3.2: extract_json
# ============================================================================
#
def extract_json(text: str) -> JsonExtraction:
    """Extract and parse the first JSON object embedded in ``text``."""
    if not isinstance(text, str):
        return JsonExtraction(ok=False, error=f"Expected text, got {type(text).__name__}")

    stripped = text.strip()
    if stripped.startswith("{") or stripped.startswith("["):
        try:
            return JsonExtraction(ok=True, value=json.loads(stripped), raw=stripped)
        except json.JSONDecodeError:
            pass

    bounds = find_balanced_block(text)
    if bounds is None:
        return JsonExtraction(ok=False, error="no balanced JSON object in output", raw=text)

    block = text[bounds[0]:bounds[1]]
    try:
        return JsonExtraction(ok=True, value=json.loads(block), raw=block)
    except json.JSONDecodeError as e:
        return JsonExtraction(ok=False, error=f"malformed JSON object: {e}", raw=block)

#
# ============================================================================
# Function 3.3: parse_json_output
# ============================================================================
#
def parse_json_output(text: str) -> Any:
    """Like extract_json but raises JsonExtractionError on failure."""
    return extract_json(text).unwrap()


#
#
## END: json_extract.py
