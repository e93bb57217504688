# ============================================================================
#  File:    error_handling.py
#  Purpose: Workflow error codes, standardized messages, and the exception
#           taxonomy shared by the engine and the streaming pipeline
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================

from typing import Optional

# ============================================================================
# SECTION 2: Error Codes and Messages
# ============================================================================
ERROR_CODES = {
    'E002': 'Workflow configuration invalid',
    'E003': 'Step execution failed or timed out',
    'E004': 'Provider stream failed',
    'E006': 'Step output did not match its schema',
    'E007': 'No JSON object found in model output',
    'E008': 'Execution cancelled',
    'E999': 'Unknown error'
}

# ============================================================================
# SECTION 3: Error Handling Utilities
# ============================================================================
# Function 3.1: get_error_message
# ============================================================================
def get_error_message(code, detail=None):
    """Formats a standardized error message from an error code."""
    message = ERROR_CODES.get(code, ERROR_CODES['E999'])
    if detail:
        return f"[{code}] {message}: {str(detail)}"
    return f"[{code}] {message}"

# ============================================================================
# SECTION 4: Exception Taxonomy
# ============================================================================
# Class 4.1: ForgeflowError
# ============================================================================
class ForgeflowError(Exception):
    """Base class for every error raised by forgeflow."""

    code = 'E999'

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(get_error_message(self.code, detail))

# ============================================================================
# Class 4.2: WorkflowConfigurationError
# ============================================================================
class WorkflowConfigurationError(ForgeflowError):
    """Fatal, non-retryable problem with a workflow definition (cycles,
    unknown dependencies, schema violations)."""

    code = 'E002'

# ============================================================================
# Class 4.3: StepExecutionError
# ============================================================================
class StepExecutionError(ForgeflowError):
    """A step exhausted its retries. Carries the step id and last error."""

    code = 'E003'

    def __init__(self, step_id: str, attempts: int, last_error: Optional[BaseException] = None):
        self.step_id = step_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Step '{step_id}' failed after {attempts} attempt(s). Last error: {last_error}"
        )

# ============================================================================
# Class 4.4: StepTimeoutError
# ============================================================================
class StepTimeoutError(ForgeflowError):
    code = 'E003'

    def __init__(self, step_id: str, timeout_ms: int):
        self.step_id = step_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Step '{step_id}' timed out after {timeout_ms} ms")

# ============================================================================
# Class 4.5: OutputSchemaError
# ============================================================================
class OutputSchemaError(ForgeflowError):
    code = 'E006'

# ============================================================================
# Class 4.6: JsonExtractionError
# ============================================================================
class JsonExtractionError(ForgeflowError):
    code = 'E007'

# ============================================================================
# Class 4.7: StepCancelledError / WorkflowCancelledError
# ============================================================================
class StepCancelledError(ForgeflowError):
    code = 'E008'

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' aborted by cancellation")


class WorkflowCancelledError(ForgeflowError):
    code = 'E008'

# ============================================================================
# Class 4.8: ProviderStreamError
# ============================================================================
class ProviderStreamError(ForgeflowError):
    """Raised when a provider returns something that is not a usable stream."""

    code = 'E004'
#
#
## End Script
