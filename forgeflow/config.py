# ============================================================================
# FILENAME: config.py
# PURPOSE: Static defaults for the forgeflow workflow engine and streaming
#          auto-fix pipeline
# ============================================================================
# SECTION 1: Workflow Engine Defaults
# ============================================================================
# Linear retry backoff: delay before attempt N is RETRY_BASE_DELAY * N seconds
#
RETRY_BASE_DELAY = 1.0

# Per-step defaults
DEFAULT_STEP_RETRIES = 3
DEFAULT_STEP_TIMEOUT_MS = 60000

# Per-workflow defaults
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_WORKFLOW_VERSION = "1.0.0"

# Synthetic step name used for orchestration-level errors
WORKFLOW_ERROR_STEP = "workflow"
#
# ============================================================================
# SECTION 2: Streaming Pipeline Defaults
# ============================================================================
#
STREAM_TEMPERATURE = 0.7
STREAM_MAX_TOKENS = 4000

# Upper bound on whole-document optimization passes in generate_optimized
MAX_OPTIMIZATION_PASSES = 3

FRAMEWORK_INSTRUCTIONS = {
    "react": "Generate a React component with TypeScript, using functional components and hooks.",
    "vue": "Generate a Vue 3 component using Composition API with TypeScript.",
    "angular": "Generate an Angular component with TypeScript, using standalone components.",
    "svelte": "Generate a Svelte component with TypeScript support.",
}
#
# ============================================================================
# SECTION 3: Logging Configuration
# ============================================================================
#
LOG_CONFIG = {
    "handlers": {
        "file": {
            "level": "DEBUG",
            "rotation": "10 MB",
            "retention": "30 days",
        }
    },
    "formatters": {
        "default": {
            "format": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
        }
    }
}

#
#
## END config.py
