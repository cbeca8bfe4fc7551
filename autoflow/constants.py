"""Engine-wide defaults."""

MAX_STEPS_PER_EXECUTION = 1000
DEFAULT_DELAY_MS = 1000
DEFAULT_WEBHOOK_TIMEOUT_SECONDS = 10.0
WORKFLOW_FILE_VERSION = "1.0"

STEP_LIMIT_EXCEEDED = "step limit exceeded"
