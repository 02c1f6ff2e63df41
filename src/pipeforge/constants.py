"""Constants for pipeforge."""

# Retry policy
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_REPAIRS = 3  # consecutive patches of one generation

# Batch execution
DEFAULT_TARGET_RUNS = 10
DEFAULT_CONCURRENCY_LIMIT = 1
DEFAULT_INTER_RUN_DELAY = 1.0  # seconds between runs on one worker

# Collaborator calls (seconds)
DEFAULT_CALL_TIMEOUT = 600.0

# Error pattern analysis
DEFAULT_TOP_K = 10
MAX_PATTERN_EXAMPLES = 3

# Name of the terminal pseudo-stage holding the final checks
FINAL_STAGE = "final"

CONFIG_FILENAME = "pipeforge.toml"
