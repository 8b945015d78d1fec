"""Timing and selection constants for the decision engine."""

MILLISECONDS_PER_MINUTE = 60 * 1000
MILLISECONDS_PER_HOUR = 60 * MILLISECONDS_PER_MINUTE
MILLISECONDS_PER_DAY = 24 * MILLISECONDS_PER_HOUR

# Price blocks
BLOCK_DURATION_MINUTES = 15
BLOCK_DURATION_MS = BLOCK_DURATION_MINUTES * MILLISECONDS_PER_MINUTE
BLOCKS_PER_DAY = (24 * 60) // BLOCK_DURATION_MINUTES  # 96

# Manual override
MANUAL_OVERRIDE_DURATION_MS = 15 * MILLISECONDS_PER_MINUTE
OVERRIDE_LOG_INTERVAL_MS = 5 * MILLISECONDS_PER_MINUTE

# Selection policies
SELECTION_MODE_WINDOW = "window"
SELECTION_MODE_INDIVIDUAL = "individual"
SELECTION_MODES = [SELECTION_MODE_WINDOW, SELECTION_MODE_INDIVIDUAL]

DEFAULT_BLOCKS_COUNT = 8

# Cache maintenance
CACHE_RETENTION_DAYS = 7

UNKNOWN_TIMES = "Unknown"
