"""Defaults and bounds for jiffytop."""

# Kernel sources
PROC_ROOT = "/proc"
COUNTER_PREFIX = "cpu"

# /proc/stat counter lines carry ten tick fields after the label
COUNTER_FIELDS = 10

# Tokens required after the ")" of /proc/<pid>/stat (state .. end_data)
MIN_PROCESS_FIELDS = 44

# Kernel counters are unsigned 64-bit
UINT64_MAX = 2**64 - 1
INT64_MIN = -(2**63)

# Sampling
DEFAULT_SAMPLE_COUNT = 5
DEFAULT_INTERVAL = 0.5  # seconds between the two reads of one sample

# Monitor thread
DEFAULT_POLL_INTERVAL = 2.0
MIN_POLL_INTERVAL = 0.1
MAX_PROCESS_ROWS = 200

# Logging
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
