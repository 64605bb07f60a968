"""Shared constants for the task graph engine."""

STATE_DIR_NAME = ".taskgraph"
CONFIG_FILE = "config.yaml"
STORE_FILE = "graph.yaml"
LOCK_FILE = "graph.lock"
LOCK_TIMEOUT_SECONDS = 30

# Critical path
FALLBACK_DURATION_HOURS = 8.0
BOTTLENECK_THRESHOLD = 2

# Impact scoring
DIRECT_DEPENDENT_WEIGHT = 3.0
INDIRECT_DEPENDENT_WEIGHT = 1.0
PRIORITY_DIVISOR = 5.0
OVERDUE_MULTIPLIER = 1.5
DUE_SOON_MULTIPLIER = 1.3
DUE_SOON_DAYS = 3
HIGH_RISK_THRESHOLD = 10.0
MEDIUM_RISK_THRESHOLD = 5.0
HOURS_PER_DAY = 8.0

# Progress aggregation
COMPLETE_PERCENTAGE = 100
MIN_WEIGHT = 0.1
MAX_WEIGHT = 5.0
HOURS_PER_WEIGHT_UNIT = 8.0
MAX_HOURS_FACTOR = 3.0
PRIORITY_WEIGHT_STEP = 0.2
MAX_HIERARCHY_DEPTH = 10

STATUS_PROGRESS = {
    "done": 100,
    "in_progress": 50,
    "blocked": 25,
}

# Hard stop for traversals over corrupted data
MAX_TRAVERSAL_ITERATIONS = 100_000
