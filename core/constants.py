"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines the fixed values of the house rules lifecycle.

- Single source of truth for the review window and rule ranges
- No business logic here

============================================================
"""

from datetime import timedelta

# ============================================================
# REVIEW WINDOW
# ============================================================

REVIEW_WINDOW_HOURS = 24
REVIEW_WINDOW = timedelta(hours=REVIEW_WINDOW_HOURS)

# ============================================================
# RULE RANGES
# ============================================================

MIN_RULE_POINTS = -1000
MAX_RULE_POINTS = 1000

MIN_VETO_THRESHOLD = 0
MAX_VETO_THRESHOLD = 100

# ============================================================
# CONCURRENCY
# ============================================================

DEFAULT_MAX_CONFLICT_RETRIES = 3
DEFAULT_SWEEP_INTERVAL_SECONDS = 300

# ============================================================
# DISPLAY FALLBACKS
# ============================================================

UNKNOWN_MEMBER_NAME = "Unknown"
UNKNOWN_RULE_DESCRIPTION = "Unknown rule"
