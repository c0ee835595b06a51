"""Common configuration constants used across the application."""

from datetime import timedelta

# Staleness
MINER_STATS_MAX_AGE = timedelta(minutes=20)
"""Miner snapshots older than this are not reported as current performance"""

# Bucketing
THREE_MINUTE_PARTITION = 3
"""Width in minutes of a three-minute sub-bucket (20 per hour)"""

# Retention
DEFAULT_RETENTION_DAYS = 30
"""Default number of days of pool/miner snapshots kept by the purge command"""

# Leaderboard
DEFAULT_PAGE_SIZE = 15
"""Default number of miners per leaderboard page"""

DEFAULT_LEADERBOARD_WINDOW_HOURS = 24
"""Default look-back window for the leaderboard report"""
