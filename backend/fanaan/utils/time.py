"""
Time utilities for the Fanaan backend.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware, Python 3.12+ compatible)."""
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    """Milliseconds since the epoch, used to stamp download file names."""
    return int(utcnow().timestamp() * 1000)
