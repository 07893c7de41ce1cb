"""
UTC timestamps for audit entries, step traces and row updates
"""
from datetime import datetime, timezone


def now_utc() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)
