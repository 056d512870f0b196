from datetime import datetime, timezone
from typing import Callable

# Services take a clock so ledger timestamps can be pinned in tests
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)
