"""System clock adapter - Implements Clock protocol."""

from datetime import datetime, timezone


class SystemClock:
    """Current wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
