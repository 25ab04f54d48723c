"""
Circulation Service Clock

Every checkout, return and fine computation reads time from an injected
clock so tests can freeze it.
"""

from datetime import datetime, timezone


class SystemClock:
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["SystemClock"]
