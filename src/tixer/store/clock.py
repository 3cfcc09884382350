"""Timestamp source for store-assigned ticket dates."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

RESOLUTION = timedelta(microseconds=1)


class MonotonicClock:
    """UTC clock whose readings strictly increase within the process.

    Two tickets created in quick succession never share a ``date_created``
    and every update moves ``date_updated`` forward, even when the wall clock
    stalls or steps backwards.
    """

    def __init__(self, source: Optional[Callable[[], datetime]] = None):
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current <= self._last:
                current = self._last + RESOLUTION
            self._last = current
            return current
