"""Caller-supplied cancellation and deadline signal for store operations.

A ``Context`` is created by the caller (usually one per HTTP request) and
passed as the first argument of every ``TicketService`` operation. The store
checks it before opening a unit of work, between statements and right before
commit, so a cancelled operation never commits partially.
"""

import threading
import time
from typing import Optional

from ..domain.errors import DeadlineExceededError, OperationCancelledError


class Context:
    """Cancellation flag plus an optional monotonic deadline."""

    def __init__(self, deadline: Optional[float] = None):
        self._deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "Context":
        """Return a context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "Context":
        """Return a context whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def with_deadline(cls, deadline: float) -> "Context":
        """Return a context expiring at ``deadline`` (``time.monotonic()`` clock)."""
        return cls(deadline=deadline)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self) -> None:
        """Signal cancellation to every operation using this context."""
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self, operation: str) -> None:
        """Raise if the context was cancelled or its deadline has passed.

        Raises:
            OperationCancelledError: After ``cancel()`` was called.
            DeadlineExceededError: Once the deadline is reached.
        """
        if self._cancelled.is_set():
            raise OperationCancelledError(operation)
        if self.expired:
            raise DeadlineExceededError(operation)

    def __repr__(self) -> str:
        return f"<Context(deadline={self._deadline}, cancelled={self.cancelled})>"
