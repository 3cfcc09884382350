"""Retry policy for units of work that lose a write conflict."""

import random
from dataclasses import dataclass
from typing import Optional

from ..config import StoreConfig


def compute_backoff(
    attempt: int,
    base: float,
    max_delay: float,
    jitter_ratio: float
) -> float:
    """
    Compute exponential backoff delay with jitter.

    Args:
        attempt: Attempt number (0-based)
        base: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter_ratio: Jitter ratio (0.0 to 1.0)

    Returns:
        Delay in seconds (never negative)
    """
    # Exponential backoff: base * 2^attempt
    delay = min(max_delay, base * (2 ** attempt))

    # Add jitter: ±jitter_ratio of the delay
    jitter = random.uniform(-jitter_ratio, jitter_ratio) * delay

    return max(0.0, delay + jitter)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry of a whole unit of work on write conflicts."""

    max_attempts: int = 5
    backoff_base: float = 0.02
    backoff_max: float = 1.0
    backoff_jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls, config: StoreConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
            backoff_max=config.backoff_max,
            backoff_jitter=config.backoff_jitter,
        )

    def delay(self, attempt: int, remaining: Optional[float] = None) -> float:
        """Delay before retrying after ``attempt`` (0-based), capped by ``remaining``."""
        delay = compute_backoff(attempt, self.backoff_base, self.backoff_max, self.backoff_jitter)
        if remaining is not None:
            delay = min(delay, remaining)
        return delay

