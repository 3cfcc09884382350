"""Tests for retry logic, exponential backoff and the store clock."""

from datetime import datetime, timedelta, timezone

import pytest

from tixer.config import StoreConfig
from tixer.store import MonotonicClock, RetryPolicy, compute_backoff


class TestComputeBackoff:
    """Test exponential backoff computation."""

    @pytest.mark.unit
    def test_first_attempt_base_delay(self):
        """Test that first attempt uses base delay."""
        delay = compute_backoff(attempt=0, base=1.0, max_delay=60.0, jitter_ratio=0.0)
        assert delay == 1.0

    @pytest.mark.unit
    def test_exponential_growth(self):
        """Test exponential growth of delay."""
        delays = [
            compute_backoff(attempt=attempt, base=2.0, max_delay=100.0, jitter_ratio=0.0)
            for attempt in range(5)
        ]
        assert delays == [2.0, 4.0, 8.0, 16.0, 32.0]

    @pytest.mark.unit
    def test_max_delay_cap(self):
        """Test that delay is capped at max_delay."""
        delay = compute_backoff(attempt=10, base=1.0, max_delay=5.0, jitter_ratio=0.0)
        assert delay == 5.0

    @pytest.mark.unit
    def test_jitter_stays_within_ratio(self):
        for _ in range(20):
            delay = compute_backoff(attempt=2, base=1.0, max_delay=60.0, jitter_ratio=0.5)
            assert 2.0 <= delay <= 6.0

    @pytest.mark.unit
    def test_never_negative(self):
        for _ in range(20):
            assert compute_backoff(attempt=0, base=0.01, max_delay=1.0, jitter_ratio=1.0) >= 0.0


class TestRetryPolicy:
    """Test the store retry policy."""

    @pytest.mark.unit
    def test_delay_capped_by_remaining_time(self):
        policy = RetryPolicy(backoff_base=1.0, backoff_max=10.0, backoff_jitter=0.0)
        assert policy.delay(3) == 8.0
        assert policy.delay(3, remaining=0.5) == 0.5

    @pytest.mark.unit
    def test_from_config(self):
        policy = RetryPolicy.from_config(StoreConfig(max_attempts=7, backoff_base=0.5))
        assert policy.max_attempts == 7
        assert policy.backoff_base == 0.5

    @pytest.mark.unit
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestMonotonicClock:
    """Test store-assigned timestamps."""

    @pytest.mark.unit
    def test_readings_strictly_increase_when_wall_clock_stalls(self):
        frozen = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        clock = MonotonicClock(source=lambda: frozen)

        first, second, third = clock.now(), clock.now(), clock.now()
        assert first == frozen
        assert first < second < third

    @pytest.mark.unit
    def test_readings_never_step_backwards(self):
        readings = iter(
            [
                datetime(2024, 5, 1, 12, 0, 5, tzinfo=timezone.utc),
                datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
            ]
        )
        clock = MonotonicClock(source=lambda: next(readings))

        first = clock.now()
        assert clock.now() == first + timedelta(microseconds=1)

    @pytest.mark.unit
    def test_default_source_is_utc(self):
        assert MonotonicClock().now().tzinfo == timezone.utc
