"""Tests for token bucket arithmetic."""

import pytest

from bucketgate.exceptions import ConfigurationError
from bucketgate.limiter.bucket import (
    Decision,
    elapsed_intervals,
    is_whole_seconds,
    refill,
    resolve_interval,
    take,
    truncate,
)


class TestTruncate:
    """Tests for interval truncation."""

    @pytest.mark.parametrize(
        ("now", "interval", "expected"),
        [
            (1000.75, 1.0, 1000.0),
            (1000.0, 1.0, 1000.0),
            (1000.75, 0.5, 1000.5),
            (1000.3, 0.1, 1000.3),
            (1799.0, 1800.0, 0.0),
            (3601.0, 1800.0, 3600.0),
        ],
    )
    def test_truncate_to_interval_boundary(self, now, interval, expected):
        assert truncate(now, interval) == pytest.approx(expected)

    def test_truncate_is_idempotent(self):
        once = truncate(1_700_000_000.123, 0.25)
        assert truncate(once, 0.25) == once


class TestResolveInterval:
    """Tests for interval defaulting and validation."""

    @pytest.mark.parametrize("interval", [None, 0, 0.0])
    def test_unset_or_zero_defaults_to_one_second(self, interval):
        assert resolve_interval(interval) == 1.0

    def test_positive_interval_kept(self):
        assert resolve_interval(0.25) == 0.25

    @pytest.mark.parametrize("interval", [-1.0, -0.5, 1e-9])
    def test_unusable_interval_rejected(self, interval):
        with pytest.raises(ConfigurationError):
            resolve_interval(interval)

    @pytest.mark.parametrize(
        ("interval", "expected"),
        [(1.0, True), (60.0, True), (0.5, False), (1.5, False)],
    )
    def test_is_whole_seconds(self, interval, expected):
        assert is_whole_seconds(interval) is expected


class TestElapsedIntervals:
    """Tests for whole-interval counting."""

    def test_counts_whole_intervals(self):
        assert elapsed_intervals(100.0, 105.0, 1.0) == 5
        assert elapsed_intervals(100.0, 105.0, 2.0) == 2

    def test_future_last_refill_counts_as_zero(self):
        """Clock skew must not produce negative allotments."""
        assert elapsed_intervals(110.0, 105.0, 1.0) == 0


class TestRefill:
    """Tests for refill computation."""

    def test_refill_adds_rate_per_interval(self):
        assert refill(0.0, 100.0, 103.0, 2.0, 10, 1.0) == 6.0

    def test_refill_caps_at_burst(self):
        assert refill(0.0, 100.0, 200.0, 1.0, 2, 1.0) == 2.0

    def test_zero_rate_never_replenishes(self):
        assert refill(0.0, 100.0, 10_000.0, 0.0, 5, 1.0) == 0.0

    def test_fractional_rate(self):
        assert refill(0.0, 100.0, 103.0, 0.5, 10, 1.0) == 1.5


class TestTake:
    """Tests for the consume step."""

    def test_accepts_and_spends(self):
        decision = take(5.0, 100.0, 100.4, 2, 1.0, 5, 1.0)
        assert decision == Decision(True, 3.0, 100.0)

    def test_rejects_without_spending(self):
        decision = take(1.0, 100.0, 100.9, 2, 1.0, 5, 1.0)
        assert decision.allowed is False
        assert decision.tokens == 1.0

    def test_rejection_reports_refill(self):
        """The refilled count is returned; persisting it is the caller's choice."""
        decision = take(0.0, 100.0, 102.5, 3, 1.0, 5, 1.0)
        assert decision.allowed is False
        assert decision.tokens == 2.0
        assert decision.now_t == 102.0

    def test_n_above_burst_always_rejected(self):
        decision = take(5.0, 100.0, 10_000.0, 6, 100.0, 5, 1.0)
        assert decision.allowed is False

    def test_zero_tokens_requested_always_accepted(self):
        decision = take(0.0, 100.0, 100.0, 0, 0.0, 0, 1.0)
        assert decision.allowed is True
        assert decision.tokens == 0.0
