"""Tests for HealthMonitor."""

from __future__ import annotations

import random
from dataclasses import FrozenInstanceError
from datetime import UTC, datetime

import pytest

from keepwarm.monitor import HealthMonitor, HealthStats, is_success
from keepwarm.probe import ProbeResult


def _response(status: int, ms: int = 10) -> ProbeResult:
    return ProbeResult(ok=True, response_time_ms=ms, status_code=status)


def _transport_error(message: str = "Connection refused", ms: int = 5) -> ProbeResult:
    return ProbeResult(ok=False, response_time_ms=ms, error_message=message)


class TestIsSuccess:
    """Tests for the liveness classification."""

    @pytest.mark.parametrize("status", [200, 204, 301, 404, 499])
    def test_statuses_below_500_are_alive(self, status: int) -> None:
        assert is_success(_response(status)) is True

    @pytest.mark.parametrize("status", [500, 502, 503, 599])
    def test_server_errors_are_failures(self, status: int) -> None:
        assert is_success(_response(status)) is False

    def test_informational_status_is_failure(self) -> None:
        assert is_success(_response(101)) is False

    def test_transport_error_is_failure(self) -> None:
        assert is_success(_transport_error()) is False


class TestHealthMonitor:
    """Tests for HealthMonitor.record and snapshot."""

    def test_initial_snapshot(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=UTC)
        stats = HealthMonitor(start_time=start).snapshot()

        assert stats.start_time == start
        assert stats.total == 0
        assert stats.successes == 0
        assert stats.failures == 0
        assert stats.consecutive_failures == 0
        assert stats.skipped_overlaps == 0
        assert stats.last_error is None
        assert stats.last_status_code is None
        assert stats.last_response_time_ms is None

    def test_success_resets_consecutive_failures(self) -> None:
        monitor = HealthMonitor()
        monitor.record(_transport_error())
        monitor.record(_response(503))
        monitor.record(_response(404, ms=42))

        stats = monitor.snapshot()
        assert stats.consecutive_failures == 0
        assert stats.successes == 1
        assert stats.failures == 2
        assert stats.last_error is None
        assert stats.last_status_code == 404
        assert stats.last_response_time_ms == 42

    def test_transport_error_increments_by_one(self) -> None:
        monitor = HealthMonitor()
        monitor.record(_transport_error("timeout after 50ms", ms=50))

        stats = monitor.snapshot()
        assert stats.consecutive_failures == 1
        assert stats.failures == 1
        assert stats.last_error == "timeout after 50ms"
        assert stats.last_status_code is None
        assert stats.last_response_time_ms == 50

    def test_server_error_synthesizes_message(self) -> None:
        monitor = HealthMonitor()
        monitor.record(_response(502))

        stats = monitor.snapshot()
        assert stats.last_error == "status 502"
        assert stats.last_status_code == 502

    def test_missing_status_synthesizes_zero(self) -> None:
        monitor = HealthMonitor()
        monitor.record(ProbeResult(ok=False, response_time_ms=1))

        assert monitor.snapshot().last_error == "status 0"

    def test_skipped_overlap_does_not_touch_totals(self) -> None:
        monitor = HealthMonitor()
        monitor.record(_response(200))
        monitor.increment_skipped_overlap()
        monitor.increment_skipped_overlap()

        stats = monitor.snapshot()
        assert stats.skipped_overlaps == 2
        assert stats.total == 1
        assert stats.successes == 1
        assert stats.failures == 0

    def test_counters_hold_for_random_sequences(self) -> None:
        rng = random.Random(1234)
        outcomes = [
            _response(200),
            _response(404),
            _response(500),
            _response(503),
            _transport_error(),
        ]
        monitor = HealthMonitor()
        expected_consecutive = 0

        for _ in range(500):
            result = rng.choice(outcomes)
            before = monitor.snapshot()
            monitor.record(result)
            after = monitor.snapshot()

            assert after.total == after.successes + after.failures
            assert after.total == before.total + 1
            if is_success(result):
                expected_consecutive = 0
                assert after.successes == before.successes + 1
            else:
                expected_consecutive += 1
                assert after.consecutive_failures == before.consecutive_failures + 1
            assert after.consecutive_failures == expected_consecutive

    def test_snapshot_is_immutable_copy(self) -> None:
        monitor = HealthMonitor()
        snapshot = monitor.snapshot()

        with pytest.raises(FrozenInstanceError):
            snapshot.total = 99  # type: ignore[misc]

        monitor.record(_response(200))
        assert snapshot.total == 0
        assert monitor.snapshot().total == 1


class TestHealthStats:
    """Tests for HealthStats."""

    def test_to_dict(self) -> None:
        stats = HealthStats(
            start_time=datetime(2024, 1, 1, tzinfo=UTC),
            total=3,
            successes=1,
            failures=2,
            consecutive_failures=2,
            last_error="status 500",
            last_status_code=500,
            last_response_time_ms=17,
        )

        assert stats.to_dict() == {
            "start_time": "2024-01-01T00:00:00+00:00",
            "total": 3,
            "successes": 1,
            "failures": 2,
            "consecutive_failures": 2,
            "skipped_overlaps": 0,
            "last_error": "status 500",
            "last_status_code": 500,
            "last_response_time_ms": 17,
        }
