"""Rolling health statistics for probe results.

The monitor draws a liveness line rather than a correctness line: any
response with a status below 500 proves the remote process is alive and
routable (a 404 included), while a 5xx, a timeout or a transport error
counts as a failure.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from keepwarm.probe import ProbeResult

HEALTHY_STATUS_MIN = 200
HEALTHY_STATUS_MAX = 500  # exclusive


def is_success(result: ProbeResult) -> bool:
    """Return True if the probe result counts as a healthy observation."""
    status = result.status_code or 0
    return result.ok and HEALTHY_STATUS_MIN <= status < HEALTHY_STATUS_MAX


@dataclass(frozen=True)
class HealthStats:
    """Immutable snapshot of the monitor's counters.

    Attributes:
        start_time: When the monitor was created.
        total: Probes recorded; always ``successes + failures``.
        successes: Probes classified healthy.
        failures: Probes classified unhealthy.
        consecutive_failures: Failures since the last success.
        skipped_overlaps: Ticks that issued no probe because one was still
            in flight. Not part of ``total``.
        last_error: Error of the latest failure, cleared by a success.
        last_status_code: Status of the latest probe, if any.
        last_response_time_ms: Latency of the latest probe.
    """

    start_time: datetime
    total: int = 0
    successes: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    skipped_overlaps: int = 0
    last_error: str | None = None
    last_status_code: int | None = None
    last_response_time_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for logging and notifiers."""
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat()
        return data


class HealthMonitor:
    """Folds probe results into rolling counters.

    Not thread-safe. The scheduler is its single writer and runs on one
    event loop.
    """

    def __init__(self, start_time: datetime | None = None) -> None:
        self._start_time = start_time or datetime.now(UTC)
        self._total = 0
        self._successes = 0
        self._failures = 0
        self._consecutive_failures = 0
        self._skipped_overlaps = 0
        self._last_error: str | None = None
        self._last_status_code: int | None = None
        self._last_response_time_ms: int | None = None

    def record(self, result: ProbeResult) -> None:
        """Fold one probe result into the counters."""
        self._total += 1
        self._last_response_time_ms = result.response_time_ms
        self._last_status_code = result.status_code
        if is_success(result):
            self._successes += 1
            self._consecutive_failures = 0
            self._last_error = None
        else:
            self._failures += 1
            self._consecutive_failures += 1
            self._last_error = result.error_message or f"status {result.status_code or 0}"

    def increment_skipped_overlap(self) -> None:
        self._skipped_overlaps += 1

    def snapshot(self) -> HealthStats:
        """Return an immutable copy of the current counters."""
        return HealthStats(
            start_time=self._start_time,
            total=self._total,
            successes=self._successes,
            failures=self._failures,
            consecutive_failures=self._consecutive_failures,
            skipped_overlaps=self._skipped_overlaps,
            last_error=self._last_error,
            last_status_code=self._last_status_code,
            last_response_time_ms=self._last_response_time_ms,
        )


__all__ = ["HealthMonitor", "HealthStats", "is_success"]
