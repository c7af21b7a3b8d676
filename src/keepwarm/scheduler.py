"""Self-scheduling liveness prober.

:class:`PingService` owns the tick loop around :class:`HttpProber` and
:class:`HealthMonitor`:

- Drift-free rescheduling: the next wake time is ``planned + interval``,
  computed before the probe is awaited, so probe latency never
  accumulates.
- Jitter: the first reschedule after ``start()`` uses the configured base
  interval; every later one draws uniformly from [10, 15) minutes.
- Overlap guard: a tick that finds a scheduled probe still in flight
  skips probing and counts the skip.
- Daily cutoff: once the hour of day in the configured zone reaches
  :data:`CUTOFF_HOUR` the service stops itself and stays stopped until
  the caller starts it again.
- Escalation: when consecutive failures reach the threshold the notifier
  is called; its failures are logged and swallowed.

Scheduling model:
    Everything runs on one asyncio event loop. Timers are
    ``loop.call_later`` handles that spawn one task per tick; the only
    suspension point inside a tick is the probe itself. All state is
    written from that loop, so no locks are needed. Each ``start()`` bumps
    a generation counter and ticks carry the generation they were armed
    under, which lets a stop/start cycle retire the old chain even while
    its probe is still in flight.

Usage:
    config = ProberConfig(url="https://example.com/", interval_ms=600_000, timeout_ms=30_000)
    service = PingService(config, notifier=LoggingNotifier())
    service.start()
    await service.wait_stopped()
"""

from __future__ import annotations

import asyncio
import inspect
import math
import random
import time
from collections.abc import Callable
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from keepwarm.config import ProberConfig
from keepwarm.logging import ContextAdapter, get_logger, verbosity_to_level
from keepwarm.monitor import HealthMonitor, HealthStats
from keepwarm.notifier import Notifier
from keepwarm.probe import HttpProber, ProbeResult
from keepwarm.storage import (
    PING_ENABLED_KEY,
    PING_ENABLED_VALUE,
    StorageLike,
    get_default_storage,
)

logger = get_logger(__name__)

CUTOFF_HOUR = 2
"""Hour of day (0-23) from which the prober refuses to run."""

JITTER_MIN_MINUTES = 10
JITTER_MAX_MINUTES = 15  # exclusive

# Largest random draw used, so the upper jitter bound stays exclusive even
# for a random source that returns exactly 1.0.
_MAX_RANDOM_DRAW = 0.999999999


def compute_random_interval_ms(
    min_minutes: float,
    max_minutes_exclusive: float,
    rnd: Callable[[], float] | None = None,
) -> int:
    """Draw an interval uniformly from ``[min_minutes, max_minutes_exclusive)``.

    Args:
        min_minutes: Inclusive lower bound in minutes.
        max_minutes_exclusive: Exclusive upper bound in minutes.
        rnd: Random source returning floats in [0, 1). Defaults to
            ``random.random``. Out-of-range draws are clamped.

    Returns:
        Interval in whole milliseconds.
    """
    min_ms = max(0, round(min_minutes * 60_000))
    max_ms = max(min_ms + 1, round(max_minutes_exclusive * 60_000))
    draw = (rnd or random.random)()
    r = min(_MAX_RANDOM_DRAW, max(0.0, draw))
    return min_ms + math.floor(r * (max_ms - min_ms))


def resolve_time_zone(name: str | None) -> tzinfo | None:
    """Resolve an IANA zone name; None means the host's local zone.

    Raises:
        ValueError: If the name is not a known time zone.
    """
    if name is None:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone '{name}'") from e


def hour_in_zone(moment: datetime, zone: tzinfo | None) -> int:
    """Return the hour of day of ``moment`` as seen in ``zone``.

    Naive datetimes are taken to be host-local time; ``zone=None``
    converts to the host's local zone.
    """
    return moment.astimezone(zone).hour


def _now_ms() -> float:
    return time.monotonic() * 1000


class PingService:
    """Periodic liveness prober with cutoff, overlap guard and escalation.

    Attributes:
        config: Immutable prober configuration.
        notifier: Optional escalation target.
    """

    def __init__(
        self,
        config: ProberConfig,
        notifier: Notifier | None = None,
        prober: HttpProber | None = None,
    ) -> None:
        """Initialize the service in the stopped state.

        Args:
            config: Prober configuration.
            notifier: Called when consecutive failures reach the threshold.
            prober: Probe implementation; defaults to a network ``HttpProber``.

        Raises:
            ValueError: If ``config.time_zone`` is not a known zone.
        """
        self.config = config
        self.notifier = notifier
        self._prober = prober or HttpProber()
        self._monitor = HealthMonitor(start_time=config.clock())
        self._storage: StorageLike = (
            config.storage if config.storage is not None else get_default_storage()
        )
        self._zone = resolve_time_zone(config.time_zone)
        self._log: ContextAdapter = logger.with_context(
            min_level=verbosity_to_level(config.log_level),
            url=config.url,
        )

        self._stopped = True
        self._in_flight = False
        self._first = True
        self._next_tick_at: float | None = None
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._stopped_event = asyncio.Event()
        self._stopped_event.set()

    @property
    def is_running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        """Start probing immediately; no-op if already running.

        Must be called from inside a running event loop.
        """
        if not self._stopped:
            return
        loop = asyncio.get_running_loop()
        self._stopped = False
        self._stopped_event.clear()
        self._generation += 1
        self._first = True
        self._next_tick_at = _now_ms()
        self._log.info(
            "ping service started (interval=%dms, timeout=%dms)",
            self.config.interval_ms,
            self.config.timeout_ms,
        )
        if self.config.persist:
            self._write_sentinel(present=True)
        self._spawn_tick(loop, self._generation)

    def stop(self) -> None:
        """Stop scheduling further ticks.

        An in-flight probe is not aborted; its own timeout bounds how long
        it can run on.
        """
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._log.info("ping service stopped")
        if self.config.persist:
            self._write_sentinel(present=False)
        self._stopped_event.set()

    async def wait_stopped(self) -> None:
        """Wait until the service is stopped, by ``stop()`` or by the cutoff."""
        await self._stopped_event.wait()

    def stats(self) -> HealthStats:
        return self._monitor.snapshot()

    async def ping_once(self) -> ProbeResult:
        """Probe once and fold the result into the shared statistics.

        Bypasses the in-flight guard: calling this while the schedule is
        running may overlap with a scheduled probe.
        """
        result = await self._prober.probe(
            self.config.url, self.config.timeout_ms, log=self._log
        )
        self._monitor.record(result)
        return result

    def _spawn_tick(self, loop: asyncio.AbstractEventLoop, generation: int) -> None:
        self._timer = None
        task = loop.create_task(self._tick(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_next(self, generation: int) -> None:
        if self._stopped or generation != self._generation:
            return
        loop = asyncio.get_running_loop()
        now = _now_ms()
        next_tick_at = self._next_tick_at if self._next_tick_at is not None else now
        delay_ms = max(0.0, next_tick_at - now)
        self._timer = loop.call_later(delay_ms / 1000, self._spawn_tick, loop, generation)

    def _should_stop_by_time(self) -> bool:
        return hour_in_zone(self.config.clock(), self._zone) >= CUTOFF_HOUR

    async def _tick(self, generation: int) -> None:
        if self._stopped or generation != self._generation:
            return

        if self._should_stop_by_time():
            self._log.info("cutoff hour reached, stopping ping service")
            self.stop()
            return

        planned = self._next_tick_at if self._next_tick_at is not None else _now_ms()
        if self._first:
            interval_ms = self.config.interval_ms
        else:
            interval_ms = compute_random_interval_ms(
                JITTER_MIN_MINUTES, JITTER_MAX_MINUTES, self.config.random_source
            )
        self._first = False
        self._next_tick_at = planned + interval_ms

        if self._in_flight:
            self._monitor.increment_skipped_overlap()
            self._log.debug("skipping tick due to overlap")
            self._schedule_next(generation)
            return

        started_at = self.config.clock()
        self._in_flight = True
        try:
            result = await self._prober.probe(
                self.config.url, self.config.timeout_ms, log=self._log
            )
            self._monitor.record(result)
        finally:
            self._in_flight = False

        self._log_result(started_at, result)

        stats = self._monitor.snapshot()
        if stats.consecutive_failures >= self.config.critical_failure_threshold:
            await self._escalate(stats)

        self._schedule_next(generation)

    def _log_result(self, started_at: datetime, result: ProbeResult) -> None:
        extra = {
            "status": result.status_code if result.status_code is not None else "None",
            "ms": result.response_time_ms,
            "ok": result.ok,
            "err": result.error_message or "None",
        }
        if result.ok:
            self._log.info("ping ok at %s", started_at.isoformat(), extra=extra)
        else:
            self._log.error("ping error at %s", started_at.isoformat(), extra=extra)

    async def _escalate(self, stats: HealthStats) -> None:
        if self.notifier is None:
            return
        message = (
            f"{stats.consecutive_failures} consecutive failures probing {self.config.url}"
            f" (last error: {stats.last_error})"
        )
        try:
            outcome = self.notifier.notify_critical(message, stats)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Escalation is best-effort and must never break scheduling.
            self._log.warning("critical notifier failed: %s", e)

    def _write_sentinel(self, present: bool) -> None:
        try:
            if present:
                self._storage.set_item(PING_ENABLED_KEY, PING_ENABLED_VALUE)
            else:
                self._storage.remove_item(PING_ENABLED_KEY)
        except Exception as e:
            # The sentinel is advisory; a storage fault must not keep the
            # prober from starting or stopping.
            self._log.error(
                "failed to %s auto-restart sentinel: %s",
                "write" if present else "remove",
                e,
            )


__all__ = [
    "CUTOFF_HOUR",
    "JITTER_MAX_MINUTES",
    "JITTER_MIN_MINUTES",
    "PingService",
    "compute_random_interval_ms",
    "hour_in_zone",
    "resolve_time_zone",
]
