"""Single bounded-timeout HTTP liveness probe.

A probe issues one plain ``GET`` against a URL and reports what happened
as a :class:`ProbeResult`. "ok" here only means that *a response arrived*;
deciding whether that response is healthy is the monitor's job.

Every failure mode (connection refused, DNS failure, reset, timeout) is
returned as data. :meth:`HttpProber.probe` never raises, apart from
propagating task cancellation.

Usage:
    from keepwarm.probe import HttpProber

    prober = HttpProber()
    result = await prober.probe("https://example.com/", timeout_ms=5000)
    if not result.ok:
        print(result.error_message)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from keepwarm.logging import ContextAdapter, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe.

    Attributes:
        ok: True when an HTTP response was received, whatever its status.
        response_time_ms: Elapsed wall time in whole milliseconds.
        status_code: HTTP status code, set whenever a response arrived.
        error_message: Transport or timeout error, set whenever ``ok`` is False.
        timestamp: When the probe completed (UTC).
    """

    ok: bool
    response_time_ms: int
    status_code: int | None = None
    error_message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for logging."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "ok": self.ok,
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
            "error_message": self.error_message,
        }


def _elapsed_ms(start_time: float) -> int:
    return round((time.perf_counter() - start_time) * 1000)


def _describe_error(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__


class HttpProber:
    """Issues timed HTTP GET probes through httpx.

    Attributes:
        transport: Optional httpx transport. Tests inject
            ``httpx.MockTransport``; production uses the default network
            transport.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport

    async def probe(
        self, url: str, timeout_ms: int, log: ContextAdapter | None = None
    ) -> ProbeResult:
        """Probe ``url`` once, resolving within ``timeout_ms``.

        The request runs under ``asyncio.wait_for`` so that a stalled
        server, a slow body or a misbehaving transport cannot hold the
        probe past its deadline. On expiry the request task is cancelled,
        which closes the underlying connection.

        Args:
            url: Absolute URL to GET.
            timeout_ms: Hard deadline for the whole exchange.
            log: Logger adapter for diagnostics; a caller passes its own to
                apply its verbosity. Defaults to the module logger.

        Returns:
            ProbeResult describing the outcome.
        """
        log = log or logger.with_context()
        timeout_s = timeout_ms / 1000
        start_time = time.perf_counter()
        try:
            status_code = await asyncio.wait_for(self._get(url, timeout_s), timeout=timeout_s)
        except TimeoutError:
            elapsed = _elapsed_ms(start_time)
            log.debug("Probe of %s timed out after %dms", url, elapsed)
            return ProbeResult(
                ok=False,
                response_time_ms=elapsed,
                error_message=f"timeout after {timeout_ms}ms",
            )
        except httpx.TimeoutException as e:
            elapsed = _elapsed_ms(start_time)
            log.debug("Probe of %s hit httpx timeout: %s", url, e)
            return ProbeResult(
                ok=False,
                response_time_ms=elapsed,
                error_message=f"timeout after {timeout_ms}ms",
            )
        except httpx.HTTPError as e:
            elapsed = _elapsed_ms(start_time)
            log.debug("Probe of %s failed with request error: %s", url, e)
            return ProbeResult(ok=False, response_time_ms=elapsed, error_message=_describe_error(e))
        except OSError as e:
            elapsed = _elapsed_ms(start_time)
            log.debug("Probe of %s failed with OS error: %s", url, e)
            return ProbeResult(ok=False, response_time_ms=elapsed, error_message=_describe_error(e))
        except Exception as e:
            # Probes report failures as data; an unexpected error is still a failed probe.
            elapsed = _elapsed_ms(start_time)
            log.warning("Probe of %s failed with unexpected error: %s", url, e)
            return ProbeResult(ok=False, response_time_ms=elapsed, error_message=_describe_error(e))

        return ProbeResult(ok=True, response_time_ms=_elapsed_ms(start_time), status_code=status_code)

    async def _get(self, url: str, timeout_s: float) -> int:
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=httpx.Timeout(timeout_s),
        ) as client:
            async with client.stream("GET", url) as response:
                # Drain and drop the body; only completion matters. aiter_bytes
                # also serves a body the transport has already read.
                async for _ in response.aiter_bytes():
                    pass
                return response.status_code


__all__ = ["HttpProber", "ProbeResult"]
