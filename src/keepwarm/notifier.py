"""Escalation notifiers.

The scheduler calls ``notify_critical(message, stats)`` once consecutive
failures reach the configured threshold. Notifiers are best-effort: the
scheduler catches and logs anything they raise, so a broken notifier can
never stop probing.

Usage:
    from keepwarm.notifier import WebhookNotifier

    notifier = WebhookNotifier("https://hooks.example.com/keepwarm")
    service = PingService(config, notifier=notifier)
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Protocol, runtime_checkable

import httpx

from keepwarm.logging import get_logger, verbosity_to_level
from keepwarm.monitor import HealthStats

logger = get_logger(__name__)

DEFAULT_WEBHOOK_TIMEOUT = 10.0


class NotifierError(Exception):
    """Raised when a notifier fails to deliver an escalation."""


@runtime_checkable
class Notifier(Protocol):
    """Receives escalations from the scheduler.

    Implementations may be synchronous or ``async``; the scheduler awaits
    the return value when it is awaitable.
    """

    def notify_critical(self, message: str, stats: HealthStats) -> Awaitable[None] | None: ...


class LoggingNotifier:
    """Notifier that records escalations in the log at ERROR level.

    Args:
        verbosity: Prober verbosity ("none", "normal" or "debug"); "none"
            silences the escalation log along with the rest of the prober.
    """

    def __init__(self, verbosity: str = "normal") -> None:
        self._log = logger.with_context(min_level=verbosity_to_level(verbosity))

    async def notify_critical(self, message: str, stats: HealthStats) -> None:
        self._log.error(
            "CRITICAL: %s (failures=%d/%d, last_error=%s)",
            message,
            stats.failures,
            stats.total,
            stats.last_error,
            extra={"consecutive_failures": stats.consecutive_failures},
        )


class WebhookNotifier:
    """Notifier that POSTs escalations as JSON to a webhook URL.

    The payload is ``{"message": ..., "stats": {...}}`` where ``stats`` is
    :meth:`HealthStats.to_dict`.

    Attributes:
        url: Webhook endpoint.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests inject a mock).
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_WEBHOOK_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def notify_critical(self, message: str, stats: HealthStats) -> None:
        """Deliver the escalation.

        Raises:
            NotifierError: If the webhook is unreachable or answers non-2xx.
        """
        payload = {"message": message, "stats": stats.to_dict()}
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=httpx.Timeout(self.timeout),
            ) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotifierError(
                f"Webhook {self.url} answered HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NotifierError(f"Webhook {self.url} unreachable: {e}") from e
        logger.debug("Escalation delivered to %s", self.url)


__all__ = [
    "DEFAULT_WEBHOOK_TIMEOUT",
    "LoggingNotifier",
    "Notifier",
    "NotifierError",
    "WebhookNotifier",
]
