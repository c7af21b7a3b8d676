"""Graceful shutdown handling for keepwarm.

This module provides signal handling for the asyncio runner:
- SIGINT (Ctrl+C) handling
- SIGTERM handling
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable

from keepwarm.logging import get_logger

logger = get_logger(__name__)


class ShutdownHandler:
    """Turns SIGINT/SIGTERM into a single graceful shutdown request.

    Handlers are installed on the running event loop, so the callback runs
    on the loop thread and may touch loop-owned state such as
    ``PingService.stop()``.
    """

    def __init__(self, on_shutdown: Callable[[], None] | None = None) -> None:
        """Initialize the shutdown handler.

        Args:
            on_shutdown: Optional callback to invoke when shutdown is requested.
                        Typically this stops the ping service.
        """
        self._shutdown_requested = False
        self._on_shutdown = on_shutdown
        self._installed: list[signal.Signals] = []

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def request_shutdown(self) -> None:
        """Request graceful shutdown.

        Only the first request invokes the callback.
        """
        if self._shutdown_requested:
            return
        logger.info("Shutdown requested")
        self._shutdown_requested = True
        if self._on_shutdown is not None:
            self._on_shutdown()

    def handle_signal(self, signum: signal.Signals) -> None:
        logger.info("Received %s, initiating graceful shutdown...", signum.name)
        self.request_shutdown()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Install handlers for SIGINT and SIGTERM on the event loop.

        Platforms without ``add_signal_handler`` support (Windows) keep the
        default behaviour.
        """
        loop = loop or asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.handle_signal, signum)
            except NotImplementedError:
                logger.debug("Signal handlers not supported on this platform")
                return
            self._installed.append(signum)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for signum in self._installed:
            loop.remove_signal_handler(signum)
        self._installed.clear()


__all__ = ["ShutdownHandler"]
