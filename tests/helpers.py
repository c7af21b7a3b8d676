"""Test helper functions for keepwarm tests.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import fixed_clock, make_config, wait_until

    async def test_example():
        config = make_config(clock=fixed_clock(hour=1))
        # ... use in test ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from keepwarm.config import ProberConfig
from keepwarm.storage import InMemoryStorage

TEST_URL = "http://keepwarm.test/healthz"


def fixed_clock(hour: int, minute: int = 0) -> Callable[[], datetime]:
    """Return a clock frozen at ``hour:minute`` UTC on 2024-01-01."""
    moment = datetime(2024, 1, 1, hour, minute, tzinfo=UTC)
    return lambda: moment


def make_config(**overrides: Any) -> ProberConfig:
    """Create a ProberConfig that runs inside the operating window.

    Defaults: 50ms interval, 1s timeout, silent logging, UTC zone, a clock
    fixed at 01:00 UTC and a private in-memory storage.
    """
    values: dict[str, Any] = {
        "url": TEST_URL,
        "interval_ms": 50,
        "timeout_ms": 1000,
        "log_level": "none",
        "critical_failure_threshold": 3,
        "time_zone": "UTC",
        "storage": InMemoryStorage(),
        "clock": fixed_clock(hour=1),
    }
    values.update(overrides)
    return ProberConfig(**values)


async def wait_until(
    condition: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.005,
) -> bool:
    """Poll ``condition`` on the event loop until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)
    return True
