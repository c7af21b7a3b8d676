"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import math
import os
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from keepwarm.storage import StorageLike

Verbosity = Literal["none", "normal", "debug"]

# Valid prober verbosity names
VALID_VERBOSITIES: frozenset[str] = frozenset({"none", "normal", "debug"})

DEFAULT_INTERVAL_MINUTES = 10.0
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CRITICAL_FAILURES = 3


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ProberConfig:
    """Settings for a single :class:`~keepwarm.scheduler.PingService`.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation.

    Attributes:
        url: Target URL probed with a plain GET.
        interval_ms: Base interval, used for the first reschedule after start.
        timeout_ms: Hard deadline for each probe.
        log_level: Prober verbosity: "none", "normal" or "debug".
        critical_failure_threshold: Consecutive failures that trigger escalation.
        time_zone: IANA zone for the daily cutoff; None uses the host zone.
        persist: Write the auto-restart sentinel while running.
        storage: Storage for the sentinel; None uses the process default.
        clock: Returns the current time; used for the cutoff and log timestamps.
        random_source: Returns a float in [0, 1); drives interval jitter.
    """

    url: str
    interval_ms: int
    timeout_ms: int
    log_level: Verbosity = "normal"
    critical_failure_threshold: int = DEFAULT_CRITICAL_FAILURES
    time_zone: str | None = None
    persist: bool = False
    storage: StorageLike | None = field(default=None, compare=False, repr=False)
    clock: Callable[[], datetime] = field(default=_utc_now, compare=False, repr=False)
    random_source: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("url must not be empty")
        if self.interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {self.interval_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.critical_failure_threshold < 1:
            raise ValueError(
                f"critical_failure_threshold must be at least 1, got {self.critical_failure_threshold}"
            )
        if self.log_level not in VALID_VERBOSITIES:
            raise ValueError(
                f"log_level must be one of {', '.join(sorted(VALID_VERBOSITIES))}, "
                f"got '{self.log_level}'"
            )


@dataclass(frozen=True)
class AppConfig:
    """Process-level configuration for the ``keepwarm`` command.

    Attributes:
        prober: Prober settings, or None when no target URL is configured.
        state_file: JSON file holding the auto-restart sentinel; None keeps
            it in memory.
        webhook_url: Escalation webhook; None logs escalations instead.
        log_json: Emit JSON log lines.
    """

    prober: ProberConfig | None = None
    state_file: Path | None = None
    webhook_url: str | None = None
    log_json: bool = False


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse a string as a positive, finite float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed value, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = float(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %s",
            name,
            value,
            default,
        )
        return default
    if not math.isfinite(parsed) or parsed <= 0:
        logging.warning(
            "Invalid %s: %s is not a positive number, using default %s",
            name,
            value,
            default,
        )
        return default
    return parsed


def _parse_positive_int(value: str, name: str, default: int) -> int:
    """Parse a string as an integer of at least 1.

    Values below 1 are clamped to 1, as a threshold of zero would escalate
    on every tick. Unparseable values fall back to ``default``.
    """
    try:
        parsed = int(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default
    if parsed < 1:
        logging.warning("Invalid %s: %d is below 1, using 1", name, parsed)
        return 1
    return parsed


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Args:
        value: The string value to parse.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.strip().lower() in ("true", "1", "yes")


def _validate_verbosity(value: str, default: Verbosity = "normal") -> Verbosity:
    """Normalize a verbosity name; anything unknown becomes ``default``."""
    normalized = value.strip().lower()
    if normalized not in VALID_VERBOSITIES:
        logging.warning(
            "Invalid PING_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_VERBOSITIES)),
        )
        return default
    return normalized  # type: ignore[return-value]


def _validate_time_zone(value: str) -> str | None:
    """Return ``value`` if it names a known IANA zone, else None (host zone)."""
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError):
        logging.warning(
            "Invalid PING_TIMEZONE: '%s' is not a known time zone, using the host zone",
            cleaned,
        )
        return None
    return cleaned


def minutes_to_ms(minutes: float) -> int:
    return max(1, round(minutes * 60_000))


def seconds_to_ms(seconds: float) -> int:
    return max(1, round(seconds * 1_000))


def load_prober_config(storage: StorageLike | None = None) -> ProberConfig | None:
    """Build a :class:`ProberConfig` from ``PING_*`` environment variables.

    Args:
        storage: Storage to place in the config for the sentinel.

    Returns:
        ProberConfig, or None when ``PING_URL`` is unset or empty.
    """
    url = os.getenv("PING_URL", "").strip()
    if not url:
        return None

    interval_minutes = _parse_positive_float(
        os.getenv("PING_INTERVAL_MINUTES", str(DEFAULT_INTERVAL_MINUTES)),
        "PING_INTERVAL_MINUTES",
        DEFAULT_INTERVAL_MINUTES,
    )
    timeout_seconds = _parse_positive_float(
        os.getenv("PING_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)),
        "PING_TIMEOUT_SECONDS",
        DEFAULT_TIMEOUT_SECONDS,
    )
    threshold = _parse_positive_int(
        os.getenv("PING_CRITICAL_FAILURES", str(DEFAULT_CRITICAL_FAILURES)),
        "PING_CRITICAL_FAILURES",
        DEFAULT_CRITICAL_FAILURES,
    )

    return ProberConfig(
        url=url,
        interval_ms=minutes_to_ms(interval_minutes),
        timeout_ms=seconds_to_ms(timeout_seconds),
        log_level=_validate_verbosity(os.getenv("PING_LOG_LEVEL", "normal")),
        critical_failure_threshold=threshold,
        time_zone=_validate_time_zone(os.getenv("PING_TIMEZONE", "")),
        persist=_parse_bool(os.getenv("PING_PERSIST", "false")),
        storage=storage,
    )


def load_config(env_file: Path | None = None) -> AppConfig:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        AppConfig object with loaded values.

    Invalid values fall back to defaults with a logged warning.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    state_file_raw = os.getenv("PING_STATE_FILE", "").strip()
    webhook_url = os.getenv("PING_WEBHOOK_URL", "").strip()

    return AppConfig(
        prober=load_prober_config(),
        state_file=Path(state_file_raw) if state_file_raw else None,
        webhook_url=webhook_url or None,
        log_json=_parse_bool(os.getenv("PING_LOG_JSON", "")),
    )


__all__ = [
    "DEFAULT_CRITICAL_FAILURES",
    "DEFAULT_INTERVAL_MINUTES",
    "DEFAULT_TIMEOUT_SECONDS",
    "VALID_VERBOSITIES",
    "AppConfig",
    "ProberConfig",
    "Verbosity",
    "load_config",
    "load_prober_config",
    "minutes_to_ms",
    "seconds_to_ms",
]
