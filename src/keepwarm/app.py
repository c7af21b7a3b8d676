"""Core application runner for keepwarm.

This module wires configuration, storage, notifier and
:class:`~keepwarm.scheduler.PingService` together and runs one of three
modes:

- ``--once``: a single probe; the exit code reports health.
- ``--resume``: continuous mode, but only if a previous run left the
  auto-restart sentinel behind (for use by a process supervisor).
- default: continuous mode until SIGINT/SIGTERM or the daily cutoff.
"""

from __future__ import annotations

import argparse
import asyncio
import math

from keepwarm.cli import parse_args
from keepwarm.config import (
    DEFAULT_CRITICAL_FAILURES,
    DEFAULT_INTERVAL_MINUTES,
    DEFAULT_TIMEOUT_SECONDS,
    AppConfig,
    ProberConfig,
    Verbosity,
    load_config,
    minutes_to_ms,
    seconds_to_ms,
)
from keepwarm.logging import get_logger, setup_logging
from keepwarm.monitor import is_success
from keepwarm.notifier import LoggingNotifier, Notifier, WebhookNotifier
from keepwarm.scheduler import PingService
from keepwarm.shutdown import ShutdownHandler
from keepwarm.storage import JsonFileStorage, StorageLike, get_default_storage, should_auto_restart

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_UNHEALTHY = 1
EXIT_CONFIG_ERROR = 2


def build_storage(parsed: argparse.Namespace, app_config: AppConfig) -> StorageLike:
    state_file = parsed.state_file or app_config.state_file
    if state_file is not None:
        return JsonFileStorage(state_file)
    return get_default_storage()


def build_notifier(
    parsed: argparse.Namespace,
    app_config: AppConfig,
    verbosity: Verbosity = "normal",
) -> Notifier:
    webhook_url = parsed.webhook_url or app_config.webhook_url
    if webhook_url:
        return WebhookNotifier(webhook_url)
    return LoggingNotifier(verbosity)


def _positive_override(value: float, option: str) -> float:
    """Reject a non-positive or non-finite command-line value.

    Raises:
        ValueError: If ``value`` is not a positive, finite number.
    """
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{option} must be a positive number, got {value}")
    return value


def build_prober_config(
    parsed: argparse.Namespace,
    app_config: AppConfig,
    storage: StorageLike,
) -> ProberConfig | None:
    """Merge command-line overrides over the environment configuration.

    Returns:
        ProberConfig, or None if no URL was given anywhere.

    Raises:
        ValueError: If an explicit override is out of range.
    """
    base = app_config.prober
    url = parsed.url or (base.url if base else "")
    if not url:
        return None

    if parsed.interval_minutes is not None:
        interval_ms = minutes_to_ms(
            _positive_override(parsed.interval_minutes, "--interval-minutes")
        )
    else:
        interval_ms = base.interval_ms if base else minutes_to_ms(DEFAULT_INTERVAL_MINUTES)

    if parsed.timeout_seconds is not None:
        timeout_ms = seconds_to_ms(
            _positive_override(parsed.timeout_seconds, "--timeout-seconds")
        )
    else:
        timeout_ms = base.timeout_ms if base else seconds_to_ms(DEFAULT_TIMEOUT_SECONDS)

    if parsed.threshold is not None:
        threshold = parsed.threshold
    else:
        threshold = base.critical_failure_threshold if base else DEFAULT_CRITICAL_FAILURES

    return ProberConfig(
        url=url,
        interval_ms=interval_ms,
        timeout_ms=timeout_ms,
        log_level=parsed.log_level or (base.log_level if base else "normal"),
        critical_failure_threshold=threshold,
        time_zone=parsed.timezone or (base.time_zone if base else None),
        persist=parsed.persist or (base.persist if base else False),
        storage=storage,
    )


async def run_once_mode(service: PingService) -> int:
    """Probe once.

    Returns:
        Exit code: 0 if the probe was healthy, 1 otherwise.
    """
    result = await service.ping_once()
    healthy = is_success(result)
    logger.info(
        "Single probe %s",
        "healthy" if healthy else "unhealthy",
        extra={
            "url": service.config.url,
            "status": result.status_code,
            "ms": result.response_time_ms,
            "err": result.error_message,
        },
    )
    return EXIT_OK if healthy else EXIT_UNHEALTHY


async def run_continuous_mode(service: PingService) -> int:
    """Run the schedule until a shutdown signal or the daily cutoff.

    Returns:
        Exit code: 0.
    """
    handler = ShutdownHandler(on_shutdown=service.stop)
    handler.install_signal_handlers()
    try:
        service.start()
        await service.wait_stopped()
    finally:
        handler.remove_signal_handlers()
    stats = service.stats()
    logger.info(
        "Ping service finished: %d probes, %d failures, %d skipped overlaps",
        stats.total,
        stats.failures,
        stats.skipped_overlaps,
    )
    return EXIT_OK


def run_application(parsed: argparse.Namespace, app_config: AppConfig) -> int:
    """Build the service from configuration and run the selected mode.

    Args:
        parsed: Parsed command-line arguments.
        app_config: Configuration loaded from the environment.

    Returns:
        Exit code for the application.
    """
    storage = build_storage(parsed, app_config)
    try:
        prober_config = build_prober_config(parsed, app_config, storage)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG_ERROR
    if prober_config is None:
        logger.error("No target URL configured; set PING_URL or pass --url")
        return EXIT_CONFIG_ERROR

    if parsed.resume:
        try:
            resume = should_auto_restart(storage)
        except (OSError, ValueError) as e:
            logger.error("Cannot read auto-restart sentinel: %s", e)
            return EXIT_CONFIG_ERROR
        if not resume:
            logger.info("No auto-restart sentinel found; not resuming")
            return EXIT_OK

    try:
        service = PingService(
            prober_config,
            notifier=build_notifier(parsed, app_config, prober_config.log_level),
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG_ERROR

    if parsed.once:
        return asyncio.run(run_once_mode(service))
    return asyncio.run(run_continuous_mode(service))


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)
    app_config = load_config(parsed.env_file)

    verbosity = parsed.log_level or (app_config.prober.log_level if app_config.prober else "normal")
    setup_logging(
        level="DEBUG" if verbosity == "debug" else "INFO",
        json_format=app_config.log_json,
    )

    return run_application(parsed, app_config)


__all__ = [
    "build_notifier",
    "build_prober_config",
    "build_storage",
    "main",
    "run_application",
    "run_continuous_mode",
    "run_once_mode",
]
