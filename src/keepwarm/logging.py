"""Structured logging configuration for keepwarm."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Context fields rendered by the formatters when present on a record.
CONTEXT_FIELDS = ("url", "status", "ms", "ok", "err", "consecutive_failures")

# Verbosity names accepted by the prober, mapped to the lowest level emitted.
# "none" sits above CRITICAL so nothing gets through.
VERBOSITY_LEVELS: dict[str, int] = {
    "none": logging.CRITICAL + 10,
    "normal": logging.INFO,
    "debug": logging.DEBUG,
}


def verbosity_to_level(verbosity: str) -> int:
    """Map a prober verbosity name to a numeric logging level.

    Args:
        verbosity: One of "none", "normal" or "debug".

    Returns:
        The lowest logging level that should be emitted.

    Raises:
        ValueError: If the verbosity name is unknown.
    """
    try:
        return VERBOSITY_LEVELS[verbosity]
    except KeyError:
        valid = ", ".join(sorted(VERBOSITY_LEVELS))
        raise ValueError(f"Unknown log verbosity '{verbosity}'. Valid values: {valid}") from None


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured log messages.

    Includes timestamp, level, component, message, and any extra context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with structured output.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string.
        """
        # Extract component from logger name (e.g., "keepwarm.scheduler" -> "scheduler")
        component = record.name.split(".")[-1] if "." in record.name else record.name

        timestamp = datetime.fromtimestamp(record.created, tz=UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[
            :-3
        ]

        parts = [
            f"{timestamp}",
            f"[{record.levelname:8}]",
            f"[{component:10}]",
        ]

        context_parts = []
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                context_parts.append(f"{key}={getattr(record, key)}")

        if context_parts:
            parts.append(f"[{' '.join(context_parts)}]")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs JSON log messages for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON-formatted log string.
        """
        component = record.name.split(".")[-1] if "." in record.name else record.name

        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": component,
            "message": record.getMessage(),
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that adds context to all log messages.

    An optional ``min_level`` raises the threshold above the wrapped
    logger's own level, which is how a single prober instance applies its
    ``none``/``normal``/``debug`` verbosity without touching global
    logging configuration.

    Usage:
        logger = get_logger(__name__)
        ctx_logger = logger.with_context(url="https://example.com/")
        ctx_logger.info("ping ok")
    """

    def __init__(
        self,
        logger: logging.Logger,
        extra: MutableMapping[str, Any] | None = None,
        min_level: int = logging.NOTSET,
    ) -> None:
        super().__init__(logger, extra or {})
        self.min_level = min_level

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802
        if level < self.min_level:
            return False
        return self.logger.isEnabledFor(level)

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Add context to the log record.

        Args:
            msg: The log message.
            kwargs: Keyword arguments for the log call.

        Returns:
            Tuple of (message, kwargs) with context added.
        """
        extra = kwargs.get("extra", {})
        if self.extra is not None:
            extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


class KeepwarmLogger(logging.Logger):
    """Custom logger with context support."""

    def with_context(self, min_level: int = logging.NOTSET, **context: Any) -> ContextAdapter:
        """Create a logger adapter with additional context.

        Args:
            min_level: Lowest level the adapter lets through.
            **context: Context fields to add to all log messages.

        Returns:
            ContextAdapter with the specified context.
        """
        return ContextAdapter(self, context, min_level=min_level)


logging.setLoggerClass(KeepwarmLogger)


def get_logger(name: str) -> KeepwarmLogger:
    """Get a logger with the custom KeepwarmLogger class.

    Args:
        name: Logger name (typically __name__).

    Returns:
        KeepwarmLogger instance.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, output JSON-formatted logs.
        replace_handlers: If True, remove existing handlers before adding new ones.
            Set to False to preserve existing handlers (e.g., from third-party libraries).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if replace_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(handler)

    logging.getLogger("keepwarm").setLevel(numeric_level)
    # httpx logs every request at INFO; keep probes quiet unless debugging.
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))


__all__ = [
    "CONTEXT_FIELDS",
    "VERBOSITY_LEVELS",
    "ContextAdapter",
    "JSONFormatter",
    "KeepwarmLogger",
    "StructuredFormatter",
    "get_logger",
    "setup_logging",
    "verbosity_to_level",
]
