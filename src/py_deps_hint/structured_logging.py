"""
Structured logging configuration for py-deps-hint.

Emits machine-readable JSON events for registry fetches, cache activity and
version resolution so editor hosts can forward them to their own output
channels.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for core events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"py_deps_hint.{name}")
        self._setup_logger()

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False
            self.logger.setLevel(logging.WARNING)

    def _log(self, level: int, event_type: str, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, event_type, extra={"event_type": event_type, **kwargs})

    def info(self, event_type: str, **kwargs: Any) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs: Any) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs: Any) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


_registry_logger = EventLogger("registry")
_resolver_logger = EventLogger("resolver")
_parser_logger = EventLogger("parser")
_cache_logger = EventLogger("cache")


def get_registry_logger() -> EventLogger:
    """Get registry operations logger."""
    return _registry_logger


def log_registry_fetch(
    package_name: str,
    url: str,
    status: str,
    version_count: Optional[int] = None,
    response_time_ms: Optional[float] = None,
) -> None:
    """Log the outcome of a single registry fetch."""
    log_data: Dict[str, Any] = {
        "package_name": package_name,
        "url": url,
        "status": status,
    }
    if version_count is not None:
        log_data["version_count"] = version_count
    if response_time_ms is not None:
        log_data["response_time_ms"] = response_time_ms

    if status == "ok":
        _registry_logger.debug("registry_fetch_completed", **log_data)
    else:
        _registry_logger.warning("registry_fetch_failed", **log_data)


def log_cache_event(event: str, package_name: str, **kwargs: Any) -> None:
    """Log a cache hit, miss, store or expiry."""
    _cache_logger.debug(f"cache_{event}", package_name=package_name, **kwargs)


def log_version_resolved(
    package_name: str,
    specifier: str,
    latest_compatible: Optional[str],
    error: Optional[str] = None,
) -> None:
    """Log the result of a coordinator lookup."""
    if error:
        _resolver_logger.info(
            "version_unresolved",
            package_name=package_name,
            specifier=specifier,
            error=error,
        )
    else:
        _resolver_logger.debug(
            "version_resolved",
            package_name=package_name,
            specifier=specifier,
            latest_compatible=latest_compatible,
        )


def log_manifest_parsed(
    file_name: str, file_type: str, dependency_count: int, confidence: float
) -> None:
    """Log a completed manifest parse."""
    _parser_logger.debug(
        "manifest_parsed",
        file_name=file_name,
        file_type=file_type,
        dependency_count=dependency_count,
        confidence=confidence,
    )


def configure_logging(log_level: str = "WARNING", enable_json: bool = True) -> None:
    """
    Configure the level and output format of every event logger.

    Args:
        log_level: Level name such as ``INFO``; unknown names mean WARNING
        enable_json: Emit JSON events, or plain text lines when False
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    formatter = StructuredFormatter() if enable_json else logging.Formatter(PLAIN_FORMAT)

    for event_logger in [_registry_logger, _resolver_logger, _parser_logger, _cache_logger]:
        event_logger.logger.setLevel(level)
        for handler in event_logger.logger.handlers:
            handler.setFormatter(formatter)
