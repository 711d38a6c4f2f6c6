"""
Structured logging for resolution lifecycle events.

Writes one line per event on the ``registrycore.events`` logger, either
``event key=value`` text (the ``REGISTRYCORE_LOG_FORMAT`` default) or a JSON
object, so that registry builds can be followed in a log pipeline.  Events
go to stderr only; they do not propagate to the root logger.  Per-item
progress stays on the ordinary module loggers.

Logged events:
- registry.loaded
- catalog.built
- resolution.completed
- resolution.failed
- validation.failed
- registry.emitted

Usage:
    from registrycore.logger import ResolutionLogger

    events = ResolutionLogger(registry_url="https://github.com/org/semconv")
    events.log_loaded(file_count=12, group_count=240)
    events.log_resolution_completed(group_count=240, passes=3)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, TextIO

if TYPE_CHECKING:
    from registrycore.registry.errors import RegistryError

# Structured event logger
_events_logger = logging.getLogger("registrycore.events")
_events_logger.setLevel(logging.INFO)

# Event lines go to stderr, keeping stdout for output
_events_handler = logging.StreamHandler(sys.stderr)
_events_handler.setFormatter(logging.Formatter("%(message)s"))
_events_logger.addHandler(_events_handler)
_events_logger.propagate = False


def configure_events(level: int, stream: Optional[TextIO] = None) -> None:
    """Set the lowest event level written and the stream it goes to.

    ``stream`` defaults to the current ``sys.stderr``.
    """
    _events_logger.setLevel(level)
    _events_handler.setStream(stream if stream is not None else sys.stderr)


class ResolutionLogger:
    """
    Structured logger for resolution runs.

    Each entry carries the registry URL and service name so events from
    several registries can be told apart.
    """

    def __init__(
        self,
        registry_url: str = "",
        service_name: str = "registrycore",
        extra_labels: Optional[Dict[str, str]] = None,
        log_format: str = "json",
    ):
        """
        Initialize resolution logger.

        Args:
            registry_url: Registry being resolved
            service_name: Service name for log attribution
            extra_labels: Additional labels for filtering
            log_format: "json" for one JSON object per line, "text" for
                "event key=value" lines
        """
        self.registry_url = registry_url
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self.log_format = log_format
        self._logger = _events_logger

    def _emit(self, event: str, level: str = "info", **extra_fields: Any) -> None:
        """
        Emit a structured log entry.

        Args:
            event: Event type (e.g., "catalog.built")
            level: Log level (info, warn, error)
            **extra_fields: Event-specific fields
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
        }
        if self.registry_url:
            entry["registry_url"] = self.registry_url

        entry.update(extra_fields)

        if self.extra_labels:
            entry["labels"] = self.extra_labels

        if self.log_format == "text":
            log_line = " ".join(
                [event] + [f"{k}={v}" for k, v in entry.items() if k != "event"]
            )
        else:
            log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_loaded(self, file_count: int, group_count: int) -> None:
        """Log the end of the load stage."""
        self._emit("registry.loaded", file_count=file_count, group_count=group_count)

    def log_catalog_built(self, attribute_count: int, signal_count: int) -> None:
        """Log the end of the catalog stage."""
        self._emit(
            "catalog.built",
            attribute_count=attribute_count,
            signal_count=signal_count,
        )

    def log_resolution_completed(
        self,
        group_count: int,
        passes: int,
        refs: int = 0,
        extends: int = 0,
        includes: int = 0,
    ) -> None:
        """Log a successful resolution."""
        self._emit(
            "resolution.completed",
            group_count=group_count,
            passes=passes,
            refs=refs,
            extends=extends,
            includes=includes,
        )

    def log_resolution_failed(self, error: RegistryError) -> None:
        """Log a load, catalog or resolution failure with its details."""
        self._emit("resolution.failed", level="error", **error.to_dict())

    def log_validation_failed(self, violation_count: int, error: RegistryError) -> None:
        """Log a validation failure."""
        self._emit(
            "validation.failed",
            level="error",
            violation_count=violation_count,
            **error.to_dict(),
        )

    def log_emitted(self, group_count: int, destination: str) -> None:
        """Log that a resolved registry was written to ``destination``."""
        self._emit("registry.emitted", group_count=group_count, destination=destination)
