"""Observability for relay operations - logging setup and operation events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

LOGGER_NAME = "gemini_relay"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging format and handlers for the relay package."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger


@dataclass
class ResourceEvent:
    """A single relay operation."""

    timestamp: datetime
    operation: str  # "files.upload", "caches.create", "query_with_cache", ...
    resource_id: Optional[str]
    success: bool
    duration_ms: float
    error: Optional[str] = None


class ResourceObserver:
    """
    Tracks relay operations for debugging and monitoring.

    Every service-level operation is recorded with its duration and outcome.
    """

    def __init__(self) -> None:
        self.events: List[ResourceEvent] = []
        self.logger = logging.getLogger(f"{LOGGER_NAME}.operations")

    def record(
        self,
        operation: str,
        duration_ms: float,
        resource_id: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> ResourceEvent:
        event = ResourceEvent(
            timestamp=datetime.now(),
            operation=operation,
            resource_id=resource_id,
            success=error is None,
            duration_ms=duration_ms,
            error=str(error) if error is not None else None,
        )
        self.events.append(event)

        target = resource_id or "-"
        if error is None:
            self.logger.info("%s ok resource=%s (%.2fms)", operation, target, duration_ms)
        else:
            self.logger.error("%s failed resource=%s (%.2fms): %s", operation, target, duration_ms, error)
        return event

    def get_summary(self) -> Dict[str, Any]:
        failures = [e for e in self.events if not e.success]
        by_operation: Dict[str, int] = {}
        for event in self.events:
            by_operation[event.operation] = by_operation.get(event.operation, 0) + 1
        total_ms = sum(e.duration_ms for e in self.events)
        return {
            "total_operations": len(self.events),
            "failures": len(failures),
            "by_operation": by_operation,
            "total_duration_ms": total_ms,
        }

    def clear(self) -> None:
        self.events.clear()
