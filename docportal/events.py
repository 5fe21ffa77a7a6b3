"""Structured event emission for the search and analysis paths.

Core components receive an observer instead of calling a module-level logger,
so callers decide where events go (JSON logs in the service, a list in tests).
"""
import logging
from typing import Any, Optional, Protocol

from docportal.logging import get_logger


class EventObserver(Protocol):
    def emit(self, event: str, **fields: Any) -> None:
        ...


class NullObserver:
    """Drops every event."""

    def emit(self, event: str, **fields: Any) -> None:
        return None


class LoggingObserver:
    """Forwards events to a logger as structured JSON extras."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = logger or get_logger("docportal.events")
        self._level = level

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if fields.get("state") == "retrying" else self._level
        self._logger.log(level, event, extra=fields)
