"""Notifications emitted for rule transitions.

Events mirror what an ingress controller records against the ingress
object: a severity, a short reason code and a formatted message. Sinks are
fire-and-forget; a sink must never raise into the reconciler.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol


class EventType(str, Enum):
    """Event severities."""

    NORMAL = "Normal"
    WARNING = "Warning"


class EventReason(str, Enum):
    """Reason codes for rule transitions."""

    CREATE = "CREATE"
    MODIFY = "MODIFY"
    DELETE = "DELETE"
    ERROR = "ERROR"


class EventSink(Protocol):
    """Receiver for transition notifications."""

    def emit(self, event_type: EventType, reason: EventReason, message: str, *args: Any) -> None:
        """Record an event. ``message`` is a %-style template over ``args``."""
        ...


class LoggingEventSink:
    """Writes events as structured log records.

    Normal events are logged at INFO, warnings at WARNING.
    """

    def __init__(self, source: str = "alb-controller") -> None:
        self._source = source
        self._logger = logging.getLogger(f"{__name__}.{source}")

    def emit(self, event_type: EventType, reason: EventReason, message: str, *args: Any) -> None:
        try:
            rendered = message % args if args else message
        except (TypeError, ValueError):
            rendered = f"{message} {args!r}"

        level = logging.WARNING if event_type == EventType.WARNING else logging.INFO
        self._logger.log(
            level,
            rendered,
            extra={
                "event_source": self._source,
                "event_type": event_type.value,
                "event_reason": reason.value,
            },
        )
