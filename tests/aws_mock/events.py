"""Event sink that records events for assertions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from alb_controller.events import EventReason, EventType


@dataclass(frozen=True)
class RecordedEvent:
    event_type: EventType
    reason: EventReason
    message: str


class RecordingEventSink:
    """Collects rendered events in emission order."""

    def __init__(self) -> None:
        self.events: list[RecordedEvent] = []

    def emit(self, event_type: EventType, reason: EventReason, message: str, *args: Any) -> None:
        self.events.append(RecordedEvent(event_type, reason, message % args if args else message))

    def of_type(self, event_type: EventType) -> list[RecordedEvent]:
        return [event for event in self.events if event.event_type == event_type]
