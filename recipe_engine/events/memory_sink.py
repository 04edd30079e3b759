"""Event sink that keeps published events in memory."""

from .base import BaseEventSink, ExecutionEvent, PublishResult, PublishStatus


class RecordingEventSink(BaseEventSink):
    """Collects events in a list; used by tests and in-process observers."""

    def __init__(self, name: str = "recording"):
        super().__init__(name)
        self.events: list[ExecutionEvent] = []

    def publish(self, events: list[ExecutionEvent]) -> list[PublishResult]:
        self.events.extend(events)
        return self._record([PublishResult(status=PublishStatus.SUCCESS) for _ in events])

    def event_types(self) -> list[str]:
        return [event.event_type for event in self.events]

    def health_check(self) -> bool:
        return True
