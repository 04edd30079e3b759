"""Standard output event sink."""

import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

import orjson

from ..config.defaults import EventParams
from .base import BaseEventSink, ExecutionEvent, PublishResult, PublishStatus


class StdoutEventSink(BaseEventSink):
    """Writes one line per event to stdout."""

    def __init__(self, name: str = "stdout", config: Optional[EventParams] = None,
                 stream: Optional[TextIO] = None):
        super().__init__(name, config or EventParams())
        self.config: EventParams
        self.stream = stream

    def publish(self, events: list[ExecutionEvent]) -> list[PublishResult]:
        results = []
        stream = self.stream or sys.stdout

        for event in events:
            try:
                print(self._format_event(event), file=stream, flush=True)
                results.append(PublishResult(status=PublishStatus.SUCCESS))
            except (OSError, ValueError, TypeError) as e:
                self.logger.error(
                    "Failed to write event to stdout",
                    sink=self.name,
                    event_type=event.event_type,
                    error=str(e),
                )
                results.append(PublishResult(
                    status=PublishStatus.FAILED,
                    message=f"Stdout error: {e}",
                    error=e,
                ))

        return self._record(results)

    def _format_event(self, event: ExecutionEvent) -> str:
        if self.config.stdout_format == "pretty":
            output = f"[{event.occurred_at.isoformat()}] {event.task_id}: {event.event_type} -> {event.status}"
            if event.step_order is not None:
                output += f" (step {event.step_order})"
            return output

        payload = event.to_dict()
        if self.config.include_timestamp:
            payload["stdout_timestamp"] = datetime.now(timezone.utc).isoformat()
        return orjson.dumps(payload).decode()

    def health_check(self) -> bool:
        stream = self.stream or sys.stdout
        try:
            return stream.writable()
        except (OSError, ValueError):
            return False
