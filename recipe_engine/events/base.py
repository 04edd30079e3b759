"""Base classes for execution event sinks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from ..utils.time import format_timestamp


class PublishStatus(Enum):
    """Event publish status."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class PublishResult:
    """Result of publishing one event."""
    status: PublishStatus
    message: Optional[str] = None
    error: Optional[Exception] = None


@dataclass(frozen=True)
class ExecutionEvent:
    """A committed state change of an execution."""
    event_type: str
    task_id: str
    execution_id: str
    status: str
    occurred_at: datetime
    step_order: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "task_id": self.task_id,
            "execution_id": self.execution_id,
            "status": self.status,
            "step_order": self.step_order,
            "occurred_at": format_timestamp(self.occurred_at),
            "context": self.context,
        }


class BaseEventSink(ABC):
    """Base class for event sinks."""

    def __init__(self, name: str, config: Any = None):
        self.name = name
        self.config = config
        self.logger = structlog.get_logger(f"execution.events.{name}")
        self._published_count = 0
        self._error_count = 0

    @abstractmethod
    def publish(self, events: list[ExecutionEvent]) -> list[PublishResult]:
        """
        Publish events to the sink's destination.

        Args:
            events: Events in the order they occurred

        Returns:
            One result per event
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the sink can accept events."""
        pass

    def _record(self, results: list[PublishResult]) -> list[PublishResult]:
        for result in results:
            if result.status == PublishStatus.SUCCESS:
                self._published_count += 1
            else:
                self._error_count += 1
        return results

    def get_stats(self) -> dict[str, Any]:
        """Get publish statistics."""
        attempts = self._published_count + self._error_count
        return {
            "name": self.name,
            "published_count": self._published_count,
            "error_count": self._error_count,
            "success_rate": self._published_count / attempts if attempts > 0 else 0.0,
        }
