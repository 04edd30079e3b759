"""
Request-level error classifications.

These exceptions abort a single engine call. None of them are retried; the
store transaction wrapping the call is rolled back before they propagate.
"""

from typing import Any, Dict, Optional


class ExecutionError(Exception):
    """Base class for errors caused by the request rather than the system."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class NotFoundError(ExecutionError):
    """Task, execution, step, recipe or question does not exist."""

    def __init__(self, message: str, entity: Optional[str] = None,
                 key: Optional[Any] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entity = entity
        self.key = key


class InvalidStateError(ExecutionError):
    """Action attempted from a state that forbids it."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_action: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_action = attempted_action


class InvalidArgumentError(ExecutionError):
    """Argument outside its allowed range, or nothing to act on."""

    def __init__(self, message: str, argument: Optional[str] = None,
                 value: Optional[Any] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.argument = argument
        self.value = value
