"""
Error classification for the recipe execution engine.

Request-level errors (bad input, wrong state, missing records) are separated
from system failures (storage, concurrency, configuration) so callers can map
them to the right response without inspecting messages.
"""

from .execution import (
    ExecutionError,
    NotFoundError,
    InvalidStateError,
    InvalidArgumentError,
)
from .system_failures import (
    SystemFailureError,
    PersistenceError,
    ConcurrencyConflictError,
    ConfigurationError,
)

__all__ = [
    # Request errors
    "ExecutionError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidArgumentError",
    # System failures
    "SystemFailureError",
    "PersistenceError",
    "ConcurrencyConflictError",
    "ConfigurationError",
]
