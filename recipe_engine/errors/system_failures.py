"""
System failure error classifications.

These represent failures of the engine's environment rather than of the
request: storage errors, lost optimistic-concurrency races and unusable
configuration.
"""

from typing import Any, Dict, Optional


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class PersistenceError(SystemFailureError):
    """Database persistence failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target


class ConcurrencyConflictError(SystemFailureError):
    """Execution row was modified by another request since it was read."""

    def __init__(self, message: str, execution_id: Optional[str] = None,
                 expected_version: Optional[int] = None,
                 actual_version: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.execution_id = execution_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ConfigurationError(SystemFailureError):
    """Merged configuration failed validation."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
