"""Default configuration parameters for the recipe execution engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TimeParams:
    """Time accounting parameters."""
    whole_minutes: bool = True         # Floor wall-clock deltas to whole minutes


@dataclass(frozen=True)
class TaskStatusParams:
    """Task status names used for the start side effect."""
    pending_status: str = "pending"
    ongoing_status: str = "ongoing"


@dataclass(frozen=True)
class PersistenceParams:
    """Execution store parameters."""
    backend: str = "memory"            # memory, sqlite
    sqlite_path: str = "executions.db"
    sqlite_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class LoggingParams:
    """Logging parameters."""
    level: str = "INFO"
    format_json: bool = False
    include_caller: bool = False


@dataclass(frozen=True)
class EventParams:
    """Execution event sink parameters."""
    stdout_enabled: bool = False
    stdout_format: str = "json"        # json, pretty
    include_timestamp: bool = True


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    time: TimeParams
    task_status: TaskStatusParams
    persistence: PersistenceParams
    logging: LoggingParams
    events: EventParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        time=TimeParams(),
        task_status=TaskStatusParams(),
        persistence=PersistenceParams(),
        logging=LoggingParams(),
        events=EventParams(),
    )
