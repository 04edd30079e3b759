"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any

VALID_BACKENDS = ("memory", "sqlite")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_STDOUT_FORMATS = ("json", "pretty")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_time_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate time accounting parameters."""
        errors = []

        if "whole_minutes" in params:
            value = params["whole_minutes"]
            if not isinstance(value, bool):
                errors.append(ValidationError(
                    field="time.whole_minutes",
                    message="Must be a boolean",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_task_status_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate task status names."""
        errors = []

        for key in ("pending_status", "ongoing_status"):
            if key in params:
                value = params[key]
                if not isinstance(value, str) or not value.strip():
                    errors.append(ValidationError(
                        field=f"task_status.{key}",
                        message="Must be a non-empty string",
                        value=value
                    ))

        if (params.get("pending_status") is not None
                and params.get("pending_status") == params.get("ongoing_status")):
            errors.append(ValidationError(
                field="task_status.ongoing_status",
                message="Must differ from pending_status",
                value=params.get("ongoing_status")
            ))

        return errors

    @staticmethod
    def validate_persistence_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate execution store parameters."""
        errors = []

        if "backend" in params:
            value = params["backend"]
            if value not in VALID_BACKENDS:
                errors.append(ValidationError(
                    field="persistence.backend",
                    message=f"Must be one of {', '.join(VALID_BACKENDS)}",
                    value=value
                ))

        if params.get("backend") == "sqlite":
            value = params.get("sqlite_path")
            if not isinstance(value, str) or not value:
                errors.append(ValidationError(
                    field="persistence.sqlite_path",
                    message="Must be a non-empty path when backend is sqlite",
                    value=value
                ))

        if "sqlite_timeout_seconds" in params:
            value = params["sqlite_timeout_seconds"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(ValidationError(
                    field="persistence.sqlite_timeout_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate logging parameters."""
        errors = []

        if "level" in params:
            value = params["level"]
            if not isinstance(value, str) or value.upper() not in VALID_LOG_LEVELS:
                errors.append(ValidationError(
                    field="logging.level",
                    message=f"Must be one of {', '.join(VALID_LOG_LEVELS)}",
                    value=value
                ))

        for key in ("format_json", "include_caller"):
            if key in params and not isinstance(params[key], bool):
                errors.append(ValidationError(
                    field=f"logging.{key}",
                    message="Must be a boolean",
                    value=params[key]
                ))

        return errors

    @staticmethod
    def validate_event_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate event sink parameters."""
        errors = []

        for key in ("stdout_enabled", "include_timestamp"):
            if key in params and not isinstance(params[key], bool):
                errors.append(ValidationError(
                    field=f"events.{key}",
                    message="Must be a boolean",
                    value=params[key]
                ))

        if "stdout_format" in params:
            value = params["stdout_format"]
            if value not in VALID_STDOUT_FORMATS:
                errors.append(ValidationError(
                    field="events.stdout_format",
                    message=f"Must be one of {', '.join(VALID_STDOUT_FORMATS)}",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        for section in ("time", "task_status", "persistence", "logging", "events"):
            if section in config and not isinstance(config[section], dict):
                errors.append(ValidationError(
                    field=section,
                    message="Must be a mapping",
                    value=config[section]
                ))
        if errors:
            return errors

        if "time" in config:
            errors.extend(ConfigValidator.validate_time_params(config["time"]))

        if "task_status" in config:
            errors.extend(ConfigValidator.validate_task_status_params(config["task_status"]))

        if "persistence" in config:
            errors.extend(ConfigValidator.validate_persistence_params(config["persistence"]))

        if "logging" in config:
            errors.extend(ConfigValidator.validate_logging_params(config["logging"]))

        if "events" in config:
            errors.extend(ConfigValidator.validate_event_params(config["events"]))

        return errors
