"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import ConfigurationError
from .defaults import (
    DefaultConfig,
    EventParams,
    LoggingParams,
    PersistenceParams,
    TaskStatusParams,
    TimeParams,
    get_default_config,
)
from .validation import ConfigValidator

CONFIG_FILENAME = "engine.yaml"


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from engine.yaml, if present."""
        config_file = self.config_dir / CONFIG_FILENAME

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. engine.yaml in the config directory
        3. Dataclass defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_file_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def _build(cls: type, values: dict[str, Any]) -> Any:
    """Instantiate a params dataclass from the keys it declares."""
    known = {name: values[name] for name in cls.__dataclass_fields__ if name in values}
    return cls(**known)


def build_config(merged: dict[str, Any]) -> DefaultConfig:
    """Turn a merged configuration dict back into typed parameters."""
    return DefaultConfig(
        time=_build(TimeParams, merged.get("time", {})),
        task_status=_build(TaskStatusParams, merged.get("task_status", {})),
        persistence=_build(PersistenceParams, merged.get("persistence", {})),
        logging=_build(LoggingParams, merged.get("logging", {})),
        events=_build(EventParams, merged.get("events", {})),
    )


def load_config(
    config_dir: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> DefaultConfig:
    """
    Merge, validate and build the engine configuration.

    Raises:
        ConfigurationError: The merged configuration has validation errors
    """
    merged = ConfigLoader.create(config_dir).merge_config(overrides)

    errors = ConfigValidator.validate_config(merged)
    if errors:
        raise ConfigurationError(
            "Invalid engine configuration: "
            + "; ".join(f"{err.field}: {err.message} (got: {err.value})" for err in errors),
            errors=errors,
        )

    return build_config(merged)
