"""Tests for configuration loading and validation."""

import pytest
import yaml

from recipe_engine.config.defaults import get_default_config
from recipe_engine.config.loader import ConfigLoader, build_config, load_config
from recipe_engine.config.validation import ConfigValidator
from recipe_engine.engine import RecipeExecutionEngine
from recipe_engine.errors import ConfigurationError
from recipe_engine.events.stdout_sink import StdoutEventSink
from recipe_engine.persistence.memory import InMemoryExecutionStore
from recipe_engine.persistence.sqlite_store import SqliteExecutionStore


def write_config(directory, data):
    with open(directory / "engine.yaml", "w") as f:
        yaml.safe_dump(data, f)


class TestConfigLoader:
    """Test 3-tier configuration precedence."""

    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path)

        assert config == get_default_config()
        assert config.time.whole_minutes is True
        assert config.persistence.backend == "memory"

    def test_file_overrides_defaults(self, tmp_path):
        write_config(tmp_path, {"time": {"whole_minutes": False}, "logging": {"level": "DEBUG"}})

        config = load_config(tmp_path)
        assert config.time.whole_minutes is False
        assert config.logging.level == "DEBUG"
        # Untouched keys keep their defaults
        assert config.logging.format_json is False

    def test_explicit_overrides_win(self, tmp_path):
        write_config(tmp_path, {"task_status": {"pending_status": "queued"}})

        config = load_config(tmp_path, {"task_status": {"pending_status": "todo"}})
        assert config.task_status.pending_status == "todo"
        assert config.task_status.ongoing_status == "ongoing"

    def test_empty_file(self, tmp_path):
        (tmp_path / "engine.yaml").write_text("")

        assert ConfigLoader.create(tmp_path).load_file_config() == {}

    def test_unknown_keys_ignored_when_building(self, tmp_path):
        merged = ConfigLoader.create(tmp_path).merge_config({"events": {"stdout_enabled": True, "colour": "red"}})

        config = build_config(merged)
        assert config.events.stdout_enabled is True

    def test_invalid_file_raises(self, tmp_path):
        write_config(tmp_path, {"persistence": {"backend": "postgres"}})

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path)

        assert "persistence.backend" in str(exc_info.value)
        assert exc_info.value.errors[0].value == "postgres"


class TestConfigValidator:
    """Test configuration validation rules."""

    def test_defaults_are_valid(self, tmp_path):
        merged = ConfigLoader.create(tmp_path).merge_config()

        assert ConfigValidator.validate_config(merged) == []

    def test_whole_minutes_must_be_bool(self):
        errors = ConfigValidator.validate_time_params({"whole_minutes": "yes"})

        assert [e.field for e in errors] == ["time.whole_minutes"]

    def test_task_statuses_must_differ(self):
        errors = ConfigValidator.validate_task_status_params(
            {"pending_status": "pending", "ongoing_status": "pending"}
        )

        assert errors[0].message == "Must differ from pending_status"

    def test_empty_task_status(self):
        errors = ConfigValidator.validate_task_status_params({"pending_status": "  "})

        assert errors[0].field == "task_status.pending_status"

    def test_sqlite_requires_path(self):
        errors = ConfigValidator.validate_persistence_params({"backend": "sqlite", "sqlite_path": ""})

        assert [e.field for e in errors] == ["persistence.sqlite_path"]

    @pytest.mark.parametrize("timeout", [0, -5, "30", True])
    def test_sqlite_timeout(self, timeout):
        errors = ConfigValidator.validate_persistence_params({"sqlite_timeout_seconds": timeout})

        assert len(errors) == 1

    def test_log_level_case_insensitive(self):
        assert ConfigValidator.validate_logging_params({"level": "debug"}) == []
        assert len(ConfigValidator.validate_logging_params({"level": "LOUD"})) == 1

    def test_stdout_format(self):
        errors = ConfigValidator.validate_event_params({"stdout_format": "xml"})

        assert errors[0].field == "events.stdout_format"

    def test_section_must_be_mapping(self):
        errors = ConfigValidator.validate_config({"time": None, "logging": {"level": "LOUD"}})

        assert [e.field for e in errors] == ["time"]


class TestEngineFromConfig:
    """Test engine assembly from configuration."""

    def test_memory_backend(self, tmp_path, catalog, tasks):
        engine = RecipeExecutionEngine.from_config(catalog, tasks, config_dir=tmp_path)

        assert isinstance(engine.store, InMemoryExecutionStore)
        assert engine.event_sinks == []

    def test_sqlite_backend_with_stdout_events(self, tmp_path, catalog, tasks):
        overrides = {
            "persistence": {"backend": "sqlite", "sqlite_path": str(tmp_path / "engine.db")},
            "events": {"stdout_enabled": True, "stdout_format": "pretty"},
            "time": {"whole_minutes": False},
        }

        engine = RecipeExecutionEngine.from_config(catalog, tasks, config_dir=tmp_path, overrides=overrides)

        assert isinstance(engine.store, SqliteExecutionStore)
        assert isinstance(engine.event_sinks[0], StdoutEventSink)
        assert engine.whole_minutes is False
        assert engine.projector.whole_minutes is False
