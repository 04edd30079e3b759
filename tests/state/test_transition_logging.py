"""Tests for state transition logging."""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

from recipe_engine.logging.config import log_state_transition
from recipe_engine.state.machine import create_execution, start_execution

T0 = datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class TestLogStateTransition:
    """Test the standardized transition log entry."""

    def test_binds_transition_fields(self):
        logger = Mock()
        bound = logger.bind.return_value

        log_state_transition(logger, "ex-1", "paused", "in_progress", "resume")

        logger.bind.assert_called_once_with(
            execution_id="ex-1",
            from_state="paused",
            to_state="in_progress",
            trigger="resume",
        )
        bound.info.assert_called_once_with("state_transition")

    def test_context_bound_when_present(self):
        logger = Mock()
        bound = logger.bind.return_value

        log_state_transition(logger, "ex-1", "in_progress", "paused", "pause", {"step_order": 1})

        bound.bind.assert_called_once_with(context={"step_order": 1})
        bound.bind.return_value.info.assert_called_once_with("state_transition")

    def test_start_logs_transition(self, bread_recipe):
        execution, steps = create_execution("TASK-1", bread_recipe, T0)

        with patch("recipe_engine.state.machine.log_state_transition") as log_mock:
            start_execution(execution, steps, T0)

        kwargs = log_mock.call_args.kwargs
        assert kwargs["from_state"] == "not_started"
        assert kwargs["to_state"] == "in_progress"
        assert kwargs["trigger"] == "start"
        assert kwargs["context"]["task_id"] == "TASK-1"
