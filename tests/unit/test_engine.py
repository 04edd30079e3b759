"""Unit tests for RecipeExecutionEngine operations."""

from dataclasses import replace

import pytest
from unittest.mock import patch

from recipe_engine.catalog.models import Recipe, RecipeStep, TaskRef
from recipe_engine.config.defaults import TaskStatusParams, get_default_config
from recipe_engine.engine import RecipeExecutionEngine
from recipe_engine.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from recipe_engine.events.base import BaseEventSink
from recipe_engine.state.models import ExecutionStatus, StepStatus


class TestFindOrCreate:
    """Execution bootstrap."""

    def test_creates_pending_steps_on_first_use(self, engine, store):
        execution = engine.find_or_create_execution("TASK-1")

        assert execution.status == ExecutionStatus.NOT_STARTED
        assert execution.recipe_id == "bread-v2"
        assert execution.current_step_id is None
        steps = store.list_steps(execution.id)
        assert [s.step_order for s in steps] == [1, 2, 3]
        assert all(s.status == StepStatus.PENDING for s in steps)

    def test_returns_existing_execution(self, engine):
        first = engine.find_or_create_execution("TASK-1")
        second = engine.find_or_create_execution("TASK-1")

        assert first.id == second.id

    def test_existing_execution_ignores_other_recipe(self, engine, catalog):
        catalog.add(Recipe(id="bread-v3", product_id="bread",
                           steps=(RecipeStep(id="only", order=1, instruction="x", duration=5),)))
        first = engine.find_or_create_execution("TASK-1")

        second = engine.find_or_create_execution("TASK-1", recipe_id="bread-v3")
        assert second.id == first.id
        assert second.recipe_id == "bread-v2"

    def test_task_without_product_needs_recipe(self, engine):
        with pytest.raises(InvalidArgumentError, match="No recipe found"):
            engine.find_or_create_execution("TASK-NO-PRODUCT")

        execution = engine.find_or_create_execution("TASK-NO-PRODUCT", recipe_id="bread-v2")
        assert execution.recipe_id == "bread-v2"

    def test_unknown_task(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.find_or_create_execution("TASK-404")

        assert exc_info.value.entity == "task"

    def test_unknown_recipe(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.find_or_create_execution("TASK-1", recipe_id="cake-v1")

        assert exc_info.value.entity == "recipe"

    def test_recipe_without_steps(self, engine, catalog):
        catalog.add(Recipe(id="empty", product_id="bread"))

        with pytest.raises(InvalidArgumentError, match="no steps"):
            engine.find_or_create_execution("TASK-1", recipe_id="empty")


class TestStart:
    """Starting an execution."""

    def test_start_marks_pending_task_ongoing(self, engine, tasks):
        engine.start("TASK-1")

        assert tasks.get_task("TASK-1").status == "ongoing"

    def test_start_leaves_other_task_statuses(self, engine, tasks):
        engine.start("TASK-2", recipe_id="bread-v2")

        assert tasks.get_task("TASK-2").status == "ongoing"

    def test_start_sets_timestamps(self, engine, clock):
        view = engine.start("TASK-1")

        assert view.started_at == clock.now
        assert view.current_step.started_at == clock.now
        assert view.current_step.instruction == "Mix flour and water"
        assert view.current_step.step_duration == 10

    def test_start_uses_custom_task_statuses(self, store, catalog, tasks, clock):
        config = replace(
            get_default_config(),
            task_status=TaskStatusParams(pending_status="queued", ongoing_status="cooking"),
        )
        tasks.add(TaskRef(task_id="TASK-Q", status="queued", product_id="bread"))
        engine = RecipeExecutionEngine(store, catalog, tasks, config=config, clock=clock)

        engine.start("TASK-Q")
        assert tasks.get_task("TASK-Q").status == "cooking"


class TestProgress:
    """Progress updates on the running step."""

    def test_progress_recorded(self, engine):
        engine.start("TASK-1")

        view = engine.update_step_progress("TASK-1", 1, 50, temperature=22, notes="Smooth")
        assert view.current_step.progress == 50
        assert view.step(1).progress == 50
        assert view.step(1).actual_temperature == 22
        assert view.step(1).notes == "Smooth"

    def test_progress_does_not_bank_time(self, engine, clock):
        engine.start("TASK-1")
        clock.advance(minutes=6)

        view = engine.update_step_progress("TASK-1", 1, 60)
        assert view.elapsed_time == 0
        assert view.step(1).step_elapsed_time == 0
        assert view.current_step_elapsed_time == 6

    @pytest.mark.parametrize("progress", [-1, 101, 150, float("nan"), float("inf")])
    def test_progress_out_of_range(self, engine, progress):
        engine.start("TASK-1")

        with pytest.raises(InvalidArgumentError) as exc_info:
            engine.update_step_progress("TASK-1", 1, progress)
        assert exc_info.value.argument == "progress"

    def test_progress_on_pending_step(self, engine):
        engine.start("TASK-1")

        with pytest.raises(InvalidStateError):
            engine.update_step_progress("TASK-1", 2, 10)

    def test_progress_while_paused(self, engine):
        engine.start("TASK-1")
        engine.pause("TASK-1")

        with pytest.raises(InvalidStateError):
            engine.update_step_progress("TASK-1", 1, 10)

    def test_progress_unknown_step(self, engine):
        engine.start("TASK-1")

        with pytest.raises(NotFoundError):
            engine.update_step_progress("TASK-1", 9, 10)

    def test_progress_survives_pause(self, engine):
        engine.start("TASK-1")
        engine.update_step_progress("TASK-1", 1, 40)
        engine.pause("TASK-1")

        view = engine.resume("TASK-1")
        assert view.current_step.progress == 40


class TestMissingExecution:
    """Actions that require an existing execution."""

    @pytest.mark.parametrize("action", ["pause", "resume", "cancel", "get_status"])
    def test_action_without_execution(self, engine, action):
        with pytest.raises(NotFoundError) as exc_info:
            getattr(engine, action)("TASK-1")

        assert exc_info.value.entity == "execution"

    def test_pause_not_started(self, engine):
        engine.find_or_create_execution("TASK-1")

        with pytest.raises(InvalidStateError):
            engine.pause("TASK-1")

    def test_resume_running(self, engine):
        engine.start("TASK-1")

        with pytest.raises(InvalidStateError):
            engine.resume("TASK-1")


class TestPreparationQuestions:
    """Checklist flags."""

    def test_question_checked_before_start(self, engine):
        view = engine.update_preparation_question_status("TASK-1", "prep-hygiene", "q-hands", True)

        assert view.status == ExecutionStatus.NOT_STARTED
        flags = {q.question_id: q.checked for q in view.preparation_questions}
        assert flags == {"q-hands": True, "q-surface": False}

    def test_question_toggle_updates_existing(self, engine, store):
        engine.update_preparation_question_status("TASK-1", "prep-hygiene", "q-hands", True)
        view = engine.update_preparation_question_status("TASK-1", "prep-hygiene", "q-hands", False)

        assert not any(q.checked for q in view.preparation_questions)
        assert len(store.list_question_statuses(view.execution_id)) == 1

    def test_unknown_preparation_step(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.update_preparation_question_status("TASK-1", "prep-oven", "q-hands", True)

        assert exc_info.value.entity == "preparation_step"

    def test_unknown_question(self, engine):
        with pytest.raises(NotFoundError) as exc_info:
            engine.update_preparation_question_status("TASK-1", "prep-hygiene", "q-apron", True)

        assert exc_info.value.entity == "preparation_question"


class TestDelete:
    """Execution deletion."""

    def test_delete_removes_everything(self, engine, store, events):
        engine.update_preparation_question_status("TASK-1", "prep-hygiene", "q-hands", True)
        view = engine.start("TASK-1")

        assert engine.delete_execution("TASK-1") is True
        assert store.get_execution_for_task("TASK-1") is None
        assert store.list_steps(view.execution_id) == []
        assert store.list_question_statuses(view.execution_id) == []
        assert events.event_types()[-1] == "deleted"

    def test_delete_missing(self, engine, events):
        assert engine.delete_execution("TASK-1") is False
        assert events.events == []

    def test_start_after_delete_creates_new_execution(self, engine):
        first = engine.start("TASK-1")
        engine.delete_execution("TASK-1")

        second = engine.start("TASK-1")
        assert second.execution_id != first.execution_id


class ExplodingSink(BaseEventSink):
    def __init__(self):
        super().__init__("exploding")

    def publish(self, events):
        raise RuntimeError("sink down")

    def health_check(self):
        return False


class TestEventPublishing:
    """Events emitted after each committed action."""

    def test_event_per_action(self, engine, events):
        engine.start("TASK-1")
        engine.update_step_progress("TASK-1", 1, 20)
        engine.pause("TASK-1", reason="Break")
        engine.resume("TASK-1")
        engine.cancel("TASK-1")

        assert events.event_types() == ["start", "progress", "pause", "resume", "cancel"]
        pause_event = events.events[2]
        assert pause_event.task_id == "TASK-1"
        assert pause_event.status == "paused"
        assert pause_event.step_order == 1
        assert pause_event.context["reason"] == "Break"

    def test_rejected_action_emits_nothing(self, engine, events):
        with pytest.raises(NotFoundError):
            engine.pause("TASK-1")

        assert events.events == []

    def test_broken_sink_does_not_fail_action(self, store, catalog, tasks, clock, events):
        engine = RecipeExecutionEngine(
            store, catalog, tasks, clock=clock, event_sinks=[ExplodingSink(), events]
        )

        view = engine.start("TASK-1")
        assert view.status == ExecutionStatus.IN_PROGRESS
        assert events.event_types() == ["start"]

    def test_unhealthy_sink_logged_on_assembly(self, store, catalog, tasks, clock, events):
        with patch("recipe_engine.engine.logger") as log_mock:
            RecipeExecutionEngine(
                store, catalog, tasks, clock=clock, event_sinks=[ExplodingSink(), events]
            )

        log_mock.warning.assert_called_once_with("Event sink unhealthy", sink="exploding")
