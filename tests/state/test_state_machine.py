"""
Tests for the pure execution state machine.

Transitions are exercised directly on model instances, without a store,
to pin down the one-active-step and time accounting rules.
"""

import pytest
from datetime import datetime, timedelta, timezone

from recipe_engine.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from recipe_engine.state.machine import (
    cancel_execution,
    complete_step,
    create_execution,
    find_step_by_order,
    pause_execution,
    resume_execution,
    start_execution,
    update_step_progress,
)
from recipe_engine.state.models import ExecutionStatus, Running, StepStatus

T0 = datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def active_steps(steps):
    return [s for s in steps if s.status in (StepStatus.IN_PROGRESS, StepStatus.PAUSED)]


@pytest.fixture
def created(bread_recipe):
    return create_execution("TASK-1", bread_recipe, T0)


@pytest.fixture
def running(created):
    execution, steps = created
    result = start_execution(execution, steps, T0)
    return result.execution, result.merged_steps(steps)


class TestStart:
    """Test start transition."""

    def test_create_builds_pending_steps(self, created):
        execution, steps = created

        assert execution.status == ExecutionStatus.NOT_STARTED
        assert [s.recipe_step_id for s in steps] == ["step-mix", "step-proof", "step-bake"]
        assert all(s.execution_id == execution.id for s in steps)

    def test_start_begins_lowest_pending_step(self, created):
        execution, steps = created

        result = start_execution(execution, steps, T0)

        assert result.trigger == "start"
        assert result.from_status == ExecutionStatus.NOT_STARTED
        assert result.execution.phase == Running(step_id="step-mix", step_order=1)
        assert result.execution.started_at == T0
        assert [s.step_order for s in result.changed_steps] == [1]

    def test_start_running_rejected(self, running):
        execution, steps = running

        with pytest.raises(InvalidStateError):
            start_execution(execution, steps, T0)

    def test_start_without_pending_steps(self, created):
        execution, steps = created
        done = [s.begin(T0).complete(1, T0) for s in steps]

        with pytest.raises(InvalidArgumentError, match="No pending steps"):
            start_execution(execution, done, T0)


class TestPauseResume:
    """Test pause and resume transitions."""

    def test_pause_banks_clock_time(self, running, bread_recipe):
        execution, steps = running

        result = pause_execution(execution, steps, bread_recipe, at(4), reason="Break")

        assert result.execution.status == ExecutionStatus.PAUSED
        assert result.execution.total_elapsed_time == 4
        assert result.execution.remaining_time_at_pause == 6
        assert result.changed_steps[0].step_elapsed_time == 4
        assert result.context["elapsed_source"] == "clock"

    def test_pause_snapshot_below_stored_elapsed_keeps_total(self, running, bread_recipe):
        execution, steps = running
        paused = pause_execution(execution, steps, bread_recipe, at(8))
        resumed = resume_execution(paused.execution, paused.merged_steps(steps), bread_recipe, at(8))

        # Caller says 5 remaining (elapsed 5) although 8 were already banked
        result = pause_execution(
            resumed.execution, resumed.merged_steps(paused.merged_steps(steps)),
            bread_recipe, at(9), remaining_time=5,
        )

        assert result.execution.total_elapsed_time == 8
        assert result.changed_steps[0].step_elapsed_time == 5

    def test_resume_without_snapshot_keeps_elapsed(self, running, bread_recipe):
        execution, steps = running
        paused = pause_execution(execution, steps, bread_recipe, at(4))

        result = resume_execution(paused.execution, paused.merged_steps(steps), bread_recipe, at(60))

        assert result.execution.total_elapsed_time == 4
        assert result.changed_steps[0].step_elapsed_time == 4
        assert result.changed_steps[0].resumed_at == at(60)
        assert result.execution.resumed_at == at(60)

    def test_one_active_step_throughout(self, running, bread_recipe):
        execution, steps = running
        assert len(active_steps(steps)) == 1

        paused = pause_execution(execution, steps, bread_recipe, at(2))
        steps = paused.merged_steps(steps)
        assert len(active_steps(steps)) == 1

        resumed = resume_execution(paused.execution, steps, bread_recipe, at(3))
        steps = resumed.merged_steps(steps)
        assert len(active_steps(steps)) == 1


class TestComplete:
    """Test step completion."""

    def test_complete_advances_to_next_step(self, running, bread_recipe):
        execution, steps = running

        result = complete_step(execution, steps, bread_recipe, 1, at(12))
        merged = result.merged_steps(steps)

        assert merged[0].status == StepStatus.COMPLETED
        assert merged[0].actual_duration == 12
        assert merged[1].status == StepStatus.IN_PROGRESS
        assert merged[1].started_at == at(12)
        assert result.execution.current_step_order == 2
        assert result.execution.total_elapsed_time == 12
        assert result.context["next_step_order"] == 2

    def test_reported_duration_used(self, running, bread_recipe):
        execution, steps = running

        result = complete_step(execution, steps, bread_recipe, 1, at(30), actual_duration=11)

        assert result.changed_steps[0].actual_duration == 11
        assert result.execution.total_elapsed_time == 11

    def test_complete_twice_rejected(self, running, bread_recipe):
        execution, steps = running
        result = complete_step(execution, steps, bread_recipe, 1, at(1))

        with pytest.raises(InvalidStateError, match="already completed"):
            complete_step(result.execution, result.merged_steps(steps), bread_recipe, 1, at(2))

    def test_unknown_step_order(self, running, bread_recipe):
        execution, steps = running

        with pytest.raises(NotFoundError):
            complete_step(execution, steps, bread_recipe, 7, at(1))


class TestProgressAndCancel:
    """Test progress updates and cancellation."""

    def test_progress_mirrored_on_phase(self, running):
        execution, steps = running

        result = update_step_progress(execution, steps, 1, 75)

        assert result.execution.current_step_progress == 75
        assert find_step_by_order(result.merged_steps(steps), 1).progress == 75

    def test_progress_validated_before_state(self, created):
        execution, steps = created

        # Range is checked first even though the execution has not started
        with pytest.raises(InvalidArgumentError):
            update_step_progress(execution, steps, 1, 120)

    def test_cancel_resets_running_step(self, running):
        execution, steps = running

        result = cancel_execution(execution, steps)

        assert result.execution.status == ExecutionStatus.CANCELLED
        assert result.changed_steps[0].status == StepStatus.PENDING
        assert result.context["reset_step_order"] == 1

    def test_cancel_not_started(self, created):
        execution, steps = created

        result = cancel_execution(execution, steps)

        assert result.execution.status == ExecutionStatus.CANCELLED
        assert result.changed_steps == ()
