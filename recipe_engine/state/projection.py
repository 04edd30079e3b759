"""
Status projection.

Builds the read-only view returned by every engine operation. It is never
cached: the elapsed time of a running step depends on the clock at the
moment of the call.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

import orjson

from ..catalog.models import Recipe
from ..utils.time import format_timestamp
from .models import (
    Execution,
    ExecutionStatus,
    PreparationQuestionStatus,
    StepExecution,
    StepStatus,
)
from .timekeeping import live_elapsed, remaining_minutes


@dataclass(frozen=True)
class CurrentStepView:
    """The active step with live time figures."""
    step_id: str
    step_order: int
    instruction: str
    progress: float
    status: StepStatus
    started_at: Optional[datetime]
    elapsed_time: float
    remaining_time: float
    step_duration: float


@dataclass(frozen=True)
class StepView:
    """Per-step record for client rendering."""
    id: str
    step_id: str
    step_order: int
    instruction: str
    status: StepStatus
    progress: float
    step_duration: Optional[float]
    target_temperature: Optional[float]
    actual_temperature: Optional[float]
    actual_duration: Optional[float]
    step_elapsed_time: float
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    notes: Optional[str]


@dataclass(frozen=True)
class PreparationQuestionView:
    """Checklist state of one preparation question."""
    step_id: str
    step_order: int
    question_id: str
    question: str
    has_checkbox: bool
    checked: bool


@dataclass(frozen=True)
class ExecutionStatusView:
    """Complete status of an execution as seen at ``as_of``."""
    execution_id: str
    task_id: str
    recipe_id: str
    recipe_name: str
    status: ExecutionStatus
    as_of: datetime
    current_step: Optional[CurrentStepView]
    overall_progress: int
    total_steps: int
    completed_steps: int
    elapsed_time: float
    current_step_elapsed_time: Optional[float]
    current_step_remaining_time: Optional[float]
    remaining_time_for_task: float
    started_at: Optional[datetime]
    paused_at: Optional[datetime]
    resumed_at: Optional[datetime]
    completed_at: Optional[datetime]
    pause_reason: Optional[str]
    remaining_time_at_pause: Optional[float]
    steps: tuple[StepView, ...] = ()
    preparation_questions: tuple[PreparationQuestionView, ...] = field(default=())

    def step(self, step_order: int) -> Optional[StepView]:
        for step in self.steps:
            if step.step_order == step_order:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form with ISO timestamps and enum values."""
        return _plain(asdict(self))

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (ExecutionStatus, StepStatus)):
        return value.value
    return value


class StatusProjector:
    """Assembles ExecutionStatusView instances."""

    def __init__(self, whole_minutes: bool = True) -> None:
        self.whole_minutes = whole_minutes

    def project(
        self,
        execution: Execution,
        recipe: Recipe,
        steps: Sequence[StepExecution],
        now: datetime,
        question_statuses: Sequence[PreparationQuestionStatus] = (),
    ) -> ExecutionStatusView:
        ordered = sorted(steps, key=lambda s: s.step_order)

        total_steps = len(ordered)
        completed_steps = sum(1 for s in ordered if s.status == StepStatus.COMPLETED)
        overall_progress = round(completed_steps / total_steps * 100) if total_steps else 0

        current_step = self._current_step(execution, recipe, ordered, now)

        return ExecutionStatusView(
            execution_id=execution.id,
            task_id=execution.task_id,
            recipe_id=execution.recipe_id,
            recipe_name=recipe.name,
            status=execution.status,
            as_of=now,
            current_step=current_step,
            overall_progress=overall_progress,
            total_steps=total_steps,
            completed_steps=completed_steps,
            elapsed_time=execution.total_elapsed_time,
            current_step_elapsed_time=current_step.elapsed_time if current_step else None,
            current_step_remaining_time=current_step.remaining_time if current_step else None,
            remaining_time_for_task=self._remaining_for_task(execution, recipe, ordered, current_step),
            started_at=execution.started_at,
            paused_at=execution.paused_at,
            resumed_at=execution.resumed_at,
            completed_at=execution.completed_at,
            pause_reason=execution.pause_reason,
            remaining_time_at_pause=execution.remaining_time_at_pause,
            steps=tuple(self._step_view(recipe, step) for step in ordered),
            preparation_questions=self._question_views(recipe, question_statuses),
        )

    def _current_step(
        self,
        execution: Execution,
        recipe: Recipe,
        steps: Sequence[StepExecution],
        now: datetime,
    ) -> Optional[CurrentStepView]:
        if execution.current_step_id is None:
            return None

        step = next((s for s in steps if s.recipe_step_id == execution.current_step_id), None)
        recipe_step = recipe.find_step(execution.current_step_id)
        if step is None or recipe_step is None:
            return None

        elapsed = live_elapsed(step, now, self.whole_minutes)
        return CurrentStepView(
            step_id=step.recipe_step_id,
            step_order=step.step_order,
            instruction=recipe_step.instruction,
            progress=execution.current_step_progress,
            status=step.status,
            started_at=step.started_at,
            elapsed_time=elapsed,
            remaining_time=remaining_minutes(recipe_step.duration, elapsed),
            step_duration=recipe_step.duration,
        )

    def _remaining_for_task(
        self,
        execution: Execution,
        recipe: Recipe,
        steps: Sequence[StepExecution],
        current_step: Optional[CurrentStepView],
    ) -> float:
        total = 0
        for step in steps:
            if step.status == StepStatus.COMPLETED:
                continue
            recipe_step = recipe.find_step(step.recipe_step_id)
            if recipe_step is None:
                continue

            if step.recipe_step_id != execution.current_step_id:
                total += recipe_step.duration
            elif execution.remaining_time_at_pause is not None:
                total += execution.remaining_time_at_pause
            elif current_step is not None:
                total += current_step.remaining_time
            else:
                total += remaining_minutes(recipe_step.duration, step.step_elapsed_time)
        return total

    def _step_view(self, recipe: Recipe, step: StepExecution) -> StepView:
        recipe_step = recipe.find_step(step.recipe_step_id)
        return StepView(
            id=step.id,
            step_id=step.recipe_step_id,
            step_order=step.step_order,
            instruction=recipe_step.instruction if recipe_step else "",
            status=step.status,
            progress=step.progress,
            step_duration=recipe_step.duration if recipe_step else None,
            target_temperature=recipe_step.temperature if recipe_step else None,
            actual_temperature=step.actual_temperature,
            actual_duration=step.actual_duration,
            step_elapsed_time=step.step_elapsed_time,
            started_at=step.started_at,
            completed_at=step.completed_at,
            notes=step.notes,
        )

    def _question_views(
        self,
        recipe: Recipe,
        question_statuses: Sequence[PreparationQuestionStatus],
    ) -> tuple[PreparationQuestionView, ...]:
        checked = {
            (status.preparation_step_id, status.question_id): status.checked
            for status in question_statuses
        }
        views = []
        for prep in sorted(recipe.preparation_steps, key=lambda p: p.order):
            for question in prep.questions:
                views.append(PreparationQuestionView(
                    step_id=prep.step_id,
                    step_order=prep.order,
                    question_id=question.id,
                    question=question.question,
                    has_checkbox=question.has_checkbox,
                    checked=checked.get((prep.step_id, question.id), False),
                ))
        return tuple(views)
