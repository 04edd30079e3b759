"""
Execution state machine.

Pure transition functions: each takes the current Execution, its ordered
StepExecutions and the recipe, validates the requested action and returns
the new records. Nothing here touches storage or the clock directly.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from ..catalog.models import Recipe, RecipeStep
from ..errors import InvalidArgumentError, InvalidStateError, NotFoundError
from ..logging.config import get_state_logger, log_state_transition
from .models import (
    Cancelled,
    Completed,
    Execution,
    ExecutionStatus,
    Paused,
    Running,
    StepExecution,
    StepStatus,
)
from .timekeeping import DeltaPolicy, apply_delta, clock_reference, reconcile_elapsed

state_logger = get_state_logger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """New records produced by a transition."""
    execution: Execution
    changed_steps: tuple[StepExecution, ...] = ()
    trigger: str = ""
    from_status: Optional[ExecutionStatus] = None
    context: dict[str, Any] = field(default_factory=dict)

    def merged_steps(self, steps: Sequence[StepExecution]) -> list[StepExecution]:
        """Apply changed steps over the original list, preserving order."""
        changed = {step.id: step for step in self.changed_steps}
        return [changed.get(step.id, step) for step in steps]


def _transition(
    before: Execution,
    after: Execution,
    trigger: str,
    changed_steps: Sequence[StepExecution] = (),
    context: Optional[dict[str, Any]] = None,
) -> TransitionResult:
    context = context or {}
    log_state_transition(
        state_logger,
        execution_id=after.id,
        from_state=before.status.value,
        to_state=after.status.value,
        trigger=trigger,
        context={"task_id": after.task_id, **context},
    )
    return TransitionResult(
        execution=after,
        changed_steps=tuple(changed_steps),
        trigger=trigger,
        from_status=before.status,
        context=context,
    )


def _invalid_state(execution: Execution, action: str, message: str) -> InvalidStateError:
    return InvalidStateError(
        message,
        current_state=execution.status.value,
        attempted_action=action,
        context={"execution_id": execution.id, "task_id": execution.task_id},
    )


def _require_status(execution: Execution, action: str, *allowed: ExecutionStatus) -> None:
    if execution.status not in allowed:
        raise _invalid_state(
            execution, action,
            f"Cannot {action} execution with status: {execution.status.value}",
        )


def find_step_by_order(steps: Sequence[StepExecution], step_order: int) -> StepExecution:
    for step in steps:
        if step.step_order == step_order:
            return step
    raise NotFoundError(
        f"Step execution not found for step order: {step_order}",
        entity="step_execution",
        key=step_order,
    )


def find_active_step(execution: Execution, steps: Sequence[StepExecution]) -> StepExecution:
    """StepExecution the phase points at."""
    step_id = execution.current_step_id
    for step in steps:
        if step.recipe_step_id == step_id:
            return step
    raise NotFoundError(
        "Current step execution not found",
        entity="step_execution",
        key=step_id,
        context={"execution_id": execution.id},
    )


def recipe_step_for(recipe: Recipe, step: StepExecution) -> RecipeStep:
    recipe_step = recipe.find_step(step.recipe_step_id)
    if recipe_step is None:
        raise NotFoundError(
            "Recipe step not found",
            entity="recipe_step",
            key=step.recipe_step_id,
            context={"recipe_id": recipe.id},
        )
    return recipe_step


def _next_pending(steps: Sequence[StepExecution]) -> Optional[StepExecution]:
    for step in sorted(steps, key=lambda s: s.step_order):
        if step.status == StepStatus.PENDING:
            return step
    return None


def create_execution(
    task_id: str, recipe: Recipe, now: datetime
) -> tuple[Execution, list[StepExecution]]:
    """
    Build a NOT_STARTED execution and one PENDING step per recipe step.

    Raises:
        InvalidArgumentError: The recipe has no steps to execute
    """
    if not recipe.steps:
        raise InvalidArgumentError(
            f"Recipe {recipe.id} has no steps to execute",
            argument="recipe_id",
            value=recipe.id,
        )

    execution = Execution.create(task_id=task_id, recipe_id=recipe.id, created_at=now)
    steps = [
        StepExecution.pending(execution.id, recipe_step.id, recipe_step.order)
        for recipe_step in recipe.ordered_steps
    ]

    state_logger.info(
        "Execution created",
        execution_id=execution.id,
        task_id=task_id,
        recipe_id=recipe.id,
        step_count=len(steps),
    )
    return execution, steps


def start_execution(
    execution: Execution, steps: Sequence[StepExecution], now: datetime
) -> TransitionResult:
    """Begin the lowest-order pending step."""
    if execution.status == ExecutionStatus.IN_PROGRESS:
        raise _invalid_state(execution, "start", "Recipe execution is already in progress")
    if execution.status == ExecutionStatus.COMPLETED:
        raise _invalid_state(execution, "start", "Recipe execution is already completed")
    if execution.status == ExecutionStatus.PAUSED:
        raise _invalid_state(execution, "start", "Recipe execution is paused; resume it instead")

    first_step = _next_pending(steps)
    if first_step is None:
        raise InvalidArgumentError(
            "No pending steps found",
            argument="task_id",
            value=execution.task_id,
        )

    started_step = first_step.begin(now)
    started = execution.with_phase(
        Running(step_id=started_step.recipe_step_id, step_order=started_step.step_order),
        started_at=now,
    )

    return _transition(
        execution, started, "start", [started_step],
        {"step_order": started_step.step_order},
    )


def pause_execution(
    execution: Execution,
    steps: Sequence[StepExecution],
    recipe: Recipe,
    now: datetime,
    reason: Optional[str] = None,
    remaining_time: Optional[float] = None,
    whole_minutes: bool = True,
) -> TransitionResult:
    """Freeze the running step, banking its elapsed time."""
    phase = execution.phase
    if not isinstance(phase, Running):
        raise _invalid_state(
            execution, "pause", f"Cannot pause execution with status: {execution.status.value}"
        )

    step = find_active_step(execution, steps)
    duration = recipe_step_for(recipe, step).duration

    reconciliation = reconcile_elapsed(
        previous_elapsed=step.step_elapsed_time,
        duration=duration,
        now=now,
        reference=clock_reference(step),
        remaining_time=remaining_time,
        whole_minutes=whole_minutes,
    )
    total = apply_delta(execution.total_elapsed_time, reconciliation, DeltaPolicy.INCREMENT_ONLY)

    snapshot = remaining_time if remaining_time is not None else reconciliation.remaining

    paused_step = step.pause(reconciliation.elapsed, now)
    paused = execution.with_phase(
        Paused(
            step_id=phase.step_id,
            step_order=phase.step_order,
            step_progress=phase.step_progress,
            remaining_time_at_pause=snapshot,
            reason=reason,
        ),
        paused_at=now,
        total_elapsed_time=total,
    )

    return _transition(
        execution, paused, "pause", [paused_step],
        {
            "step_order": step.step_order,
            "elapsed_source": reconciliation.source.value,
            "step_elapsed_time": reconciliation.elapsed,
            "remaining_time_at_pause": snapshot,
            "reason": reason,
        },
    )


def resume_execution(
    execution: Execution,
    steps: Sequence[StepExecution],
    recipe: Recipe,
    now: datetime,
    remaining_time: Optional[float] = None,
    whole_minutes: bool = True,
) -> TransitionResult:
    """Restart the paused step, optionally re-syncing its elapsed time."""
    phase = execution.phase
    if not isinstance(phase, Paused):
        raise _invalid_state(
            execution, "resume", f"Cannot resume execution with status: {execution.status.value}"
        )

    step = find_active_step(execution, steps)
    duration = recipe_step_for(recipe, step).duration

    # The step was not running while paused, so the clock is not consulted.
    reconciliation = reconcile_elapsed(
        previous_elapsed=step.step_elapsed_time,
        duration=duration,
        now=now,
        reference=None,
        remaining_time=remaining_time,
        whole_minutes=whole_minutes,
    )
    total = apply_delta(execution.total_elapsed_time, reconciliation, DeltaPolicy.SIGNED)

    resumed_step = step.resume(reconciliation.elapsed, now)
    resumed = execution.with_phase(
        Running(step_id=phase.step_id, step_order=phase.step_order,
                step_progress=phase.step_progress),
        resumed_at=now,
        total_elapsed_time=total,
    )

    return _transition(
        execution, resumed, "resume", [resumed_step],
        {
            "step_order": step.step_order,
            "elapsed_source": reconciliation.source.value,
            "elapsed_correction": reconciliation.delta,
        },
    )


def update_step_progress(
    execution: Execution,
    steps: Sequence[StepExecution],
    step_order: int,
    progress: float,
    temperature: Optional[float] = None,
    notes: Optional[str] = None,
) -> TransitionResult:
    """Record progress on the running step. No time accounting happens here."""
    if not math.isfinite(progress) or progress < 0 or progress > 100:
        raise InvalidArgumentError(
            f"Invalid progress: {progress}. Must be between 0 and 100.",
            argument="progress",
            value=progress,
        )

    _require_status(execution, "update progress for", ExecutionStatus.IN_PROGRESS)
    step = find_step_by_order(steps, step_order)

    if step.status == StepStatus.PAUSED:
        raise _invalid_state(
            execution, "update progress for",
            "Cannot update progress for paused step. Please resume execution first.",
        )
    if step.status != StepStatus.IN_PROGRESS:
        raise _invalid_state(
            execution, "update progress for",
            f"Cannot update progress for step {step_order} with status: {step.status.value}",
        )

    updated_step = step.with_progress(progress, temperature, notes)

    updated = execution
    phase = execution.phase
    if isinstance(phase, Running) and phase.step_order == step_order:
        updated = execution.with_phase(
            Running(step_id=phase.step_id, step_order=phase.step_order, step_progress=progress)
        )

    return _transition(
        execution, updated, "progress", [updated_step],
        {"step_order": step_order, "progress": progress},
    )


def complete_step(
    execution: Execution,
    steps: Sequence[StepExecution],
    recipe: Recipe,
    step_order: int,
    now: datetime,
    actual_duration: Optional[float] = None,
    remaining_time: Optional[float] = None,
    temperature: Optional[float] = None,
    notes: Optional[str] = None,
    whole_minutes: bool = True,
) -> TransitionResult:
    """Finish the running step and advance to the next pending one."""
    _require_status(execution, "complete step for", ExecutionStatus.IN_PROGRESS)
    step = find_step_by_order(steps, step_order)

    if step.status == StepStatus.COMPLETED:
        raise _invalid_state(execution, "complete step for", f"Step {step_order} is already completed")
    if step.status != StepStatus.IN_PROGRESS:
        raise _invalid_state(
            execution, "complete step for",
            f"Step {step_order} is not in progress. Current status: {step.status.value}",
        )

    duration = recipe_step_for(recipe, step).duration
    reconciliation = reconcile_elapsed(
        previous_elapsed=step.step_elapsed_time,
        duration=duration,
        now=now,
        reference=clock_reference(step),
        remaining_time=remaining_time,
        actual_duration=actual_duration,
        whole_minutes=whole_minutes,
    )
    total = apply_delta(execution.total_elapsed_time, reconciliation, DeltaPolicy.INCREMENT_ONLY)

    completed_step = step.complete(reconciliation.elapsed, now, temperature, notes)
    changed = [completed_step]

    remaining_steps = [s for s in steps if s.id != step.id]
    next_step = _next_pending(remaining_steps)

    if next_step is not None:
        started_next = next_step.begin(now)
        changed.append(started_next)
        updated = execution.with_phase(
            Running(step_id=started_next.recipe_step_id, step_order=started_next.step_order),
            total_elapsed_time=total,
        )
    else:
        updated = execution.with_phase(Completed(), completed_at=now, total_elapsed_time=total)

    return _transition(
        execution, updated, "complete_step", changed,
        {
            "step_order": step_order,
            "elapsed_source": reconciliation.source.value,
            "actual_duration": reconciliation.elapsed,
            "next_step_order": next_step.step_order if next_step else None,
        },
    )


def cancel_execution(execution: Execution, steps: Sequence[StepExecution]) -> TransitionResult:
    """Stop the execution; the in-flight step goes back to PENDING as-is."""
    if execution.status == ExecutionStatus.COMPLETED:
        raise _invalid_state(execution, "cancel", "Cannot cancel completed execution")

    changed = []
    if execution.active_phase is not None:
        step = find_active_step(execution, steps)
        if step.is_active:
            changed.append(step.reset_to_pending())

    cancelled = execution.with_phase(Cancelled())

    return _transition(
        execution, cancelled, "cancel", changed,
        {"reset_step_order": changed[0].step_order if changed else None},
    )
