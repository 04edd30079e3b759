"""
Execution data models.

Records are immutable; every transition produces new instances which the
store persists. The lifecycle of an Execution is carried by a tagged union
(``ExecutionPhase``) so a current-step pointer exists exactly when a step is
running or paused.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union


class ExecutionStatus(str, Enum):
    """Lifecycle status of an execution."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StepStatus(str, Enum):
    """Run status of a single recipe step."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    SKIPPED = "skipped"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class NotStarted:
    """Execution created, no step begun yet."""
    status: ClassVar[ExecutionStatus] = ExecutionStatus.NOT_STARTED


@dataclass(frozen=True)
class Running:
    """A step is actively running."""
    status: ClassVar[ExecutionStatus] = ExecutionStatus.IN_PROGRESS

    step_id: str
    step_order: int
    step_progress: float = 0


@dataclass(frozen=True)
class Paused:
    """The active step is paused; remaining time is snapshotted."""
    status: ClassVar[ExecutionStatus] = ExecutionStatus.PAUSED

    step_id: str
    step_order: int
    step_progress: float
    remaining_time_at_pause: float
    reason: Optional[str] = None


@dataclass(frozen=True)
class Completed:
    """Every step completed."""
    status: ClassVar[ExecutionStatus] = ExecutionStatus.COMPLETED


@dataclass(frozen=True)
class Cancelled:
    """Execution cancelled; the in-flight step was reset to pending."""
    status: ClassVar[ExecutionStatus] = ExecutionStatus.CANCELLED


ExecutionPhase = Union[NotStarted, Running, Paused, Completed, Cancelled]
ActivePhase = Union[Running, Paused]


def phase_from_columns(
    status: ExecutionStatus,
    step_id: Optional[str] = None,
    step_order: Optional[int] = None,
    step_progress: Optional[float] = None,
    remaining_time_at_pause: Optional[float] = None,
    pause_reason: Optional[str] = None,
) -> ExecutionPhase:
    """Rebuild a phase from its flat (persisted) representation."""
    status = ExecutionStatus(status)

    if status == ExecutionStatus.NOT_STARTED:
        return NotStarted()
    if status == ExecutionStatus.COMPLETED:
        return Completed()
    if status == ExecutionStatus.CANCELLED:
        return Cancelled()

    if step_id is None or step_order is None:
        raise ValueError(f"Status {status.value} requires a current step")

    if status == ExecutionStatus.IN_PROGRESS:
        return Running(step_id=step_id, step_order=step_order,
                       step_progress=step_progress or 0)

    return Paused(
        step_id=step_id,
        step_order=step_order,
        step_progress=step_progress or 0,
        remaining_time_at_pause=remaining_time_at_pause or 0,
        reason=pause_reason,
    )


@dataclass(frozen=True)
class Execution:
    """The live run of one recipe against one task."""

    id: str
    task_id: str
    recipe_id: str
    phase: ExecutionPhase = NotStarted()

    # Minutes accumulated while a step was actively running
    total_elapsed_time: float = 0

    # Last-event-wins timestamps
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    # Optimistic concurrency counter, bumped by the store on every save
    version: int = 0

    @classmethod
    def create(cls, task_id: str, recipe_id: str,
               created_at: Optional[datetime] = None) -> "Execution":
        return cls(id=new_id(), task_id=task_id, recipe_id=recipe_id,
                   created_at=created_at)

    @property
    def status(self) -> ExecutionStatus:
        return self.phase.status

    @property
    def active_phase(self) -> Optional[ActivePhase]:
        if isinstance(self.phase, (Running, Paused)):
            return self.phase
        return None

    @property
    def current_step_id(self) -> Optional[str]:
        active = self.active_phase
        return active.step_id if active else None

    @property
    def current_step_order(self) -> Optional[int]:
        active = self.active_phase
        return active.step_order if active else None

    @property
    def current_step_progress(self) -> float:
        active = self.active_phase
        return active.step_progress if active else 0

    @property
    def pause_reason(self) -> Optional[str]:
        return self.phase.reason if isinstance(self.phase, Paused) else None

    @property
    def remaining_time_at_pause(self) -> Optional[float]:
        if isinstance(self.phase, Paused):
            return self.phase.remaining_time_at_pause
        return None

    def with_phase(self, phase: ExecutionPhase, **changes) -> "Execution":
        """Copy with a new phase and any other field changes."""
        return replace(self, phase=phase, **changes)

    def with_version(self, version: int) -> "Execution":
        return replace(self, version=version)


@dataclass(frozen=True)
class StepExecution:
    """The live run-state of one ordered recipe step."""

    id: str
    execution_id: str
    recipe_step_id: str
    step_order: int
    status: StepStatus = StepStatus.PENDING

    progress: float = 0
    actual_temperature: Optional[float] = None
    actual_duration: Optional[float] = None

    # Active minutes for this step only, excluding paused spans
    step_elapsed_time: float = 0

    # Audit timestamps
    started_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    notes: Optional[str] = None

    @classmethod
    def pending(cls, execution_id: str, recipe_step_id: str, step_order: int) -> "StepExecution":
        return cls(id=new_id(), execution_id=execution_id,
                   recipe_step_id=recipe_step_id, step_order=step_order)

    @property
    def is_active(self) -> bool:
        return self.status in (StepStatus.IN_PROGRESS, StepStatus.PAUSED)

    def begin(self, now: datetime) -> "StepExecution":
        """Start this step from scratch."""
        return replace(
            self,
            status=StepStatus.IN_PROGRESS,
            started_at=now,
            resumed_at=None,
            progress=0,
            step_elapsed_time=0,
        )

    def pause(self, elapsed: float, now: datetime) -> "StepExecution":
        return replace(self, status=StepStatus.PAUSED, step_elapsed_time=elapsed, paused_at=now)

    def resume(self, elapsed: float, now: datetime) -> "StepExecution":
        return replace(self, status=StepStatus.IN_PROGRESS, step_elapsed_time=elapsed, resumed_at=now)

    def with_progress(self, progress: float, temperature: Optional[float] = None,
                      notes: Optional[str] = None) -> "StepExecution":
        return replace(
            self,
            progress=progress,
            actual_temperature=temperature if temperature is not None else self.actual_temperature,
            notes=notes if notes else self.notes,
        )

    def complete(self, elapsed: float, now: datetime,
                 temperature: Optional[float] = None,
                 notes: Optional[str] = None) -> "StepExecution":
        return replace(
            self,
            status=StepStatus.COMPLETED,
            progress=100,
            step_elapsed_time=elapsed,
            actual_duration=elapsed,
            completed_at=now,
            actual_temperature=temperature if temperature is not None else self.actual_temperature,
            notes=notes if notes else self.notes,
        )

    def reset_to_pending(self) -> "StepExecution":
        """Return the step to the queue, keeping progress and elapsed as they were."""
        return replace(self, status=StepStatus.PENDING)


@dataclass(frozen=True)
class PreparationQuestionStatus:
    """Checklist flag for one preparation question within an execution."""

    id: str
    execution_id: str
    preparation_step_id: str
    question_id: str
    checked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def create(cls, execution_id: str, preparation_step_id: str, question_id: str,
               checked: bool, now: Optional[datetime] = None) -> "PreparationQuestionStatus":
        return cls(
            id=new_id(),
            execution_id=execution_id,
            preparation_step_id=preparation_step_id,
            question_id=question_id,
            checked=checked,
            created_at=now,
            updated_at=now,
        )

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.execution_id, self.preparation_step_id, self.question_id)

    def with_checked(self, checked: bool, now: Optional[datetime] = None) -> "PreparationQuestionStatus":
        return replace(self, checked=checked, updated_at=now)
