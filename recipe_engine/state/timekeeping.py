"""
Time accounting for step executions.

Pause, resume and completion all resolve a step's new elapsed time the same
way: a caller snapshot wins over a reported duration, which wins over the
wall clock. Only the difference between the new and previously stored value
ever reaches the execution total, so spans are never counted twice.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import InvalidArgumentError
from ..logging.config import get_timekeeping_logger
from ..utils.time import latest, minutes_between
from .models import StepExecution, StepStatus

logger = get_timekeeping_logger(__name__)


class ElapsedSource(str, Enum):
    """Where a reconciled elapsed value came from."""
    SNAPSHOT = "snapshot"          # duration - caller remaining time
    REPORTED = "reported"          # caller actual duration
    CLOCK = "clock"                # stored elapsed + wall-clock delta
    STORED = "stored"              # unchanged


class DeltaPolicy(str, Enum):
    """How a reconciliation delta is applied to the execution total."""
    INCREMENT_ONLY = "increment_only"
    SIGNED = "signed"


@dataclass(frozen=True)
class ElapsedReconciliation:
    """Result of resolving a step's elapsed time."""
    previous_elapsed: float
    elapsed: float
    duration: float
    source: ElapsedSource

    @property
    def delta(self) -> float:
        return self.elapsed - self.previous_elapsed

    @property
    def remaining(self) -> float:
        return remaining_minutes(self.duration, self.elapsed)


def remaining_minutes(duration: float, elapsed: float) -> float:
    """Step duration minus elapsed time, floored at zero."""
    return max(0, duration - elapsed)


def validate_remaining_time(remaining_time: float, duration: float) -> None:
    """Reject a caller snapshot outside [0, duration]."""
    if not math.isfinite(remaining_time) or remaining_time < 0 or remaining_time > duration:
        raise InvalidArgumentError(
            f"Invalid remaining time: {remaining_time} minutes. "
            f"Remaining time must be between 0 and the step duration ({duration} minutes).",
            argument="remaining_time",
            value=remaining_time,
            context={"step_duration": duration},
        )


def validate_actual_duration(actual_duration: float) -> None:
    if not math.isfinite(actual_duration) or actual_duration < 0:
        raise InvalidArgumentError(
            f"Invalid actual duration: {actual_duration} minutes. Must be a finite, non-negative number.",
            argument="actual_duration",
            value=actual_duration,
        )


def clock_reference(step: StepExecution) -> Optional[datetime]:
    """Moment the step last started running (latest of start and resume)."""
    return latest(step.started_at, step.resumed_at)


def live_elapsed(step: StepExecution, now: datetime, whole_minutes: bool = True) -> float:
    """
    Elapsed minutes of a step as seen at ``now``.

    Running steps add the time since their last start/resume to the stored
    value; paused and completed steps report the frozen stored value.
    """
    stored = step.step_elapsed_time or 0
    if step.status != StepStatus.IN_PROGRESS:
        if step.status == StepStatus.COMPLETED and step.actual_duration is not None:
            return step.actual_duration
        return stored

    reference = clock_reference(step)
    if reference is None:
        return stored
    return stored + minutes_between(reference, now, whole_minutes)


def reconcile_elapsed(
    *,
    previous_elapsed: float,
    duration: float,
    now: datetime,
    reference: Optional[datetime],
    remaining_time: Optional[float] = None,
    actual_duration: Optional[float] = None,
    whole_minutes: bool = True,
) -> ElapsedReconciliation:
    """
    Resolve a step's new elapsed time.

    Args:
        previous_elapsed: Elapsed minutes currently stored on the step
        duration: Recipe duration of the step in minutes
        now: Current time
        reference: Last start/resume of the step; None disables the clock
        remaining_time: Caller snapshot of remaining minutes
        actual_duration: Caller-reported elapsed minutes
        whole_minutes: Floor the wall-clock delta to whole minutes

    Returns:
        ElapsedReconciliation carrying the new value and its source

    Raises:
        InvalidArgumentError: Snapshot outside [0, duration] or negative duration
    """
    previous = previous_elapsed or 0

    if remaining_time is not None:
        validate_remaining_time(remaining_time, duration)
        elapsed = max(0, duration - remaining_time)
        source = ElapsedSource.SNAPSHOT
    elif actual_duration is not None:
        validate_actual_duration(actual_duration)
        elapsed = actual_duration
        source = ElapsedSource.REPORTED
    elif reference is not None:
        elapsed = previous + minutes_between(reference, now, whole_minutes)
        source = ElapsedSource.CLOCK
    else:
        elapsed = previous
        source = ElapsedSource.STORED

    result = ElapsedReconciliation(
        previous_elapsed=previous,
        elapsed=elapsed,
        duration=duration,
        source=source,
    )

    logger.debug(
        "Elapsed time reconciled",
        source=source.value,
        previous_elapsed=previous,
        elapsed=elapsed,
        delta=result.delta,
        remaining=result.remaining,
    )

    return result


def apply_delta(total: float, reconciliation: ElapsedReconciliation, policy: DeltaPolicy) -> float:
    """
    Fold a reconciliation into the execution's total elapsed time.

    INCREMENT_ONLY ignores negative deltas; SIGNED applies corrections in
    either direction. The total never drops below zero.
    """
    delta = reconciliation.delta
    if policy == DeltaPolicy.INCREMENT_ONLY and delta <= 0:
        return total
    return max(0, (total or 0) + delta)
