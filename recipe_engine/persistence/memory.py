"""In-memory execution store for tests and single-process use."""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import structlog

from ..errors import ConcurrencyConflictError, PersistenceError
from ..state.models import Execution, PreparationQuestionStatus, StepExecution

logger = structlog.get_logger(__name__)


class InMemoryExecutionStore:
    """
    Dict-backed store.

    Transactions hold a re-entrant lock and snapshot the tables; any exception
    inside the block restores the snapshot before propagating.
    """

    def __init__(self) -> None:
        self._executions: dict[str, Execution] = {}
        self._task_index: dict[str, str] = {}
        self._steps: dict[str, StepExecution] = {}
        self._questions: dict[tuple[str, str, str], PreparationQuestionStatus] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = (
                dict(self._executions),
                dict(self._task_index),
                dict(self._steps),
                dict(self._questions),
            )
            try:
                yield
            except BaseException:
                (self._executions, self._task_index,
                 self._steps, self._questions) = snapshot
                logger.debug("Transaction rolled back")
                raise

    def get_execution_for_task(self, task_id: str) -> Optional[Execution]:
        with self._lock:
            execution_id = self._task_index.get(task_id)
            return self._executions.get(execution_id) if execution_id else None

    def insert_execution(self, execution: Execution, steps: Sequence[StepExecution]) -> Execution:
        with self._lock:
            if execution.task_id in self._task_index:
                raise PersistenceError(
                    f"Execution already exists for task {execution.task_id}",
                    operation="insert_execution",
                    target="executions",
                )
            stored = execution.with_version(1)
            self._executions[stored.id] = stored
            self._task_index[stored.task_id] = stored.id
            for step in steps:
                self._steps[step.id] = step
            return stored

    def save_execution(self, execution: Execution) -> Execution:
        with self._lock:
            current = self._executions.get(execution.id)
            if current is None:
                raise PersistenceError(
                    f"Execution {execution.id} does not exist",
                    operation="save_execution",
                    target="executions",
                )
            if current.version != execution.version:
                raise ConcurrencyConflictError(
                    f"Execution {execution.id} was modified concurrently",
                    execution_id=execution.id,
                    expected_version=execution.version,
                    actual_version=current.version,
                )
            stored = execution.with_version(execution.version + 1)
            self._executions[stored.id] = stored
            return stored

    def list_steps(self, execution_id: str) -> list[StepExecution]:
        with self._lock:
            steps = [s for s in self._steps.values() if s.execution_id == execution_id]
        return sorted(steps, key=lambda s: s.step_order)

    def save_steps(self, steps: Sequence[StepExecution]) -> None:
        with self._lock:
            for step in steps:
                self._steps[step.id] = step

    def get_question_status(
        self, execution_id: str, preparation_step_id: str, question_id: str
    ) -> Optional[PreparationQuestionStatus]:
        with self._lock:
            return self._questions.get((execution_id, preparation_step_id, question_id))

    def save_question_status(self, status: PreparationQuestionStatus) -> None:
        with self._lock:
            self._questions[status.key] = status

    def list_question_statuses(self, execution_id: str) -> list[PreparationQuestionStatus]:
        with self._lock:
            return [q for q in self._questions.values() if q.execution_id == execution_id]

    def delete_execution_for_task(self, task_id: str) -> bool:
        with self._lock:
            execution_id = self._task_index.get(task_id)
            if execution_id is None:
                return False

            self._questions = {
                key: q for key, q in self._questions.items() if q.execution_id != execution_id
            }
            self._steps = {
                key: s for key, s in self._steps.items() if s.execution_id != execution_id
            }
            del self._executions[execution_id]
            del self._task_index[task_id]
            return True
