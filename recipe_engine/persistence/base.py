"""Storage interface for executions and their step records."""

from typing import ContextManager, Optional, Protocol, Sequence

from ..state.models import Execution, PreparationQuestionStatus, StepExecution


class ExecutionStore(Protocol):
    def transaction(self) -> ContextManager[None]:
        """Group the calls made inside the block into one atomic unit."""
        ...

    def get_execution_for_task(self, task_id: str) -> Optional[Execution]: ...

    def insert_execution(self, execution: Execution, steps: Sequence[StepExecution]) -> Execution: ...

    def save_execution(self, execution: Execution) -> Execution:
        """
        Persist an execution read at ``execution.version``.

        Returns the stored record with its version bumped; raises
        ConcurrencyConflictError when the stored version moved on.
        """
        ...

    def list_steps(self, execution_id: str) -> list[StepExecution]:
        """Steps ordered by ascending step_order."""
        ...

    def save_steps(self, steps: Sequence[StepExecution]) -> None: ...

    def get_question_status(
        self, execution_id: str, preparation_step_id: str, question_id: str
    ) -> Optional[PreparationQuestionStatus]: ...

    def save_question_status(self, status: PreparationQuestionStatus) -> None: ...

    def list_question_statuses(self, execution_id: str) -> list[PreparationQuestionStatus]: ...

    def delete_execution_for_task(self, task_id: str) -> bool:
        """Remove question statuses, steps, then the execution. True if one existed."""
        ...
