"""
Recipe execution engine.

Coordinates the execution lifecycle for tasks:
Task → Execution bootstrap → State machine transition → Store → Status view

Each mutating operation runs inside a single store transaction and saves
the Execution row with an optimistic version check, so a failure or a
concurrent writer never leaves Execution and StepExecution rows out of step.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from .catalog.models import Recipe, TaskRef
from .catalog.ports import RecipeCatalog, TaskDirectory
from .catalog.resolver import resolve_recipe_id
from .config.defaults import DefaultConfig, get_default_config
from .config.loader import load_config
from .errors import ConfigurationError, InvalidArgumentError, NotFoundError
from .events.base import BaseEventSink, ExecutionEvent, PublishStatus
from .events.stdout_sink import StdoutEventSink
from .logging.config import configure_logging
from .persistence.base import ExecutionStore
from .persistence.memory import InMemoryExecutionStore
from .persistence.sqlite_store import SqliteExecutionStore
from .state.machine import (
    TransitionResult,
    cancel_execution,
    complete_step,
    create_execution,
    pause_execution,
    resume_execution,
    start_execution,
    update_step_progress,
)
from .state.models import (
    Execution,
    ExecutionStatus,
    PreparationQuestionStatus,
    StepExecution,
)
from .state.projection import ExecutionStatusView, StatusProjector
from .utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)


class RecipeExecutionEngine:
    """
    Public entry point for recipe execution.

    All operations take the owning task's identifier. Everything except
    ``delete_execution`` returns an ExecutionStatusView computed at the
    moment of the call.
    """

    def __init__(
        self,
        store: ExecutionStore,
        catalog: RecipeCatalog,
        tasks: TaskDirectory,
        config: Optional[DefaultConfig] = None,
        clock: Optional[Clock] = None,
        event_sinks: Optional[Sequence[BaseEventSink]] = None,
    ) -> None:
        self.logger = logger
        self.store = store
        self.catalog = catalog
        self.tasks = tasks
        self.config = config or get_default_config()
        self.clock = clock or utc_now
        self.event_sinks: list[BaseEventSink] = list(event_sinks or [])
        self.projector = StatusProjector(whole_minutes=self.config.time.whole_minutes)

        for sink in self.event_sinks:
            if not sink.health_check():
                self.logger.warning("Event sink unhealthy", sink=sink.name)

    @classmethod
    def from_config(
        cls,
        catalog: RecipeCatalog,
        tasks: TaskDirectory,
        config_dir: Optional[Path] = None,
        overrides: Optional[dict[str, Any]] = None,
        clock: Optional[Clock] = None,
    ) -> "RecipeExecutionEngine":
        """Build an engine, its store and sinks from layered configuration."""
        config = load_config(config_dir, overrides)

        configure_logging(
            level=config.logging.level,
            format_json=config.logging.format_json,
            include_caller=config.logging.include_caller,
        )

        if config.persistence.backend == "sqlite":
            store: ExecutionStore = SqliteExecutionStore(
                config.persistence.sqlite_path,
                timeout=config.persistence.sqlite_timeout_seconds,
            )
        elif config.persistence.backend == "memory":
            store = InMemoryExecutionStore()
        else:
            raise ConfigurationError(f"Unknown persistence backend: {config.persistence.backend}")

        sinks: list[BaseEventSink] = []
        if config.events.stdout_enabled:
            sinks.append(StdoutEventSink(config=config.events))

        return cls(store, catalog, tasks, config=config, clock=clock, event_sinks=sinks)

    @property
    def whole_minutes(self) -> bool:
        return self.config.time.whole_minutes

    # Bootstrap

    def find_or_create_execution(self, task_id: str, recipe_id: Optional[str] = None) -> Execution:
        """
        Return the task's execution, creating it (and its pending steps) on first use.

        Raises:
            NotFoundError: Task or named recipe does not exist
            InvalidArgumentError: No recipe could be resolved, or it has no steps
        """
        with self.store.transaction():
            task = self._get_task(task_id)
            return self._find_or_create(task, recipe_id)

    def _find_or_create(self, task: TaskRef, recipe_id: Optional[str]) -> Execution:
        existing = self.store.get_execution_for_task(task.task_id)
        if existing is not None:
            if recipe_id and recipe_id != existing.recipe_id:
                self.logger.warning(
                    "Ignoring recipe for existing execution",
                    task_id=task.task_id,
                    requested_recipe_id=recipe_id,
                    recipe_id=existing.recipe_id,
                )
            return existing

        final_recipe_id = recipe_id or resolve_recipe_id(task, self.catalog)
        if not final_recipe_id:
            raise InvalidArgumentError(
                "No recipe found for this task. Provide a recipe_id or ensure the task "
                "has a costed product with an active recipe.",
                argument="recipe_id",
                value=None,
                context={"task_id": task.task_id, "product_id": task.product_id},
            )

        recipe = self._get_recipe(final_recipe_id)
        execution, steps = create_execution(task.task_id, recipe, self.clock())
        return self.store.insert_execution(execution, steps)

    # Lifecycle actions

    def start(self, task_id: str, recipe_id: Optional[str] = None) -> ExecutionStatusView:
        """Begin (or restart after cancellation) the task's recipe."""
        now = self.clock()
        with self.store.transaction():
            task = self._get_task(task_id)
            execution = self._find_or_create(task, recipe_id)
            recipe = self._get_recipe(execution.recipe_id)
            steps = self.store.list_steps(execution.id)

            result = start_execution(execution, steps, now)
            execution, steps = self._persist(result, steps)
            self._mark_task_ongoing(task)

            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    def pause(
        self,
        task_id: str,
        reason: Optional[str] = None,
        remaining_time: Optional[float] = None,
    ) -> ExecutionStatusView:
        """Pause the running step, optionally syncing to the caller's remaining time."""
        now = self.clock()
        with self.store.transaction():
            execution, recipe, steps = self._load(task_id)
            result = pause_execution(
                execution, steps, recipe, now,
                reason=reason,
                remaining_time=remaining_time,
                whole_minutes=self.whole_minutes,
            )
            execution, steps = self._persist(result, steps)
            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    def resume(self, task_id: str, remaining_time: Optional[float] = None) -> ExecutionStatusView:
        """Resume the paused step, optionally correcting its elapsed time."""
        now = self.clock()
        with self.store.transaction():
            execution, recipe, steps = self._load(task_id)
            result = resume_execution(
                execution, steps, recipe, now,
                remaining_time=remaining_time,
                whole_minutes=self.whole_minutes,
            )
            execution, steps = self._persist(result, steps)
            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    def update_step_progress(
        self,
        task_id: str,
        step_order: int,
        progress: float,
        temperature: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> ExecutionStatusView:
        now = self.clock()
        with self.store.transaction():
            execution, recipe, steps = self._load(task_id)
            result = update_step_progress(
                execution, steps, step_order, progress,
                temperature=temperature,
                notes=notes,
            )
            execution, steps = self._persist(result, steps)
            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    def complete_step(
        self,
        task_id: str,
        step_order: int,
        actual_duration: Optional[float] = None,
        remaining_time: Optional[float] = None,
        temperature: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> ExecutionStatusView:
        """Complete the running step and advance to the next one."""
        now = self.clock()
        with self.store.transaction():
            execution, recipe, steps = self._load(task_id)
            result = complete_step(
                execution, steps, recipe, step_order, now,
                actual_duration=actual_duration,
                remaining_time=remaining_time,
                temperature=temperature,
                notes=notes,
                whole_minutes=self.whole_minutes,
            )
            execution, steps = self._persist(result, steps)
            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    def cancel(self, task_id: str) -> ExecutionStatusView:
        now = self.clock()
        with self.store.transaction():
            execution, recipe, steps = self._load(task_id)
            result = cancel_execution(execution, steps)
            execution, steps = self._persist(result, steps)
            view = self._project(execution, recipe, steps, now)

        self._publish(result, now)
        return view

    # Queries and side tables

    def get_status(self, task_id: str) -> ExecutionStatusView:
        """Current status, recomputed against the clock on every call."""
        now = self.clock()
        execution, recipe, steps = self._load(task_id)
        return self._project(execution, recipe, steps, now)

    def update_preparation_question_status(
        self,
        task_id: str,
        step_id: str,
        question_id: str,
        checked: bool,
    ) -> ExecutionStatusView:
        """Create or update a preparation checklist flag."""
        now = self.clock()
        with self.store.transaction():
            task = self._get_task(task_id)
            execution = self._find_or_create(task, None)
            recipe = self._get_recipe(execution.recipe_id)

            prep_step = recipe.find_preparation_step(step_id)
            if prep_step is None:
                raise NotFoundError(
                    f"Preparation step {step_id} not found in recipe {recipe.id}",
                    entity="preparation_step",
                    key=step_id,
                )
            if prep_step.find_question(question_id) is None:
                raise NotFoundError(
                    f"Question {question_id} not found in preparation step {step_id}",
                    entity="preparation_question",
                    key=question_id,
                )

            existing = self.store.get_question_status(execution.id, step_id, question_id)
            if existing is None:
                status = PreparationQuestionStatus.create(
                    execution.id, step_id, question_id, checked, now
                )
            else:
                status = existing.with_checked(checked, now)
            self.store.save_question_status(status)

            steps = self.store.list_steps(execution.id)
            view = self._project(execution, recipe, steps, now)

        self.logger.info(
            "Preparation question updated",
            task_id=task_id,
            execution_id=execution.id,
            step_id=step_id,
            question_id=question_id,
            checked=checked,
        )
        return view

    def delete_execution(self, task_id: str) -> bool:
        """Remove the task's execution with its steps and question statuses."""
        with self.store.transaction():
            execution = self.store.get_execution_for_task(task_id)
            deleted = self.store.delete_execution_for_task(task_id)

        if execution is not None and deleted:
            self.logger.info("Execution deleted", task_id=task_id, execution_id=execution.id)
            self._emit(ExecutionEvent(
                event_type="deleted",
                task_id=task_id,
                execution_id=execution.id,
                status=execution.status.value,
                occurred_at=self.clock(),
            ))
        return deleted

    # Internals

    def _get_task(self, task_id: str) -> TaskRef:
        task = self.tasks.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task with ID {task_id} not found", entity="task", key=task_id)
        return task

    def _get_recipe(self, recipe_id: str) -> Recipe:
        recipe = self.catalog.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError(f"Recipe with ID {recipe_id} not found", entity="recipe", key=recipe_id)
        return recipe

    def _load(self, task_id: str) -> tuple[Execution, Recipe, list[StepExecution]]:
        self._get_task(task_id)
        execution = self.store.get_execution_for_task(task_id)
        if execution is None:
            raise NotFoundError(
                f"No recipe execution found for task {task_id}",
                entity="execution",
                key=task_id,
            )
        recipe = self._get_recipe(execution.recipe_id)
        return execution, recipe, self.store.list_steps(execution.id)

    def _persist(
        self, result: TransitionResult, steps: Sequence[StepExecution]
    ) -> tuple[Execution, list[StepExecution]]:
        if result.changed_steps:
            self.store.save_steps(result.changed_steps)
        execution = self.store.save_execution(result.execution)
        return execution, result.merged_steps(steps)

    def _mark_task_ongoing(self, task: TaskRef) -> None:
        statuses = self.config.task_status
        if task.status == statuses.pending_status:
            self.tasks.update_task_status(task.task_id, statuses.ongoing_status)
            self.logger.info(
                "Task status advanced",
                task_id=task.task_id,
                from_status=statuses.pending_status,
                to_status=statuses.ongoing_status,
            )

    def _project(
        self,
        execution: Execution,
        recipe: Recipe,
        steps: Sequence[StepExecution],
        now: datetime,
    ) -> ExecutionStatusView:
        questions = self.store.list_question_statuses(execution.id)
        return self.projector.project(execution, recipe, steps, now, questions)

    def _publish(self, result: TransitionResult, now: datetime) -> None:
        execution = result.execution
        self._emit(ExecutionEvent(
            event_type=result.trigger,
            task_id=execution.task_id,
            execution_id=execution.id,
            status=execution.status.value,
            occurred_at=now,
            step_order=result.context.get("step_order"),
            context={k: v for k, v in result.context.items() if k != "step_order"},
        ))

        if execution.status == ExecutionStatus.COMPLETED and result.from_status != ExecutionStatus.COMPLETED:
            self._emit(ExecutionEvent(
                event_type="completed",
                task_id=execution.task_id,
                execution_id=execution.id,
                status=execution.status.value,
                occurred_at=now,
                context={"total_elapsed_time": execution.total_elapsed_time},
            ))

    def _emit(self, event: ExecutionEvent) -> None:
        for sink in self.event_sinks:
            try:
                results = sink.publish([event])
            except Exception:
                # Action already committed
                self.logger.exception(
                    "Event sink raised",
                    sink=sink.name,
                    event_type=event.event_type,
                    task_id=event.task_id,
                )
                continue

            for result in results:
                if result.status != PublishStatus.SUCCESS:
                    self.logger.warning(
                        "Event publish failed",
                        sink=sink.name,
                        event_type=event.event_type,
                        task_id=event.task_id,
                        message=result.message,
                    )
