"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from recipe_engine.catalog.memory import InMemoryRecipeCatalog, InMemoryTaskDirectory
from recipe_engine.catalog.models import (
    PreparationQuestion,
    PreparationStep,
    Recipe,
    RecipeStep,
    TaskRef,
)
from recipe_engine.engine import RecipeExecutionEngine
from recipe_engine.events.memory_sink import RecordingEventSink
from recipe_engine.persistence.memory import InMemoryExecutionStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def bread_recipe() -> Recipe:
    """Three steps of 10, 20 and 15 minutes."""
    return Recipe(
        id="bread-v2",
        name="Sourdough loaf",
        product_id="bread",
        batch_size=50,
        is_active_version=True,
        steps=(
            RecipeStep(id="step-mix", order=1, instruction="Mix flour and water", duration=10),
            RecipeStep(id="step-proof", order=2, instruction="Proof the dough", duration=20, temperature=28),
            RecipeStep(id="step-bake", order=3, instruction="Bake", duration=15, temperature=230),
        ),
        preparation_steps=(
            PreparationStep(
                step_id="prep-hygiene",
                order=0,
                questions=(
                    PreparationQuestion(id="q-hands", question="Hands washed?"),
                    PreparationQuestion(id="q-surface", question="Surfaces sanitised?"),
                ),
            ),
        ),
    )


@pytest.fixture
def catalog(bread_recipe: Recipe) -> InMemoryRecipeCatalog:
    return InMemoryRecipeCatalog([bread_recipe])


@pytest.fixture
def tasks() -> InMemoryTaskDirectory:
    return InMemoryTaskDirectory([
        TaskRef(task_id="TASK-1", status="pending", product_id="bread", batch_size=50),
        TaskRef(task_id="TASK-2", status="ongoing", product_id="bread", batch_size=50),
        TaskRef(task_id="TASK-NO-PRODUCT", status="pending"),
    ])


@pytest.fixture
def store() -> InMemoryExecutionStore:
    return InMemoryExecutionStore()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def engine(store, catalog, tasks, clock, events) -> RecipeExecutionEngine:
    return RecipeExecutionEngine(store, catalog, tasks, clock=clock, event_sinks=[events])
