"""Read-only shapes supplied by the recipe catalog and task directory."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RecipeStep:
    """One ordered instruction of a recipe."""
    id: str
    order: int
    instruction: str
    duration: float                       # Minutes
    temperature: Optional[float] = None   # Celsius


@dataclass(frozen=True)
class PreparationQuestion:
    """Checklist item attached to a preparation step."""
    id: str
    question: str
    has_checkbox: bool = True


@dataclass(frozen=True)
class PreparationStep:
    """Group of preparation questions sharing an order slot."""
    step_id: str
    order: int
    questions: tuple[PreparationQuestion, ...] = ()

    def find_question(self, question_id: str) -> Optional[PreparationQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


@dataclass(frozen=True)
class Recipe:
    """A specific recipe version."""
    id: str
    name: str = ""
    product_id: Optional[str] = None
    batch_size: Optional[float] = None
    is_active_version: bool = False
    status: str = "active"
    steps: tuple[RecipeStep, ...] = ()
    preparation_steps: tuple[PreparationStep, ...] = field(default=())

    @property
    def ordered_steps(self) -> list[RecipeStep]:
        return sorted(self.steps, key=lambda s: s.order)

    def find_step(self, step_id: str) -> Optional[RecipeStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def find_preparation_step(self, step_id: str) -> Optional[PreparationStep]:
        for prep in self.preparation_steps:
            if prep.step_id == step_id:
                return prep
        return None


@dataclass(frozen=True)
class TaskRef:
    """The slice of a task record the engine reads."""
    task_id: str
    status: str
    product_id: Optional[str] = None
    batch_size: Optional[float] = None
