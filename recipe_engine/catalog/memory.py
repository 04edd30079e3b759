"""In-memory catalog and task directory, used by tests and demos."""

from dataclasses import replace
from typing import Iterable, Optional

from ..errors import NotFoundError
from .models import Recipe, TaskRef


class InMemoryRecipeCatalog:
    """Recipe catalog backed by a dict, preserving insertion order."""

    def __init__(self, recipes: Iterable[Recipe] = ()) -> None:
        self._recipes: dict[str, Recipe] = {}
        for recipe in recipes:
            self.add(recipe)

    def add(self, recipe: Recipe) -> None:
        self._recipes[recipe.id] = recipe

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        return self._recipes.get(recipe_id)

    def all_recipes(self) -> list[Recipe]:
        return list(self._recipes.values())

    def find_active_recipes(self, product_id: str) -> list[Recipe]:
        return [
            recipe for recipe in self._recipes.values()
            if recipe.product_id == product_id and recipe.status == "active"
        ]


class InMemoryTaskDirectory:
    """Task directory backed by a dict."""

    def __init__(self, tasks: Iterable[TaskRef] = ()) -> None:
        self._tasks: dict[str, TaskRef] = {task.task_id: task for task in tasks}

    def add(self, task: TaskRef) -> None:
        self._tasks[task.task_id] = task

    def get_task(self, task_id: str) -> Optional[TaskRef]:
        return self._tasks.get(task_id)

    def update_task_status(self, task_id: str, status: str) -> TaskRef:
        current = self._tasks.get(task_id)
        if current is None:
            raise NotFoundError(f"Task {task_id} does not exist", entity="task", key=task_id)
        updated = replace(current, status=status)
        self._tasks[task_id] = updated
        return updated
