"""Interfaces for the engine's external collaborators."""

from typing import Optional, Protocol

from .models import Recipe, TaskRef


class RecipeCatalog(Protocol):
    def get_recipe(self, recipe_id: str) -> Optional[Recipe]: ...

    def find_active_recipes(self, product_id: str) -> list[Recipe]: ...


class TaskDirectory(Protocol):
    def get_task(self, task_id: str) -> Optional[TaskRef]: ...

    def update_task_status(self, task_id: str, status: str) -> TaskRef: ...
