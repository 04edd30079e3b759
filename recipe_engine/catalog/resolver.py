"""Recipe auto-discovery for tasks that do not name a recipe."""

from typing import Optional

import structlog

from .models import TaskRef
from .ports import RecipeCatalog

logger = structlog.get_logger(__name__)


def resolve_recipe_id(task: TaskRef, catalog: RecipeCatalog) -> Optional[str]:
    """
    Pick a recipe for a task from its costed product.

    Preference order among the product's active recipes:
    1. Active version whose batch size matches the task
    2. Any active version
    3. The first recipe found
    """
    if not task.product_id:
        return None

    candidates = catalog.find_active_recipes(task.product_id)
    if not candidates:
        logger.info("No active recipes for product", task_id=task.task_id, product_id=task.product_id)
        return None

    if task.batch_size:
        for recipe in candidates:
            if recipe.is_active_version and recipe.batch_size == task.batch_size:
                return recipe.id

    for recipe in candidates:
        if recipe.is_active_version:
            return recipe.id

    return candidates[0].id
