"""Recipe catalog loaded from a YAML document."""

from pathlib import Path
from typing import Any, Union

import structlog
import yaml

from ..errors import ConfigurationError
from .memory import InMemoryRecipeCatalog
from .models import PreparationQuestion, PreparationStep, Recipe, RecipeStep

logger = structlog.get_logger(__name__)


def _parse_step(raw: dict[str, Any]) -> RecipeStep:
    return RecipeStep(
        id=str(raw["id"]),
        order=int(raw["order"]),
        instruction=str(raw.get("instruction", "")),
        duration=float(raw["duration"]),
        temperature=float(raw["temperature"]) if raw.get("temperature") is not None else None,
    )


def _parse_preparation_step(raw: dict[str, Any]) -> PreparationStep:
    questions = tuple(
        PreparationQuestion(
            id=str(q["id"]),
            question=str(q.get("question", "")),
            has_checkbox=bool(q.get("has_checkbox", True)),
        )
        for q in raw.get("questions") or []
    )
    return PreparationStep(step_id=str(raw["step_id"]), order=int(raw["order"]), questions=questions)


def parse_recipe(raw: dict[str, Any]) -> Recipe:
    """Build a Recipe from its mapping form."""
    batch_size = raw.get("batch_size")
    return Recipe(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        product_id=str(raw["product_id"]) if raw.get("product_id") is not None else None,
        batch_size=float(batch_size) if batch_size is not None else None,
        is_active_version=bool(raw.get("is_active_version", False)),
        status=str(raw.get("status", "active")),
        steps=tuple(_parse_step(step) for step in raw.get("steps") or []),
        preparation_steps=tuple(
            _parse_preparation_step(prep) for prep in raw.get("preparation_questions") or []
        ),
    )


class YamlRecipeCatalog(InMemoryRecipeCatalog):
    """
    Read-only catalog populated from a YAML file.

    Expected layout::

        recipes:
          - id: bread-v2
            product_id: bread
            batch_size: 50
            is_active_version: true
            steps:
              - {id: mix, order: 1, instruction: Mix, duration: 10}
            preparation_questions:
              - step_id: prep-1
                order: 0
                questions:
                  - {id: q1, question: Ovens preheated?}
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        with open(self.path) as f:
            document = yaml.safe_load(f) or {}

        raw_recipes = document.get("recipes")
        if not isinstance(raw_recipes, list):
            raise ConfigurationError(
                f"Recipe file {self.path} must contain a 'recipes' list",
                context={"path": str(self.path)},
            )

        for raw in raw_recipes:
            try:
                self.add(parse_recipe(raw))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Malformed recipe entry in {self.path}: {e}",
                    context={"path": str(self.path), "entry": raw},
                ) from e

        logger.info("Recipe catalog loaded", path=str(self.path), recipe_count=len(raw_recipes))
