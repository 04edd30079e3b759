"""Tests for the YAML recipe catalog."""

import pytest

from recipe_engine.catalog.yaml_catalog import YamlRecipeCatalog, parse_recipe
from recipe_engine.errors import ConfigurationError

RECIPES_YAML = """
recipes:
  - id: bread-v2
    name: Sourdough loaf
    product_id: bread
    batch_size: 50
    is_active_version: true
    steps:
      - {id: step-bake, order: 2, instruction: Bake, duration: 15, temperature: 230}
      - {id: step-mix, order: 1, instruction: Mix, duration: 10}
    preparation_questions:
      - step_id: prep-hygiene
        order: 0
        questions:
          - {id: q-hands, question: "Hands washed?"}
          - {id: q-note, question: "Anything to report?", has_checkbox: false}
  - id: bread-v1
    product_id: bread
    status: archived
    steps:
      - {id: old, order: 1, duration: 5}
"""


class TestYamlRecipeCatalog:
    """Test loading recipes from YAML."""

    def test_load_recipes(self, tmp_path):
        path = tmp_path / "recipes.yaml"
        path.write_text(RECIPES_YAML)

        catalog = YamlRecipeCatalog(path)
        recipe = catalog.get_recipe("bread-v2")

        assert recipe.name == "Sourdough loaf"
        assert recipe.batch_size == 50
        assert [s.id for s in recipe.ordered_steps] == ["step-mix", "step-bake"]
        assert recipe.find_step("step-bake").temperature == 230
        assert recipe.find_step("step-mix").temperature is None
        prep = recipe.find_preparation_step("prep-hygiene")
        assert prep.find_question("q-note").has_checkbox is False

    def test_archived_recipes_not_active(self, tmp_path):
        path = tmp_path / "recipes.yaml"
        path.write_text(RECIPES_YAML)

        catalog = YamlRecipeCatalog(path)

        assert [r.id for r in catalog.find_active_recipes("bread")] == ["bread-v2"]
        assert len(catalog.all_recipes()) == 2
        assert catalog.get_recipe("bread-v1").status == "archived"

    def test_missing_recipes_list(self, tmp_path):
        path = tmp_path / "recipes.yaml"
        path.write_text("products: []\n")

        with pytest.raises(ConfigurationError, match="'recipes' list"):
            YamlRecipeCatalog(path)

    def test_malformed_step(self, tmp_path):
        path = tmp_path / "recipes.yaml"
        path.write_text("recipes:\n  - id: broken\n    steps:\n      - {id: s1, order: 1}\n")

        with pytest.raises(ConfigurationError, match="Malformed recipe entry"):
            YamlRecipeCatalog(path)


def test_parse_recipe_defaults():
    recipe = parse_recipe({"id": "plain"})

    assert recipe.status == "active"
    assert recipe.is_active_version is False
    assert recipe.steps == ()
    assert recipe.product_id is None
