#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from recipe_engine.catalog.yaml_catalog import YamlRecipeCatalog
from recipe_engine.config.loader import ConfigLoader
from recipe_engine.config.validation import ConfigValidator, ValidationError
from recipe_engine.errors import ConfigurationError


def validate_merged_config(overrides: Optional[Dict[str, Any]] = None) -> List[ValidationError]:
    """Validate engine.yaml merged over the defaults."""
    loader = ConfigLoader.create()
    config = loader.merge_config(overrides)
    return ConfigValidator.validate_config(config)


def report(label: str, errors: List[ValidationError]) -> bool:
    if errors:
        print(f"❌ {label}: {len(errors)} validation errors")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        return False
    print(f"✅ {label} is valid")
    return True


def main():
    """Main validation function."""
    print("🔍 Validating recipe engine configuration...")

    all_valid = report("engine.yaml", validate_merged_config())

    # A sqlite deployment must supply a usable path
    print("\n📋 Testing sqlite backend override...")
    all_valid &= report(
        "sqlite override",
        validate_merged_config({"persistence": {"backend": "sqlite", "sqlite_path": "executions.db"}}),
    )

    recipes_file = project_root / "config" / "recipes.yaml"
    if recipes_file.exists():
        print(f"\n🍞 Loading recipe catalog {recipes_file.name}...")
        try:
            catalog = YamlRecipeCatalog(recipes_file)
        except ConfigurationError as e:
            print(f"❌ {e}")
            all_valid = False
        else:
            for product_id in sorted({r.product_id for r in catalog.all_recipes() if r.product_id}):
                print(f"  • {product_id}: {len(catalog.find_active_recipes(product_id))} active recipe(s)")

    if all_valid:
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
