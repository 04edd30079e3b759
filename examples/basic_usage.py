#!/usr/bin/env python3
"""
Basic Usage Example - Recipe Execution Engine

This script walks one baking task through its recipe with a simulated
clock. It shows how to:
- Load recipes from YAML and build an engine from configuration
- Start, pause, resume and complete steps
- Tick off preparation questions
- Read the live status view

Run: python examples/basic_usage.py
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from recipe_engine.catalog.memory import InMemoryTaskDirectory
from recipe_engine.catalog.models import TaskRef
from recipe_engine.catalog.yaml_catalog import YamlRecipeCatalog
from recipe_engine.engine import RecipeExecutionEngine
from recipe_engine.state.projection import ExecutionStatusView

CONFIG_DIR = Path(__file__).parent.parent / "config"


class SimulatedClock:
    """Clock the demo advances by hand."""

    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 6, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def print_status(label: str, view: ExecutionStatusView) -> None:
    """Print the interesting parts of a status view."""
    print(f"📊 {label}")
    print(f"  Status: {view.status.value}")
    if view.current_step:
        step = view.current_step
        print(f"  Current step: {step.step_order} - {step.instruction}")
        print(f"    Elapsed: {step.elapsed_time} min, remaining: {step.remaining_time} min")
    if view.pause_reason:
        print(f"  Paused because: {view.pause_reason} ({view.remaining_time_at_pause} min left)")
    print(f"  Progress: {view.overall_progress}% ({view.completed_steps}/{view.total_steps} steps)")
    print(f"  Total elapsed: {view.elapsed_time} min, remaining for task: {view.remaining_time_for_task} min")
    print()


def main():
    """Main demonstration function."""
    print("🚀 Recipe Execution Engine - Basic Usage Demo")
    print("=" * 60)

    print("1. Loading recipes and tasks...")
    catalog = YamlRecipeCatalog(CONFIG_DIR / "recipes.yaml")
    tasks = InMemoryTaskDirectory([
        TaskRef(task_id="BAKE-001", status="pending", product_id="sourdough", batch_size=50),
    ])
    clock = SimulatedClock()
    engine = RecipeExecutionEngine.from_config(
        catalog, tasks,
        config_dir=CONFIG_DIR,
        overrides={"events": {"stdout_enabled": True, "stdout_format": "pretty"}},
        clock=clock,
    )
    print()

    print("2. Preparation checklist...")
    engine.update_preparation_question_status("BAKE-001", "sd-prep-hygiene", "sd-q-hands", True)
    view = engine.update_preparation_question_status("BAKE-001", "sd-prep-hygiene", "sd-q-oven", True)
    for question in view.preparation_questions:
        print(f"  [{'x' if question.checked else ' '}] {question.question}")
    print()

    print("3. Running the recipe...")
    print_status("Started", engine.start("BAKE-001"))
    print(f"  Task status is now: {tasks.get_task('BAKE-001').status}")

    clock.advance(4)
    print_status("Paused after 4 minutes", engine.pause("BAKE-001", reason="Mixer jammed"))

    clock.advance(15)
    print_status("Resumed 15 minutes later", engine.resume("BAKE-001"))

    clock.advance(3)
    print_status("Mixing finished early", engine.complete_step("BAKE-001", 1, remaining_time=0))

    clock.advance(22)
    engine.update_step_progress("BAKE-001", 2, 100, temperature=27.5, notes="Doubled in size")
    print_status("Proof running long", engine.get_status("BAKE-001"))

    print_status("Proof done", engine.complete_step("BAKE-001", 2))

    clock.advance(15)
    print_status("Bake done", engine.complete_step("BAKE-001", 3, temperature=228))

    print("4. Final status as JSON:")
    print(engine.get_status("BAKE-001").to_json().decode())


if __name__ == "__main__":
    main()
