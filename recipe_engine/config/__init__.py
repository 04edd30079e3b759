"""
Configuration management for the recipe execution engine.

Provides dataclass defaults, YAML file overrides and validation.
"""
