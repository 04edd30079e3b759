"""
Recipe Execution Engine

Tracks the live progress of a multi-step manufacturing recipe carried out
against a task. Handles start, pause, resume, progress, completion and
cancellation while keeping per-step and aggregate elapsed/remaining time
consistent with the wall clock.
"""

__version__ = "0.1.0"
__author__ = "Recipe Engine Team"
