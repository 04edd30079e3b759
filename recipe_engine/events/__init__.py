"""
Execution event publishing.

After each committed action the engine publishes an ExecutionEvent so task
boards and other collaborators can react to state changes.
"""
