"""
External collaborators of the engine.

The recipe catalog is a read-only provider of recipe steps and preparation
questions; the task directory resolves tasks and accepts status updates.
"""
