"""
Service layer that orchestrates diaries, resources and undo history.
"""

from .scheduler import DEFAULT_RESOURCES, Scheduler

__all__ = ["DEFAULT_RESOURCES", "Scheduler"]
