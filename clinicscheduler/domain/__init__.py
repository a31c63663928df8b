"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .diary import Diary
from .exceptions import PersistenceError, SchedulerError
from .memento import SchedulerMemento, UndoManager
from .models import (
    Appointment,
    Professional,
    Resource,
    Task,
    TaskPriority,
    TimeRange,
    TimeSlot,
    WorkingHours,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "Diary",
    "PersistenceError",
    "Professional",
    "Resource",
    "SchedulerError",
    "SchedulerMemento",
    "SlotCalculator",
    "Task",
    "TaskPriority",
    "TimeRange",
    "TimeSlot",
    "UndoManager",
    "WorkingHours",
]
