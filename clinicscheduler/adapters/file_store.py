"""
JSON file persistence for scheduler state.

The store only talks to the scheduler through its public accessors and
rebuilds a brand-new Scheduler on load. A live scheduler is never touched
by a load, so a failing load leaves the caller's state intact.

The undo history is saved next to the current state, so an `undo` issued in
a later run can still step back over changes made by earlier ones.
"""

import logging
from datetime import date, time
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..config import AppConfig
from ..domain.exceptions import PersistenceError
from ..domain.memento import DiarySnapshot, SchedulerMemento
from ..domain.models import Appointment, Professional, Resource, Task, TaskPriority
from ..services.scheduler import Scheduler

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class ResourceRecord(BaseModel):
    """Serialized shared resource."""
    name: str
    type: str
    location: str

    @classmethod
    def from_resource(cls, resource: Resource) -> "ResourceRecord":
        return cls(name=resource.name, type=resource.type, location=resource.location)

    def to_resource(self) -> Resource:
        return Resource(name=self.name, type=self.type, location=self.location)


class AppointmentRecord(BaseModel):
    """Serialized appointment; resource is null when none was booked."""
    date: date
    start_time: time
    end_time: time
    treatment_type: str
    patient_name: str
    is_recurring: bool = False
    resource: Optional[ResourceRecord] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentRecord":
        return cls(
            date=appointment.date,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            treatment_type=appointment.treatment_type,
            patient_name=appointment.patient_name,
            is_recurring=appointment.is_recurring,
            resource=(
                ResourceRecord.from_resource(appointment.resource)
                if appointment.resource is not None else None
            ),
        )

    def to_appointment(self) -> Appointment:
        return Appointment(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            treatment_type=self.treatment_type,
            patient_name=self.patient_name,
            is_recurring=self.is_recurring,
            resource=self.resource.to_resource() if self.resource is not None else None,
        )


class TaskRecord(BaseModel):
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM

    def to_task(self) -> Task:
        return Task(description=self.description, priority=self.priority)


class ProfessionalRecord(BaseModel):
    """A professional together with the contents of their diary."""
    name: str
    profession: str
    office_location: str
    appointments: List[AppointmentRecord] = Field(default_factory=list)
    tasks: List[TaskRecord] = Field(default_factory=list)

    @classmethod
    def from_entries(
        cls,
        professional: Professional,
        appointments: Iterable[Appointment],
        tasks: Iterable[Task]
    ) -> "ProfessionalRecord":
        return cls(
            name=professional.name,
            profession=professional.profession,
            office_location=professional.office_location,
            appointments=[AppointmentRecord.from_appointment(appt) for appt in appointments],
            tasks=[TaskRecord(description=task.description, priority=task.priority) for task in tasks],
        )

    def to_professional(self) -> Professional:
        return Professional(
            name=self.name,
            profession=self.profession,
            office_location=self.office_location,
        )


class SnapshotRecord(BaseModel):
    """One undo step: every diary and the resource pool as they were."""
    professionals: List[ProfessionalRecord] = Field(default_factory=list)
    shared_resources: List[ResourceRecord] = Field(default_factory=list)

    @classmethod
    def from_memento(cls, memento: SchedulerMemento) -> "SnapshotRecord":
        return cls(
            professionals=[
                ProfessionalRecord.from_entries(snapshot.owner, snapshot.appointments, snapshot.tasks)
                for snapshot in memento.diaries
            ],
            shared_resources=[
                ResourceRecord.from_resource(resource) for resource in memento.shared_resources
            ],
        )

    def to_memento(self) -> SchedulerMemento:
        return SchedulerMemento(
            diaries=tuple(
                DiarySnapshot(
                    owner=record.to_professional(),
                    appointments=tuple(appt.to_appointment() for appt in record.appointments),
                    tasks=tuple(task.to_task() for task in record.tasks),
                )
                for record in self.professionals
            ),
            shared_resources=tuple(record.to_resource() for record in self.shared_resources),
        )


class SchedulerStateRecord(BaseModel):
    """Everything needed to rebuild a scheduler, undo history included."""
    version: int = STATE_VERSION
    professionals: List[ProfessionalRecord] = Field(default_factory=list)
    shared_resources: List[ResourceRecord] = Field(default_factory=list)
    history: List[SnapshotRecord] = Field(default_factory=list)  # oldest first

    @classmethod
    def from_scheduler(
        cls,
        scheduler: Scheduler,
        history_limit: Optional[int] = None
    ) -> "SchedulerStateRecord":
        """
        Capture the scheduler's current state and undo history.

        Args:
            scheduler: Scheduler to serialize
            history_limit: Keep only this many of the newest undo steps (None keeps all)
        """
        history = scheduler.get_history()
        if history_limit is not None:
            history = history[len(history) - history_limit:] if history_limit > 0 else []

        return cls(
            professionals=[
                ProfessionalRecord.from_entries(
                    professional,
                    scheduler.get_diary(professional).get_all_appointments(),
                    scheduler.get_diary(professional).get_all_tasks(),
                )
                for professional in scheduler.get_all_health_professionals()
            ],
            shared_resources=[
                ResourceRecord.from_resource(resource)
                for resource in scheduler.get_all_shared_resources()
            ],
            history=[SnapshotRecord.from_memento(memento) for memento in history],
        )

    def build_scheduler(self, config: Optional[AppConfig] = None) -> Scheduler:
        """
        Rebuild a scheduler from this record.

        The persisted resources replace the configured seed list. Rebuilding
        itself records no undo steps; the saved history is installed last.

        Raises:
            PersistenceError: If a stored appointment conflicts with another
        """
        scheduler = Scheduler.from_config(
            config or AppConfig(),
            default_resources=[record.to_resource() for record in self.shared_resources],
        )

        for record in self.professionals:
            professional = record.to_professional()
            if not scheduler.add_health_professional(professional):
                raise PersistenceError(f"Duplicate professional in stored data: {professional}")

            diary = scheduler.get_diary(professional)
            for appointment_record in record.appointments:
                appointment = appointment_record.to_appointment()
                if not diary.add_appointment(appointment):
                    raise PersistenceError(
                        f"Stored appointment conflicts with another in the diary of "
                        f"{professional.name}: {appointment}"
                    )
            for task_record in record.tasks:
                diary.add_task(task_record.to_task())

        scheduler.restore_history(snapshot.to_memento() for snapshot in self.history)
        return scheduler


class SchedulerFileStore:
    """
    Saves and loads scheduler state as a JSON document.

    Args:
        path: JSON file location
        history_limit: Newest undo steps written on save (None keeps all)
    """

    def __init__(self, path: Path, history_limit: Optional[int] = None):
        self.path = Path(path)
        self.history_limit = history_limit

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, scheduler: Scheduler) -> None:
        """
        Write the scheduler's professionals, diaries, resources and undo history to disk.

        Raises:
            PersistenceError: If the file cannot be written
        """
        record = SchedulerStateRecord.from_scheduler(scheduler, history_limit=self.history_limit)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as file_handle:
                file_handle.write(record.model_dump_json(indent=2))
        except OSError as exc:
            logger.warning("Could not save scheduler data to %s: %s", self.path, exc)
            raise PersistenceError(f"Could not save scheduler data to {self.path}: {exc}") from exc

        logger.info(
            "Saved %d professional(s), %d resource(s) and %d undo step(s) to %s",
            len(record.professionals), len(record.shared_resources), len(record.history), self.path
        )

    def load(self, config: Optional[AppConfig] = None) -> Scheduler:
        """
        Read the file and build a new Scheduler from it.

        Args:
            config: Supplies working hours and booking rules for the rebuilt scheduler

        Raises:
            PersistenceError: If the file is missing, unreadable or inconsistent
        """
        try:
            with open(self.path, "r", encoding="utf-8") as file_handle:
                raw = file_handle.read()
        except OSError as exc:
            logger.warning("Could not read scheduler data from %s: %s", self.path, exc)
            raise PersistenceError(f"Could not read scheduler data from {self.path}: {exc}") from exc

        try:
            record = SchedulerStateRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Invalid scheduler data in %s: %s", self.path, exc)
            raise PersistenceError(f"Invalid scheduler data in {self.path}: {exc}") from exc

        if record.version != STATE_VERSION:
            raise PersistenceError(
                f"Unsupported scheduler data version {record.version} in {self.path}"
            )

        return record.build_scheduler(config)
