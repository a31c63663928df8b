"""
Per-professional diary of appointments and tasks.

The diary owns local conflict checking. Cross-diary concerns (atomic booking
for several professionals, system-wide resource usage) live in the scheduler.
"""

import logging
from datetime import date, time
from typing import Iterable, List, Optional

from .models import Appointment, Professional, Resource, Task

logger = logging.getLogger(__name__)


class Diary:
    """
    Appointments and tasks for a single health professional.

    By default a slot is only refused on a resource collision: two
    appointments conflict when they overlap in time on the same date and
    hold the same resource. With ``exclusive_time`` the professional can
    additionally never be in two appointments at once.
    """

    def __init__(self, owner: Professional, exclusive_time: bool = False):
        self.owner = owner
        self.exclusive_time = exclusive_time
        self._appointments: List[Appointment] = []
        self._tasks: List[Task] = []

    @classmethod
    def rebuild(
        cls,
        owner: Professional,
        appointments: Iterable[Appointment],
        tasks: Iterable[Task],
        exclusive_time: bool = False
    ) -> "Diary":
        """Recreate a diary from entries known to be mutually consistent."""
        diary = cls(owner, exclusive_time=exclusive_time)
        diary._appointments.extend(appointments)
        diary._tasks.extend(tasks)
        return diary

    def copy(self, owner: Optional[Professional] = None) -> "Diary":
        """Return an independent diary holding the same appointments and tasks."""
        return Diary.rebuild(
            owner or self.owner,
            self._appointments,
            self._tasks,
            exclusive_time=self.exclusive_time
        )

    # --- Availability ---

    def is_slot_available(
        self,
        day: date,
        start_time: time,
        end_time: time,
        resource: Optional[Resource] = None
    ) -> bool:
        """
        Check whether a hypothetical appointment would fit into this diary.

        Args:
            day: Date of the proposed appointment
            start_time: Proposed start
            end_time: Proposed end
            resource: Resource the appointment would hold, if any

        Returns:
            True if no stored appointment conflicts with the proposal
        """
        candidate = Appointment(
            date=day,
            start_time=start_time,
            end_time=end_time,
            treatment_type="",
            patient_name="",
            resource=resource
        )
        candidate_range = candidate.time_range()

        for existing in self._appointments:
            if existing.date != day:
                continue
            if existing.overlaps_with(candidate):
                return False
            if self.exclusive_time and existing.time_range().overlaps(candidate_range):
                return False

        return True

    def is_resource_free(
        self,
        day: date,
        start_time: time,
        end_time: time,
        resource: Optional[Resource]
    ) -> bool:
        """Check only whether this diary holds the resource during the range."""
        if resource is None:
            return True

        candidate = Appointment(
            date=day,
            start_time=start_time,
            end_time=end_time,
            treatment_type="",
            patient_name="",
            resource=resource
        )
        return not any(existing.overlaps_with(candidate) for existing in self._appointments)

    # --- Appointments ---

    def add_appointment(self, appointment: Appointment) -> bool:
        """
        Add an appointment if its slot is available.

        Returns:
            True if added, False on a conflict (the diary is left unchanged)
        """
        if not self.is_slot_available(
            appointment.date,
            appointment.start_time,
            appointment.end_time,
            appointment.resource
        ):
            logger.debug("Rejected %s for %s: slot unavailable", appointment, self.owner.name)
            return False

        self._appointments.append(appointment)
        return True

    def can_add_recurring_appointment(
        self,
        appointment: Appointment,
        interval_days: int,
        occurrences: int
    ) -> bool:
        """Dry run: would every occurrence of the series fit into this diary?"""
        for occurrence in appointment.occurrences(interval_days, occurrences):
            if not self.is_slot_available(
                occurrence.date,
                occurrence.start_time,
                occurrence.end_time,
                occurrence.resource
            ):
                logger.debug(
                    "Recurring series for %s blocked on %s in diary of %s",
                    appointment.patient_name,
                    occurrence.date,
                    self.owner.name
                )
                return False
        return True

    def add_recurring_appointment(
        self,
        appointment: Appointment,
        interval_days: int,
        occurrences: int
    ) -> bool:
        """
        Add a fixed-interval series, all occurrences or none.

        Every occurrence is validated before any of them is appended.
        """
        if not self.can_add_recurring_appointment(appointment, interval_days, occurrences):
            return False

        self._appointments.extend(appointment.occurrences(interval_days, occurrences))
        return True

    def rollback_recurring_appointments(
        self,
        appointment: Appointment,
        interval_days: int,
        occurrences: int
    ) -> None:
        """Remove every appointment matching an occurrence of the series."""
        series = appointment.occurrences(interval_days, occurrences)
        self._appointments = [
            existing for existing in self._appointments
            if not any(existing.matches_occurrence(occurrence) for occurrence in series)
        ]

    def remove_appointment(self, appointment: Appointment) -> bool:
        """Remove one appointment equal to the given one. Returns False if not found."""
        try:
            self._appointments.remove(appointment)
        except ValueError:
            return False
        return True

    def get_appointments_on_date(self, day: date) -> List[Appointment]:
        return [appt for appt in self._appointments if appt.date == day]

    def get_all_appointments(self) -> List[Appointment]:
        return list(self._appointments)

    # --- Tasks ---

    def add_task(self, task: Task) -> None:
        self._tasks.append(task)

    def get_all_tasks(self) -> List[Task]:
        return list(self._tasks)

    def __repr__(self) -> str:
        return (
            f"Diary(owner={self.owner.name!r}, appointments={len(self._appointments)}, "
            f"tasks={len(self._tasks)})"
        )
