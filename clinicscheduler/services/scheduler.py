"""
Scheduler service: diaries for every professional plus the shared resource pool.

The scheduler is the only place where several diaries are touched at once.
Booking follows check-then-commit: every involved diary is validated first,
a snapshot is pushed onto the undo history, and only then is anything
written. A rejected booking leaves neither state changes nor history behind.
"""

from __future__ import annotations

import logging
from datetime import date, time
from time import perf_counter
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from ..domain.diary import Diary
from ..domain.memento import SchedulerMemento, UndoManager
from ..domain.models import Appointment, Professional, Resource, Task, TimeSlot, WorkingHours
from ..domain.slot_calculator import SlotCalculator

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_RESOURCES: tuple = (
    Resource("Operating Theatre 1", "Operating Theatre", "Main Hospital"),
    Resource("Operating Theatre 2", "Operating Theatre", "Main Hospital"),
    Resource("MRI Scanner 1", "MRI Scanner", "Radiology Department"),
    Resource("MRI Scanner 2", "MRI Scanner", "Radiology Department"),
    Resource("X-Ray Machine", "X-Ray", "Radiology Department"),
)


def _unique(professionals: Iterable[Professional]) -> List[Professional]:
    """Drop repeated professionals, keeping first-seen order."""
    seen: Dict[Professional, None] = {}
    for professional in professionals:
        seen.setdefault(professional, None)
    return list(seen)


class Scheduler:
    """
    Orchestrates diaries, shared resources and undo history.

    Args:
        working_hours: Grid used by slot searches (09:00-17:00, 30 min steps by default)
        default_resources: Resources seeded at construction; None means the
            standard theatres and scanners, [] means none. Seeding is not undoable.
        exclusive_professional_time: A professional can never hold two
            overlapping appointments, with or without a resource
        enforce_shared_resources: Booking also requires the resource to be
            free in every diary, not only the diaries being booked
    """

    def __init__(
        self,
        working_hours: Optional[WorkingHours] = None,
        default_resources: Optional[Iterable[Resource]] = None,
        *,
        exclusive_professional_time: bool = False,
        enforce_shared_resources: bool = False,
    ) -> None:
        self.working_hours = working_hours or WorkingHours()
        self.exclusive_professional_time = exclusive_professional_time
        self.enforce_shared_resources = enforce_shared_resources

        self._diaries: Dict[Professional, Diary] = {}
        self._shared_resources: List[Resource] = list(
            DEFAULT_RESOURCES if default_resources is None else default_resources
        )
        self._slot_calculator = SlotCalculator(working_hours=self.working_hours)
        self._undo_manager = UndoManager(self)
        self._last_search_duration_ms = 0.0

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        default_resources: Optional[Iterable[Resource]] = None,
    ) -> "Scheduler":
        """Build a scheduler from application config; resources default to the config's seed list."""
        return cls(
            working_hours=config.get_working_hours(),
            default_resources=(
                config.get_seed_resources() if default_resources is None else default_resources
            ),
            exclusive_professional_time=config.exclusive_professional_time,
            enforce_shared_resources=config.enforce_shared_resources,
        )

    # --- Professionals & resources ---

    def add_health_professional(self, professional: Professional) -> bool:
        """Add a professional with an empty diary. No-op if already present."""
        if professional in self._diaries:
            return False

        self._undo_manager.save_state()
        self._diaries[professional] = Diary(
            professional,
            exclusive_time=self.exclusive_professional_time
        )
        logger.info("Added health professional %s", professional)
        return True

    def remove_health_professional(self, professional: Professional) -> bool:
        """Remove a professional together with their diary."""
        if professional not in self._diaries:
            return False

        self._undo_manager.save_state()
        del self._diaries[professional]
        logger.info("Removed health professional %s", professional)
        return True

    def get_diary(self, professional: Professional) -> Optional[Diary]:
        return self._diaries.get(professional)

    def get_all_health_professionals(self) -> List[Professional]:
        return list(self._diaries)

    def add_shared_resource(self, resource: Resource) -> None:
        self._undo_manager.save_state()
        self._shared_resources.append(resource)
        logger.info("Added shared resource %s", resource)

    def get_all_shared_resources(self) -> List[Resource]:
        return list(self._shared_resources)

    # --- Diary mutations ---

    def add_task(self, professional: Professional, task: Task) -> bool:
        diary = self._diaries.get(professional)
        if diary is None:
            return False

        self._undo_manager.save_state()
        diary.add_task(task)
        logger.info("Added task '%s' for %s", task.description, professional.name)
        return True

    def cancel_appointment(self, professional: Professional, appointment: Appointment) -> bool:
        """Remove an appointment from one professional's diary."""
        diary = self._diaries.get(professional)
        if diary is None or appointment not in diary.get_all_appointments():
            return False

        self._undo_manager.save_state()
        diary.remove_appointment(appointment)
        logger.info("Cancelled %s for %s", appointment, professional.name)
        return True

    # --- Booking ---

    def book_appointment(
        self,
        professionals: Sequence[Professional],
        appointment: Appointment
    ) -> bool:
        """
        Book one appointment for every given professional, or for none.

        Returns:
            True if booked everywhere; False if any diary conflicts or a
            professional is unknown, in which case nothing changed
        """
        requested = _unique(professionals)
        if not requested:
            return False

        for professional in requested:
            if not self._can_book(professional, appointment):
                logger.debug("Booking rejected for %s: %s", professional.name, appointment)
                return False

        self._undo_manager.save_state()
        for professional in requested:
            self._diaries[professional].add_appointment(appointment)

        logger.info(
            "Booked %s for %s",
            appointment,
            ", ".join(professional.name for professional in requested)
        )
        return True

    def book_recurring_appointment(
        self,
        professionals: Sequence[Professional],
        appointment: Appointment,
        interval_days: int,
        occurrences: int
    ) -> bool:
        """
        Book a fixed-interval series for every given professional, or nothing.

        The whole series is dry-run against every diary before the snapshot
        is taken. Should a commit still fail, diaries already written are
        rolled back and the snapshot is discarded.
        """
        requested = _unique(professionals)
        if not requested:
            return False

        series = appointment.occurrences(interval_days, occurrences)

        for professional in requested:
            diary = self._diaries.get(professional)
            if diary is None or not diary.can_add_recurring_appointment(
                appointment, interval_days, occurrences
            ):
                logger.debug(
                    "Recurring booking rejected for %s: %s x%d every %d day(s)",
                    professional.name, appointment, occurrences, interval_days
                )
                return False
            if self.enforce_shared_resources and not all(
                self._is_resource_free_everywhere(
                    occurrence.resource, occurrence.date, occurrence.start_time, occurrence.end_time
                )
                for occurrence in series
            ):
                logger.debug("Recurring booking rejected: %s already in use", appointment.resource)
                return False

        self._undo_manager.save_state()
        committed: List[Diary] = []
        for professional in requested:
            diary = self._diaries[professional]
            # Only fails if a diary accepts the dry run but refuses the write
            if not diary.add_recurring_appointment(appointment, interval_days, occurrences):
                for done in committed:
                    done.rollback_recurring_appointments(appointment, interval_days, occurrences)
                self._undo_manager.discard_last()
                logger.warning(
                    "Recurring booking for %s failed while committing; rolled back %d diary(ies)",
                    professional.name, len(committed)
                )
                return False
            committed.append(diary)

        logger.info(
            "Booked %d occurrence(s) of %s every %d day(s) for %s",
            occurrences,
            appointment,
            interval_days,
            ", ".join(professional.name for professional in requested)
        )
        return True

    def _can_book(self, professional: Professional, appointment: Appointment) -> bool:
        diary = self._diaries.get(professional)
        if diary is None:
            return False
        if not diary.is_slot_available(
            appointment.date, appointment.start_time, appointment.end_time, appointment.resource
        ):
            return False
        if self.enforce_shared_resources:
            return self._is_resource_free_everywhere(
                appointment.resource, appointment.date, appointment.start_time, appointment.end_time
            )
        return True

    def _is_resource_free_everywhere(
        self,
        resource: Optional[Resource],
        day: date,
        start_time: time,
        end_time: time
    ) -> bool:
        return all(
            diary.is_resource_free(day, start_time, end_time, resource)
            for diary in self._diaries.values()
        )

    # --- Search ---

    def find_available_slots(
        self,
        professionals: Sequence[Professional],
        resources: Optional[Sequence[Resource]],
        start_date: date,
        end_date: date,
        duration_minutes: int
    ) -> List[TimeSlot]:
        """
        Find every slot where all professionals and all resources are free.

        Professionals are checked against their own diaries (an unknown
        professional is never free). Only when they are all clear is each
        resource checked against every diary in the system.

        Returns:
            Matching slots in chronological order
        """
        started = perf_counter()
        requested = _unique(professionals)
        wanted_resources = list(resources or [])

        def is_free(slot: TimeSlot) -> bool:
            for professional in requested:
                diary = self._diaries.get(professional)
                if diary is None or not diary.is_slot_available(
                    slot.date, slot.start_time, slot.end_time
                ):
                    return False

            return all(
                self._is_resource_free_everywhere(resource, slot.date, slot.start_time, slot.end_time)
                for resource in wanted_resources
            )

        slots = self._slot_calculator.find_available_slots(
            start_date=start_date,
            end_date=end_date,
            duration_minutes=duration_minutes,
            is_available=is_free
        )

        self._last_search_duration_ms = (perf_counter() - started) * 1000
        logger.debug(
            "Slot search %s..%s (%d min) found %d slot(s) in %.2f ms",
            start_date, end_date, duration_minutes, len(slots), self._last_search_duration_ms
        )
        return slots

    @property
    def last_search_duration_ms(self) -> float:
        """Wall-clock duration of the most recent slot search."""
        return self._last_search_duration_ms

    # --- Undo ---

    def undo(self) -> bool:
        """Revert the most recent committed mutation. False if there is none."""
        return self._undo_manager.undo()

    @property
    def history_size(self) -> int:
        return len(self._undo_manager)

    def clear_history(self) -> None:
        self._undo_manager.clear()

    def get_history(self) -> List[SchedulerMemento]:
        """Undo snapshots, oldest first."""
        return self._undo_manager.snapshots()

    def restore_history(self, mementos: Iterable[SchedulerMemento]) -> None:
        """Replace the undo history, e.g. with one read back from disk."""
        self._undo_manager.replace_history(mementos)

    def create_memento(self) -> SchedulerMemento:
        return SchedulerMemento.capture(self._diaries, self._shared_resources)

    def restore_from_memento(self, memento: SchedulerMemento) -> None:
        self._diaries = memento.restore_diaries(exclusive_time=self.exclusive_professional_time)
        self._shared_resources = list(memento.shared_resources)
