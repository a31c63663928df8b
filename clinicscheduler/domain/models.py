"""
Domain models for professionals, shared resources, appointments and slots.

All entities are immutable values: two professionals (or resources) with the
same fields are the same dictionary key, and a snapshot of a diary only has
to copy the containers, never the entries.
"""

from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import pendulum
from pendulum import DateTime


def _plain_date(value: date) -> date:
    """Strip pendulum's subclass so stored values compare and hash like stdlib dates."""
    return date(value.year, value.month, value.day)


def _plain_time(value: time) -> time:
    return time(value.hour, value.minute, value.second, value.microsecond)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Both ends are naive pendulum datetimes; the scheduler works in local time only.
    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def on(cls, day: date, start_time: time, end_time: time) -> "TimeRange":
        """Build the range covering start_time..end_time on the given day."""
        return cls(
            start=pendulum.naive(
                day.year, day.month, day.day,
                start_time.hour, start_time.minute, start_time.second
            ),
            end=pendulum.naive(
                day.year, day.month, day.day,
                end_time.hour, end_time.minute, end_time.second
            ),
        )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (half-open)."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class Professional:
    """A health professional. Identity is the value of all three fields."""
    name: str
    profession: str
    office_location: str

    def __str__(self) -> str:
        return f"{self.name} ({self.profession}) - {self.office_location}"


@dataclass(frozen=True)
class Resource:
    """A bookable resource shared by all professionals (theatre, scanner, ...)."""
    name: str
    type: str
    location: str

    def __str__(self) -> str:
        return f"{self.name} ({self.type}) - {self.location}"


class TaskPriority(str, Enum):
    """Priority levels for diary tasks."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def _missing_(cls, value):
        # Accept "high", " LOW " etc.
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        return None


@dataclass(frozen=True)
class Task:
    """A to-do item in a professional's diary."""
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM

    def __post_init__(self):
        object.__setattr__(self, "priority", TaskPriority(self.priority))

    def __str__(self) -> str:
        return f"{self.description} (Priority: {self.priority.value})"


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment, optionally holding a shared resource.

    Callers are expected to pass start_time < end_time; overlap checks go
    through TimeRange and fail loudly on a reversed range.
    """
    date: date
    start_time: time
    end_time: time
    treatment_type: str
    patient_name: str
    is_recurring: bool = False
    resource: Optional[Resource] = None

    def time_range(self) -> TimeRange:
        return TimeRange.on(self.date, self.start_time, self.end_time)

    def overlaps_in_time(self, other: "Appointment") -> bool:
        """Same date and intersecting time ranges, resources ignored."""
        if self.date != other.date:
            return False
        return self.time_range().overlaps(other.time_range())

    def overlaps_with(self, other: "Appointment") -> bool:
        """
        Check if this appointment conflicts with another.

        A conflict needs the same date, intersecting time ranges and the same
        resource on both sides. Appointments without a resource never conflict.
        """
        if self.resource is None or other.resource is None:
            return False
        if self.resource != other.resource:
            return False
        return self.overlaps_in_time(other)

    def occurrences(self, interval_days: int, count: int) -> List["Appointment"]:
        """
        Expand this appointment into a fixed-interval recurring series.

        Occurrence i falls on date + i * interval_days and is flagged as recurring.
        """
        if interval_days < 1:
            raise ValueError(f"interval_days must be at least 1, got {interval_days}")
        if count < 1:
            raise ValueError(f"occurrences must be at least 1, got {count}")

        first_day = pendulum.date(self.date.year, self.date.month, self.date.day)
        return [
            replace(
                self,
                date=_plain_date(first_day.add(days=i * interval_days)),
                is_recurring=True,
            )
            for i in range(count)
        ]

    def matches_occurrence(self, other: "Appointment") -> bool:
        """Same date, times and patient; used to find members of a series."""
        return (
            self.date == other.date
            and self.start_time == other.start_time
            and self.end_time == other.end_time
            and self.patient_name == other.patient_name
        )

    def __str__(self) -> str:
        resource_info = f" using {self.resource.name}" if self.resource else ""
        return (
            f"Appointment for {self.patient_name} on {self.date.isoformat()} "
            f"from {self.start_time.strftime('%H:%M')} to {self.end_time.strftime('%H:%M')} "
            f"({self.treatment_type}){resource_info}"
        )


@dataclass(frozen=True)
class WorkingHours:
    """
    Configuration for working hours and the candidate grid inside them.
    """
    start_time: time = time(9, 0)
    end_time: time = time(17, 0)
    slot_step_minutes: int = 30
    exclude_weekdays: Tuple[int, ...] = field(default_factory=tuple)  # 0=Monday, 6=Sunday

    def __post_init__(self):
        if self.slot_step_minutes <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")
        if self.start_time >= self.end_time:
            raise ValueError(f"Working day start {self.start_time} must be before end {self.end_time}")
        object.__setattr__(self, "exclude_weekdays", tuple(self.exclude_weekdays))

    def is_working_day(self, day: date) -> bool:
        """Check if a given date falls on a working day."""
        return pendulum.date(day.year, day.month, day.day).day_of_week not in self.exclude_weekdays

    def get_working_hours_for_day(self, day: date) -> TimeRange | None:
        """
        Get the working hours range for a specific day.
        Returns None if it's not a working day.
        """
        if not self.is_working_day(day):
            return None

        return TimeRange.on(day, self.start_time, self.end_time)

    def candidate_ranges(self, day: date, duration_minutes: int) -> Iterator[TimeRange]:
        """
        Yield every candidate slot on the day, stepping from opening time.

        A candidate is only produced while start + duration still fits before closing.
        """
        opening = self.get_working_hours_for_day(day)
        if opening is None:
            return

        slot_start = opening.start
        while slot_start < opening.end:
            slot_end = slot_start.add(minutes=duration_minutes)
            if slot_end > opening.end:
                break
            yield TimeRange(start=slot_start, end=slot_end)
            slot_start = slot_start.add(minutes=self.slot_step_minutes)


@dataclass(frozen=True)
class TimeSlot:
    """
    Represents a found available time slot.
    """
    date: date
    start_time: time
    end_time: time

    @classmethod
    def from_range(cls, time_range: TimeRange) -> "TimeSlot":
        return cls(
            date=_plain_date(time_range.start),
            start_time=_plain_time(time_range.start.time()),
            end_time=_plain_time(time_range.end.time()),
        )

    def time_range(self) -> TimeRange:
        return TimeRange.on(self.date, self.start_time, self.end_time)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM - HH:MM
        """
        weekday = self.date.strftime("%A")
        time_str = f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"
        duration = self.time_range().duration_minutes()

        return f"{weekday}, {self.date.isoformat()} | {time_str} ({duration} min)"

    def __str__(self) -> str:
        return (
            f"{self.date.isoformat()} from {self.start_time.strftime('%H:%M')} "
            f"to {self.end_time.strftime('%H:%M')}"
        )
