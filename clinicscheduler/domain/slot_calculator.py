"""
Candidate slot generation for availability searches.

The calculator knows nothing about diaries: it walks the working-hours grid
over a date range and keeps the candidates an availability predicate accepts.
"""

from datetime import date
from typing import Callable, Iterator, List

import pendulum

from .models import TimeSlot, WorkingHours


class SlotCalculator:
    """
    Brute-force scan of fixed-length slots inside working hours.

    Algorithm:
    1. Walk every calendar date in the range (inclusive)
    2. Skip non-working days
    3. Step from opening time in fixed increments while the slot still fits
    4. Keep the slots the predicate accepts, in chronological order
    """

    def __init__(self, working_hours: WorkingHours):
        self.working_hours = working_hours

    def find_available_slots(
        self,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        is_available: Callable[[TimeSlot], bool]
    ) -> List[TimeSlot]:
        """
        Find every candidate slot the predicate accepts.

        Args:
            start_date: First date of the search period
            end_date: Last date of the search period (inclusive)
            duration_minutes: Length of each slot
            is_available: Predicate deciding whether a candidate is free

        Returns:
            List of TimeSlot objects, date-major then time-minor
        """
        return [
            slot for slot in self.candidate_slots(start_date, end_date, duration_minutes)
            if is_available(slot)
        ]

    def candidate_slots(
        self,
        start_date: date,
        end_date: date,
        duration_minutes: int
    ) -> Iterator[TimeSlot]:
        """Yield all candidate slots in the range, free or not."""
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be greater than zero, got {duration_minutes}")

        for day in self._get_days(start_date, end_date):
            for time_range in self.working_hours.candidate_ranges(day, duration_minutes):
                yield TimeSlot.from_range(time_range)

    def _get_days(self, start_date: date, end_date: date) -> Iterator[date]:
        """Yield each date from start_date to end_date inclusive."""
        current = pendulum.date(start_date.year, start_date.month, start_date.day)

        while current <= end_date:
            yield current
            current = current.add(days=1)
