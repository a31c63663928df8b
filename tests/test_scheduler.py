"""
Tests for the Scheduler service: booking atomicity and slot search.
"""

from datetime import date, time

import pytest

from clinicscheduler.config import AppConfig, DefaultsConfig
from clinicscheduler.domain.models import Appointment, Professional, Resource, TimeSlot, WorkingHours
from clinicscheduler.services.scheduler import DEFAULT_RESOURCES, Scheduler

DR_A = Professional("Dr A", "Radiologist", "Room 1")
DR_B = Professional("Dr B", "Surgeon", "Room 2")
DR_C = Professional("Dr C", "Nurse", "Room 3")
MRI_1 = Resource("MRI Scanner 1", "MRI Scanner", "Radiology Department")
THEATRE_1 = Resource("Operating Theatre 1", "Operating Theatre", "Main Hospital")
MONDAY = date(2024, 6, 10)


def _appointment(day=MONDAY, start=time(9, 0), end=time(10, 0), resource=None, patient="Ann"):
    return Appointment(
        date=day,
        start_time=start,
        end_time=end,
        treatment_type="Scan",
        patient_name=patient,
        resource=resource,
    )


def _build_scheduler(*professionals: Professional, **options) -> Scheduler:
    scheduler = Scheduler(default_resources=[MRI_1, THEATRE_1], **options)
    for professional in professionals:
        scheduler.add_health_professional(professional)
    scheduler.clear_history()
    return scheduler


class TestConstruction:
    """Tests for scheduler setup."""

    def test_default_seed_resources(self):
        """Test that a new scheduler is seeded with the five standard resources."""
        scheduler = Scheduler()

        resources = scheduler.get_all_shared_resources()
        assert resources == list(DEFAULT_RESOURCES)
        assert len(resources) == 5
        assert sum(1 for r in resources if r.type == "MRI Scanner") == 2
        assert scheduler.history_size == 0

    def test_empty_seed(self):
        """Test that an empty seed list gives no resources."""
        assert Scheduler(default_resources=[]).get_all_shared_resources() == []

    def test_from_config(self):
        """Test building a scheduler from application config."""
        config = AppConfig(
            defaults=DefaultsConfig(start_hour=8, end_hour=12, slot_step_minutes=60),
            resources=[],
            exclusive_professional_time=True,
        )

        scheduler = Scheduler.from_config(config)

        assert scheduler.get_all_shared_resources() == []
        assert scheduler.exclusive_professional_time
        assert scheduler.working_hours == WorkingHours(time(8, 0), time(12, 0), 60)


class TestProfessionals:
    """Tests for adding and removing professionals."""

    def test_add_creates_empty_diary(self):
        """Test that adding a professional creates an empty diary."""
        scheduler = _build_scheduler()

        assert scheduler.add_health_professional(DR_A)
        assert scheduler.get_diary(DR_A).get_all_appointments() == []
        assert scheduler.get_all_health_professionals() == [DR_A]

    def test_adding_equal_professional_is_noop(self):
        """Test that re-adding an equal professional changes nothing."""
        scheduler = _build_scheduler(DR_A)

        assert not scheduler.add_health_professional(Professional("Dr A", "Radiologist", "Room 1"))
        assert scheduler.history_size == 0

    def test_remove(self):
        """Test removing a professional and their diary."""
        scheduler = _build_scheduler(DR_A, DR_B)

        assert scheduler.remove_health_professional(DR_A)
        assert scheduler.get_diary(DR_A) is None
        assert scheduler.get_all_health_professionals() == [DR_B]
        assert not scheduler.remove_health_professional(DR_A)


class TestBookAppointment:
    """Tests for single appointment booking."""

    def test_books_for_every_professional(self):
        """Test that one booking lands in every requested diary."""
        scheduler = _build_scheduler(DR_A, DR_B)
        appt = _appointment(resource=MRI_1)

        assert scheduler.book_appointment([DR_A, DR_B], appt)
        assert scheduler.get_diary(DR_A).get_all_appointments() == [appt]
        assert scheduler.get_diary(DR_B).get_all_appointments() == [appt]
        assert scheduler.history_size == 1

    def test_conflict_in_second_diary_leaves_first_untouched(self):
        """Test that a conflict in one diary books nothing anywhere."""
        scheduler = _build_scheduler(DR_A, DR_B)
        scheduler.book_appointment([DR_B], _appointment(resource=MRI_1, patient="Zed"))
        history_before = scheduler.history_size

        booked = scheduler.book_appointment([DR_A, DR_B], _appointment(start=time(9, 30), end=time(10, 30), resource=MRI_1))

        assert not booked
        assert scheduler.get_diary(DR_A).get_all_appointments() == []
        assert len(scheduler.get_diary(DR_B).get_all_appointments()) == 1
        assert scheduler.history_size == history_before

    def test_unknown_professional_fails(self):
        """Test that an unknown professional makes the booking fail."""
        scheduler = _build_scheduler(DR_A)

        assert not scheduler.book_appointment([DR_A, DR_C], _appointment())
        assert scheduler.get_diary(DR_A).get_all_appointments() == []

    def test_empty_professional_list_fails(self):
        """Test that booking for nobody fails without history."""
        scheduler = _build_scheduler(DR_A)

        assert not scheduler.book_appointment([], _appointment())
        assert scheduler.history_size == 0

    def test_duplicate_professionals_are_booked_once(self):
        """Test that a repeated professional is booked once."""
        scheduler = _build_scheduler(DR_A)

        assert scheduler.book_appointment([DR_A, DR_A], _appointment(resource=MRI_1))
        assert len(scheduler.get_diary(DR_A).get_all_appointments()) == 1

    def test_resourceless_double_booking_succeeds_by_default(self):
        """Test that resource-less double booking is allowed by default."""
        scheduler = _build_scheduler(DR_A)

        assert scheduler.book_appointment([DR_A], _appointment(patient="Ann"))
        assert scheduler.book_appointment([DR_A], _appointment(patient="Bob"))
        assert len(scheduler.get_diary(DR_A).get_all_appointments()) == 2

    def test_exclusive_professional_time_rejects_double_booking(self):
        """Test that exclusive time refuses resource-less double booking."""
        scheduler = _build_scheduler(DR_A, exclusive_professional_time=True)

        assert scheduler.book_appointment([DR_A], _appointment(patient="Ann"))
        assert not scheduler.book_appointment([DR_A], _appointment(patient="Bob"))
        assert len(scheduler.get_diary(DR_A).get_all_appointments()) == 1

    def test_resource_held_by_other_professional_is_only_checked_when_enforced(self):
        """Test that system-wide resource checks only apply when enforced."""
        relaxed = _build_scheduler(DR_A, DR_B)
        strict = _build_scheduler(DR_A, DR_B, enforce_shared_resources=True)

        for scheduler in (relaxed, strict):
            scheduler.book_appointment([DR_B], _appointment(resource=MRI_1, patient="Zed"))

        assert relaxed.book_appointment([DR_A], _appointment(resource=MRI_1))
        assert not strict.book_appointment([DR_A], _appointment(resource=MRI_1))


class TestBookRecurringAppointment:
    """Tests for recurring booking across professionals."""

    def test_books_series_for_everyone(self):
        """Test that a recurring series lands in every requested diary."""
        scheduler = _build_scheduler(DR_A, DR_B)

        assert scheduler.book_recurring_appointment([DR_A, DR_B], _appointment(resource=MRI_1), 7, 3)

        for professional in (DR_A, DR_B):
            dates = [appt.date for appt in scheduler.get_diary(professional).get_all_appointments()]
            assert dates == [date(2024, 6, 10), date(2024, 6, 17), date(2024, 6, 24)]
        assert scheduler.history_size == 1

    @pytest.mark.parametrize("blocked_professional", [DR_A, DR_B, DR_C])
    def test_late_conflict_leaves_nothing_behind(self, blocked_professional):
        """Test that a later occurrence conflicting in any diary books nothing anywhere."""
        scheduler = _build_scheduler(DR_A, DR_B, DR_C)
        blocker = _appointment(day=date(2024, 6, 24), start=time(9, 30), end=time(10, 30), resource=MRI_1, patient="Zed")
        scheduler.book_appointment([blocked_professional], blocker)
        history_before = scheduler.history_size

        booked = scheduler.book_recurring_appointment([DR_A, DR_B, DR_C], _appointment(resource=MRI_1), 7, 4)

        assert not booked
        for professional in (DR_A, DR_B, DR_C):
            remaining = scheduler.get_diary(professional).get_all_appointments()
            assert all(appt.patient_name == "Zed" for appt in remaining)
        assert scheduler.history_size == history_before

    def test_unknown_professional_fails(self):
        """Test that an unknown professional makes the booking fail."""
        scheduler = _build_scheduler(DR_A)

        assert not scheduler.book_recurring_appointment([DR_A, DR_C], _appointment(), 7, 2)
        assert scheduler.get_diary(DR_A).get_all_appointments() == []

    def test_invalid_interval_raises(self):
        """Test that a zero interval raises ValueError."""
        scheduler = _build_scheduler(DR_A)

        with pytest.raises(ValueError):
            scheduler.book_recurring_appointment([DR_A], _appointment(), 0, 2)

    def test_commit_failure_rolls_back_written_diaries(self, monkeypatch):
        """Test that a diary refusing the write after a clean dry run undoes the diaries already written."""
        scheduler = _build_scheduler(DR_A, DR_B, DR_C)
        monkeypatch.setattr(scheduler.get_diary(DR_C), "add_recurring_appointment", lambda *args: False)

        booked = scheduler.book_recurring_appointment([DR_A, DR_B, DR_C], _appointment(resource=MRI_1), 7, 3)

        assert not booked
        for professional in (DR_A, DR_B, DR_C):
            assert scheduler.get_diary(professional).get_all_appointments() == []
        assert scheduler.history_size == 0


class TestFindAvailableSlots:
    """Tests for the brute-force slot search."""

    def test_resource_in_use_excludes_overlapping_candidates(self):
        """Test that an MRI booking 09:00-10:00 blocks only the first two half-hour candidates."""
        scheduler = _build_scheduler(DR_A)
        scheduler.book_appointment([DR_A], _appointment(resource=MRI_1))

        slots = scheduler.find_available_slots([DR_A], [MRI_1], MONDAY, MONDAY, 30)

        starts = [slot.start_time for slot in slots]
        assert time(9, 0) not in starts
        assert time(9, 30) not in starts
        assert slots[0] == TimeSlot(MONDAY, time(10, 0), time(10, 30))
        assert len(slots) == 14

    def test_resource_held_by_unrequested_professional_still_blocks(self):
        """Test that a resource held by someone outside the search still blocks."""
        scheduler = _build_scheduler(DR_A, DR_B)
        scheduler.book_appointment([DR_B], _appointment(start=time(12, 0), end=time(13, 0), resource=THEATRE_1))

        slots = scheduler.find_available_slots([DR_A], [THEATRE_1], MONDAY, MONDAY, 60)

        starts = [slot.start_time for slot in slots]
        assert time(11, 30) not in starts
        assert time(12, 0) not in starts
        assert time(12, 30) not in starts
        assert time(11, 0) in starts
        assert time(13, 0) in starts

    def test_slots_stay_inside_window_and_range(self):
        """Test that slots stay inside working hours and the date range."""
        scheduler = _build_scheduler(DR_A, DR_B)

        slots = scheduler.find_available_slots([DR_A, DR_B], [], date(2024, 6, 10), date(2024, 6, 12), 45)

        assert slots
        for slot in slots:
            assert date(2024, 6, 10) <= slot.date <= date(2024, 6, 12)
            assert slot.start_time >= time(9, 0)
            assert slot.end_time <= time(17, 0)
        assert slots == sorted(slots, key=lambda s: (s.date, s.start_time))

    def test_unknown_professional_yields_no_slots(self):
        """Test that an unknown professional is never free."""
        scheduler = _build_scheduler(DR_A)

        assert scheduler.find_available_slots([DR_A, DR_C], None, MONDAY, MONDAY, 30) == []

    def test_exclusive_time_blocks_professional_slots(self):
        """Test that exclusive time blocks the professional's own busy hours."""
        scheduler = _build_scheduler(DR_A, exclusive_professional_time=True)
        scheduler.book_appointment([DR_A], _appointment(start=time(9, 0), end=time(16, 0)))

        slots = scheduler.find_available_slots([DR_A], None, MONDAY, MONDAY, 30)

        assert [slot.start_time for slot in slots] == [time(16, 0), time(16, 30)]

    def test_search_duration_is_recorded(self):
        """Test that the search records its duration."""
        scheduler = _build_scheduler(DR_A)

        scheduler.find_available_slots([DR_A], [MRI_1], MONDAY, date(2024, 6, 14), 30)

        assert scheduler.last_search_duration_ms >= 0.0

    def test_search_does_not_record_history(self):
        """Test that searching creates no undo history."""
        scheduler = _build_scheduler(DR_A)

        scheduler.find_available_slots([DR_A], [MRI_1], MONDAY, MONDAY, 30)

        assert scheduler.history_size == 0
