"""
Tests for the slot availability engine.
"""

import pytest

from mobilebook.domain.buffers import BufferCalculator
from mobilebook.domain.exceptions import InvalidConfigurationError, InvalidRequestError
from mobilebook.domain.models import Appointment, BookingRequest, TimeOfDay, WorkingHours
from mobilebook.domain.slot_engine import SlotAvailabilityEngine

HOME = "12 Harbor Road"


def _apt(start: str, end: str, address: str = "7 Mill Lane") -> Appointment:
    return Appointment(start=TimeOfDay.parse(start), end=TimeOfDay.parse(end), address=address)


def _labels(slots):
    return [str(slot) for slot in slots]


class TestIsSlotAvailable:
    """Tests for the pairwise check against the preceding appointment."""

    def test_slot_inside_buffer_is_unavailable(self):
        engine = SlotAvailabilityEngine()
        previous = _apt("10:00", "11:00")

        assert not engine.is_slot_available("11:15", 45, previous, "48 Elm Street", travel_minutes=40, grace_minutes=5)

    def test_exact_boundary_is_available(self):
        """Starting exactly at end + travel + grace is allowed."""
        engine = SlotAvailabilityEngine()
        previous = _apt("10:00", "11:00")

        assert engine.is_slot_available("11:45", 45, previous, "48 Elm Street", travel_minutes=40, grace_minutes=5)
        assert not engine.is_slot_available("11:44", 45, previous, "48 Elm Street", travel_minutes=40, grace_minutes=5)

    def test_no_previous_appointment_is_available(self):
        assert SlotAvailabilityEngine().is_slot_available("09:00", 30, None, travel_minutes=60)

    def test_default_grace_comes_from_calculator(self):
        engine = SlotAvailabilityEngine(BufferCalculator(grace_minutes=10))
        previous = _apt("10:00", "11:00")

        assert not engine.is_slot_available("11:45", 45, previous, travel_minutes=40)
        assert engine.is_slot_available("11:50", 45, previous, travel_minutes=40)

    def test_more_travel_or_grace_never_frees_a_slot(self):
        """Raising travel or grace can only turn available into unavailable."""
        engine = SlotAvailabilityEngine()
        previous = _apt("10:00", "11:00")

        for requested in ("11:00", "11:20", "11:45", "12:30"):
            for grace in (0, 5, 10):
                results = [
                    engine.is_slot_available(requested, 30, previous, travel_minutes=travel, grace_minutes=grace)
                    for travel in range(0, 120, 5)
                ]
                # Once unavailable, stays unavailable
                assert results == sorted(results, reverse=True)

            results = [
                engine.is_slot_available(requested, 30, previous, travel_minutes=20, grace_minutes=grace)
                for grace in range(0, 60, 5)
            ]
            assert results == sorted(results, reverse=True)

    def test_invalid_requests_raise(self):
        engine = SlotAvailabilityEngine()

        with pytest.raises(InvalidRequestError):
            engine.is_slot_available("11:00", 0, None)
        with pytest.raises(InvalidRequestError):
            engine.is_slot_available("11h00", 30, None)


class TestAvailableSlots:
    """Tests for full-day slot enumeration."""

    def test_empty_day_respects_closing_time(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")

        slots = _labels(engine.available_slots([], HOME, hours, 60, {HOME: 20}, grace_minutes=5))

        assert slots[0] == "09:00"
        assert slots[-1] == "16:00"
        assert "16:15" not in slots
        assert len(slots) == 29

    def test_grid_is_anchored_to_window_start(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:07", "10:00")

        slots = _labels(engine.available_slots([], HOME, hours, 15, {HOME: 0}, grace_minutes=0))

        assert slots == ["09:07", "09:22", "09:37"]

    def test_custom_granularity(self):
        engine = SlotAvailabilityEngine(granularity_minutes=30)
        hours = WorkingHours.from_strings("09:00", "11:00")

        slots = _labels(engine.available_slots([], HOME, hours, 30, {HOME: 0}, grace_minutes=0))

        assert slots == ["09:00", "09:30", "10:00", "10:30"]

    def test_overlapping_candidates_are_excluded(self):
        """A 45-minute service cannot start at 09:45 or 10:00 around a 10:00-10:30 booking."""
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")
        appointments = [_apt("10:00", "10:30", "7 Mill Lane")]

        slots = _labels(
            engine.available_slots(
                appointments,
                HOME,
                hours,
                45,
                {HOME: 10, "7 Mill Lane": 0},
                grace_minutes=5,
            )
        )

        assert "09:45" not in slots
        assert "10:00" not in slots
        assert "09:30" not in slots
        assert "10:15" not in slots
        # Ends exactly when the booking starts
        assert "09:15" in slots
        # Same address, but the grace period still applies
        assert "10:30" not in slots
        assert "10:45" in slots

    def test_no_slot_overlaps_or_runs_past_closing(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("08:00", "18:00")
        appointments = [
            _apt("08:30", "09:15", "48 Elm Street"),
            _apt("11:00", "12:30", "7 Mill Lane"),
            _apt("15:10", "16:00", "301 Ocean Avenue"),
        ]
        travel = {HOME: 10, "48 Elm Street": 15, "7 Mill Lane": 25, "301 Ocean Avenue": 5}

        for duration in (15, 30, 45, 60, 90):
            for slot in engine.available_slots(appointments, HOME, hours, duration, travel, grace_minutes=5):
                assert slot.minutes + duration <= hours.end.minutes
                assert not any(apt.overlaps(slot.minutes, slot.minutes + duration) for apt in appointments)

    def test_travel_is_measured_from_latest_preceding_appointment(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "14:00")
        appointments = [
            _apt("09:00", "09:30", "48 Elm Street"),
            _apt("11:00", "11:30", "7 Mill Lane"),
        ]
        travel = {HOME: 0, "48 Elm Street": 5, "7 Mill Lane": 60}

        slots = _labels(engine.available_slots(appointments, HOME, hours, 30, travel, grace_minutes=0))

        assert "09:30" not in slots
        assert "09:45" in slots
        assert "12:15" not in slots
        assert "12:30" in slots

    def test_home_departure_limits_first_slots(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "12:00")

        slots = _labels(
            engine.available_slots(
                [],
                HOME,
                hours,
                30,
                {HOME: 40},
                grace_minutes=5,
                home_departure=TimeOfDay.parse("08:30"),
            )
        )

        assert slots[0] == "09:15"

    def test_appointment_without_address_travels_from_home(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "12:00")
        appointments = [_apt("09:00", "10:00", "")]

        candidates = list(engine.iter_candidates(appointments, HOME, hours, 30))

        assert candidates[0].start == TimeOfDay.parse("10:00")
        assert candidates[0].origin_address == HOME
        assert candidates[0].ready_at == TimeOfDay.parse("10:00")
        assert candidates[0].previous == appointments[0]

    def test_inputs_are_not_mutated(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")
        appointments = [_apt("11:00", "11:30"), _apt("10:00", "10:30", "48 Elm Street")]
        snapshot = list(appointments)
        travel = {HOME: 10, "7 Mill Lane": 10, "48 Elm Street": 10}

        engine.available_slots(appointments, HOME, hours, 30, travel)

        assert appointments == snapshot
        assert travel == {HOME: 10, "7 Mill Lane": 10, "48 Elm Street": 10}

    def test_service_longer_than_window_has_no_slots(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "10:00")

        assert engine.available_slots([], HOME, hours, 90, {HOME: 0}) == []

    def test_non_positive_duration_fails_before_iteration(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")

        with pytest.raises(InvalidRequestError):
            engine.iter_candidates([], HOME, hours, 0)
        with pytest.raises(InvalidRequestError):
            engine.available_slots([], HOME, hours, -15, {HOME: 0})

    def test_invalid_granularity(self):
        with pytest.raises(InvalidConfigurationError):
            SlotAvailabilityEngine(granularity_minutes=0)


class TestCandidateFor:
    """Tests for single-request evaluation."""

    def test_candidate_outside_window(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")

        assert engine.candidate_for(BookingRequest(TimeOfDay.parse("16:30"), 45), [], HOME, hours) is None
        assert engine.candidate_for(BookingRequest(TimeOfDay.parse("08:45"), 30), [], HOME, hours) is None

    def test_off_grid_candidate(self):
        engine = SlotAvailabilityEngine()
        hours = WorkingHours.from_strings("09:00", "17:00")
        appointments = [_apt("10:00", "10:30")]

        candidate = engine.candidate_for(BookingRequest(TimeOfDay.parse("10:37"), 30), appointments, HOME, hours)

        assert candidate is not None
        assert candidate.origin_address == "7 Mill Lane"
        assert engine.meets_travel_buffer(candidate, 2, 5)
        assert not engine.meets_travel_buffer(candidate, 3, 5)
