"""
Core business logic for travel-aware slot availability.

Pure domain logic: travel times arrive already resolved per origin address,
so nothing in here performs I/O. The async service layer looks them up.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Mapping, Optional, Sequence

from .buffers import BufferCalculator
from .exceptions import InvalidConfigurationError, InvalidRequestError
from .models import (
    Appointment,
    BookingRequest,
    CandidateSlot,
    TimeOfDay,
    WorkingHours,
)

logger = logging.getLogger(__name__)

DEFAULT_GRANULARITY_MINUTES = 15
START_OF_DAY = TimeOfDay(0)


class SlotAvailabilityEngine:
    """
    Decides which start times are bookable for a new appointment.

    Algorithm:
    1. Step from the start of working hours at a fixed granularity, stopping at
       the last start whose service still ends by closing time
    2. Drop candidates that strictly overlap an existing appointment
    3. Find the location the provider comes from: the appointment with the
       latest end at or before the candidate, else the home base
    4. Keep the candidate only if it starts at or after
       ``ready_at + travel + grace`` for that location

    Appointments must be supplied in chronological order; they are never
    re-sorted or modified.
    """

    def __init__(
        self,
        buffer_calculator: Optional[BufferCalculator] = None,
        granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    ):
        if granularity_minutes <= 0:
            raise InvalidConfigurationError(
                f"Slot granularity must be positive, got {granularity_minutes}"
            )
        self.buffers = buffer_calculator or BufferCalculator()
        self.granularity_minutes = granularity_minutes

    def is_slot_available(
        self,
        requested_start: TimeOfDay | str,
        service_duration: int,
        previous_appointment: Optional[Appointment],
        destination_address: Optional[str] = None,
        travel_minutes: float = 0,
        grace_minutes: Optional[float] = None,
    ) -> bool:
        """
        Pairwise check against the appointment immediately before the slot.

        The caller has already resolved which appointment that is and how long
        the trip from it to ``destination_address`` takes. The boundary is
        inclusive: starting exactly at ``previous.end + travel + grace`` is fine.

        Raises:
            InvalidRequestError: On a malformed time or non-positive duration
        """
        request = BookingRequest(TimeOfDay.coerce(requested_start), service_duration)

        if previous_appointment is None:
            return True

        available = self._meets_gap(
            request.requested_start,
            previous_appointment.end,
            travel_minutes,
            grace_minutes,
        )
        logger.debug(
            "Slot %s after %s -> %s: travel=%s grace=%s available=%s",
            request.requested_start,
            previous_appointment,
            destination_address,
            travel_minutes,
            grace_minutes,
            available,
        )
        return available

    def iter_candidates(
        self,
        appointments: Sequence[Appointment],
        home_base_address: str,
        working_hours: WorkingHours,
        service_duration: int,
        home_departure: Optional[TimeOfDay] = None,
    ) -> Iterator[CandidateSlot]:
        """
        Lazily yield grid starts that fit the window and do not overlap.

        Validation happens eagerly, before the first candidate is requested.

        Raises:
            InvalidRequestError: If service_duration is not positive
        """
        self._validate_duration(service_duration)
        return self._generate_candidates(
            appointments,
            home_base_address,
            working_hours,
            service_duration,
            home_departure or START_OF_DAY,
        )

    def candidate_for(
        self,
        request: BookingRequest,
        appointments: Sequence[Appointment],
        home_base_address: str,
        working_hours: WorkingHours,
        home_departure: Optional[TimeOfDay] = None,
    ) -> Optional[CandidateSlot]:
        """
        Evaluate one requested start (on or off the grid).

        Returns None when the request falls outside working hours or overlaps
        an existing appointment.
        """
        start = request.requested_start.minutes
        end = request.requested_end_minutes

        if start < working_hours.start.minutes or end > working_hours.end.minutes:
            return None

        return self._candidate_at(
            start,
            end,
            appointments,
            home_base_address,
            home_departure or START_OF_DAY,
        )

    def iter_available_slots(
        self,
        candidates: Iterator[CandidateSlot] | Sequence[CandidateSlot],
        travel_minutes_by_origin: Mapping[str, float],
        grace_minutes: Optional[float] = None,
    ) -> Iterator[TimeOfDay]:
        """
        Yield the candidates whose travel buffer is satisfied, in input order.

        Args:
            candidates: Output of ``iter_candidates``
            travel_minutes_by_origin: Travel minutes from each origin address
                to the destination being booked
            grace_minutes: Grace period; the calculator default when omitted
        """
        for candidate in candidates:
            travel = travel_minutes_by_origin[candidate.origin_address]
            if self.meets_travel_buffer(candidate, travel, grace_minutes):
                yield candidate.start

    def meets_travel_buffer(
        self,
        candidate: CandidateSlot,
        travel_minutes: float,
        grace_minutes: Optional[float] = None,
    ) -> bool:
        return self._meets_gap(candidate.start, candidate.ready_at, travel_minutes, grace_minutes)

    def available_slots(
        self,
        appointments: Sequence[Appointment],
        home_base_address: str,
        working_hours: WorkingHours,
        service_duration: int,
        travel_minutes_by_origin: Mapping[str, float],
        grace_minutes: Optional[float] = None,
        home_departure: Optional[TimeOfDay] = None,
    ) -> List[TimeOfDay]:
        """
        Compute every bookable start for callers that already hold travel times.

        Returns:
            Bookable starts in ascending order
        """
        candidates = self.iter_candidates(
            appointments,
            home_base_address,
            working_hours,
            service_duration,
            home_departure,
        )
        return list(self.iter_available_slots(candidates, travel_minutes_by_origin, grace_minutes))

    def _generate_candidates(
        self,
        appointments: Sequence[Appointment],
        home_base_address: str,
        working_hours: WorkingHours,
        service_duration: int,
        home_departure: TimeOfDay,
    ) -> Iterator[CandidateSlot]:
        # The grid is anchored to the window start, not to the clock hour
        latest_start = working_hours.end.minutes - service_duration
        start = working_hours.start.minutes

        while start <= latest_start:
            candidate = self._candidate_at(
                start,
                start + service_duration,
                appointments,
                home_base_address,
                home_departure,
            )
            if candidate is not None:
                yield candidate
            start += self.granularity_minutes

    def _candidate_at(
        self,
        start: int,
        end: int,
        appointments: Sequence[Appointment],
        home_base_address: str,
        home_departure: TimeOfDay,
    ) -> Optional[CandidateSlot]:
        for appointment in appointments:
            if appointment.overlaps(start, end):
                return None

        previous = self._preceding_appointment(appointments, start)

        if previous is None:
            return CandidateSlot(
                start=TimeOfDay(start),
                end_minutes=end,
                origin_address=home_base_address,
                ready_at=home_departure,
            )

        return CandidateSlot(
            start=TimeOfDay(start),
            end_minutes=end,
            origin_address=previous.address or home_base_address,
            ready_at=previous.end,
            previous=previous,
        )

    @staticmethod
    def _preceding_appointment(
        appointments: Sequence[Appointment],
        start: int,
    ) -> Optional[Appointment]:
        """Appointment with the latest end at or before ``start``."""
        preceding: Optional[Appointment] = None

        for appointment in appointments:
            if appointment.end.minutes > start:
                continue
            if preceding is None or appointment.end >= preceding.end:
                preceding = appointment

        return preceding

    def _meets_gap(
        self,
        start: TimeOfDay,
        ready_at: TimeOfDay,
        travel_minutes: float,
        grace_minutes: Optional[float],
    ) -> bool:
        return start.minutes >= self.buffers.minimum_start(ready_at, travel_minutes, grace_minutes)

    @staticmethod
    def _validate_duration(service_duration: int) -> None:
        if service_duration is None or service_duration <= 0:
            raise InvalidRequestError(
                f"Service duration must be positive, got {service_duration}"
            )
