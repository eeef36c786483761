"""
Gap and departure arithmetic shared by slot validation and "leave by" displays.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Mapping, Optional

from .exceptions import InvalidRequestError, InvalidScheduleError
from .models import TimeOfDay, TransportationMode, TravelEstimate

logger = logging.getLogger(__name__)

# Substituted for the travel time when the oracle cannot answer
DEFAULT_FALLBACK_BUFFERS: Dict[TransportationMode, int] = {
    TransportationMode.DRIVING: 15,
    TransportationMode.CYCLING: 20,
    TransportationMode.TRANSIT: 25,
    TransportationMode.WALKING: 30,
}

DEFAULT_GRACE_MINUTES = 5


def _non_negative(value: float, name: str) -> float:
    if value is None or value < 0:
        raise InvalidRequestError(f"{name} must be non-negative, got {value!r}")
    return value


class BufferCalculator:
    """
    Computes the minimum gap between the end of one appointment and the start
    of the next: travel time plus a fixed grace period for setup and teardown.
    """

    def __init__(
        self,
        grace_minutes: int = DEFAULT_GRACE_MINUTES,
        fallback_buffers: Optional[Mapping[TransportationMode, int]] = None,
    ):
        """
        Args:
            grace_minutes: Default grace period when a call does not pass one
            fallback_buffers: Per-mode travel minutes used when the oracle fails
        """
        self.grace_minutes = int(_non_negative(grace_minutes, "grace_minutes"))
        self.fallback_buffers: Dict[TransportationMode, int] = dict(DEFAULT_FALLBACK_BUFFERS)
        if fallback_buffers:
            for mode, minutes in fallback_buffers.items():
                self.fallback_buffers[TransportationMode.parse(mode)] = int(
                    _non_negative(minutes, f"fallback buffer for {mode}")
                )

    def required_gap(self, travel_minutes: float, grace_minutes: Optional[float] = None) -> int:
        """
        Return ``travel + grace`` rounded up to a whole minute.

        Raises:
            InvalidRequestError: If either input is negative
        """
        if grace_minutes is None:
            grace_minutes = self.grace_minutes
        _non_negative(travel_minutes, "travel_minutes")
        _non_negative(grace_minutes, "grace_minutes")
        return math.ceil(travel_minutes + grace_minutes)

    def minimum_start(
        self,
        previous_end: TimeOfDay,
        travel_minutes: float,
        grace_minutes: Optional[float] = None,
    ) -> int:
        """Earliest start minute after ``previous_end``. May exceed the day."""
        return previous_end.minutes + self.required_gap(travel_minutes, grace_minutes)

    def fallback_minutes(self, mode: TransportationMode) -> int:
        return self.fallback_buffers[TransportationMode.parse(mode)]

    def travel_minutes_for(self, estimate: TravelEstimate, mode: TransportationMode) -> int:
        """Travel minutes to plan with: the estimate, or the mode fallback if it failed."""
        if estimate.ok:
            return estimate.duration_minutes

        fallback = self.fallback_minutes(mode)
        logger.debug(
            "Using %s fallback of %d minutes (%s)",
            TransportationMode.parse(mode).value,
            fallback,
            estimate.error_message or "oracle error",
        )
        return fallback


class DepartureCalculator:
    """Latest safe departure from the prior location."""

    def departure_time(self, appointment_start: TimeOfDay, travel_minutes: float) -> TimeOfDay:
        """
        Compute ``appointment_start - travel_minutes``.

        Fractional travel is rounded up so the provider never leaves late.

        Raises:
            InvalidRequestError: If travel_minutes is negative
            InvalidScheduleError: If departure would fall on the previous day
        """
        _non_negative(travel_minutes, "travel_minutes")
        travel = math.ceil(travel_minutes)

        if travel > appointment_start.minutes:
            raise InvalidScheduleError(
                f"Leaving {travel} minutes before {appointment_start} crosses midnight"
            )

        return TimeOfDay(appointment_start.minutes - travel)
