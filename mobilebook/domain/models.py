"""
Domain models for single-day, travel-aware scheduling.

All times are minutes since midnight of the scheduling day. Strings in
``HH:MM`` form only appear at the boundary (parsing and display).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .exceptions import (
    InvalidConfigurationError,
    InvalidRequestError,
    InvalidScheduleError,
)

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _finite_non_negative(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"{name} must be a finite, non-negative number, got {value!r}")
    return number


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """
    Wall-clock time within one business day.

    Invariant: 0 <= minutes <= 1439.
    """
    minutes: int

    def __post_init__(self):
        if isinstance(self.minutes, bool) or not isinstance(self.minutes, int):
            raise InvalidRequestError(f"Time of day must be whole minutes, got {self.minutes!r}")
        if not 0 <= self.minutes < MINUTES_PER_DAY:
            raise InvalidScheduleError(
                f"{self.minutes} minutes is outside the scheduling day (0-{MINUTES_PER_DAY - 1})"
            )

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """
        Parse a zero-padded 24-hour ``HH:MM`` string.

        Raises:
            InvalidRequestError: If the string is not a valid time of day
        """
        if not isinstance(value, str):
            raise InvalidRequestError(f"Expected an HH:MM string, got {value!r}")

        match = _TIME_PATTERN.match(value.strip())
        if not match:
            raise InvalidRequestError(f"Invalid time '{value}', expected HH:MM (00:00-23:59)")

        return cls(int(match.group(1)) * 60 + int(match.group(2)))

    @classmethod
    def coerce(cls, value: "TimeOfDay | str") -> "TimeOfDay":
        """Accept either a TimeOfDay or its HH:MM string form."""
        if isinstance(value, TimeOfDay):
            return value
        return cls.parse(value)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def shift(self, minutes: int) -> "TimeOfDay":
        """
        Return the time ``minutes`` later (or earlier when negative).

        Raises:
            InvalidScheduleError: If the result crosses a day boundary
        """
        target = self.minutes + minutes
        if not 0 <= target < MINUTES_PER_DAY:
            raise InvalidScheduleError(
                f"Shifting {self} by {minutes} minutes leaves the scheduling day"
            )
        return TimeOfDay(target)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class TransportationMode(str, Enum):
    """How the provider travels between client addresses."""
    DRIVING = "driving"
    WALKING = "walking"
    CYCLING = "cycling"
    TRANSIT = "transit"

    @classmethod
    def parse(cls, value: "TransportationMode | str") -> "TransportationMode":
        if isinstance(value, TransportationMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(mode.value for mode in cls)
            raise InvalidRequestError(
                f"Unknown transportation mode '{value}', expected one of: {allowed}"
            ) from exc


class TravelStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Appointment:
    """
    An existing booking, owned by the caller and read-only here.

    Invariant: start must be before end.
    """
    start: TimeOfDay
    end: TimeOfDay
    address: str = ""

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRequestError(
                f"Appointment start {self.start} must be before end {self.end}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Appointment":
        """Build an appointment from its boundary form ``{start, end, address}``."""
        try:
            start = data["start"]
            end = data["end"]
        except KeyError as exc:
            raise InvalidRequestError(f"Appointment is missing field {exc}") from exc

        return cls(
            start=TimeOfDay.coerce(start),
            end=TimeOfDay.coerce(end),
            address=str(data.get("address") or ""),
        )

    def duration_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def overlaps(self, start: int, end: int) -> bool:
        """Strict overlap with ``[start, end)``; touching endpoints do not count."""
        return start < self.end.minutes and end > self.start.minutes

    def __str__(self) -> str:
        return f"{self.start}-{self.end} @ {self.address or 'unknown address'}"


@dataclass(frozen=True)
class WorkingHours:
    """
    The provider's bookable window for a day.

    Invariant: start must be before end.
    """
    start: TimeOfDay
    end: TimeOfDay

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidConfigurationError(
                f"Working hours start {self.start} must be before end {self.end}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "WorkingHours":
        """
        Parse an ``HH:MM`` pair.

        Raises:
            InvalidConfigurationError: If either time is malformed or the window is empty
        """
        try:
            return cls(start=TimeOfDay.parse(start), end=TimeOfDay.parse(end))
        except InvalidRequestError as exc:
            raise InvalidConfigurationError(f"Malformed working hours: {exc}") from exc

    def duration_minutes(self) -> int:
        return self.end.minutes - self.start.minutes

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


@dataclass(frozen=True)
class TravelEstimate:
    """
    Result of a single travel-time lookup. Created fresh per query.
    """
    duration_minutes: int
    distance_meters: float = 0.0
    status: TravelStatus = TravelStatus.OK
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.duration_minutes < 0:
            raise ValueError(f"duration_minutes must be non-negative, got {self.duration_minutes}")
        if self.distance_meters < 0:
            raise ValueError(f"distance_meters must be non-negative, got {self.distance_meters}")

    @property
    def ok(self) -> bool:
        return self.status is TravelStatus.OK

    @classmethod
    def zero(cls) -> "TravelEstimate":
        return cls(duration_minutes=0, distance_meters=0.0)

    @classmethod
    def from_seconds(cls, seconds: Any, distance_meters: Any = 0.0) -> "TravelEstimate":
        """
        Build an estimate from a provider's raw duration and distance.

        Seconds are rounded up to whole minutes.

        Raises:
            ValueError: If either value is not a finite, non-negative number
        """
        seconds = _finite_non_negative(seconds, "duration")
        distance = _finite_non_negative(distance_meters, "distance")
        return cls(duration_minutes=math.ceil(seconds / 60), distance_meters=distance)

    @classmethod
    def failed(cls, message: str) -> "TravelEstimate":
        return cls(
            duration_minutes=0,
            distance_meters=0.0,
            status=TravelStatus.ERROR,
            error_message=message,
        )


@dataclass(frozen=True)
class BookingRequest:
    """A requested start time for a service of the given length."""
    requested_start: TimeOfDay
    service_duration: int

    def __post_init__(self):
        if self.service_duration <= 0:
            raise InvalidRequestError(
                f"Service duration must be positive, got {self.service_duration}"
            )

    @property
    def requested_end_minutes(self) -> int:
        return self.requested_start.minutes + self.service_duration


@dataclass(frozen=True)
class CandidateSlot:
    """
    A start time that survived the overlap check, paired with the location the
    provider travels from and the time they are free to leave it.
    """
    start: TimeOfDay
    end_minutes: int
    origin_address: str
    ready_at: TimeOfDay
    previous: Optional[Appointment] = None


@dataclass(frozen=True)
class TravelLeg:
    """One leg of a day's route, ending at ``appointment``."""
    appointment: Appointment
    origin: str
    destination: str
    travel_minutes: int
    grace_minutes: int
    total_buffer: int
    status: TravelStatus
    leave_by: Optional[TimeOfDay] = None
    error_message: Optional[str] = None
