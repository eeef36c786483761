"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .buffers import BufferCalculator, DepartureCalculator, DEFAULT_FALLBACK_BUFFERS
from .exceptions import (
    InvalidConfigurationError,
    InvalidRequestError,
    InvalidScheduleError,
    MobileBookError,
    TravelEstimationError,
)
from .models import (
    Appointment,
    BookingRequest,
    CandidateSlot,
    TimeOfDay,
    TransportationMode,
    TravelEstimate,
    TravelLeg,
    TravelStatus,
    WorkingHours,
)
from .slot_engine import SlotAvailabilityEngine

__all__ = [
    "Appointment",
    "BookingRequest",
    "BufferCalculator",
    "CandidateSlot",
    "DEFAULT_FALLBACK_BUFFERS",
    "DepartureCalculator",
    "InvalidConfigurationError",
    "InvalidRequestError",
    "InvalidScheduleError",
    "MobileBookError",
    "SlotAvailabilityEngine",
    "TimeOfDay",
    "TransportationMode",
    "TravelEstimate",
    "TravelEstimationError",
    "TravelLeg",
    "TravelStatus",
    "WorkingHours",
]
