"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityService,
    build_availability_service,
    build_travel_oracle,
    format_times,
)
from .travel_estimator import TravelEstimator, TravelOracleProtocol

__all__ = [
    "AvailabilityService",
    "TravelEstimator",
    "TravelOracleProtocol",
    "build_availability_service",
    "build_travel_oracle",
    "format_times",
]
