"""
Application service for travel-aware availability.

The service resolves travel times through the ``TravelEstimator`` and hands
the pure decision-making to the domain-level ``SlotAvailabilityEngine``.
Oracle lookups for one request run concurrently, bounded by a semaphore so a
busy day does not flood the provider.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..adapters.google_client import GoogleDistanceMatrixClient
from ..adapters.mapbox_client import MapboxTravelClient
from ..adapters.mock_travel_client import MockTravelClient
from ..config import AppConfig
from ..domain.buffers import BufferCalculator, DepartureCalculator
from ..domain.exceptions import InvalidScheduleError
from ..domain.models import (
    Appointment,
    BookingRequest,
    TimeOfDay,
    TransportationMode,
    TravelLeg,
    TravelStatus,
    WorkingHours,
)
from ..domain.slot_engine import SlotAvailabilityEngine
from .travel_estimator import TravelEstimator, TravelOracleProtocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_REQUESTS = 4

AppointmentInput = Union[Appointment, Mapping[str, Any]]
WorkingHoursInput = Union[WorkingHours, Mapping[str, str]]


def format_times(times: Iterable[TimeOfDay]) -> List[str]:
    """Render times in their ``HH:MM`` boundary form."""
    return [str(t) for t in times]


class AvailabilityService:
    """
    Orchestrates travel lookups and slot decisions for one provider.
    """

    def __init__(
        self,
        travel_estimator: TravelEstimator,
        slot_engine: Optional[SlotAvailabilityEngine] = None,
        departure_calculator: Optional[DepartureCalculator] = None,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
    ) -> None:
        if max_concurrent_requests <= 0:
            raise ValueError("max_concurrent_requests must be greater than zero")
        self._estimator = travel_estimator
        self._engine = slot_engine or SlotAvailabilityEngine(travel_estimator.buffers)
        self._departures = departure_calculator or DepartureCalculator()
        self.max_concurrent_requests = max_concurrent_requests

    async def available_slots(
        self,
        *,
        appointments: Sequence[AppointmentInput],
        home_base_address: str,
        working_hours: WorkingHoursInput,
        service_duration: int,
        transportation_mode: TransportationMode | str,
        buffer_minutes: Optional[int] = None,
        destination_address: str,
        home_departure: Optional[TimeOfDay] = None,
    ) -> List[TimeOfDay]:
        """
        Every bookable start for a new appointment at ``destination_address``.

        Each distinct origin is looked up once, including the home base: a
        candidate less than ``travel + grace`` minutes after ``home_departure``
        is rejected, so the home leg can decide the first slots of the day.

        Args:
            appointments: Existing appointments in chronological order
            home_base_address: Where the provider starts the day
            working_hours: Bookable window (model or ``{start, end}`` strings)
            service_duration: Length of the new appointment in minutes
            transportation_mode: How the provider travels
            buffer_minutes: Grace period on top of travel; provider default if None
            destination_address: Address of the client being booked
            home_departure: Earliest time the provider can leave home

        Returns:
            Bookable starts in ascending order

        Raises:
            InvalidConfigurationError: If working hours are malformed
            InvalidRequestError: If the duration is not positive or input times are malformed
        """
        mode = TransportationMode.parse(transportation_mode)
        hours = self._coerce_working_hours(working_hours)
        existing = self._coerce_appointments(appointments)

        candidates = list(
            self._engine.iter_candidates(
                existing,
                home_base_address,
                hours,
                service_duration,
                home_departure,
            )
        )

        origins = list(dict.fromkeys(candidate.origin_address for candidate in candidates))
        travel = await self.resolve_travel_minutes(origins, destination_address, mode)

        slots = list(self._engine.iter_available_slots(candidates, travel, buffer_minutes))
        logger.debug(
            "%d of %d overlap-free candidates bookable for %s (%s)",
            len(slots),
            len(candidates),
            destination_address,
            mode.value,
        )
        return slots

    async def check_slot(
        self,
        *,
        request: BookingRequest,
        appointments: Sequence[AppointmentInput],
        home_base_address: str,
        working_hours: WorkingHoursInput,
        transportation_mode: TransportationMode | str,
        buffer_minutes: Optional[int] = None,
        destination_address: str,
        home_departure: Optional[TimeOfDay] = None,
    ) -> bool:
        """
        Validate one requested start against the window, overlaps and travel.

        The requested time does not have to lie on the slot grid.
        """
        mode = TransportationMode.parse(transportation_mode)
        hours = self._coerce_working_hours(working_hours)
        existing = self._coerce_appointments(appointments)

        candidate = self._engine.candidate_for(
            request,
            existing,
            home_base_address,
            hours,
            home_departure,
        )
        if candidate is None:
            logger.debug("Requested %s is outside %s or overlaps a booking", request.requested_start, hours)
            return False

        travel = await self._estimator.travel_minutes(
            candidate.origin_address,
            destination_address,
            mode,
        )
        return self._engine.meets_travel_buffer(candidate, travel, buffer_minutes)

    async def day_itinerary(
        self,
        *,
        appointments: Sequence[AppointmentInput],
        home_base_address: str,
        transportation_mode: TransportationMode | str,
        grace_minutes: Optional[int] = None,
    ) -> List[TravelLeg]:
        """
        Travel leg and "leave by" time for each appointment of a day.

        The first leg starts at the home base; later legs start at the previous
        appointment's address, or the home base if it has none. Appointments
        without an address are planned with the mode fallback and no grace.
        """
        mode = TransportationMode.parse(transportation_mode)
        existing = self._coerce_appointments(appointments)
        grace = self._estimator.buffers.grace_minutes if grace_minutes is None else grace_minutes
        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def plan_leg(index: int, appointment: Appointment) -> TravelLeg:
            if index == 0:
                origin = home_base_address
            else:
                origin = existing[index - 1].address or home_base_address

            if not appointment.address:
                fallback = self._estimator.buffers.fallback_minutes(mode)
                return self._build_leg(
                    appointment,
                    origin,
                    travel_minutes=fallback,
                    grace_minutes=0,
                    status=TravelStatus.ERROR,
                    error_message="Appointment has no address",
                )

            async with semaphore:
                estimate = await self._estimator.estimate(origin, appointment.address, mode)

            return self._build_leg(
                appointment,
                origin,
                travel_minutes=self._estimator.buffers.travel_minutes_for(estimate, mode),
                grace_minutes=grace,
                status=estimate.status,
                error_message=estimate.error_message,
            )

        return list(
            await asyncio.gather(
                *(plan_leg(index, appointment) for index, appointment in enumerate(existing))
            )
        )

    async def resolve_travel_minutes(
        self,
        origins: Sequence[str],
        destination_address: str,
        mode: TransportationMode,
    ) -> Dict[str, int]:
        """Travel minutes from each origin to the destination, looked up concurrently."""
        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def lookup(origin: str) -> tuple[str, int]:
            async with semaphore:
                minutes = await self._estimator.travel_minutes(origin, destination_address, mode)
            return origin, minutes

        results = await asyncio.gather(*(lookup(origin) for origin in origins))
        return dict(results)

    def _build_leg(
        self,
        appointment: Appointment,
        origin: str,
        *,
        travel_minutes: int,
        grace_minutes: int,
        status: TravelStatus,
        error_message: Optional[str],
    ) -> TravelLeg:
        try:
            leave_by: Optional[TimeOfDay] = self._departures.departure_time(
                appointment.start, travel_minutes
            )
        except InvalidScheduleError:
            logger.warning("Leaving for %s would cross midnight", appointment)
            leave_by = None

        return TravelLeg(
            appointment=appointment,
            origin=origin,
            destination=appointment.address,
            travel_minutes=travel_minutes,
            grace_minutes=grace_minutes,
            total_buffer=self._engine.buffers.required_gap(travel_minutes, grace_minutes),
            status=status,
            leave_by=leave_by,
            error_message=error_message,
        )

    @staticmethod
    def _coerce_working_hours(working_hours: WorkingHoursInput) -> WorkingHours:
        if isinstance(working_hours, WorkingHours):
            return working_hours
        return WorkingHours.from_strings(working_hours["start"], working_hours["end"])

    @staticmethod
    def _coerce_appointments(appointments: Sequence[AppointmentInput]) -> List[Appointment]:
        return [
            appointment if isinstance(appointment, Appointment) else Appointment.from_dict(appointment)
            for appointment in appointments
        ]


def build_travel_oracle(config: AppConfig, mock: bool = False) -> TravelOracleProtocol:
    """
    Create the oracle client selected in the config.

    Raises:
        InvalidConfigurationError: If a real provider has no access token
    """
    oracle_config = config.oracle

    if mock or oracle_config.provider == "mock":
        return MockTravelClient(data_file=oracle_config.mock_data_file)

    token = oracle_config.get_access_token()
    if oracle_config.provider == "google":
        return GoogleDistanceMatrixClient(api_key=token, timeout=oracle_config.timeout_seconds)
    return MapboxTravelClient(access_token=token, timeout=oracle_config.timeout_seconds)


def build_availability_service(config: AppConfig, oracle: TravelOracleProtocol) -> AvailabilityService:
    """Wire the estimator, engine and service from configuration."""
    buffers = BufferCalculator(
        grace_minutes=config.provider.grace_minutes,
        fallback_buffers=config.fallback_buffers,
    )
    estimator = TravelEstimator(
        oracle,
        buffer_calculator=buffers,
        timeout_seconds=config.oracle.timeout_seconds,
    )
    engine = SlotAvailabilityEngine(
        buffer_calculator=buffers,
        granularity_minutes=config.provider.granularity_minutes,
    )
    return AvailabilityService(
        travel_estimator=estimator,
        slot_engine=engine,
        max_concurrent_requests=config.oracle.max_concurrent_requests,
    )
