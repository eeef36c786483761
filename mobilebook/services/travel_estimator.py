"""
Travel estimation on top of an unreliable travel-time oracle.

The estimator never lets an oracle failure escape: timeouts, transport errors
and provider-side errors all come back as an ERROR estimate, and callers that
need a number get the transportation mode's fallback buffer instead.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Protocol

from ..domain.buffers import BufferCalculator
from ..domain.exceptions import TravelEstimationError
from ..domain.models import TransportationMode, TravelEstimate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Transit estimates are scaled from a driving lookup
TRANSIT_DRIVING_FACTOR = 1.5


class TravelOracleProtocol(Protocol):
    """Protocol describing the oracle behaviour needed by the estimator."""

    async def fetch_travel_time(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode,
    ) -> TravelEstimate:
        """Return a travel estimate for one leg (driving, walking or cycling)."""


class TravelEstimator:
    """
    Wraps a travel-time oracle with the scheduling rules around it.

    - identical addresses cost nothing and skip the oracle
    - transit is a driving lookup scaled by 1.5
    - every oracle call is bounded by ``timeout_seconds``
    - no caching and no retries: each call queries afresh
    """

    def __init__(
        self,
        oracle: TravelOracleProtocol,
        buffer_calculator: Optional[BufferCalculator] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self._oracle = oracle
        self.buffers = buffer_calculator or BufferCalculator()
        self.timeout_seconds = timeout_seconds

    async def estimate(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode | str,
    ) -> TravelEstimate:
        """
        Estimate the trip from ``origin`` to ``destination``.

        Returns:
            An OK estimate, or an ERROR estimate carrying the failure reason
        """
        mode = TransportationMode.parse(mode)

        if origin.strip() == destination.strip():
            return TravelEstimate.zero()

        if mode is TransportationMode.TRANSIT:
            driving = await self._query(origin, destination, TransportationMode.DRIVING)
            if not driving.ok:
                return driving
            return TravelEstimate(
                duration_minutes=math.ceil(driving.duration_minutes * TRANSIT_DRIVING_FACTOR),
                distance_meters=driving.distance_meters,
            )

        return await self._query(origin, destination, mode)

    async def travel_minutes(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode | str,
    ) -> int:
        """Travel minutes to plan with, substituting the mode fallback on failure."""
        mode = TransportationMode.parse(mode)
        estimate = await self.estimate(origin, destination, mode)
        return self.buffers.travel_minutes_for(estimate, mode)

    async def _query(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode,
    ) -> TravelEstimate:
        try:
            estimate = await asyncio.wait_for(
                self._oracle.fetch_travel_time(origin, destination, mode),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Travel lookup %r -> %r (%s) timed out after %.1fs",
                origin,
                destination,
                mode.value,
                self.timeout_seconds,
            )
            return TravelEstimate.failed(
                f"Travel lookup timed out after {self.timeout_seconds:g}s"
            )
        except TravelEstimationError as exc:
            logger.warning(
                "Travel lookup %r -> %r (%s) failed: %s",
                origin,
                destination,
                mode.value,
                exc,
            )
            return TravelEstimate.failed(str(exc))

        if not estimate.ok:
            logger.warning(
                "Travel oracle returned an error for %r -> %r (%s): %s",
                origin,
                destination,
                mode.value,
                estimate.error_message,
            )

        return estimate
