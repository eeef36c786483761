"""
Google Maps Distance Matrix travel-time oracle.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..domain.exceptions import TravelEstimationError
from ..domain.models import TransportationMode, TravelEstimate


class GoogleDistanceMatrixClient:
    """
    Async client for the Distance Matrix API, one origin and one destination
    per request. Driving requests ask for traffic-aware durations.
    """

    DISTANCE_MATRIX_ENDPOINT = "https://maps.googleapis.com/maps/api/distancematrix/json"

    MODES = {
        TransportationMode.DRIVING: "driving",
        TransportationMode.WALKING: "walking",
        TransportationMode.CYCLING: "bicycling",
    }

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "GoogleDistanceMatrixClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_travel_time(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode,
    ) -> TravelEstimate:
        """
        Look up travel time between two addresses.

        Raises:
            TravelEstimationError: On transport failures or malformed responses
        """
        google_mode = self.MODES.get(TransportationMode.parse(mode))
        if google_mode is None:
            raise TravelEstimationError(f"Distance Matrix lookups do not support '{mode}'")

        params = {
            "origins": origin,
            "destinations": destination,
            "mode": google_mode,
            "key": self.api_key,
        }
        if google_mode == "driving":
            params["departure_time"] = "now"
            params["traffic_model"] = "best_guess"

        try:
            response = await self._client.get(self.DISTANCE_MATRIX_ENDPOINT, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise TravelEstimationError(
                f"Distance Matrix returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TravelEstimationError(
                f"Failed to connect to mapping service: {type(exc).__name__}"
            ) from exc
        except ValueError as exc:
            raise TravelEstimationError(f"Distance Matrix returned invalid JSON: {exc}") from exc

        return self._parse_matrix_response(data)

    def _parse_matrix_response(self, response_data: Dict[str, Any]) -> TravelEstimate:
        """
        Parse the first element of a Distance Matrix response.

        Response format:
        {
            "status": "OK",
            "rows": [
                {"elements": [
                    {
                        "status": "OK",
                        "duration": {"value": 1260},
                        "duration_in_traffic": {"value": 1500},
                        "distance": {"value": 15200}
                    }
                ]}
            ]
        }
        """
        if not isinstance(response_data, dict):
            raise TravelEstimationError("Distance Matrix returned an unexpected payload")

        if response_data.get("status") != "OK":
            return TravelEstimate.failed(
                response_data.get("error_message") or "Failed to calculate travel time"
            )

        try:
            rows = response_data.get("rows") or []
            element = (rows[0].get("elements") or [None])[0] if rows else None
        except (AttributeError, IndexError, TypeError) as exc:
            raise TravelEstimationError(f"Malformed Distance Matrix response: {exc}") from exc

        if element is not None and not isinstance(element, dict):
            raise TravelEstimationError(f"Malformed Distance Matrix element: {element!r}")

        if not element or element.get("status") != "OK":
            return TravelEstimate.failed("No route found between the addresses")

        try:
            duration = element.get("duration_in_traffic") or element.get("duration") or {}
            distance = element.get("distance") or {}
            return TravelEstimate.from_seconds(duration["value"], distance.get("value", 0))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TravelEstimationError(f"Malformed Distance Matrix element: {exc}") from exc
