"""
Mapbox travel-time oracle (Geocoding + Directions APIs).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..domain.exceptions import TravelEstimationError
from ..domain.models import TransportationMode, TravelEstimate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


class MapboxTravelClient:
    """
    Async client that turns two free-form addresses into a travel estimate.

    Each lookup geocodes both addresses and then asks the Directions API for a
    route in the matching profile. Transit is not a Mapbox profile; the
    estimator derives it from a driving lookup.
    """

    GEOCODING_ENDPOINT = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    DIRECTIONS_ENDPOINT = "https://api.mapbox.com/directions/v5/mapbox"

    PROFILES = {
        TransportationMode.DRIVING: "driving-traffic",
        TransportationMode.WALKING: "walking",
        TransportationMode.CYCLING: "cycling",
    }

    def __init__(
        self,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize the Mapbox client.

        Args:
            access_token: Mapbox public or secret access token
            http_client: Optional shared client (tests inject a MockTransport)
            timeout: Per-request timeout in seconds when we own the client
        """
        self.access_token = access_token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "MapboxTravelClient":
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
        Look up the route between two addresses.

        Returns:
            An OK estimate, or an ERROR estimate when the provider answers but
            has no usable route

        Raises:
            TravelEstimationError: On transport failures or malformed responses
        """
        profile = self.PROFILES.get(TransportationMode.parse(mode))
        if profile is None:
            raise TravelEstimationError(f"Mapbox has no routing profile for '{mode}'")

        origin_coords = await self._geocode(origin)
        destination_coords = await self._geocode(destination)

        if origin_coords is None or destination_coords is None:
            return TravelEstimate.failed("Unable to geocode one or both addresses")

        coordinates = (
            f"{origin_coords.lng},{origin_coords.lat};"
            f"{destination_coords.lng},{destination_coords.lat}"
        )
        data = await self._get_json(
            f"{self.DIRECTIONS_ENDPOINT}/{profile}/{coordinates}",
            params={
                "access_token": self.access_token,
                "geometries": "geojson",
                "steps": "false",
                "overview": "false",
            },
        )

        return self._parse_directions_response(data)

    async def _geocode(self, address: str) -> Optional[Coordinates]:
        data = await self._get_json(
            f"{self.GEOCODING_ENDPOINT}/{quote(address, safe='')}.json",
            params={"access_token": self.access_token, "limit": 1},
        )

        features = data.get("features") or []
        if not features:
            logger.debug("Mapbox could not geocode %r", address)
            return None

        try:
            lng, lat = features[0]["center"][:2]
            return Coordinates(lat=float(lat), lng=float(lng))
        except (KeyError, TypeError, ValueError) as exc:
            raise TravelEstimationError(f"Malformed geocoding response: {exc}") from exc

    def _parse_directions_response(self, response_data: Dict[str, Any]) -> TravelEstimate:
        """
        Parse a Directions API response into a travel estimate.

        Response format:
        {
            "code": "Ok",
            "routes": [
                {"duration": 1234.5, "distance": 9876.5, "legs": [...]}
            ]
        }
        """
        routes = response_data.get("routes") or []

        if response_data.get("code") != "Ok" or not routes:
            return TravelEstimate.failed(response_data.get("message") or "No route found")

        try:
            route = routes[0]
            return TravelEstimate.from_seconds(route["duration"], route.get("distance", 0.0))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TravelEstimationError(f"Malformed directions response: {exc}") from exc

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise TravelEstimationError(
                f"Mapbox returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            # The URL carries the access token, so only the class name is surfaced
            raise TravelEstimationError(
                f"Mapbox request failed: {type(exc).__name__}"
            ) from exc
        except ValueError as exc:
            raise TravelEstimationError(f"Mapbox returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise TravelEstimationError("Mapbox returned an unexpected payload")

        return data
