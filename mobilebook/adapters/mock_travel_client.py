"""
Mock travel-time oracle for running without a mapping provider account.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..domain.models import TransportationMode, TravelEstimate

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_travel_data.json"

LegKey = Tuple[str, str, TransportationMode]


class MockTravelClient:
    """
    Mock oracle that answers from a table of known legs.

    The table is loaded from mock_travel_data.json (or a caller-supplied
    file). Legs are symmetric; a leg missing from the table is answered like
    a provider that found no route.
    """

    def __init__(self, data_file: Optional[Path] = None, legs: Optional[List[dict]] = None):
        """
        Initialize the mock client.

        Args:
            data_file: Optional JSON file with a list of legs
            legs: Optional in-memory legs, used instead of any file
        """
        self.calls: List[LegKey] = []
        self._legs: Dict[LegKey, TravelEstimate] = {}

        if legs is None:
            legs = self._load_legs(data_file or DEFAULT_DATA_FILE)

        for leg in legs:
            self._add_leg(leg)

    def _load_legs(self, data_file: Path) -> List[dict]:
        """Load mock legs from a JSON file."""
        if not data_file.exists():
            logger.warning("Mock travel data %s not found; every lookup will fail", data_file)
            return []

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Mock travel data in {data_file} must be a list of legs")
        return data

    def _add_leg(self, leg: dict) -> None:
        mode = TransportationMode.parse(leg.get("mode", TransportationMode.DRIVING.value))
        estimate = TravelEstimate(
            duration_minutes=int(leg["duration_minutes"]),
            distance_meters=float(leg.get("distance_meters", 0.0)),
        )
        origin = self._normalize(leg["origin"])
        destination = self._normalize(leg["destination"])

        self._legs[(origin, destination, mode)] = estimate
        self._legs.setdefault((destination, origin, mode), estimate)

    @staticmethod
    def _normalize(address: str) -> str:
        return " ".join(address.split()).lower()

    async def fetch_travel_time(
        self,
        origin: str,
        destination: str,
        mode: TransportationMode,
    ) -> TravelEstimate:
        """
        Return the tabled estimate for the leg.

        Returns:
            The known estimate, or an ERROR estimate for unknown legs
        """
        key = (self._normalize(origin), self._normalize(destination), TransportationMode.parse(mode))
        self.calls.append(key)

        estimate = self._legs.get(key)
        if estimate is None:
            return TravelEstimate.failed("No route found")
        return estimate

    async def aclose(self) -> None:
        """Mock close (does nothing)."""
        pass
