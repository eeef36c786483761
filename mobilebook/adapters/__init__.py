"""
Adapters layer - External integrations (travel-time providers).
"""

from .google_client import GoogleDistanceMatrixClient
from .mapbox_client import MapboxTravelClient
from .mock_travel_client import MockTravelClient

__all__ = ["GoogleDistanceMatrixClient", "MapboxTravelClient", "MockTravelClient"]
