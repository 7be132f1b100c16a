"""
GraphHopper API client for point-to-point distance and duration.

Handles communication with the GraphHopper Routing API.
"""

import httpx
from typing import Dict, Tuple, Optional
from fieldops.core.config import settings
from fieldops.core.exceptions import ProviderError
from fieldops.core.logging_config import logger


class GraphHopperClient:
    """Client for GraphHopper API."""
    
    BASE_URL = "https://graphhopper.com/api/1"
    
    # Map fuel types to GraphHopper profiles
    PROFILE_MAP = {
        "gasoline": "car",
        "diesel": "car",
        "electric": "car",
        "hybrid": "car",
        "truck": "truck",
    }
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize GraphHopper client.
        
        Args:
            api_key: GraphHopper API key (defaults to env var)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the API)
        """
        self.api_key = api_key or settings.GRAPHHOPPER_API_KEY
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS
        self.transport = transport
        if not self.api_key:
            logger.warning("GRAPHHOPPER_API_KEY not set. Directions will fall back to haversine.")
    
    def distance(
        self,
        origin: Tuple[float, float],
        destination: Tuple[float, float],
        vehicle_type: str = "gasoline"
    ) -> Dict[str, float]:
        """
        Driving distance and duration between two points.
        
        Args:
            origin: (lat, lon) of the start point
            destination: (lat, lon) of the end point
            vehicle_type: Fuel type of the team vehicle
            
        Returns:
            Dictionary with 'distance_km' and 'duration_min'
            
        Raises:
            ProviderError: On any HTTP, timeout or payload failure
        """
        if not self.api_key:
            raise ProviderError("GraphHopper API key missing")

        profile = self.PROFILE_MAP.get(vehicle_type, "car")
        # GraphHopper expects [lon, lat] arrays
        payload = {
            "points": [[origin[1], origin[0]], [destination[1], destination[0]]],
            "profile": profile,
            "instructions": False,
            "calc_points": False,
        }
        url = f"{self.BASE_URL}/route?key={self.api_key}"

        try:
            with httpx.Client(transport=self.transport) as client:
                response = client.post(url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"GraphHopper route API error {e.response.status_code}: {e.response.text}")
            raise ProviderError(f"GraphHopper API failed: {e.response.status_code}")
        except httpx.HTTPError as e:
            raise ProviderError(f"GraphHopper request failed: {type(e).__name__}: {e}")

        paths = data.get("paths") or []
        if not paths:
            raise ProviderError("No paths in GraphHopper response")

        # GraphHopper returns distance in meters and time in milliseconds
        return {
            "distance_km": paths[0]["distance"] / 1000.0,
            "duration_min": paths[0]["time"] / 60000.0,
        }
