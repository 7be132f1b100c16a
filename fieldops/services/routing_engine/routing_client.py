"""
Directions provider abstraction.

Provides a unified interface for external directions providers. The provider
is optional: without one every leg is estimated with the haversine formula.
"""

from typing import Dict, Tuple, Optional, Protocol
from fieldops.core.config import settings
from fieldops.core.logging_config import logger
from fieldops.services.routing_engine.graphhopper_client import GraphHopperClient

class DirectionsProvider(Protocol):
    """Protocol for directions providers."""
    
    def distance(
        self,
        origin: Tuple[float, float],
        destination: Tuple[float, float],
        vehicle_type: str = "gasoline"
    ) -> Dict[str, float]:
        """Return {'distance_km', 'duration_min'} for one leg."""
        ...


def get_directions_client() -> Optional[DirectionsProvider]:
    """
    Factory function to get the configured directions provider.
    
    Returns:
        DirectionsProvider implementation, or None when disabled
    """
    provider = settings.DIRECTIONS_PROVIDER.lower()
    
    if provider == "graphhopper":
        return GraphHopperClient()
    if provider not in ("", "none"):
        logger.warning(f"Unknown directions provider '{provider}', using haversine estimates")
    return None
