"""
Geo estimation: great-circle distances, travel time and fuel cost.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from fieldops.core.config import settings
from fieldops.core.logging_config import logger
from fieldops.models.team import FuelType
from fieldops.services.routing_engine.routing_client import DirectionsProvider

Coordinate = Tuple[float, float]  # (lat, lon)

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two (lat, lon) points in kilometres."""
    lat1, lon1 = a
    lat2, lon2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def travel_minutes(distance_km: float, speed_kmh: Optional[float] = None) -> int:
    speed = speed_kmh or settings.AVERAGE_SPEED_KMH
    return round(distance_km / speed * 60)


@dataclass
class FuelProfile:
    fuel_type: FuelType = FuelType.gasoline
    consumption: float = 8.0  # per 100 km
    unit_price: float = 1.5

    @classmethod
    def for_team(cls, team=None) -> "FuelProfile":
        """Fuel profile of a team vehicle, filling gaps with configured defaults."""
        fuel_type = (team.fuel_type if team is not None else None) or FuelType.gasoline
        consumption = (team.fuel_consumption if team is not None else None) or settings.DEFAULT_FUEL_CONSUMPTION
        if fuel_type == FuelType.electric:
            default_price = settings.DEFAULT_ELECTRICITY_PRICE_PER_KWH
        else:
            default_price = settings.DEFAULT_FUEL_PRICE_PER_LITER
        unit_price = (team.fuel_price_per_unit if team is not None else None) or default_price
        return cls(fuel_type=fuel_type, consumption=consumption, unit_price=unit_price)


def fuel_cost(distance_km: float, profile: FuelProfile) -> float:
    return round((distance_km / 100.0) * profile.consumption * profile.unit_price, 2)


@dataclass
class Leg:
    distance_km: float
    duration_min: float
    source: str = "haversine"


@dataclass
class RouteMeasure:
    legs: List[Leg] = field(default_factory=list)

    @property
    def total_distance_km(self) -> float:
        return sum(leg.distance_km for leg in self.legs)

    @property
    def travel_minutes(self) -> int:
        return round(sum(leg.duration_min for leg in self.legs))


class GeoEstimator:
    """
    Distance and travel-time estimator.

    Uses the directions provider for a leg when one is configured and falls
    back to haversine at the configured average speed on any provider failure.
    """

    def __init__(self, directions: Optional[DirectionsProvider] = None):
        self.directions = directions

    def leg(self, origin: Coordinate, destination: Coordinate, vehicle_type: str = "gasoline") -> Leg:
        if self.directions is not None:
            try:
                result = self.directions.distance(origin, destination, vehicle_type)
                return Leg(
                    distance_km=float(result["distance_km"]),
                    duration_min=float(result["duration_min"]),
                    source="provider",
                )
            except Exception as e:
                logger.warning(f"Directions provider failed, using haversine: {type(e).__name__}: {e}")

        distance = haversine_km(origin, destination)
        return Leg(distance_km=distance, duration_min=distance / settings.AVERAGE_SPEED_KMH * 60)

    def measure(self, points: Sequence[Coordinate], vehicle_type: str = "gasoline") -> RouteMeasure:
        """
        Measure consecutive legs along an ordered list of points.

        A single point (or none) yields zero distance and time.
        """
        legs = [
            self.leg(points[i - 1], points[i], vehicle_type)
            for i in range(1, len(points))
        ]
        return RouteMeasure(legs=legs)
