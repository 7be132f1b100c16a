"""
Weather overlay for persisted routes.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from fieldops.core.logging_config import logger
from fieldops.models.route import Route
from fieldops.schemas.route import WeatherSummary
from fieldops.services.routing_engine.weather_client import WeatherProvider
from fieldops.services.routing_engine.weather_impact import HIGH, MEDIUM, WeatherAlert, WeatherImpact

UNAVAILABLE_WARNING = "Weather data unavailable - monitor conditions manually"
FALLBACK_EQUIPMENT = ["Monitor weather conditions", "Follow standard safety protocols"]


def route_center(route: Route) -> Optional[Tuple[float, float]]:
    points = [(s.latitude, s.longitude) for s in route.stops if s.latitude is not None and s.longitude is not None]
    if not points:
        return None
    return (
        sum(lat for lat, _ in points) / len(points),
        sum(lon for _, lon in points) / len(points),
    )


def impact_warnings(impact: WeatherImpact) -> List[str]:
    warnings = []
    if impact.risk_level in ("high", "extreme"):
        warnings.append(f"{impact.risk_level.upper()} RISK: Weather conditions may significantly impact this route")
    if impact.suggested_delay_minutes > 0:
        warnings.append(f"Suggested delay: {impact.suggested_delay_minutes} minutes due to weather conditions")
    for factor, detail in impact.impact_factors.items():
        if detail.get("level") in (HIGH, MEDIUM):
            warnings.append(f"{factor.upper()}: {detail.get('impact')}")
    return warnings


def unavailable_summary() -> WeatherSummary:
    return WeatherSummary(
        risk_level="unknown",
        safety_score=50,
        suggested_delay_minutes=0,
        equipment_recommendations=list(FALLBACK_EQUIPMENT),
        warnings=[UNAVAILABLE_WARNING],
    )


def alert_applies(alert: WeatherAlert, route: Route) -> bool:
    if not alert.affected_areas:
        return True
    addresses = " ".join(s.address or "" for s in route.stops).lower()
    return any(area.lower() in addresses for area in alert.affected_areas)


class WeatherOverlay:
    """
    Annotates routes with weather risk; never fails the caller.
    """

    def __init__(self, provider: Optional[WeatherProvider] = None):
        self.provider = provider

    def assess(self, business_id: int, route: Route) -> WeatherSummary:
        center = route_center(route)
        if self.provider is None or center is None:
            return unavailable_summary()
        try:
            impact = self.provider.get_weather_impact(business_id, center)
        except Exception as e:
            logger.warning(f"Weather provider failed for route {route.route_code}: {type(e).__name__}: {e}")
            return unavailable_summary()
        return WeatherSummary(
            risk_level=impact.risk_level,
            safety_score=impact.safety_score,
            suggested_delay_minutes=impact.suggested_delay_minutes,
            equipment_recommendations=impact.equipment_recommendations,
            recommendations=impact.recommendations,
            warnings=impact_warnings(impact),
        )

    def alerts(self, business_id: int, routes: Sequence[Route]) -> List[WeatherAlert]:
        centers = [c for c in (route_center(r) for r in routes) if c is not None]
        if self.provider is None or not centers:
            return []
        center = (
            sum(lat for lat, _ in centers) / len(centers),
            sum(lon for _, lon in centers) / len(centers),
        )
        try:
            return self.provider.get_weather_alerts(business_id, center)
        except Exception as e:
            logger.warning(f"Weather alerts unavailable: {type(e).__name__}: {e}")
            return []

    def annotate(self, db: Session, business_id: int, routes: Sequence[Route]) -> Dict[int, WeatherSummary]:
        """
        Attach weather considerations to each route and spread the suggested
        delay evenly across its stops.
        
        Returns:
            Weather summary per route id
        """
        summaries = {route.id: self.assess(business_id, route) for route in routes}

        for alert in self.alerts(business_id, routes):
            if alert.severity not in ("high", "critical"):
                continue
            for route in routes:
                if alert_applies(alert, route):
                    summary = summaries[route.id]
                    summary.warnings = [
                        *summary.warnings,
                        f"{alert.severity.upper()} ALERT: {alert.title} - {alert.message}",
                    ]

        for route in routes:
            summary = summaries[route.id]
            route.weather_considerations = summary.model_dump()
            if route.stops:
                per_stop = round(summary.suggested_delay_minutes / len(route.stops))
                for stop in route.stops:
                    stop.weather_delay_minutes = per_stop
            db.add(route)
        db.commit()
        logger.info(f"Weather overlay applied to {len(routes)} routes")
        return summaries
