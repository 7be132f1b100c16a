"""
Weather provider abstraction and OpenWeatherMap client.
"""

import httpx
from typing import List, Optional, Protocol, Tuple
from fieldops.core.config import settings
from fieldops.core.exceptions import ProviderError
from fieldops.core.logging_config import logger
from fieldops.services.routing_engine.weather_impact import (
    WeatherAlert,
    WeatherConditions,
    WeatherImpact,
    analyze_impact,
    severity_from_event,
)


class WeatherProvider(Protocol):
    """Protocol for weather impact providers."""

    def get_weather_impact(self, business_id: int, center: Tuple[float, float]) -> WeatherImpact:
        ...

    def get_weather_alerts(self, business_id: int, center: Tuple[float, float]) -> List[WeatherAlert]:
        ...


class OpenWeatherClient:
    """Client for the OpenWeatherMap One Call API."""

    BASE_URL = "https://api.openweathermap.org/data/3.0/onecall"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_key = api_key or settings.OPENWEATHER_API_KEY
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS
        self.transport = transport
        if not self.api_key:
            logger.warning("OPENWEATHER_API_KEY not set. Weather overlay will report data unavailable.")

    def _fetch(self, center: Tuple[float, float]) -> dict:
        if not self.api_key:
            raise ProviderError("OpenWeather API key missing")
        params = {
            "lat": center[0],
            "lon": center[1],
            "appid": self.api_key,
            "units": "metric",
            "exclude": "minutely,hourly,daily",
        }
        try:
            with httpx.Client(transport=self.transport) as client:
                response = client.get(self.BASE_URL, params=params, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenWeather API error {e.response.status_code}: {e.response.text}")
            raise ProviderError(f"OpenWeather API failed: {e.response.status_code}")
        except httpx.HTTPError as e:
            raise ProviderError(f"OpenWeather request failed: {type(e).__name__}: {e}")

    def get_current_conditions(self, center: Tuple[float, float]) -> WeatherConditions:
        current = self._fetch(center).get("current")
        if not current:
            raise ProviderError("No current conditions in OpenWeather response")
        weather = (current.get("weather") or [{}])[0]
        precipitation = (current.get("rain") or {}).get("1h", 0) + (current.get("snow") or {}).get("1h", 0)
        return WeatherConditions(
            condition=weather.get("main", "Clear"),
            description=weather.get("description"),
            temperature=current.get("temp", 15.0),
            visibility=current.get("visibility", 10000),
            wind_speed=current.get("wind_speed", 0.0),
            precipitation=precipitation,
        )

    def get_weather_impact(self, business_id: int, center: Tuple[float, float]) -> WeatherImpact:
        conditions = self.get_current_conditions(center)
        impact = analyze_impact(conditions)
        logger.info(
            f"Weather impact for business {business_id} at {center}: "
            f"{conditions.condition} risk={impact.risk_level}"
        )
        return impact

    def get_weather_alerts(self, business_id: int, center: Tuple[float, float]) -> List[WeatherAlert]:
        alerts = []
        for raw in self._fetch(center).get("alerts") or []:
            event = raw.get("event", "Weather alert")
            alerts.append(WeatherAlert(
                title=event,
                message=raw.get("description", "").strip(),
                severity=severity_from_event(event),
                affected_areas=list(raw.get("areas", [])),
            ))
        return alerts


def get_weather_client() -> Optional[WeatherProvider]:
    """
    Factory function to get the configured weather provider.
    
    Returns:
        WeatherProvider implementation, or None when disabled
    """
    provider = settings.WEATHER_PROVIDER.lower()
    if provider == "openweather":
        return OpenWeatherClient()
    if provider not in ("", "none"):
        logger.warning(f"Unknown weather provider '{provider}', weather overlay disabled")
    return None
