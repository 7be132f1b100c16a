"""
Weather impact analysis.

Converts raw current conditions into a route impact assessment: per-factor
impact levels, an overall risk level with a safety score, a suggested delay
and equipment recommendations.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
NONE = "none"


@dataclass
class WeatherConditions:
    condition: str  # e.g. "Clear", "Rain", "Snow"
    temperature: float  # Celsius
    visibility: float  # metres
    wind_speed: float  # m/s
    precipitation: float = 0.0  # mm in the last hour
    description: Optional[str] = None


@dataclass
class WeatherImpact:
    risk_level: str
    safety_score: int
    suggested_delay_minutes: int = 0
    equipment_recommendations: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    impact_factors: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class WeatherAlert:
    title: str
    message: str
    severity: str  # low | medium | high | critical
    affected_areas: List[str] = field(default_factory=list)


def _visibility(visibility_km: float) -> Tuple[str, str]:
    if visibility_km < 1:
        return HIGH, "Severely reduced visibility - routes may be unsafe"
    if visibility_km < 3:
        return MEDIUM, "Reduced visibility - slower speeds required"
    if visibility_km < 5:
        return LOW, "Slightly reduced visibility - exercise caution"
    return NONE, "Clear visibility - no impact on routes"


def _precipitation(precipitation: float, condition: str) -> Tuple[str, str]:
    if condition == "Snow" or precipitation > 15:
        return HIGH, "Heavy precipitation - significant delays expected"
    if "Rain" in condition or precipitation > 8:
        return MEDIUM, "Moderate precipitation - some delays possible"
    if precipitation > 2:
        return LOW, "Light precipitation - minimal impact"
    return NONE, "No precipitation - no impact on routes"


def _wind(wind_kmh: float) -> Tuple[str, str]:
    if wind_kmh > 30:
        return HIGH, "Strong winds - vehicle stability concerns"
    if wind_kmh > 20:
        return MEDIUM, "Moderate winds - increased fuel consumption"
    if wind_kmh > 15:
        return LOW, "Light winds - minimal impact"
    return NONE, "Calm conditions - no wind impact"


def _temperature(temperature: float) -> Tuple[str, str]:
    if temperature < -10 or temperature > 40:
        return HIGH, "Extreme temperature - equipment and safety concerns"
    if temperature < 0 or temperature > 35:
        return MEDIUM, "Challenging temperature - increased precautions needed"
    if temperature < 5 or temperature > 30:
        return LOW, "Mild temperature impact - monitor conditions"
    return NONE, "Comfortable temperature - no impact"


def _risk(levels: List[str], condition: str) -> Tuple[str, int]:
    high = levels.count(HIGH)
    medium = levels.count(MEDIUM)
    if high >= 2 or condition == "Snow":
        return "extreme", 20
    if high >= 1 or medium >= 3:
        return "high", 40
    if medium >= 2:
        return "medium", 65
    return "low", 85


def analyze_impact(conditions: WeatherConditions) -> WeatherImpact:
    condition = conditions.condition or ""
    factors = {
        "visibility": _visibility(conditions.visibility / 1000.0),
        "precipitation": _precipitation(conditions.precipitation, condition),
        "wind": _wind(conditions.wind_speed * 3.6),
        "temperature": _temperature(conditions.temperature),
    }
    risk_level, safety_score = _risk([level for level, _ in factors.values()], condition)

    delay = 0
    if "Rain" in condition:
        delay += 30 if conditions.precipitation > 10 else 15
    if condition == "Snow":
        delay += 60
    if conditions.visibility < 3000:
        delay += 20
    if conditions.wind_speed > 7:
        delay += 15

    equipment = []
    if "Rain" in condition:
        equipment += ["Waterproof equipment covers", "Non-slip footwear"]
    if condition == "Snow":
        equipment += ["Winter tires or chains", "De-icing equipment", "Emergency warming supplies"]
    if conditions.visibility < 5000:
        equipment += ["High-visibility safety vests", "Portable lighting equipment"]

    recommendations = []
    if risk_level == "extreme":
        recommendations += [
            "Consider postponing non-critical routes",
            "Ensure all vehicles have emergency equipment",
            "Maintain constant communication with field teams",
        ]
    if "Rain" in condition or conditions.precipitation > 5:
        recommendations += ["Reduce driving speeds by 20-30%", "Increase following distances"]
    if condition == "Snow":
        recommendations += ["Use winter tires or chains where required", "Allow extra time for all routes"]
    if conditions.visibility < 3000:
        recommendations += ["Use fog lights when necessary", "Reduce speeds significantly"]
    if conditions.wind_speed > 7:
        recommendations += ["Secure all loose equipment and materials", "Avoid exposed routes where possible"]
    if risk_level in ("high", "extreme"):
        recommendations.append("Inform customers of potential delays")

    return WeatherImpact(
        risk_level=risk_level,
        safety_score=safety_score,
        suggested_delay_minutes=delay,
        equipment_recommendations=equipment[:5],
        recommendations=recommendations[:8],
        impact_factors={name: {"level": level, "impact": text} for name, (level, text) in factors.items()},
    )


def severity_from_event(event: str) -> str:
    """Map a provider alert name (e.g. 'Flood Warning') onto our severity scale."""
    text = (event or "").lower()
    if "emergency" in text:
        return "critical"
    if "warning" in text:
        return "high"
    if "watch" in text:
        return "medium"
    return "low"
