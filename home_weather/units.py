"""Unit conversions applied at the provider boundary."""

from typing import Optional

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def ms_to_kmh(value: Optional[float]) -> Optional[float]:
    """Metres per second to kilometres per hour."""
    if value is None:
        return None
    return float(value) * 3.6


def meters_to_km(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return float(value) / 1000


def degrees_to_compass(degrees: Optional[float]) -> Optional[str]:
    """
    Convert a meteorological wind bearing to a 16-point compass label.

    WeatherAPI already reports "WSW" style labels, so OpenWeatherMap's
    numeric bearings are mapped onto the same vocabulary.
    """
    if degrees is None:
        return None
    index = int((float(degrees) % 360) / 22.5 + 0.5) % 16
    return COMPASS_POINTS[index]
