"""
OpenWeatherMap Provider

Queried with units=metric, which still reports wind in m/s and visibility
in metres; both are converted here (x3.6 and /1000) so nothing downstream
ever sees provider units.

The 5-day forecast is a flat list of 3-hour steps (cnt=40). Steps are
grouped by calendar date: max/min is a running fold over each step's
temperature and the day's condition is its most frequent description,
ties going to the one seen first.

Free tier has no UV index, air quality, alerts or astronomy.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from home_weather.config import OPENWEATHER_BASE_URL
from home_weather.models import (
    CurrentConditions,
    DailyForecast,
    HourlyPoint,
    LocationRef,
    ProviderId,
    WeatherSnapshot,
)
from home_weather.providers.base import ProviderClient, parse_coordinates
from home_weather.units import degrees_to_compass, meters_to_km, ms_to_kmh

logger = logging.getLogger(__name__)

FORECAST_STEPS = 40  # 5 days x 8 three-hour steps
ICON_URL = "https://openweathermap.org/img/wn/{icon}@2x.png"


def _icon(weather: Dict[str, Any]) -> Optional[str]:
    icon = weather.get("icon")
    return ICON_URL.format(icon=icon) if icon else None


def _iso_from_unix(ts: Optional[int]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def most_common_condition(conditions: List[str]) -> Optional[str]:
    """
    Most frequent condition string; ties go to the first one seen.

    Counter keeps insertion order and most_common() sorts stably, so the
    first-seen condition wins among equal counts.
    """
    if not conditions:
        return None
    return Counter(conditions).most_common(1)[0][0]


def _current_from_entry(entry: Dict[str, Any], last_updated: Optional[str]) -> CurrentConditions:
    main = entry["main"]
    weather = entry["weather"][0]
    wind = entry.get("wind") or {}
    return CurrentConditions(
        temperature=main["temp"],
        feels_like=main.get("feels_like"),
        condition=weather.get("description"),
        icon=_icon(weather),
        humidity=main.get("humidity"),
        wind_speed=ms_to_kmh(wind.get("speed")),
        wind_direction=degrees_to_compass(wind.get("deg")),
        pressure=main.get("pressure"),
        visibility=meters_to_km(entry.get("visibility")),
        uv_index=None,
        cloud_cover=(entry.get("clouds") or {}).get("all"),
        last_updated=last_updated,
    )


def normalize_current(data: Dict[str, Any], observed_at: datetime) -> WeatherSnapshot:
    sys_info = data.get("sys") or {}
    coord = data.get("coord") or {}
    location = LocationRef(
        name=data["name"],
        country=sys_info.get("country"),
        region=sys_info.get("country"),
        lat=coord.get("lat"),
        lon=coord.get("lon"),
    )
    return WeatherSnapshot(
        location=location,
        current=_current_from_entry(data, _iso_from_unix(data.get("dt")) or observed_at.isoformat()),
        provider=ProviderId.OPENWEATHERMAP,
        observed_at=observed_at,
    )


def group_forecast_by_day(entries: List[Dict[str, Any]]) -> List[DailyForecast]:
    """Collapse 3-hour steps into one DailyForecast per calendar date."""
    days: Dict[str, Dict[str, Any]] = {}

    for item in entries:
        date, _, clock = item["dt_txt"].partition(" ")
        temp = item["main"]["temp"]
        weather = item["weather"][0]
        bucket = days.get(date)
        if bucket is None:
            bucket = days[date] = {
                "max_temp": temp,
                "min_temp": temp,
                "conditions": [],
                "hourly": [],
                "icon": _icon(weather),
            }

        bucket["max_temp"] = max(bucket["max_temp"], temp)
        bucket["min_temp"] = min(bucket["min_temp"], temp)
        bucket["conditions"].append(weather.get("description"))
        bucket["hourly"].append(HourlyPoint(
            time=f"{date} {clock[:5]}",
            temperature=temp,
            condition=weather.get("description"),
            icon=_icon(weather),
            humidity=item["main"].get("humidity"),
            wind_speed=ms_to_kmh((item.get("wind") or {}).get("speed")),
            chance_of_rain=item.get("pop", 0) * 100,
        ))

    forecasts: List[DailyForecast] = []
    for date, bucket in days.items():
        first = bucket["hourly"][0]
        forecasts.append(DailyForecast(
            date=date,
            max_temp=bucket["max_temp"],
            min_temp=bucket["min_temp"],
            condition=most_common_condition(bucket["conditions"]),
            icon=bucket["icon"],
            humidity=first.humidity,
            wind_speed=first.wind_speed,
            chance_of_rain=first.chance_of_rain,
            hourly=tuple(bucket["hourly"]),
        ))
        logger.debug(f"[OpenWeatherMapProvider] {date}: Hi={bucket['max_temp']}C, Lo={bucket['min_temp']}C, "
                     f"{len(bucket['hourly'])} steps")

    return forecasts


def normalize_forecast(data: Dict[str, Any], observed_at: datetime, days: int = 5) -> WeatherSnapshot:
    entries = data["list"]
    city = data["city"]
    coord = city.get("coord") or {}
    location = LocationRef(
        name=city["name"],
        country=city.get("country"),
        region=city["name"],
        lat=coord.get("lat"),
        lon=coord.get("lon"),
        timezone="UTC",
    )
    first = entries[0]
    return WeatherSnapshot(
        location=location,
        current=_current_from_entry(first, _iso_from_unix(first.get("dt"))),
        forecast=tuple(group_forecast_by_day(entries)[:days]),
        provider=ProviderId.OPENWEATHERMAP,
        observed_at=observed_at,
    )


class OpenWeatherMapProvider(ProviderClient):
    """Client for OpenWeatherMap (fallback by default)."""

    provider_id = ProviderId.OPENWEATHERMAP
    BASE_URL = OPENWEATHER_BASE_URL

    def _location_params(self, location: str) -> Dict[str, Any]:
        coords = parse_coordinates(location)
        if coords:
            lat, lon = coords
            return {"lat": lat, "lon": lon}
        return {"q": location}

    async def fetch_current(self, location: str) -> Dict[str, Any]:
        key = self._require_key()
        logger.info(f"[OpenWeatherMapProvider] Fetching current weather for {location!r}")
        params = {**self._location_params(location), "appid": key, "units": "metric"}
        return await self._get_json("weather", params)

    async def fetch_forecast(self, location: str, days: int = 5) -> Dict[str, Any]:
        key = self._require_key()
        logger.info(f"[OpenWeatherMapProvider] Fetching forecast for {location!r}")
        params = {**self._location_params(location), "appid": key, "units": "metric", "cnt": FORECAST_STEPS}
        return await self._get_json("forecast", params)

    def normalize_current(self, payload: Dict[str, Any]) -> WeatherSnapshot:
        return self._normalize(normalize_current, payload, self._clock())

    def normalize_forecast(self, payload: Dict[str, Any], days: int = 5) -> WeatherSnapshot:
        return self._normalize(normalize_forecast, payload, self._clock(), days)
