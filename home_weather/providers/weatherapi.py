"""
WeatherAPI.com Provider

Returns metric values natively (temp_c, wind_kph, vis_km), so the
normalizer only reshapes. Forecast responses carry daily buckets with
hourly sub-entries, astronomy, alerts and air quality directly.

Endpoints:
- /current.json?key&q&aqi=yes
- /forecast.json?key&q&days&aqi=yes&alerts=yes  (1-3 days on free tier)
- /search.json?key&q
"""

import logging
from typing import Any, Dict, List, Optional

from home_weather.config import WEATHERAPI_BASE_URL
from home_weather.models import (
    AirQuality,
    Alert,
    CurrentConditions,
    DailyForecast,
    HourlyPoint,
    LocationCandidate,
    LocationRef,
    ProviderId,
    WeatherSnapshot,
)
from home_weather.providers.base import ProviderClient

logger = logging.getLogger(__name__)

MAX_FORECAST_DAYS = 3


def _location(data: Dict[str, Any]) -> LocationRef:
    loc = data["location"]
    return LocationRef(
        name=loc["name"],
        country=loc.get("country"),
        region=loc.get("region"),
        lat=loc.get("lat"),
        lon=loc.get("lon"),
        timezone=loc.get("tz_id"),
    )


def _current(cur: Dict[str, Any]) -> CurrentConditions:
    condition = cur.get("condition") or {}
    return CurrentConditions(
        temperature=cur["temp_c"],
        feels_like=cur.get("feelslike_c"),
        condition=condition.get("text"),
        icon=condition.get("icon"),
        humidity=cur.get("humidity"),
        wind_speed=cur.get("wind_kph"),
        wind_direction=cur.get("wind_dir"),
        pressure=cur.get("pressure_mb"),
        visibility=cur.get("vis_km"),
        uv_index=cur.get("uv"),
        cloud_cover=cur.get("cloud"),
        last_updated=cur.get("last_updated"),
    )


def _air_quality(cur: Dict[str, Any]) -> Optional[AirQuality]:
    aq = cur.get("air_quality")
    if not aq:
        return None
    return AirQuality(
        co=aq.get("co"),
        no2=aq.get("no2"),
        o3=aq.get("o3"),
        so2=aq.get("so2"),
        pm2_5=aq.get("pm2_5"),
        pm10=aq.get("pm10"),
        us_epa_index=aq.get("us-epa-index"),
        gb_defra_index=aq.get("gb-defra-index"),
    )


def _daily(day: Dict[str, Any]) -> DailyForecast:
    summary = day["day"]
    astro = day.get("astro") or {}
    condition = summary.get("condition") or {}
    hourly = tuple(
        HourlyPoint(
            time=hour["time"],
            temperature=hour.get("temp_c"),
            condition=(hour.get("condition") or {}).get("text"),
            icon=(hour.get("condition") or {}).get("icon"),
            humidity=hour.get("humidity"),
            wind_speed=hour.get("wind_kph"),
            chance_of_rain=hour.get("chance_of_rain"),
        )
        for hour in day.get("hour") or []
    )
    return DailyForecast(
        date=day["date"],
        max_temp=summary.get("maxtemp_c"),
        min_temp=summary.get("mintemp_c"),
        condition=condition.get("text"),
        icon=condition.get("icon"),
        humidity=summary.get("avghumidity"),
        wind_speed=summary.get("maxwind_kph"),
        chance_of_rain=summary.get("daily_chance_of_rain"),
        chance_of_snow=summary.get("daily_chance_of_snow"),
        uv_index=summary.get("uv"),
        sunrise=astro.get("sunrise"),
        sunset=astro.get("sunset"),
        moon_phase=astro.get("moon_phase"),
        hourly=hourly,
    )


def _alerts(data: Dict[str, Any]) -> tuple:
    alerts = (data.get("alerts") or {}).get("alert")
    if not isinstance(alerts, list):
        return ()
    return tuple(
        Alert(
            headline=a.get("headline"),
            description=a.get("desc"),
            severity=a.get("severity"),
            areas=a.get("areas"),
            start=a.get("effective"),
            end=a.get("expires"),
        )
        for a in alerts
    )


def normalize_current(data: Dict[str, Any], observed_at) -> WeatherSnapshot:
    return WeatherSnapshot(
        location=_location(data),
        current=_current(data["current"]),
        air_quality=_air_quality(data["current"]),
        provider=ProviderId.WEATHERAPI,
        observed_at=observed_at,
    )


def normalize_forecast(data: Dict[str, Any], observed_at, days: int = MAX_FORECAST_DAYS) -> WeatherSnapshot:
    forecast_days = data["forecast"]["forecastday"][:days]
    return WeatherSnapshot(
        location=_location(data),
        current=_current(data["current"]),
        forecast=tuple(_daily(day) for day in forecast_days),
        air_quality=_air_quality(data["current"]),
        alerts=_alerts(data),
        provider=ProviderId.WEATHERAPI,
        observed_at=observed_at,
    )


class WeatherAPIProvider(ProviderClient):
    """Client for WeatherAPI.com (primary by default)."""

    provider_id = ProviderId.WEATHERAPI
    BASE_URL = WEATHERAPI_BASE_URL

    async def fetch_current(self, location: str) -> Dict[str, Any]:
        key = self._require_key()
        logger.info(f"[WeatherAPIProvider] Fetching current weather for {location!r}")
        return await self._get_json("current.json", {"key": key, "q": location, "aqi": "yes"})

    async def fetch_forecast(self, location: str, days: int = MAX_FORECAST_DAYS) -> Dict[str, Any]:
        key = self._require_key()
        days = max(1, min(days, MAX_FORECAST_DAYS))
        logger.info(f"[WeatherAPIProvider] Fetching {days}-day forecast for {location!r}")
        return await self._get_json("forecast.json", {
            "key": key,
            "q": location,
            "days": days,
            "aqi": "yes",
            "alerts": "yes",
        })

    async def search(self, query: str) -> List[LocationCandidate]:
        key = self._require_key()
        data = await self._get_json("search.json", {"key": key, "q": query})
        results: List[LocationCandidate] = []
        for item in data or []:
            results.append({
                "id": item.get("id"),
                "name": item["name"],
                "country": item.get("country"),
                "region": item.get("region"),
                "lat": item.get("lat"),
                "lon": item.get("lon"),
                "url": item.get("url"),
            })
        logger.info(f"[WeatherAPIProvider] Search {query!r}: {len(results)} candidates")
        return results

    def normalize_current(self, payload: Dict[str, Any]) -> WeatherSnapshot:
        return self._normalize(normalize_current, payload, self._clock())

    def normalize_forecast(self, payload: Dict[str, Any], days: int = MAX_FORECAST_DAYS) -> WeatherSnapshot:
        return self._normalize(normalize_forecast, payload, self._clock(), days)
