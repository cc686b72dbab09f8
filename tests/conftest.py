"""
Shared fixtures and payload builders for the Home Weather tests.

Payloads mirror the JSON the real APIs return, trimmed to the fields the
normalizers read.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from home_weather.models import (
    AirQuality,
    CurrentConditions,
    LocationRef,
    ProviderId,
    WeatherSnapshot,
)

logging.basicConfig(level=logging.DEBUG)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for datetime-based components."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


def make_snapshot(
    temperature: Optional[float] = 20.0,
    condition: Optional[str] = "Sunny",
    pm2_5: Optional[float] = None,
    pm10: Optional[float] = None,
    provider: ProviderId = ProviderId.WEATHERAPI,
    observed_at: datetime = T0,
    name: str = "London",
) -> WeatherSnapshot:
    air_quality = None
    if pm2_5 is not None or pm10 is not None:
        air_quality = AirQuality(pm2_5=pm2_5, pm10=pm10)
    return WeatherSnapshot(
        location=LocationRef(name=name, country="United Kingdom", region="City of London"),
        current=CurrentConditions(
            temperature=temperature,
            feels_like=temperature,
            condition=condition,
            humidity=60,
            wind_speed=12.0,
            wind_direction="SW",
            pressure=1012.0,
            visibility=10.0,
            uv_index=4.0,
            cloud_cover=25,
            last_updated=observed_at.isoformat(),
        ),
        air_quality=air_quality,
        provider=provider,
        observed_at=observed_at,
    )


# ---------------------------------------------------------------------------
# WeatherAPI.com payloads
# ---------------------------------------------------------------------------

def weatherapi_location(name: str = "London") -> Dict[str, Any]:
    return {
        "name": name,
        "region": "City of London, Greater London",
        "country": "United Kingdom",
        "lat": 51.52,
        "lon": -0.11,
        "tz_id": "Europe/London",
    }


def weatherapi_current(temp_c: float = 18.0, text: str = "Partly cloudy") -> Dict[str, Any]:
    return {
        "location": weatherapi_location(),
        "current": {
            "last_updated": "2024-06-01 12:45",
            "temp_c": temp_c,
            "feelslike_c": temp_c - 1,
            "condition": {"text": text, "icon": "//cdn.weatherapi.com/weather/64x64/day/116.png"},
            "humidity": 72,
            "wind_kph": 15.1,
            "wind_dir": "WSW",
            "pressure_mb": 1015.0,
            "vis_km": 10.0,
            "uv": 5.0,
            "cloud": 50,
            "air_quality": {
                "co": 230.3,
                "no2": 13.5,
                "o3": 54.0,
                "so2": 1.9,
                "pm2_5": 8.4,
                "pm10": 12.1,
                "us-epa-index": 1,
                "gb-defra-index": 1,
            },
        },
    }


def weatherapi_forecast(days: int = 3) -> Dict[str, Any]:
    payload = weatherapi_current()
    payload["forecast"] = {
        "forecastday": [
            {
                "date": f"2024-06-0{i + 1}",
                "day": {
                    "maxtemp_c": 20.0 + i,
                    "mintemp_c": 11.0 + i,
                    "avghumidity": 70,
                    "maxwind_kph": 18.0,
                    "daily_chance_of_rain": 40,
                    "daily_chance_of_snow": 0,
                    "uv": 5.0,
                    "condition": {"text": "Patchy rain possible", "icon": "//cdn/176.png"},
                },
                "astro": {"sunrise": "04:43 AM", "sunset": "09:12 PM", "moon_phase": "Waning Crescent"},
                "hour": [
                    {
                        "time": f"2024-06-0{i + 1} 00:00",
                        "temp_c": 12.0,
                        "condition": {"text": "Clear", "icon": "//cdn/113.png"},
                        "humidity": 80,
                        "wind_kph": 8.0,
                        "chance_of_rain": 0,
                    },
                ],
            }
            for i in range(days)
        ]
    }
    payload["alerts"] = {
        "alert": [
            {
                "headline": "Yellow warning for rain",
                "desc": "Heavy showers may cause flooding.",
                "severity": "Moderate",
                "areas": "London",
                "effective": "2024-06-01T12:00:00+00:00",
                "expires": "2024-06-02T06:00:00+00:00",
            }
        ]
    }
    return payload


# ---------------------------------------------------------------------------
# OpenWeatherMap payloads
# ---------------------------------------------------------------------------

def owm_entry(dt_txt: str, temp: float, description: str = "light rain", humidity: int = 70,
              wind_speed: float = 5.0, pop: float = 0.2) -> Dict[str, Any]:
    dt = datetime.strptime(dt_txt, "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc)
    return {
        "dt": int(dt.timestamp()),
        "dt_txt": dt_txt,
        "main": {"temp": temp, "feels_like": temp - 1, "humidity": humidity, "pressure": 1013},
        "weather": [{"description": description, "icon": "10d"}],
        "wind": {"speed": wind_speed, "deg": 225},
        "visibility": 10000,
        "clouds": {"all": 75},
        "pop": pop,
    }


def owm_current(temp: float = 17.0) -> Dict[str, Any]:
    return {
        "name": "London",
        "dt": 1717243200,
        "coord": {"lat": 51.51, "lon": -0.13},
        "sys": {"country": "GB"},
        "main": {"temp": temp, "feels_like": 16.2, "humidity": 65, "pressure": 1014},
        "weather": [{"description": "scattered clouds", "icon": "03d"}],
        "wind": {"speed": 5.0, "deg": 225},
        "visibility": 8000,
        "clouds": {"all": 40},
    }


def owm_forecast(entries: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if entries is None:
        entries = [owm_entry(f"2024-06-01 {h:02d}:00:00", 10.0 + h / 3) for h in range(0, 24, 3)]
    return {
        "list": entries,
        "city": {"name": "London", "country": "GB", "coord": {"lat": 51.51, "lon": -0.13}},
    }
