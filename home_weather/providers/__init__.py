"""
Providers package for Home Weather

One client per external weather API. Both normalize into the same
WeatherSnapshot with metric units:

1. WeatherAPI.com   - current, 1-3 day forecast, air quality, alerts, search
2. OpenWeatherMap   - current, 5-day forecast in 3-hour steps
"""

from home_weather.providers.base import (
    ProviderClient,
    parse_coordinates,
)

from home_weather.providers.weatherapi import (
    WeatherAPIProvider,
)

from home_weather.providers.openweathermap import (
    OpenWeatherMapProvider,
    group_forecast_by_day,
    most_common_condition,
)

__all__ = [
    "ProviderClient",
    "parse_coordinates",
    # WeatherAPI.com (primary by default)
    "WeatherAPIProvider",
    # OpenWeatherMap (fallback by default)
    "OpenWeatherMapProvider",
    "group_forecast_by_day",
    "most_common_condition",
]
