"""
Process-wide wiring.

build_services() constructs every component once from a WeatherConfig and
hands them back in a WeatherServices bundle. Nothing here is a module-level
singleton; callers keep the bundle for the life of the process.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from home_weather.aggregator import FallbackAggregator
from home_weather.analytics import AnalyticsEngine
from home_weather.cache import TTLCache
from home_weather.config import WeatherConfig
from home_weather.providers import OpenWeatherMapProvider, WeatherAPIProvider
from home_weather.resilience import RetryConfig
from home_weather.storage import LocalBackend, PreferenceStore, RemoteBackend, StorageRouter

logger = logging.getLogger(__name__)


@dataclass
class WeatherServices:
    config: WeatherConfig
    aggregator: FallbackAggregator
    router: StorageRouter
    local: LocalBackend
    remote: Optional[RemoteBackend] = None

    @property
    def analytics(self) -> AnalyticsEngine:
        return self.router.analytics


def build_services(
    config: WeatherConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WeatherServices:
    """
    Build the provider clients, cache, aggregator, backends and router.

    Args:
        config: Loaded configuration
        transport: Optional httpx transport shared by both provider clients
    """
    retry = RetryConfig(max_retries=config.http_retries)
    providers = [
        WeatherAPIProvider(config.weatherapi_key, timeout=config.http_timeout,
                           retry_config=retry, transport=transport),
        OpenWeatherMapProvider(config.openweather_key, timeout=config.http_timeout,
                               retry_config=retry, transport=transport),
    ]
    aggregator = FallbackAggregator(
        providers,
        primary=config.primary_provider,
        cache=TTLCache(config.cache_ttl_seconds),
    )

    local = LocalBackend(config.local_store_path, owner_id=config.owner_id)
    remote = None
    if config.remote_configured:
        remote = RemoteBackend.from_url(config.remote_url, owner_id=config.owner_id)
    else:
        logger.info("[build_services] No WEATHER_REMOTE_URL set, remote storage disabled")

    preference = PreferenceStore(config.preference_path, default=config.storage_backend)
    router = StorageRouter(local, remote, preference)

    logger.info(f"[build_services] Ready: primary={aggregator.primary.name}, storage={router.active_name}")
    return WeatherServices(config=config, aggregator=aggregator, router=router, local=local, remote=remote)
