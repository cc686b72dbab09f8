"""
Fallback Aggregator

Hides the two weather providers behind one fetch call:
1. try the primary client
2. on any ConfigError/ProviderError log it and try the secondary once
3. if both fail raise AllProvidersFailedError (no automatic re-try)

Raw payloads go through a TTLCache keyed by (provider, location, kind) so
repeated calls inside the timeout do not hit the network again. A payload
is only cached once it has normalized cleanly.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from home_weather.cache import TTLCache, make_key
from home_weather.errors import AllProvidersFailedError, ConfigError, HomeWeatherError, ProviderError
from home_weather.models import Alert, LocationCandidate, ProviderId, WeatherSnapshot
from home_weather.providers.base import ProviderClient

logger = logging.getLogger(__name__)

DEFAULT_FORECAST_DAYS = 3


class FallbackAggregator:
    """
    Orchestrates provider clients with primary/secondary fallback.

    The primary/secondary designation is mutable at runtime via
    set_primary_provider() and swap_providers().
    """

    def __init__(
        self,
        providers: Sequence[ProviderClient],
        primary: Optional[str] = None,
        cache: Optional[TTLCache] = None,
    ):
        if len(providers) != 2:
            raise ConfigError("FallbackAggregator needs exactly two providers")
        self._providers: Dict[str, ProviderClient] = {p.name: p for p in providers}
        self._order: List[str] = [p.name for p in providers]
        self.cache = cache if cache is not None else TTLCache()
        if primary:
            self.set_primary_provider(primary)
        logger.info(f"[FallbackAggregator] Initialized: primary={self.primary.name}, "
                    f"secondary={self.secondary.name}")

    @property
    def primary(self) -> ProviderClient:
        return self._providers[self._order[0]]

    @property
    def secondary(self) -> ProviderClient:
        return self._providers[self._order[1]]

    def provider(self, name: str) -> ProviderClient:
        try:
            return self._providers[name]
        except KeyError:
            raise ConfigError(f"Unknown provider {name!r}") from None

    def set_primary_provider(self, name: str) -> None:
        name = str(getattr(name, "value", name))
        self.provider(name)
        if self._order[0] != name:
            self._order.reverse()
            logger.info(f"[FallbackAggregator] Primary provider is now {name}")

    def swap_providers(self) -> None:
        self._order.reverse()
        logger.info(f"[FallbackAggregator] Providers swapped: primary={self.primary.name}")

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def _cached_fetch(
        self,
        client: ProviderClient,
        location: str,
        data_kind: str,
        fetch: Callable[[], Awaitable[Dict[str, Any]]],
        normalize: Callable[[Dict[str, Any]], WeatherSnapshot],
    ) -> WeatherSnapshot:
        key = make_key(client.name, location, data_kind)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[FallbackAggregator] CACHE HIT {client.name}/{data_kind} for {location!r}")
            return normalize(cached)

        payload = await fetch()
        snapshot = normalize(payload)
        self.cache.set(key, payload)
        return snapshot

    async def _with_fallback(
        self,
        label: str,
        location: str,
        attempt: Callable[[ProviderClient], Awaitable[WeatherSnapshot]],
    ) -> WeatherSnapshot:
        errors: Dict[str, Exception] = {}

        for index, client in enumerate((self.primary, self.secondary)):
            try:
                snapshot = await attempt(client)
                if index > 0:
                    logger.info(f"[FallbackAggregator] Using fallback provider {client.name} for {label}")
                return snapshot
            except (ConfigError, ProviderError) as e:
                role = "Primary" if index == 0 else "Fallback"
                logger.warning(f"[FallbackAggregator] {role} provider {client.name} failed ({label}): {e}")
                errors[client.name] = e

        logger.error(f"[FallbackAggregator] All providers failed for {label} {location!r}")
        raise AllProvidersFailedError(errors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_weather(self, location: str) -> WeatherSnapshot:
        """Current conditions for `location` from the first provider that answers."""
        async def attempt(client: ProviderClient) -> WeatherSnapshot:
            return await self._cached_fetch(client, location, "current",
                                            lambda: client.fetch_current(location),
                                            client.normalize_current)

        return await self._with_fallback("current", location, attempt)

    async def get_forecast(self, location: str, days: int = DEFAULT_FORECAST_DAYS) -> WeatherSnapshot:
        """Snapshot with a `days`-long daily forecast."""
        async def attempt(client: ProviderClient) -> WeatherSnapshot:
            return await self._cached_fetch(client, location, f"forecast:{days}",
                                            lambda: client.fetch_forecast(location, days),
                                            lambda payload: client.normalize_forecast(payload, days))

        return await self._with_fallback("forecast", location, attempt)

    async def get_complete_weather_data(self, location: str, days: int = DEFAULT_FORECAST_DAYS) -> WeatherSnapshot:
        """
        Current + forecast merged into one snapshot.

        Both calls run concurrently. Location metadata, forecast and alerts
        come from the forecast call; current conditions, air quality and
        provider from the current call. If one call fails the other one's
        snapshot is returned on its own.
        """
        results: Tuple[Any, Any] = await asyncio.gather(
            self.get_weather(location),
            self.get_forecast(location, days),
            return_exceptions=True,
        )
        current, forecast = results

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, AllProvidersFailedError):
                raise result

        current_ok = isinstance(current, WeatherSnapshot)
        forecast_ok = isinstance(forecast, WeatherSnapshot)

        if current_ok and forecast_ok:
            return forecast.merged_with(
                current=current.current,
                air_quality=current.air_quality or forecast.air_quality,
                provider=current.provider,
                observed_at=current.observed_at,
            )
        if current_ok:
            logger.warning(f"[FallbackAggregator] Forecast unavailable for {location!r}, returning current only")
            return current
        if forecast_ok:
            logger.warning(f"[FallbackAggregator] Current weather unavailable for {location!r}, using forecast data")
            return forecast

        errors: Dict[str, Exception] = {}
        for failure in (current, forecast):
            for name, err in failure.errors.items():
                errors.setdefault(name, err)
        raise AllProvidersFailedError(errors)

    async def search_locations(self, query: str) -> List[LocationCandidate]:
        """Candidate locations for a partial name; [] when search is unavailable."""
        client = self._providers.get(ProviderId.WEATHERAPI.value)
        search = getattr(client, "search", None)
        if search is None:
            return []
        try:
            return await search(query)
        except (HomeWeatherError, KeyError, TypeError) as e:
            logger.warning(f"[FallbackAggregator] Location search failed: {e}")
            return []

    async def get_weather_alerts(self, location: str) -> List[Alert]:
        try:
            snapshot = await self.get_forecast(location, 1)
        except AllProvidersFailedError as e:
            logger.warning(f"[FallbackAggregator] Weather alerts fetch failed: {e}")
            return []
        return list(snapshot.alerts)

    def status(self) -> Dict[str, Any]:
        return {
            "providers": {name: client.is_configured() for name, client in self._providers.items()},
            "primary": self.primary.name,
            "secondary": self.secondary.name,
            "cache_size": len(self.cache),
            "cache_ttl_seconds": self.cache.ttl_seconds,
        }

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("[FallbackAggregator] Cache cleared")
