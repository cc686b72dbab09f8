"""
Shared plumbing for weather provider clients.

Each concrete client fetches raw JSON from one external API and owns a
normalizer that turns it into the canonical WeatherSnapshot. Failures are
reported as ProviderError (or ConfigError for a missing key) so the
aggregator can fall back to the next provider.
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from home_weather.errors import ConfigError, ProviderError
from home_weather.models import ProviderId, WeatherSnapshot, utcnow
from home_weather.resilience import DEFAULT_RETRY_CONFIG, RetryConfig, describe_failure, with_retry

logger = logging.getLogger(__name__)

COORDINATE_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")

# Exceptions that mean "the payload did not have the shape we expected"
PARSE_ERRORS = (KeyError, TypeError, IndexError, ValueError, AttributeError)


def parse_coordinates(location: str) -> Optional[Tuple[str, str]]:
    """Return (lat, lon) strings if `location` is a "lat,lon" pair."""
    match = COORDINATE_PATTERN.match(location)
    if not match:
        return None
    return match.group(1), match.group(2)


class ProviderClient:
    """
    Base class for one external weather API.

    Subclasses set `provider_id`/`BASE_URL` and implement fetch_current,
    fetch_forecast, and the two normalizers.
    """

    provider_id: ProviderId
    BASE_URL: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._transport = transport
        self._clock = clock
        self._log_prefix = f"[{self.__class__.__name__}]"

        if not self.api_key:
            logger.warning(f"{self._log_prefix} No API key configured - provider will be skipped")

    @property
    def name(self) -> str:
        return self.provider_id.value

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigError(f"{self.name} API key not configured")
        return self.api_key

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        """
        GET `path` and decode the JSON body.

        Transient failures are retried per retry_config; whatever is left
        is raised as ProviderError.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"

        @with_retry(config=self.retry_config, provider_name=self.name)
        async def _fetch() -> Any:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                logger.debug(f"{self._log_prefix} GET {url}")
                resp = await client.get(url, params=params)
                logger.debug(f"{self._log_prefix} Response status: {resp.status_code}")
                resp.raise_for_status()
                return resp.json()

        try:
            return await _fetch()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ProviderError(self.name, f"HTTP {status}: {e.response.text[:100]}", status) from e
        except httpx.HTTPError as e:
            _, error_msg = describe_failure(e)
            raise ProviderError(self.name, error_msg) from e
        except ValueError as e:
            raise ProviderError(self.name, f"Invalid JSON: {e}") from e

    def _normalize(self, normalizer: Callable[..., WeatherSnapshot], payload: Any, *args: Any) -> WeatherSnapshot:
        if not isinstance(payload, dict):
            logger.error(f"{self._log_prefix} Expected a JSON object, got {type(payload).__name__}")
            raise ProviderError(self.name, f"Parse error: expected a JSON object, got {type(payload).__name__}")
        try:
            return normalizer(payload, *args)
        except PARSE_ERRORS as e:
            logger.error(f"{self._log_prefix} Unexpected payload shape: {e!r}")
            raise ProviderError(self.name, f"Parse error: {e!r}") from e

    async def fetch_current(self, location: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def fetch_forecast(self, location: str, days: int) -> Dict[str, Any]:
        raise NotImplementedError

    def normalize_current(self, payload: Dict[str, Any]) -> WeatherSnapshot:
        raise NotImplementedError

    def normalize_forecast(self, payload: Dict[str, Any], days: int) -> WeatherSnapshot:
        raise NotImplementedError
