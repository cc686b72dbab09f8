"""
Configuration for the weather layer.

Values come from the environment (optionally a .env file loaded with
python-dotenv). The result is a frozen WeatherConfig that service wiring
reads once at startup.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from home_weather.errors import ConfigError

logger = logging.getLogger(__name__)

WEATHERAPI_BASE_URL = "https://api.weatherapi.com/v1"
OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"

STORAGE_BACKENDS = ("local", "remote")
PROVIDER_NAMES = ("weatherapi", "openweathermap")


@dataclass(frozen=True)
class WeatherConfig:
    weatherapi_key: Optional[str] = None
    openweather_key: Optional[str] = None
    primary_provider: str = "weatherapi"
    storage_backend: str = "local"
    owner_id: str = "anonymous"
    remote_url: Optional[str] = None
    data_dir: Path = Path("outputs")
    cache_ttl_seconds: float = 600.0
    http_timeout: float = 10.0
    http_retries: int = 1
    log_level: str = "INFO"

    @property
    def local_store_path(self) -> Path:
        return self.data_dir / "weather_store.json"

    @property
    def preference_path(self) -> Path:
        return self.data_dir / "storage_preference.json"

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, use_dotenv: bool = True) -> "WeatherConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (tests)
            use_dotenv: Load a .env file into os.environ first

        Raises:
            ConfigError: unknown provider/backend name or bad numeric value
        """
        if environ is None:
            if use_dotenv:
                load_dotenv()
            environ = os.environ

        def _get(name: str) -> Optional[str]:
            value = environ.get(name)
            return value.strip() if value and value.strip() else None

        def _number(name: str, default: float, cast=float):
            raw = _get(name)
            if raw is None:
                return default
            try:
                return cast(raw)
            except ValueError as e:
                raise ConfigError(f"{name} must be a number, got {raw!r}") from e

        primary = (_get("WEATHER_PRIMARY_PROVIDER") or "weatherapi").lower()
        if primary not in PROVIDER_NAMES:
            raise ConfigError(f"WEATHER_PRIMARY_PROVIDER must be one of {PROVIDER_NAMES}, got {primary!r}")

        backend = (_get("WEATHER_STORAGE_BACKEND") or "local").lower()
        if backend not in STORAGE_BACKENDS:
            raise ConfigError(f"WEATHER_STORAGE_BACKEND must be one of {STORAGE_BACKENDS}, got {backend!r}")

        config = cls(
            weatherapi_key=_get("WEATHERAPI_KEY"),
            openweather_key=_get("OPENWEATHER_API_KEY"),
            primary_provider=primary,
            storage_backend=backend,
            owner_id=_get("WEATHER_OWNER_ID") or "anonymous",
            remote_url=_get("WEATHER_REMOTE_URL"),
            data_dir=Path(_get("WEATHER_DATA_DIR") or "outputs"),
            cache_ttl_seconds=_number("WEATHER_CACHE_TTL_SECONDS", 600.0),
            http_timeout=_number("WEATHER_HTTP_TIMEOUT", 10.0),
            http_retries=_number("WEATHER_HTTP_RETRIES", 1, int),
            log_level=(_get("LOG_LEVEL") or "INFO").upper(),
        )

        if not config.weatherapi_key:
            logger.warning("[WeatherConfig] No WEATHERAPI_KEY found in env!")
        if not config.openweather_key:
            logger.warning("[WeatherConfig] No OPENWEATHER_API_KEY found in env!")
        logger.debug(f"[WeatherConfig] primary={config.primary_provider}, backend={config.storage_backend}, "
                     f"remote={'yes' if config.remote_configured else 'no'}, data_dir={config.data_dir}")
        return config
