"""
Error taxonomy for the weather layer.

Provider-level errors (ConfigError, ProviderError) are caught by the
FallbackAggregator and never reach callers directly. Callers see either a
WeatherSnapshot or one of AllProvidersFailedError, StorageError,
MigrationError.
"""

from typing import Dict, Optional


class HomeWeatherError(Exception):
    """Base class for every error raised by home_weather."""


class ConfigError(HomeWeatherError):
    """Missing or invalid configuration (API key, provider or backend name)."""


class ProviderError(HomeWeatherError):
    """Network, HTTP or parse failure from a single provider."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class AllProvidersFailedError(HomeWeatherError):
    """Primary and fallback providers are both exhausted."""

    def __init__(self, errors: Dict[str, Exception]):
        detail = "; ".join(f"{name}: {err}" for name, err in errors.items())
        super().__init__(f"All weather providers failed ({detail})" if detail else "All weather providers failed")
        self.errors = errors


class StorageError(HomeWeatherError):
    """A storage backend read or write failed."""


class MigrationError(HomeWeatherError):
    """A write failed while copying records between backends."""

    def __init__(self, message: str, copied: int = 0):
        super().__init__(message)
        self.copied = copied
