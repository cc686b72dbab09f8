"""
Tests for configuration loading and service wiring.

Run with: python -m pytest tests/test_config.py -v
"""

import logging
from pathlib import Path

import pytest

from home_weather.config import WeatherConfig
from home_weather.errors import ConfigError
from home_weather.services import build_services
from home_weather.storage import PreferenceStore

logger = logging.getLogger(__name__)


class TestWeatherConfig:

    def test_defaults(self):
        config = WeatherConfig.from_env({})

        assert config.weatherapi_key is None
        assert config.primary_provider == "weatherapi"
        assert config.storage_backend == "local"
        assert config.owner_id == "anonymous"
        assert config.cache_ttl_seconds == 600.0
        assert config.http_retries == 1
        assert not config.remote_configured
        assert config.local_store_path == Path("outputs") / "weather_store.json"

    def test_values_from_environment(self):
        config = WeatherConfig.from_env({
            "WEATHERAPI_KEY": " abc123 ",
            "OPENWEATHER_API_KEY": "def456",
            "WEATHER_PRIMARY_PROVIDER": "OpenWeatherMap",
            "WEATHER_STORAGE_BACKEND": "remote",
            "WEATHER_OWNER_ID": "household-7",
            "WEATHER_REMOTE_URL": "redis://localhost:6379/0",
            "WEATHER_DATA_DIR": "/tmp/hw",
            "WEATHER_CACHE_TTL_SECONDS": "120",
            "WEATHER_HTTP_RETRIES": "3",
            "LOG_LEVEL": "debug",
        })
        logger.info(f"[TEST] Loaded config: {config}")

        assert config.weatherapi_key == "abc123"
        assert config.primary_provider == "openweathermap"
        assert config.storage_backend == "remote"
        assert config.remote_configured
        assert config.cache_ttl_seconds == 120.0
        assert config.http_retries == 3
        assert config.log_level == "DEBUG"
        assert config.preference_path == Path("/tmp/hw") / "storage_preference.json"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="WEATHER_PRIMARY_PROVIDER"):
            WeatherConfig.from_env({"WEATHER_PRIMARY_PROVIDER": "accuweather"})

    def test_unknown_backend(self):
        with pytest.raises(ConfigError, match="WEATHER_STORAGE_BACKEND"):
            WeatherConfig.from_env({"WEATHER_STORAGE_BACKEND": "s3"})

    def test_bad_number(self):
        with pytest.raises(ConfigError, match="WEATHER_HTTP_RETRIES"):
            WeatherConfig.from_env({"WEATHER_HTTP_RETRIES": "three"})

    def test_blank_values_use_defaults(self):
        config = WeatherConfig.from_env({"WEATHER_REMOTE_URL": "   ", "WEATHER_OWNER_ID": ""})
        assert not config.remote_configured
        assert config.owner_id == "anonymous"


class TestPreferenceStore:

    def test_unreadable_file_falls_back_to_default(self, tmp_path):
        path = tmp_path / "storage_preference.json"
        path.write_text("garbage", encoding="utf-8")
        assert PreferenceStore(path).get() == "local"

    def test_unknown_value_ignored(self, tmp_path):
        path = tmp_path / "storage_preference.json"
        path.write_text('{"backend": "floppy"}', encoding="utf-8")
        assert PreferenceStore(path, default="local").get() == "local"

    def test_set_rejects_unknown(self, tmp_path):
        with pytest.raises(ConfigError):
            PreferenceStore(tmp_path / "p.json").set("floppy")


class TestBuildServices:

    def test_local_only_wiring(self, tmp_path):
        config = WeatherConfig(weatherapi_key="k1", openweather_key="k2",
                               primary_provider="openweathermap", data_dir=tmp_path,
                               cache_ttl_seconds=60, http_retries=0)

        services = build_services(config)

        assert services.remote is None
        assert services.aggregator.primary.name == "openweathermap"
        assert services.aggregator.cache.ttl_seconds == 60
        assert services.aggregator.primary.retry_config.max_retries == 0
        assert services.router.active_name == "local"
        assert services.local.path == tmp_path / "weather_store.json"
        assert services.analytics is services.router.analytics

    def test_remote_preference_honoured_when_configured(self, tmp_path):
        config = WeatherConfig(data_dir=tmp_path, storage_backend="remote",
                               remote_url="redis://localhost:6379/0", owner_id="household-7")

        services = build_services(config)

        assert services.remote is not None
        assert services.remote.owner_id == "household-7"
        assert services.router.active_name == "remote"
