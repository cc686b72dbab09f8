"""
Storage Router

Chooses the active backend from the persisted preference, routes every
read/write to it, and migrates data between backends.

Exactly one backend is active at any time. migrate() copies everything
first and only then flips the preference; a failed copy leaves the
preference and the active backend untouched. Records already copied to the
target stay there (no compensating delete), so a retried migration may
duplicate them.

There is no lock around get_weather_data(): two concurrent callers for the
same location can both miss, both fetch and both persist a record.
"""

import logging
from typing import Any, Dict, List, Optional

from home_weather.aggregator import FallbackAggregator
from home_weather.analytics import AnalyticsEngine
from home_weather.errors import AllProvidersFailedError, ConfigError, MigrationError, StorageError
from home_weather.models import AnalyticsRecord, PersistedRecord, WeatherSnapshot
from home_weather.storage.base import StorageBackend
from home_weather.storage.preference import PreferenceStore

logger = logging.getLogger(__name__)

BACKEND_INFO = {
    "local": {
        "name": "Local Storage",
        "description": "JSON file on this machine (offline, private)",
    },
    "remote": {
        "name": "Remote Store",
        "description": "Redis document store (shared across devices)",
    },
}


class StorageRouter:

    def __init__(
        self,
        local: StorageBackend,
        remote: Optional[StorageBackend] = None,
        preference: Optional[PreferenceStore] = None,
    ):
        self._backends: Dict[str, StorageBackend] = {"local": local}
        if remote is not None:
            self._backends["remote"] = remote
        self.preference = preference or PreferenceStore()
        self.analytics = AnalyticsEngine(self)
        self._last_good: Dict[str, WeatherSnapshot] = {}

        wanted = self.preference.get()
        if not self.is_backend_available(wanted):
            logger.warning(f"[StorageRouter] Preferred backend {wanted!r} is not available, using local")
            wanted = "local"
        self._active_name = wanted
        logger.info(f"[StorageRouter] Active backend: {self._active_name}")

    # ------------------------------------------------------------------
    # Backend selection
    # ------------------------------------------------------------------

    @property
    def active_name(self) -> str:
        return self._active_name

    @property
    def active(self) -> StorageBackend:
        return self._backends[self._active_name]

    def is_backend_available(self, name: str) -> bool:
        backend = self._backends.get(name)
        return backend is not None and backend.is_available()

    def backend(self, name: str) -> StorageBackend:
        if name not in BACKEND_INFO:
            raise ConfigError(f"Unknown storage backend {name!r}")
        if not self.is_backend_available(name):
            raise StorageError(f"Storage backend {name!r} is not available")
        return self._backends[name]

    def set_preference(self, name: str) -> None:
        """Switch the active backend without copying data."""
        self.backend(name)
        self.preference.set(name)
        self._active_name = name
        logger.info(f"[StorageRouter] Weather storage switched to: {name}")

    def storage_info(self) -> Dict[str, Any]:
        return {"type": self._active_name, **BACKEND_INFO[self._active_name]}

    def available_backends(self) -> List[Dict[str, Any]]:
        return [
            {"id": name, **info, "available": self.is_backend_available(name)}
            for name, info in BACKEND_INFO.items()
        ]

    # ------------------------------------------------------------------
    # Cached read path
    # ------------------------------------------------------------------

    async def get_weather_data(
        self,
        location: str,
        aggregator: FallbackAggregator,
        cache_minutes: float = 10,
    ) -> WeatherSnapshot:
        """
        Weather for `location`, from storage if fresh enough, else fetched.

        Order within one call: freshness check -> fetch -> persist ->
        analytics update.

        Raises:
            StorageError: the freshness read failed and nothing was served before
            AllProvidersFailedError: fetch failed and nothing is stored
        """
        backend = self.active

        try:
            if await backend.has_recent(location, cache_minutes):
                cached = await backend.latest(location)
                if cached is not None:
                    logger.info(f"[StorageRouter] Using stored weather data for {location}")
                    self._last_good[location] = cached.snapshot
                    return cached.snapshot
        except StorageError as e:
            last = self._last_good.get(location)
            if last is None:
                raise
            logger.warning(f"[StorageRouter] Storage read failed ({e}); serving last snapshot "
                           f"observed at {last.observed_at.isoformat()}")
            return last

        logger.info(f"[StorageRouter] Fetching fresh weather data for {location}")
        try:
            snapshot = await aggregator.get_complete_weather_data(location)
        except AllProvidersFailedError:
            fallback = await self._stored_fallback(backend, location)
            if fallback is None:
                raise
            logger.warning(f"[StorageRouter] Providers failed; serving older data for {location} "
                           f"observed at {fallback.observed_at.isoformat()}")
            return fallback

        try:
            record_id = await backend.save(location, snapshot)
            stored = await backend.latest(location)
            at = stored.stored_at if stored is not None and stored.id == record_id else None
            await self.analytics.record_observation(location, snapshot, at)
        except StorageError as e:
            logger.error(f"[StorageRouter] Could not persist weather data for {location}: {e}")

        self._last_good[location] = snapshot
        return snapshot

    async def _stored_fallback(self, backend: StorageBackend, location: str) -> Optional[WeatherSnapshot]:
        try:
            cached = await backend.latest(location)
        except StorageError as e:
            logger.warning(f"[StorageRouter] Stored fallback unavailable: {e}")
            cached = None
        if cached is not None:
            return cached.snapshot
        return self._last_good.get(location)

    # ------------------------------------------------------------------
    # Pass-through to the active backend
    # ------------------------------------------------------------------

    async def save(self, location: str, snapshot: WeatherSnapshot) -> str:
        return await self.active.save(location, snapshot)

    async def write_record(self, record: PersistedRecord) -> None:
        await self.active.write_record(record)

    async def latest(self, location: str) -> Optional[PersistedRecord]:
        return await self.active.latest(location)

    async def has_recent(self, location: str, within_minutes: float = 10) -> bool:
        return await self.active.has_recent(location, within_minutes)

    async def query(self, location: str, since_days: float = 7) -> List[PersistedRecord]:
        return await self.active.query(location, since_days)

    async def all_records(self) -> List[PersistedRecord]:
        return await self.active.all_records()

    async def prune_old(self) -> int:
        return await self.active.prune_old()

    async def clear_old_data(self) -> int:
        removed = await self.prune_old()
        logger.info(f"[StorageRouter] Clear old data: removed {removed} records from {self._active_name}")
        return removed

    async def export_all(self, location: Optional[str] = None, fmt: str = "json") -> bytes:
        return await self.active.export_all(location, fmt)

    async def load_analytics(self, location: str) -> Optional[AnalyticsRecord]:
        return await self.active.load_analytics(location)

    async def save_analytics(self, record: AnalyticsRecord) -> None:
        await self.active.save_analytics(record)

    async def all_analytics(self) -> List[AnalyticsRecord]:
        return await self.active.all_analytics()

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    async def migrate(self, target: str) -> int:
        """
        Copy every record and analytics entry to `target`, then switch to it.

        Returns:
            Number of weather records copied

        Raises:
            MigrationError: target unavailable/already active, or a write failed.
                The active backend and the persisted preference are unchanged.
        """
        source_name = self._active_name
        if target == source_name:
            raise MigrationError(f"Storage backend {target!r} is already active")
        try:
            target_backend = self.backend(target)
        except (ConfigError, StorageError) as e:
            raise MigrationError(str(e)) from e

        source = self.active
        logger.info(f"[StorageRouter] Starting migration {source_name} -> {target}...")

        try:
            records = await source.all_records()
            analytics = await source.all_analytics()
        except StorageError as e:
            raise MigrationError(f"Could not read from {source_name}: {e}") from e

        copied = 0
        for record in records:
            try:
                await target_backend.write_record(record)
            except StorageError as e:
                logger.error(f"[StorageRouter] Migration aborted after {copied}/{len(records)} records: {e}")
                raise MigrationError(
                    f"Migration to {target} failed after {copied} of {len(records)} records: {e}",
                    copied=copied,
                ) from e
            copied += 1

        for entry in analytics:
            try:
                await target_backend.save_analytics(entry)
            except StorageError as e:
                logger.error(f"[StorageRouter] Migration aborted while copying analytics: {e}")
                raise MigrationError(f"Migration to {target} failed copying analytics: {e}", copied=copied) from e

        try:
            self.preference.set(target)
        except StorageError as e:
            raise MigrationError(f"Copied {copied} records but could not save preference: {e}", copied=copied) from e

        self._active_name = target
        logger.info(f"[StorageRouter] Migration completed: {copied} weather entries, "
                    f"{len(analytics)} analytics records migrated to {target}")
        return copied
