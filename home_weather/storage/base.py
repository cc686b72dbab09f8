"""
StorageBackend contract shared by the local and remote variants.

Everything is async so both variants look the same to callers, even though
local operations complete without suspending. Retention is fixed at 30
days: a record is kept iff stored_at > now - 30 days. Records past the
window are pruned on every save and never returned by a query.
"""

import abc
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from home_weather.export import export_records
from home_weather.models import AnalyticsRecord, PersistedRecord, WeatherSnapshot, utcnow

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30


class StorageBackend(abc.ABC):
    """Durable persistence of weather snapshots and analytics records."""

    name: str = "abstract"

    def __init__(self, owner_id: str = "anonymous", clock: Callable[[], datetime] = utcnow,
                 retention_days: int = RETENTION_DAYS):
        self.owner_id = owner_id or "anonymous"
        self.retention_days = retention_days
        self._clock = clock

    # -- retention -------------------------------------------------------

    def retention_cutoff(self) -> datetime:
        return self._clock() - timedelta(days=self.retention_days)

    def is_retained(self, record: PersistedRecord) -> bool:
        return record.stored_at > self.retention_cutoff()

    # -- capability ------------------------------------------------------

    def is_available(self) -> bool:
        return True

    # -- writes ----------------------------------------------------------

    async def save(self, location: str, snapshot: WeatherSnapshot) -> str:
        """Persist a new record for `location`; returns its id."""
        record = PersistedRecord(
            id=uuid.uuid4().hex,
            location=location,
            snapshot=snapshot,
            stored_at=self._clock(),
            owner_id=self.owner_id,
        )
        await self.write_record(record)
        await self.prune_old()
        logger.info(f"[{self.__class__.__name__}] Weather data saved for {location} at {record.stored_at.isoformat()}")
        return record.id

    @abc.abstractmethod
    async def write_record(self, record: PersistedRecord) -> None:
        """Store `record` verbatim (id and timestamp preserved)."""

    @abc.abstractmethod
    async def prune_old(self) -> int:
        """Delete everything outside the retention window; returns the count."""

    # -- reads -----------------------------------------------------------

    @abc.abstractmethod
    async def latest(self, location: str) -> Optional[PersistedRecord]:
        ...

    async def has_recent(self, location: str, within_minutes: float = 10) -> bool:
        latest = await self.latest(location)
        if latest is None:
            return False
        age = self._clock() - latest.stored_at
        return age < timedelta(minutes=within_minutes)

    @abc.abstractmethod
    async def query(self, location: str, since_days: float = 7) -> List[PersistedRecord]:
        """Records for `location` newer than `since_days`, oldest first."""

    @abc.abstractmethod
    async def all_records(self) -> List[PersistedRecord]:
        """Every retained record for this owner, oldest first."""

    # -- analytics persistence --------------------------------------------

    @abc.abstractmethod
    async def load_analytics(self, location: str) -> Optional[AnalyticsRecord]:
        ...

    @abc.abstractmethod
    async def save_analytics(self, record: AnalyticsRecord) -> None:
        ...

    @abc.abstractmethod
    async def all_analytics(self) -> List[AnalyticsRecord]:
        ...

    # -- export ----------------------------------------------------------

    async def export_all(self, location: Optional[str] = None, fmt: str = "json") -> bytes:
        """Export retained records for `location` (or every location)."""
        if location is None:
            records = await self.all_records()
            analytics = await self.all_analytics()
        else:
            records = await self.query(location, since_days=self.retention_days)
            found = await self.load_analytics(location)
            analytics = [found] if found else []
        return export_records(records, analytics, fmt, location, self._clock())
