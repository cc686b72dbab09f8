"""
Local storage backend.

One JSON document on disk holding an ordered record list and an analytics
map keyed by location. The list is trimmed to the retention window on
every save; queries are linear scans filtered by location and time.
Without a path the backend lives only in memory.
"""

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from home_weather.errors import StorageError
from home_weather.models import AnalyticsRecord, PersistedRecord
from home_weather.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class LocalBackend(StorageBackend):

    name = "local"

    def __init__(self, path: Optional[Path] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.path = Path(path) if path else None
        self._records: List[PersistedRecord] = []
        self._analytics: Dict[str, AnalyticsRecord] = {}
        self._load()

    # -- file I/O --------------------------------------------------------

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            self._records = [PersistedRecord.from_dict(r) for r in raw.get("records", [])]
            self._analytics = {
                loc: AnalyticsRecord.from_dict(a) for loc, a in raw.get("analytics", {}).items()
            }
            logger.debug(f"[LocalBackend] Loaded {len(self._records)} records from {self.path}")
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Could not read local weather store {self.path}: {e}") from e

    def _flush(self) -> None:
        if self.path is None:
            return
        document = {
            "records": [r.to_dict() for r in self._records],
            "analytics": {loc: a.to_dict() for loc, a in self._analytics.items()},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, default=str)
            tmp.replace(self.path)
        except OSError as e:
            raise StorageError(f"Could not write local weather store {self.path}: {e}") from e

    # -- writes ----------------------------------------------------------

    async def write_record(self, record: PersistedRecord) -> None:
        previous = self._records
        self._records = sorted(previous + [record], key=lambda r: r.stored_at)
        try:
            self._flush()
        except StorageError:
            self._records = previous
            raise

    async def prune_old(self) -> int:
        kept = [r for r in self._records if self.is_retained(r)]
        removed = len(self._records) - len(kept)
        if removed:
            previous, self._records = self._records, kept
            try:
                self._flush()
            except StorageError:
                self._records = previous
                raise
            logger.info(f"[LocalBackend] Cleared old weather data. Kept {len(kept)} entries, removed {removed}.")
        return removed

    # -- reads -----------------------------------------------------------

    async def latest(self, location: str) -> Optional[PersistedRecord]:
        matches = [r for r in self._records if r.location == location and self.is_retained(r)]
        return max(matches, key=lambda r: r.stored_at) if matches else None

    async def query(self, location: str, since_days: float = 7) -> List[PersistedRecord]:
        since = self._clock() - timedelta(days=since_days)
        return [
            r for r in self._records
            if r.location == location and r.stored_at > since and self.is_retained(r)
        ]

    async def all_records(self) -> List[PersistedRecord]:
        return [r for r in self._records if self.is_retained(r)]

    # -- analytics -------------------------------------------------------

    async def load_analytics(self, location: str) -> Optional[AnalyticsRecord]:
        return self._analytics.get(location)

    async def save_analytics(self, record: AnalyticsRecord) -> None:
        previous = self._analytics
        self._analytics = {**previous, record.location: record}
        try:
            self._flush()
        except StorageError:
            self._analytics = previous
            raise

    async def all_analytics(self) -> List[AnalyticsRecord]:
        return list(self._analytics.values())
