"""
Remote storage backend on Redis.

Documents are scoped by owner id ("anonymous" when none is set):

    {prefix}:{owner}:record:{id}        JSON record document
    {prefix}:{owner}:records            sorted set of ids scored by timestamp
    {prefix}:{owner}:loc:{location}     per-location sorted set, same scores
    {prefix}:{owner}:analytics          hash of location -> AnalyticsRecord JSON

Range queries use ZRANGEBYSCORE on the timestamp score. A record document
and its two index entries are written in one MULTI/EXEC transaction.
Pruning removes each expired record in its own transaction, so an
interrupted prune leaves the remaining old documents for the next pass.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from home_weather.errors import StorageError
from home_weather.models import AnalyticsRecord, PersistedRecord
from home_weather.storage.base import StorageBackend

logger = logging.getLogger(__name__)

KEY_PREFIX = "homeweather"

# Raised by json.loads / from_dict on a document that is not what we wrote
DECODE_ERRORS = (ValueError, KeyError, TypeError)


class RemoteBackend(StorageBackend):

    name = "remote"

    def __init__(self, client: Optional["redis.Redis"] = None, prefix: str = KEY_PREFIX, **kwargs: Any):
        super().__init__(**kwargs)
        self._client = client
        self._ns = f"{prefix}:{self.owner_id}"

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RemoteBackend":
        logger.info("[RemoteBackend] Connecting to remote store")
        return cls(client=redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def is_available(self) -> bool:
        return self._client is not None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning(f"[RemoteBackend] Ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    @property
    def client(self) -> "redis.Redis":
        if self._client is None:
            raise StorageError("Remote storage is not configured")
        return self._client

    # -- keys ------------------------------------------------------------

    def _record_key(self, record_id: str) -> str:
        return f"{self._ns}:record:{record_id}"

    def _location_key(self, location: str) -> str:
        return f"{self._ns}:loc:{location}"

    @property
    def _index_key(self) -> str:
        return f"{self._ns}:records"

    @property
    def _analytics_key(self) -> str:
        return f"{self._ns}:analytics"

    @staticmethod
    def _score(at: datetime) -> float:
        return at.timestamp()

    async def _load_records(self, ids: List[str]) -> List[PersistedRecord]:
        if not ids:
            return []
        docs = await self.client.mget([self._record_key(i) for i in ids])
        try:
            return [PersistedRecord.from_dict(json.loads(doc)) for doc in docs if doc]
        except DECODE_ERRORS as e:
            raise StorageError(f"Corrupt record document in remote store: {e!r}") from e

    @staticmethod
    def _decode_analytics(raw: str) -> AnalyticsRecord:
        try:
            return AnalyticsRecord.from_dict(json.loads(raw))
        except DECODE_ERRORS as e:
            raise StorageError(f"Corrupt analytics document in remote store: {e!r}") from e

    # -- writes ----------------------------------------------------------

    async def write_record(self, record: PersistedRecord) -> None:
        score = self._score(record.stored_at)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._record_key(record.id), json.dumps(record.to_dict(), default=str))
                pipe.zadd(self._index_key, {record.id: score})
                pipe.zadd(self._location_key(record.location), {record.id: score})
                await pipe.execute()
        except RedisError as e:
            logger.error(f"[RemoteBackend] Failed to write record {record.id}: {e}")
            raise StorageError(f"Remote write failed: {e}") from e
        logger.debug(f"[RemoteBackend] Stored record {record.id} for {record.location}")

    async def prune_old(self) -> int:
        cutoff = self._score(self.retention_cutoff())
        try:
            old_ids = await self.client.zrangebyscore(self._index_key, "-inf", cutoff)
            removed = 0
            for record_id in old_ids:
                doc = await self.client.get(self._record_key(record_id))
                async with self.client.pipeline(transaction=True) as pipe:
                    if doc:
                        pipe.zrem(self._location_key(json.loads(doc)["location"]), record_id)
                    pipe.delete(self._record_key(record_id))
                    pipe.zrem(self._index_key, record_id)
                    await pipe.execute()
                removed += 1
        except RedisError as e:
            raise StorageError(f"Remote prune failed: {e}") from e
        except DECODE_ERRORS as e:
            raise StorageError(f"Corrupt record document in remote store: {e!r}") from e

        if removed:
            logger.info(f"[RemoteBackend] Cleared {removed} weather records older than {self.retention_days} days")
        return removed

    # -- reads -----------------------------------------------------------

    async def latest(self, location: str) -> Optional[PersistedRecord]:
        floor = self._score(self.retention_cutoff())
        try:
            ids = await self.client.zrevrangebyscore(self._location_key(location), "+inf", f"({floor}",
                                                     start=0, num=1)
            records = await self._load_records(ids)
        except RedisError as e:
            raise StorageError(f"Remote read failed: {e}") from e
        return records[0] if records else None

    async def query(self, location: str, since_days: float = 7) -> List[PersistedRecord]:
        since = max(self._clock() - timedelta(days=since_days), self.retention_cutoff())
        try:
            ids = await self.client.zrangebyscore(self._location_key(location), f"({self._score(since)}", "+inf")
            return await self._load_records(ids)
        except RedisError as e:
            raise StorageError(f"Remote query failed: {e}") from e

    async def all_records(self) -> List[PersistedRecord]:
        floor = self._score(self.retention_cutoff())
        try:
            ids = await self.client.zrangebyscore(self._index_key, f"({floor}", "+inf")
            return await self._load_records(ids)
        except RedisError as e:
            raise StorageError(f"Remote read failed: {e}") from e

    # -- analytics -------------------------------------------------------

    async def load_analytics(self, location: str) -> Optional[AnalyticsRecord]:
        try:
            raw = await self.client.hget(self._analytics_key, location)
        except RedisError as e:
            raise StorageError(f"Remote analytics read failed: {e}") from e
        return self._decode_analytics(raw) if raw else None

    async def save_analytics(self, record: AnalyticsRecord) -> None:
        try:
            await self.client.hset(self._analytics_key, record.location, json.dumps(record.to_dict(), default=str))
        except RedisError as e:
            logger.error(f"[RemoteBackend] Failed to save analytics for {record.location}: {e}")
            raise StorageError(f"Remote analytics write failed: {e}") from e

    async def all_analytics(self) -> List[AnalyticsRecord]:
        try:
            raw = await self.client.hgetall(self._analytics_key)
        except RedisError as e:
            raise StorageError(f"Remote analytics read failed: {e}") from e
        return [self._decode_analytics(v) for v in raw.values()]
