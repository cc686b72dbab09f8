"""
Analytics Engine

Derives rolling statistics from persisted weather history:
- per-location AnalyticsRecord updated on every save (FIFO-bounded history)
- temperature analysis with a rising/falling/stable trend
- most common conditions over a window
- flattened tabular data (pandas) for export

The store it reads from is whatever exposes the StorageBackend read and
analytics methods; in practice the StorageRouter, so analytics always
follow the active backend.
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any, List, Optional, Sequence, TypedDict

import numpy as np
import pandas as pd

from home_weather.export import export_records, records_to_frame
from home_weather.models import (
    AIR_QUALITY_HISTORY_LIMIT,
    CONDITION_HISTORY_LIMIT,
    TEMPERATURE_HISTORY_LIMIT,
    AnalyticsRecord,
    PersistedRecord,
    WeatherSnapshot,
    utcnow,
)

logger = logging.getLogger(__name__)

TREND_THRESHOLD_C = 1.0
TOP_CONDITIONS = 5


class TemperatureAnalysis(TypedDict):
    average: float
    minimum: float
    maximum: float
    data_points: int
    trend: str


class ConditionFrequency(TypedDict):
    condition: str
    count: int
    percentage: int


def calculate_trend(values: Sequence[float]) -> str:
    """
    Classify a temperature series as "rising", "falling" or "stable".

    The series is split at len // 2 and the half means compared; a
    difference beyond +/-1°C is a trend. Fewer than two values is stable.
    """
    if len(values) < 2:
        return "stable"

    mid = len(values) // 2
    first_avg = float(np.mean(values[:mid]))
    second_avg = float(np.mean(values[mid:]))
    difference = second_avg - first_avg

    if difference > TREND_THRESHOLD_C:
        return "rising"
    if difference < -TREND_THRESHOLD_C:
        return "falling"
    return "stable"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _trim(history: List[Any], limit: int) -> None:
    del history[:-limit]


class AnalyticsEngine:

    def __init__(self, store: Any):
        self.store = store

    async def record_observation(
        self,
        location: str,
        snapshot: WeatherSnapshot,
        at: Optional[datetime] = None,
    ) -> AnalyticsRecord:
        """Fold one saved snapshot into the location's rolling history."""
        at = at or utcnow()
        record = await self.store.load_analytics(location)
        if record is None:
            logger.info(f"[AnalyticsEngine] First observation of {location}")
            record = AnalyticsRecord(location=location, first_seen=at, last_seen=at)

        record.last_seen = at
        record.total_requests += 1
        stamp = at.isoformat()
        current = snapshot.current

        if current is not None and current.temperature is not None:
            record.temperature_history.append({"value": current.temperature, "at": stamp})
            _trim(record.temperature_history, TEMPERATURE_HISTORY_LIMIT)
            temps = [h["value"] for h in record.temperature_history]
            record.avg_temperature = round(float(np.mean(temps)), 2)

        if current is not None and current.condition:
            record.condition_history.append({"condition": current.condition, "at": stamp})
            _trim(record.condition_history, CONDITION_HISTORY_LIMIT)

        aq = snapshot.air_quality
        if aq is not None and (aq.pm2_5 is not None or aq.pm10 is not None):
            record.air_quality_history.append({"pm2_5": aq.pm2_5, "pm10": aq.pm10, "at": stamp})
            _trim(record.air_quality_history, AIR_QUALITY_HISTORY_LIMIT)

        await self.store.save_analytics(record)
        logger.debug(f"[AnalyticsEngine] {location}: {record.total_requests} observations, "
                     f"avg {record.avg_temperature}C")
        return record

    async def _window(self, location: str, days: float) -> List[PersistedRecord]:
        return await self.store.query(location, days)

    async def temperature_analysis(self, location: str, days: float = 7) -> Optional[TemperatureAnalysis]:
        records = await self._window(location, days)
        temps = [
            r.snapshot.current.temperature for r in records
            if r.snapshot.current is not None and r.snapshot.current.temperature is not None
        ]
        if not temps:
            logger.info(f"[AnalyticsEngine] No temperature readings for {location} in the last {days} days")
            return None

        return {
            "average": round(float(np.mean(temps)), 1),
            "minimum": float(min(temps)),
            "maximum": float(max(temps)),
            "data_points": len(temps),
            "trend": calculate_trend(temps),
        }

    async def common_conditions(self, location: str, days: float = 7) -> List[ConditionFrequency]:
        """Top conditions by count; percentages are relative to this window only."""
        records = await self._window(location, days)
        conditions = [
            r.snapshot.current.condition for r in records
            if r.snapshot.current is not None and r.snapshot.current.condition
        ]
        if not conditions:
            return []

        total = len(conditions)
        return [
            {"condition": condition, "count": count, "percentage": _round_half_up(count / total * 100)}
            for condition, count in Counter(conditions).most_common(TOP_CONDITIONS)
        ]

    async def location_summary(self, location: str) -> Optional[AnalyticsRecord]:
        return await self.store.load_analytics(location)

    async def to_frame(self, location: str, days: float = 7) -> pd.DataFrame:
        return records_to_frame(await self._window(location, days))

    async def daily_summary(self, location: str, days: float = 7) -> pd.DataFrame:
        """Per-day temperature mean/min/max and observation count."""
        frame = await self.to_frame(location, days)
        if frame.empty:
            return pd.DataFrame(columns=["date", "average", "minimum", "maximum", "observations"])

        frame["date"] = pd.to_datetime(frame["Timestamp"], utc=True).dt.date
        frame["Temperature"] = pd.to_numeric(frame["Temperature"], errors="coerce")
        grouped = frame.groupby("date")["Temperature"]
        summary = pd.DataFrame({
            "average": grouped.mean().round(1),
            "minimum": grouped.min(),
            "maximum": grouped.max(),
            "observations": grouped.count(),
        }).reset_index()
        return summary

    async def export(self, location: str, days: float = 7, fmt: str = "csv") -> bytes:
        records = await self._window(location, days)
        summary = await self.store.load_analytics(location)
        return export_records(records, [summary] if summary else [], fmt, location, utcnow())
