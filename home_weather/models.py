"""
Canonical data model for the weather layer.

Every snapshot carries metric units (°C, km/h, km, hPa) no matter which
provider produced it; the provider normalizers are the only place where
conversion happens. All types are frozen dataclasses with tuple sequences
so a snapshot cannot be mutated once created.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypedDict


class ProviderId(str, Enum):
    """External weather APIs known to the aggregator."""
    WEATHERAPI = "weatherapi"
    OPENWEATHERMAP = "openweathermap"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class LocationRef:
    name: str
    country: Optional[str] = None
    region: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    timezone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationRef":
        return cls(**data)


@dataclass(frozen=True)
class AirQuality:
    co: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None
    us_epa_index: Optional[int] = None
    gb_defra_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AirQuality":
        return cls(**data)


@dataclass(frozen=True)
class CurrentConditions:
    temperature: Optional[float]
    feels_like: Optional[float]
    condition: Optional[str]
    humidity: Optional[float]
    wind_speed: Optional[float]          # km/h
    wind_direction: Optional[str]        # 16-point compass label
    pressure: Optional[float]            # hPa
    visibility: Optional[float]          # km
    uv_index: Optional[float]
    cloud_cover: Optional[float]
    last_updated: Optional[str]
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurrentConditions":
        return cls(**data)


@dataclass(frozen=True)
class HourlyPoint:
    time: str                            # "YYYY-MM-DD HH:MM"
    temperature: Optional[float]
    condition: Optional[str]
    humidity: Optional[float]
    wind_speed: Optional[float]
    chance_of_rain: Optional[float]
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HourlyPoint":
        return cls(**data)


@dataclass(frozen=True)
class DailyForecast:
    date: str
    max_temp: Optional[float]
    min_temp: Optional[float]
    condition: Optional[str]
    humidity: Optional[float]
    wind_speed: Optional[float]
    chance_of_rain: Optional[float]
    chance_of_snow: Optional[float] = None
    uv_index: Optional[float] = None
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    moon_phase: Optional[str] = None
    icon: Optional[str] = None
    hourly: Tuple[HourlyPoint, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hourly"] = [h.to_dict() for h in self.hourly]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyForecast":
        values = dict(data)
        values["hourly"] = tuple(HourlyPoint.from_dict(h) for h in values.get("hourly", []))
        return cls(**values)


@dataclass(frozen=True)
class Alert:
    headline: Optional[str]
    description: Optional[str] = None
    severity: Optional[str] = None
    areas: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        return cls(**data)


@dataclass(frozen=True)
class WeatherSnapshot:
    """One immutable, normalized observation for a location."""
    location: LocationRef
    current: Optional[CurrentConditions]
    provider: ProviderId
    observed_at: datetime
    forecast: Tuple[DailyForecast, ...] = ()
    air_quality: Optional[AirQuality] = None
    alerts: Tuple[Alert, ...] = ()

    def merged_with(self, **changes: Any) -> "WeatherSnapshot":
        """Return a new snapshot with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location.to_dict(),
            "current": self.current.to_dict() if self.current else None,
            "forecast": [d.to_dict() for d in self.forecast],
            "air_quality": self.air_quality.to_dict() if self.air_quality else None,
            "alerts": [a.to_dict() for a in self.alerts],
            "provider": self.provider.value,
            "observed_at": self.observed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherSnapshot":
        return cls(
            location=LocationRef.from_dict(data["location"]),
            current=CurrentConditions.from_dict(data["current"]) if data.get("current") else None,
            forecast=tuple(DailyForecast.from_dict(d) for d in data.get("forecast", [])),
            air_quality=AirQuality.from_dict(data["air_quality"]) if data.get("air_quality") else None,
            alerts=tuple(Alert.from_dict(a) for a in data.get("alerts", [])),
            provider=ProviderId(data["provider"]),
            observed_at=parse_timestamp(data["observed_at"]),
        )


@dataclass(frozen=True)
class PersistedRecord:
    """
    The durable unit written to a storage backend.

    Serialized as {id, location, data, timestamp, owner_id}; `location` plus
    `stored_at` is the query key.
    """
    id: str
    location: str
    snapshot: WeatherSnapshot
    stored_at: datetime
    owner_id: str = "anonymous"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "location": self.location,
            "data": self.snapshot.to_dict(),
            "timestamp": self.stored_at.isoformat(),
            "owner_id": self.owner_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedRecord":
        return cls(
            id=data["id"],
            location=data["location"],
            snapshot=WeatherSnapshot.from_dict(data["data"]),
            stored_at=parse_timestamp(data["timestamp"]),
            owner_id=data.get("owner_id") or "anonymous",
        )


TEMPERATURE_HISTORY_LIMIT = 100
CONDITION_HISTORY_LIMIT = 50
AIR_QUALITY_HISTORY_LIMIT = 50


@dataclass
class AnalyticsRecord:
    """
    Per-location rolling history, accumulated incrementally.

    Unlike snapshots this is mutable: AnalyticsEngine appends to it on every
    save and trims each history FIFO to its bound.
    """
    location: str
    first_seen: datetime
    last_seen: datetime
    total_requests: int = 0
    avg_temperature: Optional[float] = None
    temperature_history: List[Dict[str, Any]] = field(default_factory=list)
    condition_history: List[Dict[str, Any]] = field(default_factory=list)
    air_quality_history: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "total_requests": self.total_requests,
            "avg_temperature": self.avg_temperature,
            "temperature_history": list(self.temperature_history),
            "condition_history": list(self.condition_history),
            "air_quality_history": list(self.air_quality_history),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyticsRecord":
        return cls(
            location=data["location"],
            first_seen=parse_timestamp(data["first_seen"]),
            last_seen=parse_timestamp(data["last_seen"]),
            total_requests=int(data.get("total_requests", 0)),
            avg_temperature=data.get("avg_temperature"),
            temperature_history=list(data.get("temperature_history", [])),
            condition_history=list(data.get("condition_history", [])),
            air_quality_history=list(data.get("air_quality_history", [])),
        )


class LocationCandidate(TypedDict):
    """Location search hit."""
    id: Optional[int]
    name: str
    country: Optional[str]
    region: Optional[str]
    lat: Optional[float]
    lon: Optional[float]
    url: Optional[str]
