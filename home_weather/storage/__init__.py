"""
Storage package for Home Weather

Two interchangeable backends behind one contract, and a router that
picks the active one:

1. LocalBackend   - JSON file on this machine
2. RemoteBackend  - Redis document store scoped by owner id
"""

from home_weather.storage.base import (
    RETENTION_DAYS,
    StorageBackend,
)

from home_weather.storage.local import (
    LocalBackend,
)

from home_weather.storage.remote import (
    RemoteBackend,
)

from home_weather.storage.preference import (
    PreferenceStore,
)

from home_weather.storage.router import (
    StorageRouter,
)

__all__ = [
    "RETENTION_DAYS",
    "StorageBackend",
    "LocalBackend",
    "RemoteBackend",
    "PreferenceStore",
    "StorageRouter",
]
