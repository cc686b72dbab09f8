"""
Home Weather: acquisition and persistence layer for the household dashboard

Fetches weather from two independent providers with fallback, keeps a short
in-memory TTL cache, persists snapshots behind a swappable storage backend
(local JSON file or remote Redis) and derives rolling analytics from the
stored history.

Architecture:
    providers/     - One client per external API:
                     * weatherapi.py     - WeatherAPI.com (daily buckets, AQI, alerts)
                     * openweathermap.py - OpenWeatherMap (3-hour steps)
    aggregator.py  - Primary/secondary fallback + current/forecast merge
    cache.py       - TTL cache for raw provider payloads
    storage/       - Local and remote backends, router, migration
    analytics.py   - Temperature trend, condition frequency, tabular export
    services.py    - Process-wide wiring of the above

Entry Points:
    main.py        - Command line interface
"""

__version__ = "1.0.0"
__author__ = "Home Hub"
