"""
Home Weather: command line interface

Thin front end over the weather services for manual use and cron jobs:
fetch through the provider fallback, read/write through the active storage
backend, and inspect analytics.

Commands:
    current, forecast, search, alerts   - provider path (TTL cache only)
    weather                             - storage path (freshness check + persistence)
    analytics, export, clear-old        - history on the active backend
    migrate, use, status                - storage backend management
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from colorama import Fore, Style, init
from dotenv import load_dotenv

from home_weather.config import STORAGE_BACKENDS, WeatherConfig
from home_weather.errors import HomeWeatherError
from home_weather.export import EXPORT_FORMATS
from home_weather.models import WeatherSnapshot
from home_weather.services import WeatherServices, build_services

init()

logger = logging.getLogger("home_weather.cli")

LOG_DIR = Path("logs")


def configure_logging(level: str) -> None:
    """File + stdout logging, same format everywhere."""
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_DIR / "home_weather.log", mode='a', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Home Weather - provider fallback, storage and analytics'
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("current", help="Current conditions from the providers")
    p.add_argument("location")

    p = sub.add_parser("forecast", help="Daily forecast from the providers")
    p.add_argument("location")
    p.add_argument("--days", type=int, default=3)

    p = sub.add_parser("weather", help="Current + forecast via storage (fresh records are reused)")
    p.add_argument("location")
    p.add_argument("--cache-minutes", type=float, default=10)

    p = sub.add_parser("search", help="Search locations by name")
    p.add_argument("query")

    p = sub.add_parser("alerts", help="Active weather alerts")
    p.add_argument("location")

    p = sub.add_parser("analytics", help="Temperature trend and common conditions")
    p.add_argument("location")
    p.add_argument("--days", type=float, default=7)

    p = sub.add_parser("export", help="Export stored records")
    p.add_argument("--location", default=None)
    p.add_argument("--format", dest="fmt", choices=EXPORT_FORMATS, default="json")
    p.add_argument("--days", type=float, default=None,
                   help="Only with --location: limit to the last N days")
    p.add_argument("--output", "-o", type=Path, default=None)

    sub.add_parser("clear-old", help="Delete records outside the retention window")

    p = sub.add_parser("migrate", help="Copy all data to another backend and switch to it")
    p.add_argument("target", choices=STORAGE_BACKENDS)

    p = sub.add_parser("use", help="Switch backend without copying data")
    p.add_argument("backend", choices=STORAGE_BACKENDS)

    sub.add_parser("status", help="Providers, cache and storage status")

    return parser.parse_args(argv)


def print_snapshot(snapshot: WeatherSnapshot) -> None:
    loc = snapshot.location
    where = ", ".join(part for part in (loc.name, loc.region, loc.country) if part)
    print(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}   {where}{Style.RESET_ALL}  ({snapshot.provider.value}, {snapshot.observed_at:%Y-%m-%d %H:%M} UTC)")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")

    cur = snapshot.current
    if cur is not None:
        print(f"   {Fore.WHITE}{cur.temperature}°C{Style.RESET_ALL} (feels {cur.feels_like}°C)  {cur.condition}")
        print(f"   Humidity {cur.humidity}%  Wind {cur.wind_speed} km/h {cur.wind_direction or ''}  "
              f"Pressure {cur.pressure} hPa")

    aq = snapshot.air_quality
    if aq is not None and aq.pm2_5 is not None:
        color = Fore.RED if aq.pm2_5 > 55 else Fore.YELLOW if aq.pm2_5 > 35 else Fore.GREEN
        print(f"   Air quality: {color}PM2.5 {aq.pm2_5:.1f}{Style.RESET_ALL}  PM10 {aq.pm10}")

    for day in snapshot.forecast:
        print(f"   {day.date}  Hi {day.max_temp}°C  Lo {day.min_temp}°C  {day.condition}  "
              f"Rain {day.chance_of_rain}%")

    for alert in snapshot.alerts:
        print(f"   {Fore.RED}ALERT: {alert.headline}{Style.RESET_ALL}")
    print()


async def run_command(args, services: WeatherServices) -> int:
    aggregator = services.aggregator
    router = services.router

    if args.command == "current":
        print_snapshot(await aggregator.get_weather(args.location))

    elif args.command == "forecast":
        print_snapshot(await aggregator.get_forecast(args.location, args.days))

    elif args.command == "weather":
        print_snapshot(await router.get_weather_data(args.location, aggregator, args.cache_minutes))

    elif args.command == "search":
        results = await aggregator.search_locations(args.query)
        if not results:
            print(f"{Fore.YELLOW}No locations found for {args.query!r}{Style.RESET_ALL}")
        for item in results:
            print(f"   {item['name']}, {item['region']}, {item['country']}  ({item['lat']}, {item['lon']})")

    elif args.command == "alerts":
        alerts = await aggregator.get_weather_alerts(args.location)
        if not alerts:
            print(f"{Fore.GREEN}No active alerts for {args.location}{Style.RESET_ALL}")
        for alert in alerts:
            print(f"{Fore.RED}[{alert.severity or 'ALERT'}]{Style.RESET_ALL} {alert.headline}")
            if alert.description:
                print(f"   {alert.description}")

    elif args.command == "analytics":
        analysis = await router.analytics.temperature_analysis(args.location, args.days)
        if analysis is None:
            print(f"{Fore.YELLOW}No stored readings for {args.location} in the last {args.days:g} days{Style.RESET_ALL}")
        else:
            print(f"\n{Fore.WHITE}TEMPERATURE ({args.days:g} days, {analysis['data_points']} readings){Style.RESET_ALL}")
            print(f"   Avg {analysis['average']}°C  Min {analysis['minimum']}°C  Max {analysis['maximum']}°C  "
                  f"Trend: {analysis['trend']}")
        conditions = await router.analytics.common_conditions(args.location, args.days)
        if conditions:
            print(f"\n{Fore.WHITE}COMMON CONDITIONS{Style.RESET_ALL}")
            for item in conditions:
                print(f"   {item['condition']:<30} {item['count']:>4}  {item['percentage']}%")
        print()

    elif args.command == "export":
        if args.days is not None and args.location:
            data = await router.analytics.export(args.location, args.days, args.fmt)
        else:
            data = await router.export_all(args.location, args.fmt)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_bytes(data)
            print(f"{Fore.GREEN}Exported {len(data)} bytes to:{Style.RESET_ALL} {args.output}")
        elif args.fmt == "xlsx":
            print(f"{Fore.RED}XLSX export needs --output{Style.RESET_ALL}")
            return 1
        else:
            sys.stdout.write(data.decode("utf-8") + "\n")

    elif args.command == "clear-old":
        removed = await router.clear_old_data()
        print(f"{Fore.GREEN}Removed {removed} records older than the retention window{Style.RESET_ALL}")

    elif args.command == "migrate":
        copied = await router.migrate(args.target)
        print(f"{Fore.GREEN}Migrated {copied} records; active storage is now {router.active_name}{Style.RESET_ALL}")

    elif args.command == "use":
        router.set_preference(args.backend)
        print(f"{Fore.GREEN}Active storage is now {router.active_name}{Style.RESET_ALL}")

    elif args.command == "status":
        status = {
            "providers": aggregator.status(),
            "storage": router.storage_info(),
            "backends": router.available_backends(),
        }
        if services.remote is not None:
            status["remote_reachable"] = await services.remote.ping()
        print(json.dumps(status, indent=2))

    return 0


async def main(argv=None) -> int:
    args = parse_args(argv)

    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())

    services = None
    try:
        config = WeatherConfig.from_env(use_dotenv=False)
        logging.getLogger().setLevel(config.log_level)
        services = build_services(config)
        logger.info(f"[main] Running command: {args.command}")
        return await run_command(args, services)

    except HomeWeatherError as e:
        logger.error(f"[main] {args.command} failed: {e}")
        print(f"\n{Fore.RED}ERROR: {e}{Style.RESET_ALL}")
        return 1

    finally:
        if services is not None and services.remote is not None:
            await services.remote.close()


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
