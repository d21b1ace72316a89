"""Console weather display: keeps a reading fresh and prints a status line."""
import argparse
import logging
import os
import signal
import sys
import time
from typing import Optional

from weather_cache import CacheStore, default_cache_dir
from weather_config import PROVIDERS, Config, build_provider, build_supplementary, load_config
from weather_data import WeatherCondition, WeatherUnits
from weather_errors import ConfigError, WeatherProviderError
from weather_geocoding import geocode_city, reverse_geocode
from weather_geolocation import detect_location
from weather_refresh import RefreshOrchestrator, SessionState
from weather_service import WeatherService

DEFAULT_LOG_FILE = os.path.join(os.getcwd(), "weathr.log")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("weathr", description="Terminal weather display")
    parser.add_argument("city", nargs="*", help="City name for weather lookup (e.g. weathr london)")
    parser.add_argument("--auto-location", action="store_true", help="Auto-detect location via IP (ipinfo.io)")
    units = parser.add_mutually_exclusive_group()
    units.add_argument("--imperial", action="store_true", help="Use imperial units (°F, mph, inch)")
    units.add_argument("--metric", action="store_true", help="Use metric units (°C, km/h, mm)")
    parser.add_argument("--provider", choices=sorted(PROVIDERS), help="Weather data provider")
    parser.add_argument("-s", "--simulate", metavar="CONDITION", help="Simulate weather condition (clear, rain, snow, ...)")
    parser.add_argument("-n", "--night", action="store_true", help="Simulate night time")
    parser.add_argument("-d", "--duration", type=float, metavar="SECONDS", help="Run for a duration then exit")
    parser.add_argument("--tick", type=float, default=1.0, help="Seconds between status updates")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def format_status(state: SessionState, units: WeatherUnits, label: Optional[str] = None) -> str:
    """Single HUD line for the current session state."""
    weather = state.current_weather
    if weather is None:
        text = "Loading weather..."
    else:
        time_of_day = "day" if weather.is_day else "night"
        text = (
            f"{weather.condition.value.replace('-', ' ').title()} "
            f"{weather.temperature:.1f}{units.temperature_symbol} "
            f"(feels {weather.apparent_temperature:.1f}{units.temperature_symbol}) "
            f"Hum {weather.humidity:.0f}% "
            f"Wind {weather.wind_speed:.1f}{units.wind_speed_symbol} "
            f"Precip {weather.precipitation:.1f}{units.precipitation_symbol} "
            f"[{time_of_day}]"
        )
    if label:
        text = f"{label}: {text}"
    if state.offline:
        text = f"[Offline] {text}"
    if state.refreshing:
        text = f"[Refreshing...] {text}"
    return text


def resolve_location(config: Config, args: argparse.Namespace, cache: CacheStore) -> Optional[str]:
    """Apply city / auto-location overrides to config; return a display label."""
    if args.city:
        city = " ".join(args.city)
        try:
            found = geocode_city(city)
        except WeatherProviderError as err:
            raise SystemExit(err.user_friendly_message()) from err
        config.latitude, config.longitude = found.latitude, found.longitude
        logging.info(f"Weather for: {found.display_name} ({found.latitude:.4f}, {found.longitude:.4f})")
        return found.display_name

    if args.auto_location or config.auto_location:
        try:
            detected = detect_location(cache)
        except WeatherProviderError as err:
            logging.error(f"Location detection failed: {err.user_friendly_message()}")
        else:
            config.latitude, config.longitude = detected.latitude, detected.longitude
            logging.info(f"Location detected: {detected.city} ({detected.latitude:.4f}, {detected.longitude:.4f})")
            if detected.city:
                return detected.city

    return reverse_geocode(config.location, config.language, cache)


def build_orchestrator(config: Config, args: argparse.Namespace, cache: CacheStore) -> RefreshOrchestrator:
    if args.simulate:
        try:
            condition = WeatherCondition.parse(args.simulate)
        except ValueError as err:
            logging.error(f"{err}; simulating clear sky")
            condition = WeatherCondition.CLEAR
        orchestrator = RefreshOrchestrator(config.location, config.units, service=None)
        orchestrator.simulate(condition, night=args.night)
        return orchestrator

    try:
        provider = build_provider(config)
    except ConfigError as err:
        raise SystemExit(err.user_friendly_message()) from err
    service = WeatherService(provider=provider, cache=cache, supplementary=build_supplementary(config))
    logging.info(f"Weather service ready (provider={service.provider_id})")
    return RefreshOrchestrator(config.location, config.units, service, refresh_interval=config.refresh_interval)


def weather_loop(orchestrator: RefreshOrchestrator, args: argparse.Namespace, label: Optional[str], flags: dict) -> None:
    started = time.monotonic()
    last_status = None
    while True:
        if flags.pop("refresh", False):
            logging.info("Manual refresh requested")
            orchestrator.manual_refresh()

        orchestrator.poll()
        status = format_status(orchestrator.state, orchestrator.units, label)
        if status != last_status:
            print(status, flush=True)
            last_status = status

        if args.duration is not None and time.monotonic() - started >= args.duration:
            break
        time.sleep(max(args.tick, 0.05))


def signal_handler(signum, frame):
    logging.info(f"Received signal {signum}, shutting down")
    raise KeyboardInterrupt()


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        config = load_config()
    except ConfigError as err:
        raise SystemExit(err.user_friendly_message()) from err
    if args.imperial:
        config.units = WeatherUnits.IMPERIAL
    if args.metric:
        config.units = WeatherUnits.METRIC
    if args.provider:
        config.provider = args.provider

    cache = CacheStore(config.cache_dir or default_cache_dir())
    label = None if args.simulate else resolve_location(config, args, cache)
    orchestrator = build_orchestrator(config, args, cache)

    flags = {}
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda signum, frame: flags.__setitem__("refresh", True))

    orchestrator.start()
    try:
        weather_loop(orchestrator, args, label, flags)
    except KeyboardInterrupt:
        logging.info("Stopping display")
    finally:
        orchestrator.shutdown(timeout=1.0)
        logging.info("Refresh task stopped")


if __name__ == "__main__":
    main()
