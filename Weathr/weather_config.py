"""Configuration from the environment (and an optional .env file)."""
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from dotenv import load_dotenv

from aad_provider import AADProvider
from met_office_provider import MetOfficeProvider
from open_meteo_provider import OpenMeteoProvider
from weather_data import WeatherLocation, WeatherUnits
from weather_errors import ConfigError
from weather_provider import SupplementaryProviderBase, WeatherProviderBase
from weather_refresh import REFRESH_INTERVAL_SECONDS

DEFAULT_LATITUDE = 52.52
DEFAULT_LONGITUDE = 13.41


@dataclass
class Config:
    latitude: float = DEFAULT_LATITUDE
    longitude: float = DEFAULT_LONGITUDE
    units: WeatherUnits = WeatherUnits.METRIC
    provider: str = OpenMeteoProvider.provider_id
    met_office_api_key: Optional[str] = None
    met_office_data_source: str = MetOfficeProvider.DEFAULT_DATA_SOURCE
    supplementary: Optional[str] = None
    refresh_interval: float = REFRESH_INTERVAL_SECONDS
    auto_location: bool = False
    language: str = "en"
    cache_dir: Optional[str] = None

    @property
    def location(self) -> WeatherLocation:
        return WeatherLocation(self.latitude, self.longitude)


def _build_open_meteo(config: Config) -> WeatherProviderBase:
    return OpenMeteoProvider()


def _build_met_office(config: Config) -> WeatherProviderBase:
    return MetOfficeProvider(api_key=config.met_office_api_key, data_source=config.met_office_data_source)


PROVIDERS: Dict[str, Callable[[Config], WeatherProviderBase]] = {
    OpenMeteoProvider.provider_id: _build_open_meteo,
    MetOfficeProvider.provider_id: _build_met_office,
}

SUPPLEMENTARY_PROVIDERS: Dict[str, Callable[[Config], SupplementaryProviderBase]] = {
    "aad": lambda config: AADProvider(),
}


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid {name}: {value!r} is not a number") from exc


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[str] = None) -> Config:
    """
    Build a Config from WEATHR_* environment variables.

    Raises:
        ConfigError: If a value is present but invalid
    """
    load_dotenv(env_file)
    config = Config()

    lat = os.getenv("WEATHR_LAT")
    lon = os.getenv("WEATHR_LON")
    if bool(lat) != bool(lon):
        raise ConfigError("Set both WEATHR_LAT and WEATHR_LON, or neither")
    if lat and lon:
        config.latitude = _parse_float("WEATHR_LAT", lat)
        config.longitude = _parse_float("WEATHR_LON", lon)
        if not -90.0 <= config.latitude <= 90.0:
            raise ConfigError(f"Invalid WEATHR_LAT: {config.latitude} is outside -90..90")
        if not -180.0 <= config.longitude <= 180.0:
            raise ConfigError(f"Invalid WEATHR_LON: {config.longitude} is outside -180..180")

    units = os.getenv("WEATHR_UNITS")
    if units:
        try:
            config.units = WeatherUnits(units.strip().lower())
        except ValueError as exc:
            raise ConfigError(f"Invalid WEATHR_UNITS: {units!r} (expected metric or imperial)") from exc

    provider = os.getenv("WEATHR_PROVIDER")
    if provider:
        config.provider = provider.strip().lower()
    if config.provider not in PROVIDERS:
        raise ConfigError(f"Unknown provider {config.provider!r}. Available: {', '.join(sorted(PROVIDERS))}")

    config.met_office_api_key = os.getenv("MET_OFFICE_API_KEY")
    config.met_office_data_source = os.getenv("MET_OFFICE_DATA_SOURCE") or config.met_office_data_source

    supplementary = (os.getenv("WEATHR_SUPPLEMENTARY") or "").strip().lower()
    if supplementary:
        if supplementary not in SUPPLEMENTARY_PROVIDERS:
            raise ConfigError(f"Unknown supplementary provider {supplementary!r}")
        config.supplementary = supplementary

    interval = os.getenv("WEATHR_REFRESH_INTERVAL")
    if interval:
        config.refresh_interval = _parse_float("WEATHR_REFRESH_INTERVAL", interval)
        if config.refresh_interval <= 0:
            raise ConfigError("WEATHR_REFRESH_INTERVAL must be positive")

    config.auto_location = _parse_bool(os.getenv("WEATHR_AUTO_LOCATION"))
    config.language = os.getenv("WEATHR_LANG", config.language)
    config.cache_dir = os.getenv("WEATHR_CACHE_DIR") or None

    logging.info(
        f"Configuration loaded: lat={config.latitude} lon={config.longitude} "
        f"units={config.units.value} provider={config.provider}"
    )
    return config


def build_provider(config: Config) -> WeatherProviderBase:
    """
    Construct the configured primary provider.

    Raises:
        ConfigError: Unknown provider or missing/invalid credentials
    """
    try:
        factory = PROVIDERS[config.provider]
    except KeyError as exc:
        raise ConfigError(f"Unknown provider {config.provider!r}") from exc
    return factory(config)


def build_supplementary(config: Config) -> Optional[SupplementaryProviderBase]:
    if not config.supplementary:
        return None
    return SUPPLEMENTARY_PROVIDERS[config.supplementary](config)
