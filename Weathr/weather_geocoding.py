"""City name <-> coordinates lookups."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from weather_cache import CacheStore
from weather_data import WeatherLocation
from weather_errors import CityNotFoundError, NetworkError, ProviderMappingError, WeatherProviderError
from weather_retry import fetch_with_retry

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
REVERSE_GEOCODING_URL = "https://nominatim.openstreetmap.org/reverse"
GEOCODING_TIMEOUT_SECONDS = 10
USER_AGENT = "weathr (terminal weather display)"


@dataclass
class GeocodedLocation:
    latitude: float
    longitude: float
    name: str
    country: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.country:
            return f"{self.name}, {self.country}"
        return self.name

    def to_location(self) -> WeatherLocation:
        return WeatherLocation(self.latitude, self.longitude)


def _get_json(url: str, params: dict, timeout: float, headers: Optional[dict] = None):
    try:
        response = requests.get(url, params=params, headers=headers, timeout=timeout)
        if not response.ok:
            status = response.status_code
            if status == 429 or status >= 500:
                raise NetworkError(f"HTTP {status}", NetworkError.HTTP_STATUS, url=url, status_code=status)
            raise ProviderMappingError("Geocoding", f"HTTP {status}")
        return response.json()
    except requests.exceptions.RequestException as e:
        raise NetworkError.from_requests(e, url, timeout) from e
    except ValueError as e:
        raise NetworkError.from_requests(e, url, timeout) from e


def _fetch_geocoding(city: str, timeout: float) -> GeocodedLocation:
    params = {"name": city, "count": 1, "language": "en", "format": "json"}
    logging.info(f"Geocoding '{city}'")
    data = _get_json(GEOCODING_URL, params, timeout)

    results = (data or {}).get("results") if isinstance(data, dict) else None
    if not results:
        raise CityNotFoundError(city)
    first = results[0]
    try:
        return GeocodedLocation(
            latitude=float(first["latitude"]),
            longitude=float(first["longitude"]),
            name=str(first["name"]),
            country=first.get("country"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderMappingError("Geocoding", f"Failed to parse result: {e}") from e


def geocode_city(
    city: str,
    timeout: float = GEOCODING_TIMEOUT_SECONDS,
    sleep: Callable[[float], object] = time.sleep,
) -> GeocodedLocation:
    """
    Resolve a city name to coordinates via the Open-Meteo geocoding API.

    Raises:
        CityNotFoundError: No match; raised on the first attempt, never retried
        RetriesExhausted: Network failures on every attempt
    """
    return fetch_with_retry(lambda: _fetch_geocoding(city, timeout), sleep=sleep)


def reverse_geocode(
    location: WeatherLocation,
    language: str = "en",
    cache: Optional[CacheStore] = None,
    timeout: float = GEOCODING_TIMEOUT_SECONDS,
) -> Optional[str]:
    """
    Return a display name (city/town) for a point, or None if unknown.

    The geocode cache is consulted first and filled on success; lookup
    failures are logged and reported as None.
    """
    if cache is not None:
        cached = cache.load_geocode(location.latitude, location.longitude, language)
        if cached is not None:
            logging.debug(f"Using cached place name for {location.key}: {cached}")
            return cached

    params = {
        "lat": location.latitude,
        "lon": location.longitude,
        "format": "json",
        "zoom": 10,
        "accept-language": language,
    }
    try:
        data = _get_json(REVERSE_GEOCODING_URL, params, timeout, headers={"User-Agent": USER_AGENT})
    except WeatherProviderError as e:
        logging.warning(f"Reverse geocoding failed: {e}")
        return None

    address = data.get("address", {}) if isinstance(data, dict) else {}
    name = None
    for field_name in ("city", "town", "village", "municipality", "county", "state"):
        if address.get(field_name):
            name = address[field_name]
            break
    if name is None:
        return None

    if cache is not None:
        cache.save_geocode(name, location.latitude, location.longitude, language)
    return name
