"""IP-based location detection backed by the location cache."""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from weather_cache import CacheStore
from weather_data import WeatherLocation
from weather_errors import NetworkError, ProviderMappingError

IPINFO_URL = "https://ipinfo.io/json"
GEOLOCATION_TIMEOUT_SECONDS = 10


@dataclass
class GeoLocation:
    latitude: float
    longitude: float
    city: Optional[str] = None

    def to_location(self) -> WeatherLocation:
        return WeatherLocation(self.latitude, self.longitude)


def detect_location(cache: Optional[CacheStore] = None, timeout: float = GEOLOCATION_TIMEOUT_SECONDS) -> GeoLocation:
    """
    Detect the current location from the public IP address.

    A location cached within the last day is reused without a network call.

    Raises:
        NetworkError: ipinfo.io unreachable
        ProviderMappingError: Response lacks a usable "loc" field
    """
    if cache is not None:
        cached = cache.load_location()
        if cached is not None:
            logging.info(f"Using cached location {cached.key}")
            return GeoLocation(cached.latitude, cached.longitude, cache.load_location_city())

    try:
        logging.info("Detecting location via ipinfo.io")
        response = requests.get(IPINFO_URL, timeout=timeout)
        if not response.ok:
            raise NetworkError(
                f"ipinfo.io HTTP {response.status_code}",
                NetworkError.HTTP_STATUS,
                url=IPINFO_URL,
                status_code=response.status_code,
            )
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise NetworkError.from_requests(e, IPINFO_URL, timeout) from e
    except ValueError as e:
        raise NetworkError.from_requests(e, IPINFO_URL, timeout) from e

    try:
        lat_text, lon_text = data["loc"].split(",")
        location = GeoLocation(float(lat_text), float(lon_text), data.get("city"))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ProviderMappingError("ipinfo.io", f"Unexpected location format: {e}") from e

    if cache is not None:
        cache.save_location(location.to_location(), location.city)
    return location
