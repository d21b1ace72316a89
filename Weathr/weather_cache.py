"""TTL-based JSON disk cache for location, geocode and weather artifacts.

Reads never raise: a missing directory, unreadable file, bad JSON, key
mismatch or expired entry all come back as None. Writes are best effort and
by default run on a detached thread so callers never wait on the disk.
"""
import json
import logging
import os
import sys
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from weather_data import WeatherData, WeatherLocation, WeatherUnits, location_key

APP_DIR_NAME = "weathr"

LOCATION_CACHE_TTL_SECONDS = 86400
GEOCODE_CACHE_TTL_SECONDS = 86400
WEATHER_CACHE_TTL_SECONDS = 300


class CacheKind(Enum):
    """Artifact kinds; each lives in its own single-slot file."""
    LOCATION = "location"
    GEOCODE = "geocode"
    WEATHER = "weather"

    @property
    def ttl_seconds(self) -> int:
        return _TTLS[self]

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


_TTLS = {
    CacheKind.LOCATION: LOCATION_CACHE_TTL_SECONDS,
    CacheKind.GEOCODE: GEOCODE_CACHE_TTL_SECONDS,
    CacheKind.WEATHER: WEATHER_CACHE_TTL_SECONDS,
}


def weather_cache_key(
    latitude: float, longitude: float, provider_id: str, units: Optional[WeatherUnits] = None
) -> str:
    key = f"{location_key(latitude, longitude)}|{provider_id}"
    if units is not None:
        key += f"|{units.value}"
    return key


def geocode_cache_key(latitude: float, longitude: float, language: str) -> str:
    return f"{location_key(latitude, longitude)}|{language}"


def default_cache_dir() -> Optional[str]:
    """
    Resolve the per-user cache directory for this application.

    Returns:
        Path to <platform cache dir>/weathr, or None when the platform offers none
    """
    override = os.getenv("WEATHR_CACHE_DIR")
    if override:
        return override

    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA")
    elif sys.platform == "darwin":
        home = os.path.expanduser("~")
        base = os.path.join(home, "Library", "Caches") if home != "~" else None
    else:
        base = os.getenv("XDG_CACHE_HOME")
        if not base:
            home = os.path.expanduser("~")
            base = os.path.join(home, ".cache") if home != "~" else None

    if not base:
        return None
    return os.path.join(base, APP_DIR_NAME)


class CacheStore:
    """
    Generic TTL key/value persistence, one JSON file per CacheKind.

    File layout: {"value": <payload>, "cached_at": <unix seconds>, "key": <key>}
    """

    def __init__(
        self,
        cache_dir: Optional[str],
        write_in_background: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            cache_dir: Directory for cache files; None disables caching (always miss)
            write_in_background: Write on a detached daemon thread
            clock: Returns the current unix time in seconds
        """
        self.cache_dir = cache_dir
        self.write_in_background = write_in_background
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _path(self, kind: CacheKind) -> Optional[str]:
        if not self.cache_dir:
            return None
        return os.path.join(self.cache_dir, kind.filename)

    def get(self, kind: CacheKind, key: str = "") -> Optional[Any]:
        """Return the cached payload for kind if fresh and keyed for this request."""
        path = self._path(kind)
        if path is None:
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            cached_at = int(entry["cached_at"])
            stored_key = entry["key"]
            value = entry["value"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logging.debug(f"Cache miss for {kind.value}: {e}")
            return None

        if stored_key != key:
            logging.debug(f"Cache miss for {kind.value}: key {stored_key!r} != {key!r}")
            return None

        age = self._now() - cached_at
        if age < kind.ttl_seconds:
            logging.debug(f"Cache hit for {kind.value} (age: {age}s, TTL: {kind.ttl_seconds}s)")
            return value
        logging.debug(f"Cache expired for {kind.value} (age: {age}s > TTL: {kind.ttl_seconds}s)")
        return None

    def put(self, kind: CacheKind, key: str, value: Any) -> None:
        """Persist value for kind. Failures are logged at debug level and dropped."""
        if not self.cache_dir:
            return
        entry = {"value": value, "cached_at": self._now(), "key": key}
        if self.write_in_background:
            threading.Thread(
                target=self._write,
                args=(kind, entry),
                name=f"cache-write-{kind.value}",
                daemon=True,
            ).start()
        else:
            self._write(kind, entry)

    def _write(self, kind: CacheKind, entry: dict) -> None:
        path = self._path(kind)
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            payload = json.dumps(entry)
            tmp_path = f"{path}.{threading.get_ident()}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logging.debug(f"Cache write for {kind.value} failed: {e}")

    # Typed accessors ----------------------------------------------------

    def load_location(self) -> Optional[WeatherLocation]:
        value = self.get(CacheKind.LOCATION)
        if value is None:
            return None
        try:
            return WeatherLocation(
                latitude=float(value["latitude"]),
                longitude=float(value["longitude"]),
                elevation=value.get("elevation"),
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            return None

    def save_location(self, location: WeatherLocation, city: Optional[str] = None) -> None:
        self.put(
            CacheKind.LOCATION,
            "",
            {
                "latitude": location.latitude,
                "longitude": location.longitude,
                "elevation": location.elevation,
                "city": city,
            },
        )

    def load_location_city(self) -> Optional[str]:
        value = self.get(CacheKind.LOCATION)
        if isinstance(value, dict):
            city = value.get("city")
            return city if isinstance(city, str) else None
        return None

    def load_geocode(self, latitude: float, longitude: float, language: str) -> Optional[str]:
        value = self.get(CacheKind.GEOCODE, geocode_cache_key(latitude, longitude, language))
        return value if isinstance(value, str) else None

    def save_geocode(self, city_name: str, latitude: float, longitude: float, language: str) -> None:
        self.put(CacheKind.GEOCODE, geocode_cache_key(latitude, longitude, language), city_name)

    def load_weather(
        self,
        latitude: float,
        longitude: float,
        provider_id: str,
        units: Optional[WeatherUnits] = None,
    ) -> Optional[WeatherData]:
        value = self.get(CacheKind.WEATHER, weather_cache_key(latitude, longitude, provider_id, units))
        if value is None:
            return None
        try:
            return WeatherData.from_dict(value)
        except (KeyError, TypeError, ValueError, AttributeError):
            return None

    def save_weather(
        self,
        weather: WeatherData,
        latitude: float,
        longitude: float,
        provider_id: str,
        units: Optional[WeatherUnits] = None,
    ) -> None:
        self.put(
            CacheKind.WEATHER,
            weather_cache_key(latitude, longitude, provider_id, units),
            weather.to_dict(),
        )
