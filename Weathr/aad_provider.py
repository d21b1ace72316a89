"""US Naval Observatory Astronomical Applications (AAD) supplementary provider.

Supplies day/night and moon phase for primary providers that lack them.
"""
import logging
from datetime import datetime, time as dt_time
from typing import Callable, List, Set

import requests

from weather_data import WeatherLocation, WeatherUnits
from weather_errors import NetworkError, ProviderMappingError
from weather_provider import (
    SupplementaryProviderBase,
    SupplementaryRequest,
    SupplementaryResponse,
    handle_error_response,
)

MOON_PHASES = {
    "New Moon": 0.0,
    "Waxing Crescent": 0.15,
    "First Quarter": 0.25,
    "Waxing Gibbous": 0.35,
    "Full Moon": 0.5,
    "Waning Gibbous": 0.65,
    "Last Quarter": 0.75,
    "Waning Crescent": 0.85,
}


def moon_phase_from_name(name: str) -> float:
    """Map a phase name onto [0.0, 1.0); unknown names count as a new moon."""
    return MOON_PHASES.get(name.strip(), 0.0)


def parse_sun_time(value: str) -> dt_time:
    """Parse "HH:MM" with an optional trailing zone marker such as " ST"."""
    return datetime.strptime(value.strip().split()[0], "%H:%M").time()


def utc_offset_hours(now: datetime) -> int:
    """Whole-hour UTC offset, truncated toward zero (UTC-3:30 -> -3)."""
    offset = now.utcoffset() if now.tzinfo is not None else now.astimezone().utcoffset()
    if offset is None:
        return 0
    return int(offset.total_seconds() / 3600)


class AADProvider(SupplementaryProviderBase):
    """Supplementary provider backed by https://aa.usno.navy.mil/api/."""

    BASE_URL = "https://aa.usno.navy.mil/api/"
    NAME = "USNO AAD"

    def __init__(self, timeout: float = 30, clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            timeout: HTTP request timeout in seconds
            clock: Returns the current local (naive) datetime
        """
        self.timeout = timeout
        self._clock = clock

    def capabilities(self) -> Set[SupplementaryRequest]:
        return {SupplementaryRequest.PHASES_OF_MOON, SupplementaryRequest.SUN_AND_MOON_FOR_ONE_DAY}

    def build_request(self, requested: SupplementaryRequest, location: WeatherLocation, now: datetime):
        date = now.strftime("%Y-%m-%d")
        if requested is SupplementaryRequest.PHASES_OF_MOON:
            return f"{self.BASE_URL}moon/phases/date", {"date": date, "nump": 1}

        offset_hours = utc_offset_hours(now)
        return f"{self.BASE_URL}rstt/oneday", {
            "date": date,
            "coords": f"{location.latitude},{location.longitude}",
            "tz": offset_hours,
            "dst": "true",
        }

    def get_supplementary(
        self,
        location: WeatherLocation,
        units: WeatherUnits,
        requested: SupplementaryRequest,
    ) -> SupplementaryResponse:
        now = self._clock()
        url, params = self.build_request(requested, location, now)

        try:
            logging.info(f"Making AAD API request: {url}")
            response = requests.get(url, params=params, timeout=self.timeout)
            if not response.ok:
                handle_error_response(response, self.NAME, url)
            data = response.json()
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during AAD request: {e}")
            raise NetworkError.from_requests(e, url, self.timeout) from e
        except ValueError as e:
            raise NetworkError.from_requests(e, url, self.timeout) from e

        try:
            if requested is SupplementaryRequest.PHASES_OF_MOON:
                phase = data["phasedata"][0]["phase"]
                return SupplementaryResponse(requested, moon_phase=moon_phase_from_name(phase))

            day_data = data["properties"]["data"]
            moon_phase = moon_phase_from_name(day_data["curphase"])
            is_day = self.is_daytime(day_data["sundata"], now.time())
            return SupplementaryResponse(requested, is_day=is_day, moon_phase=moon_phase)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logging.error(f"Failed to parse AAD response: {e}")
            raise ProviderMappingError(self.NAME, f"Failed to parse response: missing or invalid {e}") from e

    @staticmethod
    def is_daytime(sun_data: List[dict], current: dt_time) -> bool:
        """
        True when current lies strictly between today's sunrise and sunset.

        Raises:
            KeyError: If the rise or set phenomenon is absent (polar day/night)
        """
        times = {entry["phen"]: entry["time"] for entry in sun_data}
        sunrise = parse_sun_time(times["Rise"])
        sunset = parse_sun_time(times["Set"])
        return sunrise < current < sunset
