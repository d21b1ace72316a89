"""Met Office Weather DataHub (site-specific hourly) provider implementation."""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests

from weather_data import WeatherLocation, WeatherUnits, fahrenheit_to_celsius, normalize_temperature
from weather_errors import ConfigError, NetworkError, ProviderMappingError
from weather_provider import ProviderResponse, WeatherProviderBase, handle_error_response

# Met Office significant weather code -> WMO weather interpretation code
SIGNIFICANT_WEATHER_TO_WMO = {
    -1: 51,  # trace rain
    0: 0,    # clear night
    1: 0,    # sunny day
    2: 2,    # partly cloudy (night)
    3: 2,    # partly cloudy (day)
    4: 3,    # not used
    5: 45,   # mist
    6: 45,   # fog
    7: 3,    # cloudy
    8: 3,    # overcast
    9: 80,   # light rain shower (night)
    10: 80,  # light rain shower (day)
    11: 53,  # drizzle
    12: 61,  # light rain
    13: 82,  # heavy rain shower (night)
    14: 82,  # heavy rain shower (day)
    15: 65,  # heavy rain
    16: 66,  # sleet shower (night)
    17: 66,  # sleet shower (day)
    18: 67,  # sleet
    19: 96,  # hail shower (night)
    20: 96,  # hail shower (day)
    21: 96,  # hail
    22: 85,  # light snow shower (night)
    23: 85,  # light snow shower (day)
    24: 71,  # light snow
    25: 86,  # heavy snow shower (night)
    26: 86,  # heavy snow shower (day)
    27: 75,  # heavy snow
    28: 95,  # thunder shower (night)
    29: 95,  # thunder shower (day)
    30: 95,  # thunder
}

NIGHT_CODES = {0, 2, 9, 13, 16, 19, 22, 25, 28}

# The hourly feed has no cloud cover; estimate it from the weather type
ESTIMATED_CLOUD_COVER = {0: 0.0, 1: 0.0, 2: 40.0, 3: 40.0, 5: 100.0, 6: 100.0, 7: 75.0, 8: 100.0}
PRECIPITATING_CLOUD_COVER = 90.0

MS_TO_KMH = 3.6
MS_TO_MPH = 2.236936
MM_PER_INCH = 25.4


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_series_time(value: str) -> datetime:
    """Parse the feed's loose ISO time ("2024-05-01T12:00Z") as an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
        if text.count(":") == 1:
            text += ":00"
        text += "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_api_key(api_key: Optional[str]) -> str:
    """
    Reject keys that cannot be sent as an HTTP header value.

    Raises:
        ConfigError: Key is missing, empty, or has characters outside visible ASCII
    """
    if not api_key or not api_key.strip():
        raise ConfigError("API key is empty for Met Office provider (set MET_OFFICE_API_KEY)")
    if any(not (32 <= ord(ch) < 127) for ch in api_key):
        raise ConfigError("Invalid Met Office API key: only visible ASCII characters (32-127) are permitted")
    return api_key


class MetOfficeProvider(WeatherProviderBase):
    """
    Weather provider using the Met Office Weather DataHub hourly point forecast.

    The DataHub free tier is rate limited, so the last successful payload is
    memoized and reused while one of its hourly entries still covers now.
    The memo lock is only ever tried, never waited on: a caller that finds it
    held performs its own fetch.
    """

    provider_id = "met-office"
    # day/night is inferred from the weather code
    supplies_is_day = False
    BASE_URL = "https://data.hub.api.metoffice.gov.uk/sitespecific/v0"
    NAME = "Met Office"
    DEFAULT_DATA_SOURCE = "BD1"

    def __init__(
        self,
        api_key: Optional[str],
        data_source: str = DEFAULT_DATA_SOURCE,
        include_location_name: bool = True,
        timeout: float = 30,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize Met Office provider.

        Args:
            api_key: DataHub API key (sent as the "apikey" header)
            data_source: DataHub data source id (default "BD1")
            include_location_name: Ask the API to include the nearest place name
            timeout: HTTP request timeout in seconds
            clock: Returns the current aware UTC datetime

        Raises:
            ConfigError: If the API key is missing or malformed
        """
        self.api_key = validate_api_key(api_key)
        self.data_source = data_source or self.DEFAULT_DATA_SOURCE
        self.include_location_name = include_location_name
        self.timeout = timeout
        self._clock = clock

        self._memo_lock = threading.Lock()
        self._last_response: Optional[dict] = None
        self._last_location_key: Optional[str] = None

    def attribution(self) -> str:
        # Required by the DataHub terms and conditions
        return "Data supplied by the Met Office"

    def build_url(self) -> str:
        return f"{self.BASE_URL}/point/hourly"

    def build_params(self, location: WeatherLocation) -> dict:
        return {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "includeLocationName": str(self.include_location_name).lower(),
            "dataSource": self.data_source,
        }

    def _fetch(self, location: WeatherLocation) -> dict:
        url = self.build_url()
        headers = {"apikey": self.api_key, "accept": "application/json"}
        try:
            logging.info(f"Making Met Office API request: {url}")
            response = requests.get(url, params=self.build_params(location), headers=headers, timeout=self.timeout)
            logging.info(f"API response status: {response.status_code}")
            if not response.ok:
                handle_error_response(response, self.NAME, url)
            data = response.json()
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise NetworkError.from_requests(e, url, self.timeout) from e
        except ValueError as e:
            logging.error(f"API response was not valid JSON: {e}")
            raise NetworkError.from_requests(e, url, self.timeout) from e

        if not isinstance(data, dict):
            raise ProviderMappingError(self.NAME, "Response is not a JSON object")
        return data

    def current_time_series(self, data: dict) -> Optional[dict]:
        """Return the hourly entry whose [start, start + 1h] window covers now."""
        features = data.get("features") or []
        if not features:
            return None
        try:
            series = features[0]["properties"]["timeSeries"]
        except (KeyError, TypeError, IndexError):
            return None

        now = self._clock()
        for item in series:
            try:
                start = parse_series_time(item["time"])
            except (KeyError, TypeError, ValueError, AttributeError):
                continue
            if start <= now <= start + timedelta(hours=1):
                return item
        return None

    def _memoized_or_fetch(self, location: WeatherLocation) -> dict:
        if not self._memo_lock.acquire(blocking=False):
            logging.debug("Met Office memo busy, fetching independently")
            return self._fetch(location)
        try:
            data = self._last_response
            if (
                data is not None
                and self._last_location_key == location.key
                and self.current_time_series(data) is not None
            ):
                logging.debug("Reusing memoized Met Office response")
                return data
            data = self._fetch(location)
            self._last_response = data
            self._last_location_key = location.key
            return data
        finally:
            self._memo_lock.release()

    def get_current_weather(self, location: WeatherLocation, units: WeatherUnits) -> ProviderResponse:
        """
        Fetch (or reuse) the hourly forecast and return the entry covering now.

        Raises:
            NetworkError: Connection, timeout or transient HTTP failure
            ProviderMappingError: No entry covers now, or fields are missing
        """
        data = self._memoized_or_fetch(location)
        current = self.current_time_series(data)
        if current is None:
            raise ProviderMappingError(self.NAME, "No forecast entry covers the current hour")
        return self.map_time_series(current, data.get("parameters") or [], units)

    def map_time_series(self, item: dict, parameters: list, units: WeatherUnits) -> ProviderResponse:
        imperial = units is WeatherUnits.IMPERIAL
        try:
            code = int(item["significantWeatherCode"])
            wind_ms = float(item["windSpeed10m"])
            precip_mm = float(item.get("precipitationRate") or 0.0)
            visibility = item.get("visibility")
            result = ProviderResponse(
                weather_code=SIGNIFICANT_WEATHER_TO_WMO.get(code, 0),
                temperature=self.normalize_temperature_field(
                    "screenTemperature", float(item["screenTemperature"]), parameters, units
                ),
                apparent_temperature=self.normalize_temperature_field(
                    "feelsLikeTemperature", float(item["feelsLikeTemperature"]), parameters, units
                ),
                humidity=float(item["screenRelativeHumidity"]),
                precipitation=precip_mm / MM_PER_INCH if imperial else precip_mm,
                wind_speed=wind_ms * (MS_TO_MPH if imperial else MS_TO_KMH),
                wind_direction=float(item["windDirectionFrom10m"]),
                cloud_cover=ESTIMATED_CLOUD_COVER.get(code, PRECIPITATING_CLOUD_COVER),
                pressure=float(item["mslp"]) / 100.0,  # Pa -> hPa
                visibility=float(visibility) if visibility is not None else None,
                is_day=0 if code in NIGHT_CODES else 1,
                moon_phase=None,
                timestamp=str(item["time"]),
                attribution=self.attribution(),
            )
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Failed to parse Met Office time series: {e}", exc_info=True)
            raise ProviderMappingError(self.NAME, f"Failed to parse response: missing or invalid {e}") from e
        return result

    @staticmethod
    def find_parameter(parameters: list, name: str) -> Optional[dict]:
        for group in parameters:
            if isinstance(group, dict) and name in group:
                return group[name]
        return None

    @classmethod
    def normalize_temperature_field(cls, name: str, value: float, parameters: list, units: WeatherUnits) -> float:
        """
        Express a temperature field in the requested units.

        The feed declares units in its "parameters" block; when the field is
        declared with any label other than degrees Celsius the value is taken
        as Fahrenheit. Undeclared fields are Celsius.
        """
        param = cls.find_parameter(parameters, name)
        if param and param.get("type") == "Parameter":
            label = (param.get("unit") or {}).get("label", "degrees Celsius")
            if label != "degrees Celsius":
                return normalize_temperature(fahrenheit_to_celsius(value), units)
        return normalize_temperature(value, units)
