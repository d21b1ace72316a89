"""Open-Meteo forecast API provider implementation."""
import logging
from typing import Optional

import requests

from weather_data import WeatherLocation, WeatherUnits, fahrenheit_to_celsius, normalize_temperature
from weather_errors import NetworkError, ProviderMappingError
from weather_provider import ProviderResponse, WeatherProviderBase, handle_error_response

CURRENT_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "precipitation",
    "weather_code",
    "cloud_cover",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "visibility",
]


class OpenMeteoProvider(WeatherProviderBase):
    """
    Weather provider using the Open-Meteo forecast API.

    Uses the free, keyless endpoint: https://open-meteo.com/en/docs
    Data is licensed under CC BY 4.0 and must be attributed.
    """

    provider_id = "open-meteo"
    BASE_URL = "https://api.open-meteo.com/v1/forecast"
    NAME = "Open-Meteo"

    def __init__(self, timeout: float = 30):
        """
        Initialize Open-Meteo provider.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout

    def attribution(self) -> str:
        return "Weather data by Open-Meteo.com"

    def build_params(self, location: WeatherLocation, units: WeatherUnits) -> dict:
        imperial = units is WeatherUnits.IMPERIAL
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current": ",".join(CURRENT_VARIABLES),
            "temperature_unit": "fahrenheit" if imperial else "celsius",
            "wind_speed_unit": "mph" if imperial else "kmh",
            "precipitation_unit": "inch" if imperial else "mm",
            "timezone": "auto",
        }
        if location.elevation is not None:
            params["elevation"] = location.elevation
        return params

    def get_current_weather(self, location: WeatherLocation, units: WeatherUnits) -> ProviderResponse:
        """
        Fetch current weather from the Open-Meteo forecast API.

        Returns:
            ProviderResponse: Current weather, normalized

        Raises:
            NetworkError: Connection, timeout or transient HTTP failure
            ProviderMappingError: Response is missing required fields
        """
        params = self.build_params(location, units)

        try:
            logging.info(f"Making Open-Meteo API request: {self.BASE_URL}")
            logging.debug(f"Request parameters: {params}")
            response = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
            logging.info(f"API response status: {response.status_code}")

            if not response.ok:
                handle_error_response(response, self.NAME, self.BASE_URL)

            data = response.json()
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise NetworkError.from_requests(e, self.BASE_URL, self.timeout) from e
        except ValueError as e:
            logging.error(f"API response was not valid JSON: {e}")
            raise NetworkError.from_requests(e, self.BASE_URL, self.timeout) from e

        logging.debug(f"API response (truncated): {str(data)[:500]}...")
        return self.map_response(data, units)

    def map_response(self, data: dict, units: WeatherUnits) -> ProviderResponse:
        """Map an Open-Meteo payload to the normalized response."""
        if not isinstance(data, dict):
            raise ProviderMappingError(self.NAME, "Response is not a JSON object")

        current = data.get("current")
        if not current:
            logging.error("Response missing 'current' block")
            raise ProviderMappingError(self.NAME, "Response missing 'current' block")
        current_units = data.get("current_units") or {}

        try:
            temperature = self._to_requested_unit(
                float(current["temperature_2m"]), current_units.get("temperature_2m"), units
            )
            apparent = self._to_requested_unit(
                float(current["apparent_temperature"]),
                current_units.get("apparent_temperature"),
                units,
            )
            visibility: Optional[float] = current.get("visibility")
            result = ProviderResponse(
                weather_code=int(current["weather_code"]),
                temperature=temperature,
                apparent_temperature=apparent,
                humidity=float(current["relative_humidity_2m"]),
                precipitation=float(current.get("precipitation") or 0.0),
                wind_speed=float(current["wind_speed_10m"]),
                wind_direction=float(current["wind_direction_10m"]),
                cloud_cover=float(current["cloud_cover"]),
                pressure=float(current["pressure_msl"]),
                visibility=float(visibility) if visibility is not None else None,
                is_day=int(current.get("is_day", 1)),
                moon_phase=None,
                timestamp=str(current["time"]),
                attribution=self.attribution(),
            )
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise ProviderMappingError(self.NAME, f"Failed to parse response: missing or invalid {e}") from e

        logging.info(f"Successfully parsed weather data: {result.temperature}{units.temperature_symbol}, code {result.weather_code}")
        return result

    @staticmethod
    def _to_requested_unit(value: float, declared_unit: Optional[str], units: WeatherUnits) -> float:
        """Convert a temperature using the unit the API declared, not the one requested."""
        if declared_unit is None:
            return value
        if "F" in declared_unit:
            celsius = fahrenheit_to_celsius(value)
        else:
            celsius = value
        return normalize_temperature(celsius, units)
