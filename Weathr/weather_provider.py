"""Weather provider abstraction - allows swapping different weather APIs."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

from weather_data import WeatherCondition, WeatherData, WeatherLocation, WeatherUnits
from weather_errors import ConfigError, NetworkError, ProviderMappingError, ResourceNotFoundError


@dataclass
class ProviderResponse:
    """Normalized response every primary provider produces."""
    weather_code: int  # WMO code
    temperature: float
    apparent_temperature: float
    humidity: float
    precipitation: float
    wind_speed: float
    wind_direction: float
    cloud_cover: float
    pressure: float
    visibility: Optional[float]
    is_day: int
    moon_phase: Optional[float]
    timestamp: str
    attribution: str

    def to_weather_data(self) -> WeatherData:
        return WeatherData(
            condition=WeatherCondition.from_wmo_code(self.weather_code),
            temperature=self.temperature,
            apparent_temperature=self.apparent_temperature,
            humidity=self.humidity,
            precipitation=self.precipitation,
            wind_speed=self.wind_speed,
            wind_direction=self.wind_direction,
            cloud_cover=self.cloud_cover,
            pressure=self.pressure,
            is_day=bool(self.is_day),
            timestamp=self.timestamp,
            visibility=self.visibility,
            moon_phase=self.moon_phase,
            attribution=self.attribution or None,
        )


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    #: Stable identity used in cache keys and configuration
    provider_id: str = ""
    #: False when is_day is only inferred, so a supplementary source may replace it
    supplies_is_day: bool = True

    @abstractmethod
    def get_current_weather(self, location: WeatherLocation, units: WeatherUnits) -> ProviderResponse:
        """
        Fetch current weather data for a location.

        Returns:
            ProviderResponse: Current weather, normalized

        Raises:
            WeatherProviderError: If the provider fails to fetch or map data
        """
        pass

    @abstractmethod
    def attribution(self) -> str:
        """Attribution text the data source requires to be displayed."""
        pass


class SupplementaryRequest(Enum):
    """Fields a supplementary provider may be asked for."""
    PHASES_OF_MOON = "phases_of_moon"
    SUN_AND_MOON_FOR_ONE_DAY = "sun_and_moon_for_one_day"


@dataclass
class SupplementaryResponse:
    """Answer to a SupplementaryRequest; unrequested fields stay None."""
    request: SupplementaryRequest
    is_day: Optional[bool] = None
    moon_phase: Optional[float] = None


class SupplementaryProviderBase(ABC):
    """Secondary source used to fill fields a primary provider cannot supply."""

    @abstractmethod
    def get_supplementary(
        self,
        location: WeatherLocation,
        units: WeatherUnits,
        requested: SupplementaryRequest,
    ) -> SupplementaryResponse:
        """
        Raises:
            WeatherProviderError: If the source fails or answers unexpectedly
        """
        pass

    @abstractmethod
    def capabilities(self) -> Set[SupplementaryRequest]:
        pass

    def attribution(self) -> str:
        return ""


def handle_error_response(response, provider: str, url: str) -> None:
    """
    Raise the error matching a non-OK HTTP response.

    429 and 5xx are transient (NetworkError, retried). 401/403 mean the
    credentials were rejected, 404 means the target does not exist, and any
    other 4xx is treated as a provider fault.
    """
    status = response.status_code
    try:
        body = response.text[:200]
    except (AttributeError, TypeError):
        body = ""
    logging.error(f"{provider} request failed with status {status}: {body}")

    if status == 429 or status >= 500:
        raise NetworkError(
            f"{provider} HTTP {status}",
            NetworkError.HTTP_STATUS,
            url=url,
            status_code=status,
        )
    if status in (401, 403):
        raise ConfigError(f"{provider} rejected the configured credentials (HTTP {status})")
    if status == 404:
        raise ResourceNotFoundError(f"{provider} has no data for this request (HTTP 404)")
    raise ProviderMappingError(provider, f"HTTP {status}: {body}")
