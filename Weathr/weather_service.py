"""Weather service with disk caching, retries and supplementary data."""
import logging
import time
from typing import Callable, Optional

from weather_cache import CacheStore
from weather_data import WeatherData, WeatherLocation, WeatherUnits
from weather_errors import WeatherProviderError
from weather_provider import (
    ProviderResponse,
    SupplementaryProviderBase,
    SupplementaryRequest,
    WeatherProviderBase,
)
from weather_retry import INITIAL_RETRY_DELAY_SECONDS, MAX_RETRIES, fetch_with_retry


class WeatherService:
    """
    Service that wraps a weather provider with caching and retries.

    Prevents hammering the API by consulting the disk cache before fetching
    (5 minute TTL) and writing every successful reading back to it. Fetches go
    through fetch_with_retry, so transient network errors are retried with
    exponential backoff. When a supplementary provider is configured it fills
    the moon phase, and day/night for providers that only infer it.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        cache: Optional[CacheStore] = None,
        supplementary: Optional[SupplementaryProviderBase] = None,
        max_retries: int = MAX_RETRIES,
        retry_delay_seconds: float = INITIAL_RETRY_DELAY_SECONDS,
    ):
        """
        Initialize weather service.

        Args:
            provider: Weather provider to use
            cache: Disk cache; None disables caching
            supplementary: Optional source for day/night and moon phase
            max_retries: Total attempts per fetch
            retry_delay_seconds: First backoff delay (doubles every retry)
        """
        self.provider = provider
        self.cache = cache
        self.supplementary = supplementary
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

    @property
    def provider_id(self) -> str:
        return self.provider.provider_id or self.provider.__class__.__name__

    def get_current_weather(
        self,
        location: WeatherLocation,
        units: WeatherUnits,
        use_cache: bool = True,
        sleep: Callable[[float], object] = time.sleep,
    ) -> WeatherData:
        """
        Get the current weather, using the cache if still fresh.

        Args:
            location: Query point
            units: Unit system for the reading
            use_cache: Read the disk cache before fetching (writes always happen)
            sleep: Delay function used between retries

        Returns:
            WeatherData: Latest weather data (may be cached)

        Raises:
            WeatherProviderError: If the fetch fails (RetriesExhausted after
                repeated network errors)
        """
        if use_cache and self.cache is not None:
            cached = self.cache.load_weather(location.latitude, location.longitude, self.provider_id, units)
            if cached is not None:
                logging.info(f"Using cached weather data for {location.key}")
                return cached

        logging.info(f"Fetching weather data from {self.provider_id}...")
        response = fetch_with_retry(
            lambda: self.provider.get_current_weather(location, units),
            max_retries=self.max_retries,
            initial_delay=self.retry_delay_seconds,
            sleep=sleep,
        )
        self._apply_supplementary(response, location, units)

        weather = response.to_weather_data()
        logging.info(
            f"Weather fetch successful: {weather.temperature:.1f}{units.temperature_symbol}, {weather.condition.value}"
        )
        if self.cache is not None:
            self.cache.save_weather(weather, location.latitude, location.longitude, self.provider_id, units)
        return weather

    def _apply_supplementary(self, response: ProviderResponse, location: WeatherLocation, units: WeatherUnits) -> None:
        if self.supplementary is None:
            return

        capabilities = self.supplementary.capabilities()
        if SupplementaryRequest.SUN_AND_MOON_FOR_ONE_DAY in capabilities:
            requested = SupplementaryRequest.SUN_AND_MOON_FOR_ONE_DAY
        elif SupplementaryRequest.PHASES_OF_MOON in capabilities:
            requested = SupplementaryRequest.PHASES_OF_MOON
        else:
            return

        try:
            extra = self.supplementary.get_supplementary(location, units, requested)
        except WeatherProviderError as e:
            logging.warning(f"Supplementary data unavailable, keeping primary reading: {e}")
            return

        if extra.is_day is not None and not self.provider.supplies_is_day:
            response.is_day = 1 if extra.is_day else 0
        if extra.moon_phase is not None and response.moon_phase is None:
            response.moon_phase = extra.moon_phase
        attribution = self.supplementary.attribution()
        if attribution:
            response.attribution = f"{response.attribution}; {attribution}" if response.attribution else attribution
