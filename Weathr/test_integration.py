"""Integration tests - can optionally hit real APIs (disabled by default)."""
import os

import pytest
from met_office_provider import MetOfficeProvider
from open_meteo_provider import OpenMeteoProvider
from weather_cache import CacheStore
from weather_data import WeatherLocation, WeatherUnits
from weather_service import WeatherService

LIVE = os.environ.get("WEATHR_LIVE_TESTS")
LONDON = WeatherLocation(latitude=51.5, longitude=-0.12)


@pytest.mark.skipif(not LIVE, reason="WEATHR_LIVE_TESTS not set - skipping integration test")
def test_open_meteo_integration():
    """
    Integration test that hits the real Open-Meteo API.

    Set WEATHR_LIVE_TESTS=1 to run this test.
    """
    provider = OpenMeteoProvider()

    response = provider.get_current_weather(LONDON, WeatherUnits.METRIC)

    assert response.temperature is not None
    assert response.is_day in (0, 1)
    assert response.timestamp


@pytest.mark.skipif(
    not os.environ.get("MET_OFFICE_API_KEY"),
    reason="MET_OFFICE_API_KEY not set - skipping integration test"
)
def test_met_office_integration():
    """Set MET_OFFICE_API_KEY to run this test."""
    provider = MetOfficeProvider(api_key=os.environ.get("MET_OFFICE_API_KEY"))

    response = provider.get_current_weather(LONDON, WeatherUnits.METRIC)

    assert response.temperature is not None
    assert response.attribution == "Data supplied by the Met Office"


@pytest.mark.skipif(not LIVE, reason="WEATHR_LIVE_TESTS not set - skipping integration test")
def test_weather_service_integration(tmp_path):
    """Integration test for WeatherService with the real API and a disk cache."""
    cache = CacheStore(str(tmp_path), write_in_background=False)
    service = WeatherService(OpenMeteoProvider(), cache=cache)

    # First call
    weather1 = service.get_current_weather(LONDON, WeatherUnits.METRIC)
    assert weather1.temperature is not None

    # Second call should use cache
    weather2 = service.get_current_weather(LONDON, WeatherUnits.METRIC)
    assert weather2 == weather1
