"""Tests for city geocoding and reverse geocoding."""
from unittest.mock import Mock, patch

import pytest
import requests
from weather_cache import CacheStore
from weather_data import WeatherLocation
from weather_errors import CityNotFoundError, RetriesExhausted
from weather_geocoding import GeocodedLocation, geocode_city, reverse_geocode

BERLIN = WeatherLocation(latitude=52.52, longitude=13.41)


def ok_response(payload):
    mock_response = Mock()
    mock_response.ok = True
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    return mock_response


def london_payload():
    return {
        "results": [
            {"id": 2643743, "name": "London", "latitude": 51.50853, "longitude": -0.12574, "country": "United Kingdom"}
        ]
    }


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path), write_in_background=False)


def test_geocode_city_success():
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.return_value = ok_response(london_payload())

        found = geocode_city("London")

        assert found == GeocodedLocation(51.50853, -0.12574, "London", "United Kingdom")
        assert found.display_name == "London, United Kingdom"
        assert found.to_location() == WeatherLocation(51.50853, -0.12574)
        assert mock_get.call_args[1]["params"]["name"] == "London"
        assert mock_get.call_args[1]["timeout"] == 10


@pytest.mark.parametrize("payload", [{}, {"results": []}, {"generationtime_ms": 0.5}])
def test_city_not_found_is_not_retried(payload):
    sleeps = []
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.return_value = ok_response(payload)

        with pytest.raises(CityNotFoundError) as exc_info:
            geocode_city("Atlantis", sleep=sleeps.append)

        assert mock_get.call_count == 1
    assert sleeps == []
    assert "Atlantis" in exc_info.value.user_friendly_message()


def test_geocode_retries_network_errors():
    sleeps = []
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.side_effect = [
            requests.exceptions.Timeout("timed out"),
            ok_response(london_payload()),
        ]

        found = geocode_city("London", sleep=sleeps.append)

        assert found.name == "London"
        assert mock_get.call_count == 2
    assert sleeps == [0.5]


def test_geocode_gives_up_after_three_attempts():
    sleeps = []
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Name or service not known")

        with pytest.raises(RetriesExhausted) as exc_info:
            geocode_city("London", sleep=sleeps.append)

        assert mock_get.call_count == 3
    assert sleeps == [0.5, 1.0]
    assert exc_info.value.attempts == 3


def test_reverse_geocode_fills_cache(cache):
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.return_value = ok_response({"address": {"city": "Berlin", "country": "Deutschland"}})

        assert reverse_geocode(BERLIN, "de", cache) == "Berlin"
        assert reverse_geocode(BERLIN, "de", cache) == "Berlin"

        assert mock_get.call_count == 1
        assert "User-Agent" in mock_get.call_args[1]["headers"]
        assert mock_get.call_args[1]["params"]["accept-language"] == "de"
    assert cache.load_geocode(52.52, 13.41, "de") == "Berlin"
    assert cache.load_geocode(52.52, 13.41, "en") is None


def test_reverse_geocode_falls_back_to_town():
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.return_value = ok_response({"address": {"town": "Potsdam", "state": "Brandenburg"}})
        assert reverse_geocode(BERLIN) == "Potsdam"


def test_reverse_geocode_failure_returns_none(cache):
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection refused")
        assert reverse_geocode(BERLIN, cache=cache) is None
    assert cache.load_geocode(52.52, 13.41, "en") is None


def test_reverse_geocode_without_address():
    with patch('weather_geocoding.requests.get') as mock_get:
        mock_get.return_value = ok_response({"error": "Unable to geocode"})
        assert reverse_geocode(BERLIN) is None
