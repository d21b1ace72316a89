"""Tests for Open-Meteo provider."""
import pytest
import requests
from unittest.mock import Mock, patch
from open_meteo_provider import OpenMeteoProvider
from weather_data import WeatherCondition, WeatherLocation, WeatherUnits
from weather_errors import ConfigError, NetworkError, ProviderMappingError, ResourceNotFoundError


@pytest.fixture
def sample_open_meteo_response():
    """Sample Open-Meteo forecast response with a current block."""
    return {
        "latitude": 52.52,
        "longitude": 13.419998,
        "timezone": "Europe/Berlin",
        "current_units": {
            "time": "iso8601",
            "interval": "seconds",
            "temperature_2m": "°C",
            "apparent_temperature": "°C",
            "relative_humidity_2m": "%",
            "wind_speed_10m": "km/h",
        },
        "current": {
            "time": "2024-05-01T12:00",
            "interval": 900,
            "temperature_2m": 18.0,
            "relative_humidity_2m": 55,
            "apparent_temperature": 17.2,
            "is_day": 1,
            "precipitation": 0.0,
            "weather_code": 0,
            "cloud_cover": 10,
            "pressure_msl": 1015.3,
            "wind_speed_10m": 12.4,
            "wind_direction_10m": 270,
            "visibility": 24140.0,
        },
    }


@pytest.fixture
def provider():
    """Create Open-Meteo provider instance."""
    return OpenMeteoProvider(timeout=30)


@pytest.fixture
def berlin():
    return WeatherLocation(latitude=52.52, longitude=13.41)


def ok_response(payload):
    mock_response = Mock()
    mock_response.ok = True
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    return mock_response


def test_open_meteo_provider_success(provider, berlin, sample_open_meteo_response):
    """Test successful API call and parsing."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(sample_open_meteo_response)

        result = provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert result.temperature == 18.0
        assert result.apparent_temperature == 17.2
        assert result.humidity == 55.0
        assert result.weather_code == 0
        assert result.is_day == 1
        assert result.pressure == 1015.3
        assert result.visibility == 24140.0
        assert result.timestamp == "2024-05-01T12:00"
        assert result.attribution == "Weather data by Open-Meteo.com"
        assert result.to_weather_data().condition is WeatherCondition.CLEAR

        _, kwargs = mock_get.call_args
        assert kwargs["params"]["latitude"] == 52.52
        assert kwargs["params"]["temperature_unit"] == "celsius"
        assert kwargs["timeout"] == 30


def test_open_meteo_imperial_request_params(provider, berlin):
    params = provider.build_params(berlin, WeatherUnits.IMPERIAL)
    assert params["temperature_unit"] == "fahrenheit"
    assert params["wind_speed_unit"] == "mph"
    assert params["precipitation_unit"] == "inch"


def test_open_meteo_converts_declared_fahrenheit(provider, berlin, sample_open_meteo_response):
    """A Fahrenheit payload is converted when Celsius was expected."""
    sample_open_meteo_response["current_units"]["temperature_2m"] = "°F"
    sample_open_meteo_response["current_units"]["apparent_temperature"] = "°F"
    sample_open_meteo_response["current"]["temperature_2m"] = 212.0
    sample_open_meteo_response["current"]["apparent_temperature"] = 32.0

    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(sample_open_meteo_response)
        result = provider.get_current_weather(berlin, WeatherUnits.METRIC)

    assert result.temperature == pytest.approx(100.0)
    assert result.apparent_temperature == pytest.approx(0.0)


def test_open_meteo_missing_current(provider, berlin):
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response({"latitude": 52.52})

        with pytest.raises(ProviderMappingError) as exc_info:
            provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert "missing 'current' block" in str(exc_info.value)


def test_open_meteo_missing_field(provider, berlin, sample_open_meteo_response):
    del sample_open_meteo_response["current"]["weather_code"]
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(sample_open_meteo_response)

        with pytest.raises(ProviderMappingError) as exc_info:
            provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert "weather_code" in str(exc_info.value)


def test_open_meteo_network_error(provider, berlin):
    """Test handling of network errors."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(NetworkError) as exc_info:
            provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert exc_info.value.kind == NetworkError.TIMEOUT
        assert "timed out" in exc_info.value.user_friendly_message()


def test_open_meteo_dns_error(provider, berlin):
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError(
            "Failed to establish a new connection: [Errno -2] Name or service not known"
        )

        with pytest.raises(NetworkError) as exc_info:
            provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert exc_info.value.kind == NetworkError.DNS


def test_open_meteo_invalid_json(provider, berlin):
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = ok_response(None)
        mock_response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = mock_response

        with pytest.raises(NetworkError) as exc_info:
            provider.get_current_weather(berlin, WeatherUnits.METRIC)

        assert exc_info.value.kind == NetworkError.INVALID_RESPONSE


@pytest.mark.parametrize("status,error_class", [
    (503, NetworkError),
    (429, NetworkError),
    (401, ConfigError),
    (404, ResourceNotFoundError),
    (400, ProviderMappingError),
])
def test_open_meteo_http_errors(provider, berlin, status, error_class):
    """Test handling of HTTP errors."""
    with patch('open_meteo_provider.requests.get') as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = status
        mock_response.text = '{"error": true, "reason": "Cannot initialize WeatherVariable"}'
        mock_get.return_value = mock_response

        with pytest.raises(error_class):
            provider.get_current_weather(berlin, WeatherUnits.METRIC)
