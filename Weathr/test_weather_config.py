"""Tests for environment configuration."""
import logging
import os

import pytest
from aad_provider import AADProvider
from met_office_provider import MetOfficeProvider
from open_meteo_provider import OpenMeteoProvider
from weather_config import Config, build_provider, build_supplementary, load_config
from weather_data import WeatherLocation, WeatherUnits
from weather_errors import ConfigError

ENV_VARS = (
    "WEATHR_LAT",
    "WEATHR_LON",
    "WEATHR_UNITS",
    "WEATHR_PROVIDER",
    "MET_OFFICE_API_KEY",
    "MET_OFFICE_DATA_SOURCE",
    "WEATHR_SUPPLEMENTARY",
    "WEATHR_REFRESH_INTERVAL",
    "WEATHR_AUTO_LOCATION",
    "WEATHR_LANG",
    "WEATHR_CACHE_DIR",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Clean environment; load_config reads an empty .env from tmp_path."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return monkeypatch, str(env_file)


def test_defaults(env):
    _, env_file = env
    config = load_config(env_file)

    assert config.location == WeatherLocation(52.52, 13.41)
    assert config.units is WeatherUnits.METRIC
    assert config.provider == "open-meteo"
    assert config.supplementary is None
    assert config.refresh_interval == 300
    assert config.auto_location is False
    assert config.language == "en"
    assert config.cache_dir is None


def test_environment_overrides(env):
    monkeypatch, env_file = env
    monkeypatch.setenv("WEATHR_LAT", "51.5")
    monkeypatch.setenv("WEATHR_LON", "-0.12")
    monkeypatch.setenv("WEATHR_UNITS", "Imperial")
    monkeypatch.setenv("WEATHR_PROVIDER", "met-office")
    monkeypatch.setenv("MET_OFFICE_API_KEY", "secret")
    monkeypatch.setenv("WEATHR_SUPPLEMENTARY", "aad")
    monkeypatch.setenv("WEATHR_REFRESH_INTERVAL", "60")
    monkeypatch.setenv("WEATHR_AUTO_LOCATION", "yes")
    monkeypatch.setenv("WEATHR_CACHE_DIR", "/tmp/weathr-test")

    config = load_config(env_file)

    assert config.location == WeatherLocation(51.5, -0.12)
    assert config.units is WeatherUnits.IMPERIAL
    assert config.provider == "met-office"
    assert config.met_office_api_key == "secret"
    assert config.supplementary == "aad"
    assert config.refresh_interval == 60.0
    assert config.auto_location is True
    assert config.cache_dir == "/tmp/weathr-test"


def test_dotenv_file_is_read(env, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("WEATHR_UNITS=imperial\n")

    try:
        config = load_config(str(env_file))
    finally:
        # load_dotenv writes straight into os.environ
        os.environ.pop("WEATHR_UNITS", None)

    assert config.units is WeatherUnits.IMPERIAL


@pytest.mark.parametrize("name,value", [
    ("WEATHR_UNITS", "kelvin"),
    ("WEATHR_PROVIDER", "openweather"),
    ("WEATHR_SUPPLEMENTARY", "almanac"),
    ("WEATHR_REFRESH_INTERVAL", "soon"),
    ("WEATHR_REFRESH_INTERVAL", "0"),
])
def test_invalid_values_rejected(env, name, value):
    monkeypatch, env_file = env
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        load_config(env_file)


@pytest.mark.parametrize("lat,lon", [("52.5", ""), ("95", "13.4"), ("52.5", "181"), ("north", "13.4")])
def test_invalid_coordinates_rejected(env, lat, lon):
    monkeypatch, env_file = env
    monkeypatch.setenv("WEATHR_LAT", lat)
    monkeypatch.setenv("WEATHR_LON", lon)
    with pytest.raises(ConfigError):
        load_config(env_file)


def test_build_provider():
    assert isinstance(build_provider(Config()), OpenMeteoProvider)
    met_office = build_provider(Config(provider="met-office", met_office_api_key="secret"))
    assert isinstance(met_office, MetOfficeProvider)


def test_met_office_without_key_is_config_error():
    with pytest.raises(ConfigError):
        build_provider(Config(provider="met-office"))


def test_unknown_provider_is_config_error():
    with pytest.raises(ConfigError):
        build_provider(Config(provider="nope"))


def test_build_supplementary():
    assert build_supplementary(Config()) is None
    assert isinstance(build_supplementary(Config(supplementary="aad")), AADProvider)


def test_load_config_logs_resolved_values(env, caplog):
    _, env_file = env
    with caplog.at_level(logging.INFO):
        load_config(env_file)

    records = [r for r in caplog.records if r.getMessage().startswith("Configuration loaded")]
    assert len(records) == 1
    assert records[0].getMessage() == "Configuration loaded: lat=52.52 lon=13.41 units=metric provider=open-meteo"
    assert not records[0].args
