"""Plausible stand-in weather used when the very first fetch fails."""
import random
from datetime import datetime
from typing import Optional

from weather_data import WeatherCondition, WeatherData

OFFLINE_CONDITIONS = (
    WeatherCondition.CLEAR,
    WeatherCondition.PARTLY_CLOUDY,
    WeatherCondition.CLOUDY,
    WeatherCondition.RAIN,
)

DAY_START_HOUR = 6
DAY_END_HOUR = 18


def _uniform(rng: random.Random, low: float, high: float) -> float:
    """Uniform sample in the half-open range [low, high)."""
    return low + (high - low) * rng.random()


def generate_offline_weather(rng: random.Random, now: Optional[datetime] = None) -> WeatherData:
    """
    Synthesize a self-consistent reading.

    Day/night follows the local wall clock (day is 06:00-17:59) and
    precipitation is only non-zero for a raining condition.
    """
    now = now or datetime.now()
    condition = OFFLINE_CONDITIONS[rng.randrange(len(OFFLINE_CONDITIONS))]

    return WeatherData(
        condition=condition,
        temperature=_uniform(rng, 10.0, 25.0),
        apparent_temperature=_uniform(rng, 10.0, 25.0),
        humidity=_uniform(rng, 40.0, 80.0),
        precipitation=_uniform(rng, 1.0, 5.0) if condition.is_raining() else 0.0,
        wind_speed=_uniform(rng, 5.0, 15.0),
        wind_direction=_uniform(rng, 0.0, 360.0),
        cloud_cover=_uniform(rng, 20.0, 80.0),
        pressure=_uniform(rng, 1000.0, 1020.0),
        is_day=DAY_START_HOUR <= now.hour < DAY_END_HOUR,
        timestamp=now.strftime("%Y-%m-%dT%H:%M:%S"),
        visibility=10000.0,
        moon_phase=0.5,
    )


def simulated_weather(condition: WeatherCondition, night: bool = False) -> WeatherData:
    """Fixed reading for simulation mode."""
    return WeatherData(
        condition=condition,
        temperature=-2.0 if condition.is_snowing() else 20.0,
        apparent_temperature=-5.0 if condition.is_snowing() else 19.0,
        humidity=65.0,
        precipitation=2.5 if condition.is_raining() or condition.is_snowing() else 0.0,
        wind_speed=45.0 if condition.is_thunderstorm() else 10.0,
        wind_direction=225.0,
        cloud_cover=50.0,
        pressure=1013.0,
        is_day=not night,
        timestamp="simulated",
        visibility=10000.0,
        moon_phase=0.5,
    )
