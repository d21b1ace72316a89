"""Weather domain model - pure data structures independent of any API."""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class WeatherCondition(Enum):
    """Normalized sky/precipitation condition."""
    CLEAR = "clear"
    PARTLY_CLOUDY = "partly-cloudy"
    CLOUDY = "cloudy"
    OVERCAST = "overcast"
    FOG = "fog"
    DRIZZLE = "drizzle"
    RAIN = "rain"
    FREEZING_RAIN = "freezing-rain"
    RAIN_SHOWERS = "rain-showers"
    SNOW = "snow"
    SNOW_GRAINS = "snow-grains"
    SNOW_SHOWERS = "snow-showers"
    THUNDERSTORM = "thunderstorm"
    THUNDERSTORM_HAIL = "thunderstorm-hail"

    @classmethod
    def from_wmo_code(cls, code: int) -> "WeatherCondition":
        """Map a WMO weather interpretation code to a condition."""
        if code == 0:
            return cls.CLEAR
        if code in (1, 2):
            return cls.PARTLY_CLOUDY
        if code == 3:
            return cls.CLOUDY
        if code in (45, 48):
            return cls.FOG
        if 51 <= code <= 57:
            return cls.DRIZZLE
        if code in (61, 63, 65):
            return cls.RAIN
        if code in (66, 67):
            return cls.FREEZING_RAIN
        if code in (71, 73, 75):
            return cls.SNOW
        if code == 77:
            return cls.SNOW_GRAINS
        if code in (80, 81, 82):
            return cls.RAIN_SHOWERS
        if code in (85, 86):
            return cls.SNOW_SHOWERS
        if code == 95:
            return cls.THUNDERSTORM
        if code in (96, 99):
            return cls.THUNDERSTORM_HAIL
        return cls.CLEAR

    @classmethod
    def parse(cls, name: str) -> "WeatherCondition":
        """
        Parse a condition from its hyphenated name (e.g. "partly-cloudy").

        Raises:
            ValueError: If the name is not a known condition
        """
        normalized = name.strip().lower().replace("_", "-").replace(" ", "-")
        for condition in cls:
            if condition.value == normalized:
                return condition
        valid = ", ".join(c.value for c in cls)
        raise ValueError(f"Unknown weather condition '{name}'. Valid conditions: {valid}")

    def is_raining(self) -> bool:
        return self in (
            WeatherCondition.DRIZZLE,
            WeatherCondition.RAIN,
            WeatherCondition.FREEZING_RAIN,
            WeatherCondition.RAIN_SHOWERS,
            WeatherCondition.THUNDERSTORM,
            WeatherCondition.THUNDERSTORM_HAIL,
        )

    def is_snowing(self) -> bool:
        return self in (
            WeatherCondition.SNOW,
            WeatherCondition.SNOW_GRAINS,
            WeatherCondition.SNOW_SHOWERS,
        )

    def is_thunderstorm(self) -> bool:
        return self in (WeatherCondition.THUNDERSTORM, WeatherCondition.THUNDERSTORM_HAIL)


class WeatherUnits(Enum):
    """Unit system requested from providers."""
    METRIC = "metric"
    IMPERIAL = "imperial"

    @property
    def temperature_symbol(self) -> str:
        return "°C" if self is WeatherUnits.METRIC else "°F"

    @property
    def wind_speed_symbol(self) -> str:
        return "km/h" if self is WeatherUnits.METRIC else "mph"

    @property
    def precipitation_symbol(self) -> str:
        return "mm" if self is WeatherUnits.METRIC else "inch"


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32.0) * 5.0 / 9.0


def celsius_to_fahrenheit(value: float) -> float:
    return value * 9.0 / 5.0 + 32.0


def normalize_temperature(celsius: float, units: WeatherUnits) -> float:
    """Express a Celsius temperature in the requested unit system."""
    if units is WeatherUnits.IMPERIAL:
        return celsius_to_fahrenheit(celsius)
    return celsius


def location_key(latitude: float, longitude: float) -> str:
    """Rounded (2dp, ~1.1 km) coordinate key used to match cached entries."""
    return f"{latitude:.2f},{longitude:.2f}"


@dataclass(frozen=True)
class WeatherLocation:
    """Query point for weather lookups."""
    latitude: float
    longitude: float
    elevation: Optional[float] = None

    @property
    def key(self) -> str:
        return location_key(self.latitude, self.longitude)

    def same_place(self, other: "WeatherLocation") -> bool:
        """Equality at cache resolution, not exact float equality."""
        return self.key == other.key


@dataclass
class WeatherData:
    """Domain model for weather data, independent of any specific API."""
    condition: WeatherCondition
    temperature: float
    apparent_temperature: float
    humidity: float
    precipitation: float
    wind_speed: float
    wind_direction: float
    cloud_cover: float
    pressure: float
    is_day: bool
    timestamp: str  # ISO-8601, provider local time

    # Optional fields not every source supplies
    visibility: Optional[float] = None
    moon_phase: Optional[float] = None  # 0.0 new moon .. 0.5 full moon .. <1.0
    attribution: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["condition"] = self.condition.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "WeatherData":
        """
        Rebuild a reading from to_dict() output.

        Raises:
            KeyError, ValueError, TypeError: If the mapping is incomplete or malformed
        """
        return cls(
            condition=WeatherCondition(data["condition"]),
            temperature=float(data["temperature"]),
            apparent_temperature=float(data["apparent_temperature"]),
            humidity=float(data["humidity"]),
            precipitation=float(data["precipitation"]),
            wind_speed=float(data["wind_speed"]),
            wind_direction=float(data["wind_direction"]),
            cloud_cover=float(data["cloud_cover"]),
            pressure=float(data["pressure"]),
            is_day=bool(data["is_day"]),
            timestamp=str(data["timestamp"]),
            visibility=data.get("visibility"),
            moon_phase=data.get("moon_phase"),
            attribution=data.get("attribution"),
        )
