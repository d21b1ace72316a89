"""Exception hierarchy shared by providers, geocoding and the refresh pipeline."""
from typing import Optional

import requests


class WeatherProviderError(Exception):
    """Base exception for every failure raised while acquiring weather data."""

    def user_friendly_message(self) -> str:
        return f"Failed to fetch weather: {self}"


class NetworkError(WeatherProviderError):
    """Connect/timeout/DNS/client failures. Always retryable."""

    TIMEOUT = "timeout"
    DNS = "dns"
    CONNECTION_REFUSED = "connection_refused"
    HTTP_STATUS = "http_status"
    INVALID_RESPONSE = "invalid_response"
    OTHER = "other"

    def __init__(
        self,
        message: str,
        kind: str = OTHER,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.timeout = timeout
        self.status_code = status_code

    @classmethod
    def from_requests(cls, exc: Exception, url: str, timeout: float) -> "NetworkError":
        """Classify a requests exception."""
        if isinstance(exc, requests.exceptions.Timeout):
            return cls(f"Request to {url} timed out after {timeout}s", cls.TIMEOUT, url, timeout)
        if isinstance(exc, requests.exceptions.ConnectionError):
            text = str(exc)
            if "Name or service not known" in text or "getaddrinfo" in text or "NameResolution" in text:
                return cls(f"Could not resolve host for {url}", cls.DNS, url, timeout)
            if "refused" in text.lower():
                return cls(f"Connection refused by {url}", cls.CONNECTION_REFUSED, url, timeout)
            return cls(f"Connection error for {url}: {text}", cls.OTHER, url, timeout)
        if isinstance(exc, ValueError):
            return cls(f"Invalid response from {url}: {exc}", cls.INVALID_RESPONSE, url, timeout)
        return cls(f"Network error: {exc}", cls.OTHER, url, timeout)

    def user_friendly_message(self) -> str:
        if self.kind == self.TIMEOUT:
            return f"Weather service timed out after {self.timeout}s. Check your connection."
        if self.kind == self.DNS:
            return "Could not resolve the weather service host. Are you offline?"
        if self.kind == self.CONNECTION_REFUSED:
            return "The weather service refused the connection. Try again later."
        if self.kind == self.HTTP_STATUS:
            return f"Weather service returned HTTP {self.status_code}."
        if self.kind == self.INVALID_RESPONSE:
            return "Weather service sent a response that could not be read."
        return f"Network error: {self}"


class ResourceNotFoundError(WeatherProviderError):
    """The requested target does not exist. Never retried."""


class CityNotFoundError(ResourceNotFoundError):
    """Geocoding found no match for a city name."""

    def __init__(self, city: str):
        super().__init__(f"City not found: {city}")
        self.city = city

    def user_friendly_message(self) -> str:
        return f"Could not find a city named '{self.city}'. Check the spelling and try again."


class ConfigError(WeatherProviderError):
    """Missing or invalid configuration. Fatal at construction."""

    def user_friendly_message(self) -> str:
        return f"Configuration error: {self}"


class ProviderMappingError(WeatherProviderError):
    """The provider answered, but with unexpected or missing fields."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider

    def user_friendly_message(self) -> str:
        return f"{self.provider} returned data in an unexpected format."


class RetriesExhausted(WeatherProviderError):
    """Every retry attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        if last_error is not None:
            message = f"Failed after {attempts} attempts: {last_error}"
        else:
            message = f"Failed after {attempts} attempts"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

    def user_friendly_message(self) -> str:
        if isinstance(self.last_error, WeatherProviderError):
            return self.last_error.user_friendly_message()
        return f"Weather service unavailable after {self.attempts} attempts."
