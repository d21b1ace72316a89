"""Bounded exponential-backoff retry for remote calls."""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from weather_errors import NetworkError, ResourceNotFoundError, RetriesExhausted, WeatherProviderError

T = TypeVar("T")

MAX_RETRIES = 3
INITIAL_RETRY_DELAY_SECONDS = 0.5


def default_is_terminal(error: Exception) -> bool:
    """Retrying a missing resource cannot change the outcome."""
    return isinstance(error, ResourceNotFoundError)


def default_is_retryable(error: Exception) -> bool:
    return isinstance(error, NetworkError)


def fetch_with_retry(
    operation: Callable[[], T],
    is_terminal: Callable[[Exception], bool] = default_is_terminal,
    is_retryable: Optional[Callable[[Exception], bool]] = default_is_retryable,
    max_retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], object] = time.sleep,
    retry_on: Tuple[Type[Exception], ...] = (WeatherProviderError,),
) -> T:
    """
    Run a single remote call with up to max_retries attempts.

    Terminal errors propagate on the first occurrence. Errors for which
    is_retryable returns False also propagate immediately. Any other error
    in retry_on is retried after a delay that starts at initial_delay and
    doubles after every failure; no sleep follows the final attempt.

    Args:
        operation: Zero-argument callable performing one remote call
        is_terminal: Predicate for errors that must short-circuit
        is_retryable: Predicate for errors worth another attempt (network
            failures by default); None retries everything in retry_on
        max_retries: Total attempt budget
        initial_delay: First backoff delay in seconds
        sleep: Delay function; receives seconds (injectable for tests and cancellation)
        retry_on: Exception classes considered for retry at all

    Returns:
        The operation's result

    Raises:
        RetriesExhausted: Wrapping the last error once the budget is spent
    """
    last_error: Optional[Exception] = None
    delay = initial_delay

    for attempt in range(1, max_retries + 1):
        try:
            logging.debug(f"Fetch attempt {attempt}/{max_retries}")
            return operation()
        except retry_on as e:
            if is_terminal(e):
                logging.info(f"Terminal error on attempt {attempt}, not retrying: {e}")
                raise
            if is_retryable is not None and not is_retryable(e):
                logging.error(f"Non-retryable error on attempt {attempt}: {e}")
                raise
            last_error = e
            logging.warning(f"Fetch attempt {attempt} failed: {e}")
            if attempt < max_retries:
                logging.info(f"Retrying in {delay:.1f}s...")
                sleep(delay)
                delay *= 2

    logging.error(f"Fetch failed after {max_retries} attempts")
    raise RetriesExhausted(max_retries, last_error)
