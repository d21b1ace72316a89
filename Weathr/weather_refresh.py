"""Background weather refresh: one periodic fetch task feeding a single consumer.

The consumer (UI loop) never blocks on the network. It calls
RefreshOrchestrator.poll() once per tick, which takes at most one result
from a capacity-1 channel. A manual refresh cancels the running task and
replaces both the task and its channel. A task that outlives the cancel
signal can still only send into the orphaned channel, which is closed, so
it exits on its next send. Dropping the orchestrator cancels its task the
same way.
"""
import logging
import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from weather_data import WeatherCondition, WeatherData, WeatherLocation, WeatherUnits
from weather_errors import WeatherProviderError
from weather_offline import generate_offline_weather, simulated_weather
from weather_service import WeatherService

REFRESH_INTERVAL_SECONDS = 300


class RefreshCancelled(Exception):
    """Raised inside a cancelled task to unwind out of a retry backoff."""


@dataclass
class FetchResult:
    """One outcome of a background fetch, tagged with the task that produced it."""
    generation: int
    weather: Optional[WeatherData] = None
    error: Optional[WeatherProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ResultChannel:
    """
    Capacity-1 hand-off between the refresh task and the consumer.

    send() replaces any unread value (latest result wins) and reports False
    once the channel is closed. try_recv() never blocks.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._value: Optional[FetchResult] = None
        self._closed = False

    def send(self, result: FetchResult) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._value = result
            return True

    def try_recv(self) -> Optional[FetchResult]:
        with self._lock:
            value, self._value = self._value, None
            return value

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._value = None

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed


@dataclass
class RefreshHandle:
    """Ownership of exactly one background task and its channel."""
    generation: int
    channel: ResultChannel
    cancel_event: threading.Event
    thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        """Signal the task and disconnect its channel."""
        self.cancel_event.set()
        self.channel.close()

    @property
    def live(self) -> bool:
        return not self.cancel_event.is_set() and not self.channel.closed

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout)


class RefreshState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    REFRESHING = "refreshing"


@dataclass
class SessionState:
    """What the renderer shows: the latest reading plus status flags."""
    current_weather: Optional[WeatherData] = None
    offline: bool = False
    refreshing: bool = False
    last_error: Optional[str] = None
    updates: int = field(default=0)

    def update_weather(self, weather: WeatherData) -> None:
        self.current_weather = weather
        self.updates += 1


class RefreshOrchestrator:
    """
    Owns the background refresh task's lifecycle.

    States: IDLE (no task), RUNNING (one live periodic task) and REFRESHING
    (RUNNING, with a manual refresh whose result has not arrived yet).
    """

    def __init__(
        self,
        location: WeatherLocation,
        units: WeatherUnits,
        service: Optional[WeatherService],
        refresh_interval: float = REFRESH_INTERVAL_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            location: Query point
            units: Unit system for readings
            service: Fetch pipeline; None means simulation/offline mode (no task ever runs)
            refresh_interval: Seconds between periodic fetches
            rng: Random source for offline fallback readings
        """
        self.location = location
        self.units = units
        self.service = service
        self.refresh_interval = refresh_interval
        self.state = SessionState()

        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._handle: Optional[RefreshHandle] = None
        self._generation = 0

    @property
    def status(self) -> RefreshState:
        handle = self._handle
        if handle is None or not handle.live:
            return RefreshState.IDLE
        if self.state.refreshing:
            return RefreshState.REFRESHING
        return RefreshState.RUNNING

    @property
    def handle(self) -> Optional[RefreshHandle]:
        return self._handle

    def simulate(self, condition: WeatherCondition, night: bool = False) -> None:
        """Show a fixed reading; only valid without a service."""
        if self.service is not None:
            raise ValueError("Simulation requires an orchestrator without a weather service")
        self.state.update_weather(simulated_weather(condition, night))

    def start(self) -> bool:
        """
        IDLE -> RUNNING. Spawn the periodic fetch task.

        Returns:
            True if a task was started, False in simulation mode or if one is already live
        """
        if self.service is None:
            return False
        with self._lock:
            if self._handle is not None and self._handle.live:
                logging.debug("Refresh task already running")
                return False
            self._handle = self._spawn(force=False)
        return True

    def manual_refresh(self) -> bool:
        """
        Cancel the current task and respawn a fresh one that fetches immediately.

        Returns:
            True if a refresh was started, False in simulation mode
        """
        if self.service is None:
            return False
        with self._lock:
            old = self._handle
            if old is not None:
                logging.info(f"Manual refresh: cancelling refresh task {old.generation}")
                old.cancel()
            self.state.refreshing = True
            self._handle = self._spawn(force=True)
        return True

    def poll(self) -> Optional[FetchResult]:
        """
        Consume at most one result without blocking and apply it to the session.

        A failure never ends the session: without any prior reading an offline
        stand-in is synthesized, otherwise the last reading stays on screen.
        """
        handle = self._handle
        if handle is None:
            return None
        result = handle.channel.try_recv()
        if result is None:
            return None

        self.state.refreshing = False
        if result.ok:
            self.state.update_weather(result.weather)
            self.state.offline = False
            self.state.last_error = None
            return result

        message = result.error.user_friendly_message()
        logging.warning(f"Weather refresh failed: {message}")
        self.state.last_error = message
        if self.state.current_weather is None:
            logging.info("No weather received yet, showing offline reading")
            self.state.update_weather(generate_offline_weather(self._rng))
        self.state.offline = True
        return result

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Disconnect the live task; join it if a timeout is given."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return
        handle.cancel()
        if timeout is not None:
            handle.join(timeout)

    def _spawn(self, force: bool) -> RefreshHandle:
        self._generation += 1
        handle = RefreshHandle(
            generation=self._generation,
            channel=ResultChannel(),
            cancel_event=threading.Event(),
        )
        handle.thread = threading.Thread(
            target=_refresh_task,
            args=(handle, self.service, self.location, self.units, self.refresh_interval, force),
            name=f"weather-refresh-{handle.generation}",
            daemon=True,
        )
        logging.info(f"Starting refresh task {handle.generation} (interval: {self.refresh_interval}s)")
        handle.thread.start()
        return handle

    def __del__(self):
        handle = getattr(self, "_handle", None)
        if handle is not None:
            handle.cancel()


def _refresh_task(
    handle: RefreshHandle,
    service: WeatherService,
    location: WeatherLocation,
    units: WeatherUnits,
    refresh_interval: float,
    force: bool,
) -> None:
    """
    Body of one background task.

    Holds no reference to the orchestrator, so dropping the orchestrator
    cancels the handle (see RefreshOrchestrator.__del__) and the task exits
    at its next wait or send.
    """
    cancel = handle.cancel_event

    def cancellable_sleep(seconds: float) -> None:
        if cancel.wait(seconds):
            raise RefreshCancelled()

    use_cache = not force
    while not cancel.is_set():
        try:
            weather = service.get_current_weather(location, units, use_cache=use_cache, sleep=cancellable_sleep)
            result = FetchResult(handle.generation, weather=weather)
        except RefreshCancelled:
            break
        except WeatherProviderError as e:
            result = FetchResult(handle.generation, error=e)
        except Exception as e:
            logging.exception(f"Unexpected error in refresh task {handle.generation}: {e}")
            result = FetchResult(handle.generation, error=WeatherProviderError(f"Unexpected error: {e}"))

        if not handle.channel.send(result):
            break
        use_cache = True
        if cancel.wait(refresh_interval):
            break
    logging.info(f"Refresh task {handle.generation} stopped")
