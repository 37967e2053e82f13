"""Inactivity-based session timeout.

The monitor follows ``STOPPED -> ACTIVE -> (WARNING_ISSUED) -> TIMED_OUT ->
STOPPED``. Every qualifying interaction moves the deadline out again, so an
active user never times out. Timers go through an injected Scheduler and
time through an injected Clock.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from storefront.core.scheduler import CancelHandle, Clock, Scheduler, now_ms, system_clock
from storefront.services.secure_storage import SecureStorage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30 * 60 * 1000
DEFAULT_WARNING_MS = 60 * 1000

LAST_ACTIVITY_KEY = "last_activity"
SESSION_STARTED_KEY = "session_started"

SessionCallback = Callable[[], None | Awaitable[None]]


class ActivityEvent(str, Enum):
    """User-interaction event classes delivered to the monitor."""

    POINTER_DOWN = "pointerdown"
    KEY_PRESS = "keypress"
    TOUCH_START = "touchstart"
    SCROLL = "scroll"
    POINTER_MOVE = "pointermove"


# Pointer movement alone does not count as activity.
QUALIFYING_EVENTS = (
    ActivityEvent.POINTER_DOWN,
    ActivityEvent.KEY_PRESS,
    ActivityEvent.TOUCH_START,
    ActivityEvent.SCROLL,
)


class MonitorState(str, Enum):
    STOPPED = "stopped"
    ACTIVE = "active"
    WARNING_ISSUED = "warning_issued"
    TIMED_OUT = "timed_out"


class ActivityEventBus:
    """Minimal listener registry standing in for window event listeners."""

    def __init__(self) -> None:
        self._listeners: dict[ActivityEvent, list[Callable[[], None]]] = defaultdict(list)

    def add_listener(self, event: ActivityEvent, listener: Callable[[], None]) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: ActivityEvent, listener: Callable[[], None]) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: ActivityEvent) -> int:
        return len(self._listeners.get(event, ()))

    def dispatch(self, event: ActivityEvent | str) -> None:
        try:
            event = ActivityEvent(event)
        except ValueError:
            return
        for listener in list(self._listeners.get(event, ())):
            listener()


@dataclass
class SessionTimeoutConfig:
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    warning_ms: int = DEFAULT_WARNING_MS
    on_timeout: SessionCallback | None = None
    on_warning: SessionCallback | None = None
    show_warning: bool = True

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.warning_ms < 0 or self.warning_ms >= self.timeout_ms:
            raise ValueError("warning_ms must be between 0 and timeout_ms")


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Session timeout callback failed: {exc}")


class SessionTimeoutMonitor:
    """Tracks the last user activity and signs the user out when idle."""

    def __init__(
        self,
        events: ActivityEventBus,
        scheduler: Scheduler,
        clock: Clock = system_clock,
        storage: SecureStorage | None = None,
        config: SessionTimeoutConfig | None = None,
    ) -> None:
        self._events = events
        self._scheduler = scheduler
        self._clock = clock
        self._storage = storage
        self._config = config or SessionTimeoutConfig()

        self._state = MonitorState.STOPPED
        self._last_activity_at: int | None = None
        self._session_started_at: int | None = None
        self._warning_handle: CancelHandle | None = None
        self._timeout_handle: CancelHandle | None = None
        self._listening = False

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def config(self) -> SessionTimeoutConfig:
        return self._config

    @property
    def last_activity_at(self) -> int | None:
        return self._last_activity_at

    def start(self, config: SessionTimeoutConfig | None = None) -> None:
        """Begin watching for inactivity. Restarting resets the clock."""
        if config is not None:
            self._config = config
        if self._state is not MonitorState.STOPPED:
            self._teardown()

        if self._session_started_at is None:
            self._session_started_at = now_ms(self._clock)
            self._persist(SESSION_STARTED_KEY, self._session_started_at)

        self._state = MonitorState.ACTIVE
        self._register_listeners()
        self._touch()
        self._reschedule()
        logger.debug(f"Session timeout monitor started ({self._config.timeout_ms} ms)")

    def stop(self) -> None:
        """Cancel timers, drop listeners and clear the activity record.

        Safe to call in any state, any number of times.
        """
        self._teardown()
        self._last_activity_at = None
        self._session_started_at = None
        if self._storage is not None:
            self._storage.remove_item(LAST_ACTIVITY_KEY)
            self._storage.remove_item(SESSION_STARTED_KEY)

    def reset_session(self) -> None:
        """Treat the current moment as user activity."""
        if self._state not in (MonitorState.ACTIVE, MonitorState.WARNING_ISSUED):
            return
        self._state = MonitorState.ACTIVE
        self._touch()
        self._reschedule()

    def get_time_remaining(self) -> int:
        """Milliseconds until timeout; never negative."""
        if self._last_activity_at is None:
            return self._config.timeout_ms
        elapsed = now_ms(self._clock) - self._last_activity_at
        return max(0, self._config.timeout_ms - elapsed)

    def get_session_duration(self) -> int:
        """Milliseconds since the monitor was started, 0 if not running."""
        if self._session_started_at is None:
            return 0
        return now_ms(self._clock) - self._session_started_at

    # -- internals -----------------------------------------------------

    def _handle_activity(self) -> None:
        self.reset_session()

    def _register_listeners(self) -> None:
        if self._listening:
            return
        for event in QUALIFYING_EVENTS:
            self._events.add_listener(event, self._handle_activity)
        self._listening = True

    def _unregister_listeners(self) -> None:
        if not self._listening:
            return
        for event in QUALIFYING_EVENTS:
            self._events.remove_listener(event, self._handle_activity)
        self._listening = False

    def _touch(self) -> None:
        self._last_activity_at = now_ms(self._clock)
        self._persist(LAST_ACTIVITY_KEY, self._last_activity_at)

    def _persist(self, key: str, value: int) -> None:
        if self._storage is not None:
            self._storage.set_item(key, value)

    def _cancel_timers(self) -> None:
        if self._warning_handle is not None:
            self._warning_handle.cancel()
            self._warning_handle = None
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _teardown(self) -> None:
        self._cancel_timers()
        self._unregister_listeners()
        self._state = MonitorState.STOPPED

    def _reschedule(self) -> None:
        self._cancel_timers()
        config = self._config
        if config.show_warning and config.warning_ms > 0:
            delay_ms = config.timeout_ms - config.warning_ms
            self._warning_handle = self._scheduler.schedule_after(delay_ms / 1000, self._fire_warning)
        self._timeout_handle = self._scheduler.schedule_after(
            config.timeout_ms / 1000, self._fire_timeout
        )

    def _fire_warning(self) -> None:
        self._warning_handle = None
        if self._state is not MonitorState.ACTIVE:
            return
        self._state = MonitorState.WARNING_ISSUED
        logger.info("Session about to expire due to inactivity")
        if self._config.on_warning is not None:
            self._invoke(self._config.on_warning)

    def _fire_timeout(self) -> None:
        self._timeout_handle = None
        if self._state not in (MonitorState.ACTIVE, MonitorState.WARNING_ISSUED):
            return
        self._state = MonitorState.TIMED_OUT
        logger.info("Session timed out due to inactivity")
        on_timeout = self._config.on_timeout
        self.stop()
        if on_timeout is not None:
            self._invoke(on_timeout)

    def _invoke(self, callback: SessionCallback) -> None:
        try:
            result = callback()
        except Exception:
            logger.exception("Session timeout callback failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(_log_task_failure)
