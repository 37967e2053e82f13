"""Clock and scheduler abstractions for time-driven security logic.

Token expiry and the inactivity monitor never call ``time.time()`` or
``loop.call_later`` directly. They take a ``Clock`` and a ``Scheduler`` so
tests can drive time by hand.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable returning seconds since the UNIX epoch."""

    def __call__(self) -> float: ...


def system_clock() -> float:
    """Default clock backed by ``time.time()``."""
    return time.time()


def now_ms(clock: Clock) -> int:
    """Current time of ``clock`` in whole milliseconds."""
    return int(round(clock() * 1000))


@runtime_checkable
class CancelHandle(Protocol):
    """Handle returned by a scheduler; cancelling is idempotent."""

    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """Runs a callback once after a delay."""

    def schedule_after(self, delay_seconds: float, callback: Callable[[], None]) -> CancelHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def schedule_after(self, delay_seconds: float, callback: Callable[[], None]) -> CancelHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_seconds), callback)
