from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

"""Named, independently cancellable timers on the asyncio event loop.

Contract:
- arming an armed timer is a no-op (returns the existing token)
- disarming an unarmed timer is a no-op
- a timer disarmed while its callback is running is not cancelled; the
  callback finishes and the timer loop then exits
- callback exceptions are logged and never escape into the scheduler

All timers run on the single event loop thread, so callbacks interleave only at
their await points.
"""

__all__ = [
    "TimerName",
    "SESSION_TIMERS",
    "TimerScheduler",
]

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerName(Enum):
    STATUS_REFRESH = "status_refresh"
    AUTO_TRIGGER = "auto_trigger"
    DOWNLOAD_POLL = "download_poll"
    IMPORT_POLL = "import_poll"
    BUILD_SETTLE = "build_settle"  # one-shot


# Cancelled as a group whenever the processing session becomes inactive.
SESSION_TIMERS = (TimerName.DOWNLOAD_POLL, TimerName.IMPORT_POLL, TimerName.BUILD_SETTLE)


@dataclass(eq=False)
class _ArmedTimer:
    token: int
    interval: float
    repeat: bool
    firing: bool = False
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class TimerScheduler:
    """Owns the dashboard's named timers.

    Must be armed from inside a running event loop.
    """

    def __init__(self) -> None:
        self._timers: dict[TimerName, _ArmedTimer] = {}
        self._tokens = itertools.count(1)

    def arm(
        self,
        name: TimerName,
        interval: float,
        callback: TimerCallback,
        *,
        repeat: bool = True,
    ) -> int:
        """Arm `name` to run `callback` every `interval` seconds (once if repeat=False)."""
        existing = self._timers.get(name)
        if existing is not None:
            logger.debug("timer %s already armed (token=%d)", name.value, existing.token)
            return existing.token
        loop = asyncio.get_running_loop()
        timer = _ArmedTimer(token=next(self._tokens), interval=interval, repeat=repeat)
        self._timers[name] = timer
        timer.task = loop.create_task(
            self._run(name, timer, callback), name=f"timer:{name.value}"
        )
        logger.debug("timer %s armed every %ss (token=%d)", name.value, interval, timer.token)
        return timer.token

    def disarm(self, name: TimerName) -> None:
        timer = self._timers.pop(name, None)
        if timer is None:
            return
        logger.debug("timer %s disarmed (token=%d)", name.value, timer.token)
        if timer.task is not None and not timer.firing:
            timer.task.cancel()

    def disarm_all(self, names: tuple[TimerName, ...] | None = None) -> None:
        for name in list(names if names is not None else self._timers):
            self.disarm(name)

    def is_armed(self, name: TimerName) -> bool:
        return name in self._timers

    def token(self, name: TimerName) -> int | None:
        timer = self._timers.get(name)
        return timer.token if timer is not None else None

    def armed(self) -> set[TimerName]:
        return set(self._timers)

    async def _run(self, name: TimerName, timer: _ArmedTimer, callback: TimerCallback) -> None:
        while True:
            await asyncio.sleep(timer.interval)
            if self._timers.get(name) is not timer:
                return
            if not timer.repeat:
                # one-shot: slot is free again before the callback runs
                self._timers.pop(name, None)
            timer.firing = True
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("timer %s callback failed", name.value)
            finally:
                timer.firing = False
            if not timer.repeat or self._timers.get(name) is not timer:
                return
