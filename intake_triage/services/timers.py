"""Cancellable timers for alert auto-escalation."""

import threading
from abc import ABC, abstractmethod
from typing import Callable


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class TimerScheduler(ABC):
    """Schedules one-shot callbacks."""

    @abstractmethod
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_seconds``."""
        pass


class _ThreadingTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingTimerScheduler(TimerScheduler):
    """Timers backed by daemon ``threading.Timer`` threads."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(delay_seconds, 0.0), callback)
        timer.daemon = True
        timer.start()
        return _ThreadingTimerHandle(timer)
