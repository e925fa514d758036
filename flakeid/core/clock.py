import threading
import time
from typing import Protocol


class Clock(Protocol):
    """What a Worker needs from a time source."""

    def time_ns(self) -> int:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock backed by the `time` module."""

    def time_ns(self) -> int:
        return time.time_ns()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ManualClock:
    """
    A clock that only moves when told to.

    Parameters:
        start_ns (int): initial reading in nanoseconds since the unix epoch.
        step_ns (int): amount added after every `time_ns()` read, 0 freezes time.

    `sleep()` advances the clock instead of blocking, so loops waiting for the
    next time unit finish immediately.
    """

    def __init__(self, start_ns: int = 0, step_ns: int = 0):
        self._now = start_ns
        self._step = step_ns
        self._lock = threading.Lock()
        self.sleeps: list[float] = []

    def time_ns(self) -> int:
        with self._lock:
            now = self._now
            self._now += self._step
            return now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self._now += round(seconds * 1_000_000_000)

    def set(self, now_ns: int) -> None:
        with self._lock:
            self._now = now_ns

    def advance(self, delta_ns: int) -> None:
        with self._lock:
            self._now += delta_ns
