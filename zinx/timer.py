"""Delayed function calls and one-shot timers with millisecond precision."""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Sequence, Union

from zinx import zlog

Duration = Union[float, int, timedelta]


class DelayFunc:
    """A function and the arguments it will be called with when a timer fires."""

    def __init__(self, func: Callable[..., Any], args: Sequence[Any] = ()) -> None:
        self.func = func
        self.args = list(args)

    def __str__(self) -> str:
        name = getattr(self.func, "__qualname__", type(self.func).__name__)
        args = " ".join(str(arg) for arg in self.args)
        return f"{{DelayFun:{name}, args:[{args}]}}"

    def call(self) -> None:
        """Invoke the function; any exception it raises is logged, not propagated."""
        try:
            self.func(*self.args)
        except Exception as exc:  # noqa: BLE001 - a failing callback must not kill the caller
            zlog.error(str(self), "Call err: ", exc)


def unix_milli() -> int:
    """Milliseconds elapsed since the Unix epoch."""
    return time.time_ns() // 1_000_000


def _to_nanoseconds(duration: Duration) -> int:
    if isinstance(duration, timedelta):
        duration = duration.total_seconds()
    return int(duration * 1_000_000_000)


class Timer:
    """Fires a DelayFunc at an absolute time given in Unix milliseconds."""

    def __init__(self, delay_func: DelayFunc, unix_ms: int) -> None:
        self.delay_func = delay_func
        self.unix_ms = unix_ms

    def __repr__(self) -> str:
        return f"Timer({self.delay_func}, unix_ms={self.unix_ms})"

    def _wait_and_call(self) -> None:
        now = unix_milli()
        if self.unix_ms > now:
            time.sleep((self.unix_ms - now) / 1000)
        self.delay_func.call()

    def run(self) -> threading.Thread:
        """Start a background thread that waits for the deadline and then calls."""
        thread = threading.Thread(target=self._wait_and_call, daemon=True)
        thread.start()
        return thread


def new_timer_at(delay_func: DelayFunc, unix_nano: int) -> Timer:
    """Timer firing at ``unix_nano`` nanoseconds since the epoch."""
    return Timer(delay_func, unix_nano // 1_000_000)


def new_timer_after(delay_func: DelayFunc, duration: Duration) -> Timer:
    """Timer firing ``duration`` (seconds or timedelta) from now."""
    return new_timer_at(delay_func, time.time_ns() + _to_nanoseconds(duration))