"""Hierarchical time wheels and a scheduler that fires timers through them."""

from __future__ import annotations

import queue
import threading
from contextlib import suppress
from datetime import timedelta
from typing import Optional, Union

from zinx import zlog
from zinx.timer import DelayFunc, Timer, new_timer_after, new_timer_at, unix_milli

HOUR_NAME = "HOUR"
HOUR_INTERVAL = 60 * 60 * 1000
HOUR_SCALES = 12

MINUTE_NAME = "MINUTE"
MINUTE_INTERVAL = 60 * 1000
MINUTE_SCALES = 60

SECOND_NAME = "SECOND"
SECOND_INTERVAL = 1000
SECOND_SCALES = 60

TIMERS_MAX_CAP = 2048

MAX_CHAN_BUFF = 2048
MAX_TIME_DELAY = 100

Duration = Union[float, int, timedelta]

_UINT32_MASK = 0xFFFFFFFF


def _to_millis(duration: Duration) -> int:
    if isinstance(duration, timedelta):
        duration = duration.total_seconds()
    return int(duration * 1000)


class TimeWheel:
    """A ring of ``scales`` slots, each ``interval`` milliseconds wide.

    Timers closer than one interval are handed to the next, finer wheel;
    the finest wheel keeps them on its current slot.
    """

    def __init__(self, name: str, interval: int, scales: int, max_cap: int) -> None:
        if interval <= 0 or scales <= 0:
            raise ValueError("interval and scales must be positive")
        self.name = name
        self.interval = int(interval)
        self.scales = scales
        self.cur_index = 0
        self.max_cap = max_cap
        self.timer_queue: list[dict[int, Timer]] = [{} for _ in range(scales)]
        self.next_wheel: Optional[TimeWheel] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        zlog.info("Init timerWhell name = ", name, " is Done!")

    def _add_timer(self, timer_id: int, timer: Timer, force_next: bool) -> None:
        delay = timer.unix_ms - unix_milli()
        if delay >= self.interval:
            steps = delay // self.interval
            self.timer_queue[(self.cur_index + steps) % self.scales][timer_id] = timer
            return
        if self.next_wheel is None:
            if force_next:
                # A slot the wheel has already passed would never be looked at again.
                self.timer_queue[(self.cur_index + 1) % self.scales][timer_id] = timer
            else:
                self.timer_queue[self.cur_index][timer_id] = timer
            return
        self.next_wheel.add_timer(timer_id, timer)

    def add_timer(self, timer_id: int, timer: Timer) -> None:
        """Place a timer on this wheel or on a finer one."""
        with self._lock:
            self._add_timer(timer_id, timer, False)

    def remove_timer(self, timer_id: int) -> None:
        """Remove a timer from every slot of this wheel."""
        with self._lock:
            for slot in self.timer_queue:
                slot.pop(timer_id, None)

    def add_time_wheel(self, next_wheel: "TimeWheel") -> None:
        """Attach the finer wheel that receives timers closer than one interval."""
        self.next_wheel = next_wheel
        zlog.info("Add timerWhell[", self.name, "]'s next [", next_wheel.name, "] is succ!")

    def tick(self) -> None:
        """Advance the wheel by one slot, redistributing the timers it passes."""
        with self._lock:
            current = self.timer_queue[self.cur_index]
            self.timer_queue[self.cur_index] = {}
            for timer_id, timer in current.items():
                self._add_timer(timer_id, timer, True)

            next_index = (self.cur_index + 1) % self.scales
            upcoming = self.timer_queue[next_index]
            self.timer_queue[next_index] = {}
            for timer_id, timer in upcoming.items():
                self._add_timer(timer_id, timer, True)

            self.cur_index = next_index

    def _run(self) -> None:
        while not self._stop.wait(self.interval / 1000):
            self.tick()

    def run(self) -> None:
        """Turn the wheel on a background thread, one tick per interval."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"timewheel-{self.name}",
                                        daemon=True)
        self._thread.start()
        zlog.info("timerwheel name = ", self.name, " is running...")

    def stop(self) -> None:
        """Stop the background turning started by run()."""
        self._stop.set()

    def get_timers_within(self, duration: Duration) -> dict[int, Timer]:
        """Take the timers on the finest wheel's current slot due within duration."""
        leaf = self
        while leaf.next_wheel is not None:
            leaf = leaf.next_wheel
        limit = _to_millis(duration)
        with leaf._lock:
            now = unix_milli()
            slot = leaf.timer_queue[leaf.cur_index]
            due = {timer_id: timer for timer_id, timer in slot.items()
                   if timer.unix_ms - now < limit}
            for timer_id in due:
                del slot[timer_id]
        return due


class TimerScheduler:
    """Hour, minute and second wheels chained together, turning on their own threads.

    Once start() is called, due timers' functions are put on ``triggers``;
    stop() puts a None there to mark the end.
    """

    def __init__(self) -> None:
        second = TimeWheel(SECOND_NAME, SECOND_INTERVAL, SECOND_SCALES, TIMERS_MAX_CAP)
        minute = TimeWheel(MINUTE_NAME, MINUTE_INTERVAL, MINUTE_SCALES, TIMERS_MAX_CAP)
        hour = TimeWheel(HOUR_NAME, HOUR_INTERVAL, HOUR_SCALES, TIMERS_MAX_CAP)
        hour.add_time_wheel(minute)
        minute.add_time_wheel(second)
        self._wheels = (second, minute, hour)
        for wheel in self._wheels:
            wheel.run()
        self.time_wheel = hour
        self.id_gen = 0
        self.triggers: queue.Queue = queue.Queue(maxsize=MAX_CHAN_BUFF)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "TimerScheduler":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _next_id(self) -> int:
        self.id_gen = (self.id_gen + 1) & _UINT32_MASK
        return self.id_gen

    def create_timer_at(self, delay_func: DelayFunc, unix_nano: int) -> int:
        """Schedule delay_func at an absolute time in Unix nanoseconds; return its id."""
        with self._lock:
            timer_id = self._next_id()
            self.time_wheel.add_timer(timer_id, new_timer_at(delay_func, unix_nano))
            return timer_id

    def create_timer_after(self, delay_func: DelayFunc, duration: Duration) -> int:
        """Schedule delay_func after duration (seconds or timedelta); return its id."""
        with self._lock:
            timer_id = self._next_id()
            self.time_wheel.add_timer(timer_id, new_timer_after(delay_func, duration))
            return timer_id

    def cancel_timer(self, timer_id: int) -> None:
        """Remove a timer from every wheel."""
        with self._lock:
            wheel: Optional[TimeWheel] = self.time_wheel
            while wheel is not None:
                wheel.remove_timer(timer_id)
                wheel = wheel.next_wheel

    def _schedule(self) -> None:
        while not self._stop.is_set():
            now = unix_milli()
            due = self.time_wheel.get_timers_within(MAX_TIME_DELAY / 1000)
            for timer in due.values():
                if abs(now - timer.unix_ms) > MAX_TIME_DELAY:
                    zlog.error("want call at ", timer.unix_ms, "; real call at", now,
                               "; delay ", now - timer.unix_ms)
                self.triggers.put(timer.delay_func)
            self._stop.wait(MAX_TIME_DELAY / 2 / 1000)

    def start(self) -> None:
        """Begin moving due timers onto ``triggers`` from a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._schedule, name="timer-scheduler",
                                        daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the wheels and the scheduling thread."""
        self._stop.set()
        for wheel in self._wheels:
            wheel.stop()
        with suppress(queue.Full):
            self.triggers.put_nowait(None)


def new_auto_exec_timer_scheduler() -> TimerScheduler:
    """A started scheduler whose due functions are each called on a new thread."""
    scheduler = TimerScheduler()
    scheduler.start()

    def consume() -> None:
        for delay_func in iter(scheduler.triggers.get, None):
            threading.Thread(target=delay_func.call, daemon=True).start()

    threading.Thread(target=consume, name="timer-auto-exec", daemon=True).start()
    return scheduler