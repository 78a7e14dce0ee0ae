import threading
import time
from datetime import timedelta

from zinx import zlog
from zinx.timer import DelayFunc, Timer, new_timer_after, new_timer_at, unix_milli


def test_delayfunc_call_passes_args():
    seen = []

    def say_hello(*message):
        seen.append(f"{message[0]}  {message[1]}")

    df = DelayFunc(say_hello, ["hello", "zinx!"])
    assert df.args == ["hello", "zinx!"]
    assert df.func is say_hello
    df.call()
    assert seen == ["hello  zinx!"]


def test_delayfunc_str():
    def say_hello(*message):
        pass

    df = DelayFunc(say_hello, ["hello", "zinx!"])
    text = str(df)
    assert text.startswith("{DelayFun:")
    assert text.endswith(", args:[hello zinx!]}")
    assert "say_hello" in text


def test_delayfunc_call_logs_errors(capsys):
    def broken():
        raise ValueError("bad value")

    DelayFunc(broken, []).call()
    err = capsys.readouterr().err
    assert "Call err: " in err
    assert "bad value" in err
    assert "[ERROR]" in err


def test_unix_milli_tracks_wall_clock():
    before = time.time_ns() // 1_000_000
    value = unix_milli()
    after = time.time_ns() // 1_000_000
    assert before <= value <= after


def test_new_timer_at_truncates_to_milliseconds():
    timer = new_timer_at(DelayFunc(print, []), 1_500_999_999)
    assert timer.unix_ms == 1500


def test_new_timer_after_seconds_and_timedelta():
    df = DelayFunc(print, [])
    before = unix_milli()
    first = new_timer_after(df, 2)
    second = new_timer_after(df, timedelta(milliseconds=500))
    after = unix_milli()
    assert before + 2000 <= first.unix_ms <= after + 2000
    assert before + 500 <= second.unix_ms <= after + 500
    assert first.delay_func is df


def test_timers_fire_after_delay():
    fired = []
    lock = threading.Lock()

    def my_func(*v):
        with lock:
            fired.append((v[0], v[1], unix_milli()))

    start = unix_milli()
    timers = [new_timer_after(DelayFunc(my_func, [i, 2 * i]), 0.02 * i) for i in range(5)]
    threads = [timer.run() for timer in timers]
    for thread in threads:
        thread.join(timeout=5)
    assert sorted((n, d) for n, d, _ in fired) == [(i, 2 * i) for i in range(5)]
    lateness = [at - (start + 20 * number) for number, _, at in fired]
    assert len(lateness) == 5
    assert min(lateness) >= -1


def test_past_timer_fires_immediately():
    event = threading.Event()
    timer = Timer(DelayFunc(event.set, []), unix_milli() - 10_000)
    timer.run().join(timeout=5)
    assert event.is_set()


def test_failing_timer_does_not_break_thread(capsys):
    zlog.reset_flags(zlog.LogFlag.DEFAULT)

    def broken(*_):
        raise RuntimeError("timer failure")

    new_timer_after(DelayFunc(broken, [1]), 0).run().join(timeout=5)
    assert "timer failure" in capsys.readouterr().err