# tests/test_ticker.py
import threading
import time

import pytest

from itknows.control.ticker import PeriodicTicker


def _wait_for(pred, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return False


def test_ticker_survives_failing_tick():
    calls = []

    def fn():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick blows up")

    t = PeriodicTicker(0.01, fn)
    t.start()
    try:
        assert _wait_for(lambda: len(calls) >= 3), "ticker stopped after a failing tick"
    finally:
        t.cancel()
        t.join()


def test_cancel_is_idempotent_and_stops_ticks():
    hits = []
    t = PeriodicTicker(0.01, lambda: hits.append(1))
    t.start()
    assert _wait_for(lambda: len(hits) >= 1)
    t.cancel()
    t.cancel()
    t.join()
    assert not t.running
    n = len(hits)
    time.sleep(0.05)
    assert len(hits) == n


def test_cancel_from_inside_tick():
    done = threading.Event()
    holder = {}

    def fn():
        holder["t"].cancel()
        holder["t"].join()
        done.set()

    holder["t"] = PeriodicTicker(0.01, fn)
    holder["t"].start()
    assert done.wait(2.0)
    holder["t"].join()
    assert not holder["t"].running


def test_cancel_before_start():
    t = PeriodicTicker(1.0, lambda: None)
    t.cancel()
    t.join()


def test_rejects_non_positive_period():
    with pytest.raises(ValueError):
        PeriodicTicker(0, lambda: None)
