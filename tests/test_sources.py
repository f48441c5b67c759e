# tests/test_sources.py
import threading

import pytest

from itknows.io.hr_source import available_sources, create_source
from itknows.io.sim_source import SimulatedHeartRateSource


def test_registry():
    assert {"ble", "sim"} <= set(available_sources())
    with pytest.raises(ValueError):
        create_source("garmin")


def test_sim_sample_is_deterministic_and_clamped():
    a = SimulatedHeartRateSource(start_bpm=140, amplitude=10, period=40, noise=0.0)
    assert a.sample(0.0) == 140.0
    assert a.sample(10.0) == 150.0
    hi = SimulatedHeartRateSource(start_bpm=219, amplitude=10, period=40, noise=0.0)
    assert hi.sample(10.0) == 220.0


def test_sim_feeds_session(session):
    got = threading.Event()
    src = create_source("sim", start_bpm=130, interval=0.01, noise=0.0)

    def on_bpm(bpm):
        session.set_hr(bpm)
        if len(session.hr_history) >= 3:
            got.set()

    src.connect(on_bpm)
    try:
        assert src.connected
        assert src.connected_name == "Simulated HR"
        assert got.wait(2.0), "no readings from simulated source"
    finally:
        src.close()
    assert not src.connected
    assert session.current_hr > 0
