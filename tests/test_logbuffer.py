# tests/test_logbuffer.py
from pathlib import Path

import pytest

from itknows.logbuffer import LogBuffer, get_logger


@pytest.fixture
def logbuf():
    buf = LogBuffer().attach()
    yield buf
    buf.detach()


def test_empty_buffer():
    buf = LogBuffer()
    assert buf.text == "No logs yet."
    assert buf.lines == []


def test_add_formats_line():
    buf = LogBuffer()
    buf.add("START", "recording started")
    (line,) = buf.lines
    ts, event, details = line.split(" | ")
    assert event == "START"
    assert details == "recording started"
    assert "T" in ts


def test_captures_module_logs(logbuf):
    get_logger("optimiser").info("dir=%s hrBefore=%g", "up", 150.0, extra={"event": "TEST_START"})
    get_logger("optimiser").warning("no event tag")
    lines = logbuf.lines
    assert lines[-2].endswith("| TEST_START | dir=up hrBefore=150")
    assert lines[-1].endswith("| WARNING | no event tag")


def test_session_events_are_logged(logbuf, session, clock):
    session.toggle_recording()
    session.set_hr(140)
    session.tick()
    clock.advance(15)
    session.set_hr(141)
    session.tick()
    events = [ln.split(" | ")[1] for ln in logbuf.lines]
    for ev in ("START", "TICK", "TEST_START", "EVAL", "PLATEAU"):
        assert ev in events, f"missing {ev} in session log"


def test_clear_and_save(tmp_path: Path):
    buf = LogBuffer()
    assert buf.save(tmp_path) is None
    buf.add("A", "one")
    buf.add("B", "two")
    out = buf.save(tmp_path / "logs")
    assert out is not None and out.exists()
    assert out.name.startswith("itknows_log_") and out.suffix == ".txt"
    assert out.read_text(encoding="utf-8").count("\n") == 1
    buf.clear()
    assert buf.text == "No logs yet."


def test_get_logger_namespace():
    assert get_logger("ble").name == "itknows.ble"
    assert get_logger("itknows.sim").name == "itknows.sim"


def test_config_and_ticker_log_into_session_log(logbuf):
    import itknows.config as config
    from itknows.control import ticker

    assert config.log.name == "itknows.config"
    assert ticker.log.name == "itknows.ticker"

    config.merge_config(config.DEFAULTS, {"bogus": {}})
    assert logbuf.lines[-1].endswith("| WARNING | ignoring unknown config section 'bogus'")
