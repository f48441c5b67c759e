# tests/test_history.py
import csv
from pathlib import Path

import numpy as np

from itknows.control.history import HRHistory, chart_bounds, export_history_csv, render_chart, sparkline


def test_push_evicts_oldest():
    h = HRHistory(capacity=3)
    for v in (1, 2, 3, 4, 5):
        h.push(v)
    assert h.values() == [3.0, 4.0, 5.0]
    assert len(h) == 3
    assert h.latest() == 5.0


def test_default_capacity_is_60():
    h = HRHistory()
    for v in range(61):
        h.push(v)
    assert h.capacity == 60
    assert list(h)[0] == 1.0


def test_bounds():
    h = HRHistory()
    assert h.bounds() == (50.0, 180.0)
    for v in (42, 60, 90):
        h.push(v)
    assert h.bounds() == (40.0, 95.0)
    h.clear()
    h.push(140)
    assert h.bounds() == (135.0, 145.0)


def test_chart_bounds_accepts_arrays():
    assert chart_bounds(np.array([42.0, 60.0, 90.0])) == (40.0, 95.0)
    assert chart_bounds(np.array([])) == (50.0, 180.0)
    assert chart_bounds([100], pad=10, floor=0) == (90.0, 110.0)


def test_sparkline_scales_into_bounds():
    h = HRHistory()
    assert sparkline(h) == ""
    for v in (50, 150, 50):
        h.push(v)
    assert sparkline(h) == "▁█▁"
    assert sparkline(h, width=2) == "█▁"


def test_render_chart():
    h = HRHistory()
    assert render_chart(h) == "HR chart: no samples yet."
    for v in (50, 150, 50):
        h.push(v)
    top, middle, bottom = render_chart(h).splitlines()
    assert top.split() == ["155", "┐"]
    assert middle.endswith("▁█▁")
    assert bottom.startswith("   45 ┘")
    assert "last 50 bpm (3 samples)" in bottom


def test_export_history_csv(tmp_path: Path):
    h = HRHistory()
    for v in (120, 121.5):
        h.push(v)
    out = export_history_csv(h, tmp_path / "nested" / "history.csv")
    assert out.exists(), "CSV was not created"
    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [["index", "bpm"], ["0", "120.0"], ["1", "121.5"]]
