# itknows/control/history.py
from __future__ import annotations
import csv
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, List, Tuple

from itknows.config import HISTORY_CAPACITY


class HRHistory:
    """
    Fixed-capacity FIFO of BPM samples, most-recent-last.
    Display only: the optimiser never reads it back.
    """
    def __init__(self, capacity: int = HISTORY_CAPACITY):
        self.capacity = int(capacity)
        self._deque: deque = deque(maxlen=self.capacity)

    def push(self, bpm: float) -> None:
        self._deque.append(float(bpm))

    def clear(self) -> None:
        self._deque.clear()

    def values(self) -> List[float]:
        return list(self._deque)

    def latest(self, default=None):
        return self._deque[-1] if self._deque else default

    def __len__(self) -> int:
        return len(self._deque)

    def __iter__(self) -> Iterator[float]:
        return iter(list(self._deque))

    def bounds(self, pad: float = 5.0, floor: float = 40.0) -> Tuple[float, float]:
        return chart_bounds(self._deque, pad=pad, floor=floor)


def export_history_csv(history, path) -> Path:
    """Write `index,bpm` rows for the current buffer contents."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["index", "bpm"])
        for i, bpm in enumerate(history):
            w.writerow([i, f"{bpm:.1f}"])
    return p


EMPTY_BOUNDS = (50.0, 180.0)
SPARK_CHARS = "▁▂▃▄▅▆▇█"


def chart_bounds(values: Iterable[float], pad: float = 5.0, floor: float = 40.0) -> Tuple[float, float]:
    """Y-axis bounds for charting: (min - pad, clamped to floor) .. (max + pad)."""
    vals = [float(v) for v in values]
    if not vals:
        return EMPTY_BOUNDS
    lo = max(min(vals) - pad, floor)
    hi = max(vals) + pad
    return float(lo), float(hi)


def sparkline(history: HRHistory, width: int = 0) -> str:
    """
    One character per sample (last `width` samples when width > 0),
    scaled into `history.bounds()`.
    """
    vals = history.values()
    if width > 0:
        vals = vals[-width:]
    if not vals:
        return ""
    lo, hi = history.bounds()
    top = len(SPARK_CHARS) - 1
    out = []
    for v in vals:
        a = (v - lo) / (hi - lo)
        out.append(SPARK_CHARS[int(round(min(max(a, 0.0), 1.0) * top))])
    return "".join(out)


def render_chart(history: HRHistory, width: int = 0) -> str:
    """Sparkline framed with its bounds and the latest reading."""
    line = sparkline(history, width)
    if not line:
        return "HR chart: no samples yet."
    lo, hi = history.bounds()
    return f"{hi:5.0f} ┐\n      │{line}\n{lo:5.0f} ┘  last {history.latest():.0f} bpm ({len(history)} samples)"
