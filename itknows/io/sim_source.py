from __future__ import annotations
import math
import threading
import time
from random import Random
from typing import Optional

from itknows.io.hr_source import BpmCallback, HRSource, register_source
from itknows.logbuffer import get_logger

log = get_logger("sim")


def clamp(value, lo, hi):
    return max(lo, min(hi, value))


@register_source("sim")
class SimulatedHeartRateSource(HRSource):
    """
    Sinusoidal HR stream with optional Gaussian noise, for dry runs
    without a strap. Emits one reading every `interval` seconds.
    """
    def __init__(
        self,
        start_bpm: float = 140.0,
        amplitude: float = 8.0,
        period: float = 120.0,
        interval: float = 1.0,
        noise: float = 0.5,
        seed: Optional[int] = None,
        hr_min: float = 40.0,
        hr_max: float = 220.0,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.start_bpm = float(start_bpm)
        self.amplitude = float(amplitude)
        self.period = float(period)
        self.interval = float(interval)
        self.noise = float(noise)
        self.hr_min = float(hr_min)
        self.hr_max = float(hr_max)
        self._rng = Random(seed)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def connected(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    @property
    def connected_name(self) -> Optional[str]:
        return "Simulated HR" if self.connected else None

    def sample(self, elapsed: float) -> float:
        hr = self.start_bpm + self.amplitude * math.sin(2 * math.pi * elapsed / self.period)
        if self.noise > 0:
            hr += self._rng.gauss(0.0, self.noise)
        return round(clamp(hr, self.hr_min, self.hr_max), 1)

    def _run(self) -> None:
        start = time.monotonic()
        while not self._stop.is_set():
            try:
                self._deliver(self.sample(time.monotonic() - start))
            except Exception:
                log.exception("HR callback failed")
            self._stop.wait(self.interval)

    def connect(self, on_bpm: BpmCallback) -> None:
        if self.connected:
            return
        self._on_bpm = on_bpm
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="itknows-sim", daemon=True)
        self._thread.start()
        log.info("simulated source started at %.0f bpm", self.start_bpm, extra={"event": "SIM"})

    def disconnect(self) -> None:
        self._stop.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._thread = None

    def close(self) -> None:
        self.disconnect()
