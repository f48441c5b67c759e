"""
Rhythm optimiser: hill-climbing over an unobservable cadence using heart rate
as the only feedback signal.

Control loop (one tick per second while recording and HR > 0):

  • Experiment running  → after EVALUATION_DELAY_SEC, judge it.
  • Otherwise, within COOLDOWN_SEC of the previous experiment start → wait.
  • On a plateau        → stay while |hr - plateau_hr| < sensitivity,
                          else leave it and start a new experiment.
  • Otherwise           → start an experiment in the current direction (UP first).

Judging an experiment (delta = hr_now - hr_at_start, thr = sensitivity):

  • |delta| <  thr → plateau at hr_now.
  • delta   < -thr → HR fell: keep direction.
  • delta   >  thr → HR rose: flip direction for the next experiment.

Only a rise flips the direction; a fall never does.
"""

from __future__ import annotations
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from itknows.config import OptimiserConfig, validate_sensitivity
from itknows.control.advice import (
    Advice, Direction, StatusColor,
    color_for, flip_advice, improvement_advice, render, start_advice,
)
from itknows.control.history import HRHistory
from itknows.control.ticker import PeriodicTicker
from itknows.feedback.emitter import FeedbackEmitter, NullEmitter
from itknows.logbuffer import get_logger

log = get_logger("optimiser")

Observer = Callable[["OptimiserSession"], None]


class OptimiserState(Enum):
    IDLE = "idle"
    LEARNING = "learning"
    TESTING = "testing"
    PLATEAU = "plateau"


@dataclass(frozen=True)
class Experiment:
    started_at: float
    hr_at_start: float
    direction: Direction


def _valid_bpm(bpm) -> bool:
    if isinstance(bpm, bool):
        return False
    try:
        v = float(bpm)
    except (TypeError, ValueError):
        return False
    return math.isfinite(v) and v > 0


class OptimiserSession:
    """
    One per running app. HR arrives via `set_hr` from the source thread,
    ticks arrive from the ticker thread; both go through `self._lock`.
    """

    def __init__(
        self,
        config: Optional[OptimiserConfig] = None,
        emitter: Optional[FeedbackEmitter] = None,
        clock: Callable[[], float] = time.monotonic,
        ticker_factory: Optional[Callable[[float, Callable[[], None]], PeriodicTicker]] = None,
    ):
        self.config = config or OptimiserConfig()
        self.emitter = emitter or NullEmitter()
        self._clock = clock
        self._ticker_factory = ticker_factory or PeriodicTicker
        self._ticker = None
        self._lock = threading.RLock()
        self._observers: List[Observer] = []

        self.current_hr: float = 0.0
        self.recording: bool = False
        self.hr_history = HRHistory(self.config.history_capacity)
        self.sensitivity: float = self.config.sensitivity
        self.haptics_enabled: bool = self.config.haptics_enabled

        self.direction: Optional[Direction] = None
        self.experiment: Optional[Experiment] = None
        self.last_test_at: Optional[float] = None
        self.plateau_hr: Optional[float] = None
        self.advice: Advice = Advice.IDLE

    # ---------- derived ----------
    @property
    def test_in_progress(self) -> bool:
        return self.experiment is not None

    @property
    def plateau_active(self) -> bool:
        return self.plateau_hr is not None

    @property
    def rhythm_advice(self) -> str:
        return render(self.advice) if self.recording else render(Advice.IDLE)

    @property
    def status_color(self) -> StatusColor:
        return color_for(self.advice, self.recording)

    @property
    def state(self) -> OptimiserState:
        if not self.recording:
            return OptimiserState.IDLE
        if self.experiment is not None:
            return OptimiserState.TESTING
        if self.plateau_active:
            return OptimiserState.PLATEAU
        return OptimiserState.LEARNING

    # ---------- observers ----------
    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register `callback(session)`; returns a zero-arg unsubscribe."""
        with self._lock:
            self._observers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Observer) -> None:
        with self._lock:
            if callback in self._observers:
                self._observers.remove(callback)

    def _notify(self) -> None:
        for cb in list(self._observers):
            try:
                cb(self)
            except Exception:
                log.exception("observer %r failed", cb)

    # ---------- inputs ----------
    def set_hr(self, bpm) -> None:
        if not _valid_bpm(bpm):
            return
        with self._lock:
            self.current_hr = float(bpm)
            self.hr_history.push(self.current_hr)
            self._notify()

    def set_sensitivity(self, value: float) -> None:
        v = validate_sensitivity(value)
        with self._lock:
            self.sensitivity = v
            log.info("sensitivity=%g", v, extra={"event": "CONFIG"})
            self._notify()

    def set_haptics_enabled(self, enabled: bool) -> None:
        with self._lock:
            self.haptics_enabled = bool(enabled)
            self._notify()

    def toggle_recording(self) -> bool:
        with self._lock:
            self.recording = not self.recording
            if self.recording:
                self._reset()
                self._start_loop()
                self.advice = Advice.LEARNING
                log.info("recording started", extra={"event": "START"})
            else:
                self._stop_loop()
                self.advice = Advice.IDLE
                log.info("recording stopped", extra={"event": "STOP"})
            self._notify()
            return self.recording

    def close(self) -> None:
        """Dispose: cancel the ticker. Safe to call more than once."""
        with self._lock:
            self._stop_loop()
            self._observers.clear()
        try:
            self.emitter.close()
        except Exception:
            log.exception("emitter close failed")

    def _reset(self) -> None:
        self.direction = None
        self.experiment = None
        self.last_test_at = None
        self.plateau_hr = None

    def _start_loop(self) -> None:
        self._stop_loop()
        self._ticker = self._ticker_factory(self.config.tick_period_sec, self.tick)
        self._ticker.start()

    def _stop_loop(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    # ---------- control loop ----------
    def _elapsed(self, since: float, now: float) -> int:
        # whole seconds, truncated
        return int(now - since)

    def tick(self) -> None:
        with self._lock:
            if not self.recording or self.current_hr <= 0:
                return
            log.debug(
                "hr=%g testInProg=%s plateau=%s",
                self.current_hr, self.test_in_progress, self.plateau_active,
                extra={"event": "TICK"},
            )
            now = self._clock()

            if self.experiment is not None:
                if self._elapsed(self.experiment.started_at, now) >= self.config.evaluation_delay_sec:
                    self._evaluate()
                return

            if self.last_test_at is not None and \
                    self._elapsed(self.last_test_at, now) < self.config.cooldown_sec:
                return

            if self.plateau_hr is not None:
                if abs(self.current_hr - self.plateau_hr) < self.sensitivity:
                    self.advice = Advice.OPTIMAL
                    self._notify()
                    return
                self.plateau_hr = None

            self._start_test(self.direction or Direction.UP, now)

    def _start_test(self, direction: Direction, now: float) -> None:
        self.direction = direction
        self.experiment = Experiment(started_at=now, hr_at_start=self.current_hr, direction=direction)
        self.last_test_at = now
        log.info(
            "dir=%s hrBefore=%g", direction.value, self.current_hr,
            extra={"event": "TEST_START"},
        )
        self.advice = start_advice(direction)
        self._cue(direction)
        self._notify()

    def _evaluate(self) -> None:
        exp = self.experiment
        self.experiment = None
        if exp is None:
            return

        thr = self.sensitivity
        delta = self.current_hr - exp.hr_at_start
        log.info("delta=%g thr=%g", delta, thr, extra={"event": "EVAL"})

        if abs(delta) < thr:
            self.plateau_hr = self.current_hr
            self.advice = Advice.OPTIMAL
            log.info("hr=%g", self.current_hr, extra={"event": "PLATEAU"})
        elif delta < -thr:
            self.advice = improvement_advice(exp.direction)
        elif delta > thr:
            self.direction = exp.direction.flipped()
            self.advice = flip_advice(exp.direction)
        self._notify()

    def _cue(self, direction: Direction) -> None:
        if not self.haptics_enabled:
            return
        try:
            if direction is Direction.UP:
                self.emitter.cue_increase()
            else:
                self.emitter.cue_decrease()
        except Exception as e:
            log.warning("feedback cue failed: %s", e)
