# tests/conftest.py
from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path for `import itknows.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from itknows.config import OptimiserConfig
from itknows.control.optimiser import OptimiserSession
from itknows.feedback.emitter import FeedbackEmitter


class FakeClock:
    def __init__(self, t: float = 1000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class RecordingEmitter(FeedbackEmitter):
    def __init__(self):
        super().__init__()
        self.cues = []
        self.closed = False

    def cue_increase(self):
        self.cues.append("increase")

    def cue_decrease(self):
        self.cues.append("decrease")

    def close(self):
        self.closed = True


class ManualTicker:
    """Stands in for PeriodicTicker; tests call session.tick() themselves."""
    instances = []

    def __init__(self, period, fn):
        self.period = period
        self.fn = fn
        self.started = False
        self.cancelled = 0
        ManualTicker.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def make_session(clock, emitter):
    created = []

    def _make(**cfg):
        s = OptimiserSession(
            config=OptimiserConfig(**cfg),
            emitter=emitter,
            clock=clock,
            ticker_factory=ManualTicker,
        )
        created.append(s)
        return s

    yield _make
    for s in created:
        s.close()


@pytest.fixture
def session(make_session):
    return make_session(sensitivity=3)
