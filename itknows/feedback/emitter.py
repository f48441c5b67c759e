from __future__ import annotations
import sys
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Type

from itknows.logbuffer import get_logger

log = get_logger("feedback")


class FeedbackEmitter(ABC):
    """Two-valued cue: a light pulse for 'increase', a heavier one for 'ease'."""

    def __init__(self, **kwargs) -> None:
        self._kwargs = kwargs

    @abstractmethod
    def cue_increase(self) -> None:
        ...

    @abstractmethod
    def cue_decrease(self) -> None:
        ...

    def close(self) -> None:
        """Optional cleanup."""
        ...


_EMITTER_REGISTRY: Dict[str, Type[FeedbackEmitter]] = {}

def register_emitter(name: str):
    """Decorator to register a concrete FeedbackEmitter under a CLI name."""
    def deco(cls: Type[FeedbackEmitter]) -> Type[FeedbackEmitter]:
        _EMITTER_REGISTRY[name.lower()] = cls
        return cls
    return deco

def build_emitter(name: str, **kwargs) -> FeedbackEmitter:
    key = (name or "").lower()
    if key == "tone":
        # ToneEmitter registers itself on import
        import itknows.audio.cues  # noqa: F401
    if key not in _EMITTER_REGISTRY:
        raise ValueError(f"Unknown feedback emitter '{name}'. Available: {available_emitters()}")
    return _EMITTER_REGISTRY[key](**kwargs)

def available_emitters() -> List[str]:
    return sorted(set(_EMITTER_REGISTRY.keys()) | {"tone"})


@register_emitter("none")
class NullEmitter(FeedbackEmitter):
    def cue_increase(self) -> None:
        pass

    def cue_decrease(self) -> None:
        pass


@register_emitter("log")
class LogEmitter(FeedbackEmitter):
    def cue_increase(self) -> None:
        log.info("cue: increase", extra={"event": "CUE"})

    def cue_decrease(self) -> None:
        log.info("cue: ease", extra={"event": "CUE"})


@register_emitter("bell")
class BellEmitter(FeedbackEmitter):
    """Terminal bell: one pulse for increase, two spaced pulses for ease."""

    def __init__(self, stream=None, gap_sec: float = 0.25, **kwargs) -> None:
        super().__init__(**kwargs)
        self.stream = stream or sys.stdout
        self.gap_sec = gap_sec

    def _ring(self) -> None:
        self.stream.write("\a")
        self.stream.flush()

    def cue_increase(self) -> None:
        self._ring()

    def cue_decrease(self) -> None:
        self._ring()
        # second pulse off-thread so the caller never waits on it
        t = threading.Timer(self.gap_sec, self._ring)
        t.daemon = True
        t.start()
