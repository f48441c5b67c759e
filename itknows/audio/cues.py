# itknows/audio/cues.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal import butter, filtfilt

from itknows.feedback.emitter import FeedbackEmitter, register_emitter
from itknows.logbuffer import get_logger

log = get_logger("cues")

_SR_DEFAULT = 44100


@dataclass(frozen=True)
class CueSpec:
    freq_hz: float
    duration_ms: int


# light pulse vs. longer, lower, heavier pulse
INCREASE_CUE = CueSpec(freq_hz=880.0, duration_ms=120)
DECREASE_CUE = CueSpec(freq_hz=440.0, duration_ms=300)


def _butter_filter(x: np.ndarray, sr: int, cutoff: float, btype: str, order: int = 4) -> np.ndarray:
    ny = 0.5 * sr
    wc = np.clip(cutoff / ny, 1e-6, 0.999999)
    b, a = butter(order, wc, btype=btype)
    # filtfilt for zero-phase
    return filtfilt(b, a, x).astype(np.float32)

def lowpass(x: np.ndarray, sr: int, cutoff_hz: int) -> np.ndarray:
    if cutoff_hz <= 0 or x.size <= 27:
        return x
    return _butter_filter(x, sr, cutoff_hz, btype="lowpass")

def normalize_peak(x: np.ndarray, target: float = 0.90) -> np.ndarray:
    target = float(np.clip(target, 0.0, 1.0))
    peak = float(np.max(np.abs(x))) if x.size else 0.0
    if peak == 0.0 or target == 0.0:
        return x
    return (x * (target / peak)).astype(np.float32)

def render_cue(spec: CueSpec, sr: int = _SR_DEFAULT, volume: float = 0.6) -> np.ndarray:
    """Sine burst with 10 ms raised-cosine ramps, low-passed and peak-normalised."""
    n = max(1, int(sr * spec.duration_ms / 1000))
    t = np.arange(n, dtype=np.float64) / sr
    tone = np.sin(2.0 * np.pi * spec.freq_hz * t)

    ramp = min(n // 2, int(sr * 0.010))
    if ramp > 0:
        w = 0.5 - 0.5 * np.cos(np.linspace(0.0, np.pi, ramp))
        tone[:ramp] *= w
        tone[-ramp:] *= w[::-1]

    tone = lowpass(tone.astype(np.float32), sr, int(spec.freq_hz * 4))
    tone = normalize_peak(tone, target=volume)
    return tone.astype(np.float32)


@register_emitter("tone")
class ToneEmitter(FeedbackEmitter):
    """
    Audio stand-in for the phone's vibration motor. Tones are rendered once
    and played non-blocking through sounddevice; a missing or busy output
    device is logged, never raised.
    """
    def __init__(self, volume: float = 0.6, sr: int = _SR_DEFAULT, device: Optional[int] = None, **kwargs):
        super().__init__(**kwargs)
        self.sr = int(sr)
        self.device = device
        self.volume = float(np.clip(volume, 0.0, 1.0))
        self._increase = render_cue(INCREASE_CUE, sr=self.sr, volume=self.volume)
        self._decrease = render_cue(DECREASE_CUE, sr=self.sr, volume=self.volume)

    def _play(self, wav: np.ndarray) -> None:
        try:
            import sounddevice as sd
            sd.play(wav, self.sr, device=self.device, blocking=False)
        except Exception as e:
            log.warning("audio cue failed: %s", e)

    def cue_increase(self) -> None:
        self._play(self._increase)

    def cue_decrease(self) -> None:
        self._play(self._decrease)

    def close(self) -> None:
        try:
            import sounddevice as sd
            sd.stop()
        except Exception:
            pass
