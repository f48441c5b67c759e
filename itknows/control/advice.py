# itknows/control/advice.py
from __future__ import annotations
from enum import Enum
from typing import Dict


class Direction(Enum):
    UP = "up"
    DOWN = "down"

    def flipped(self) -> "Direction":
        return Direction.DOWN if self is Direction.UP else Direction.UP


class Advice(Enum):
    IDLE = "idle"
    LEARNING = "learning"
    INCREASE = "increase"
    EASE = "ease"
    GOOD_HIGHER = "good_higher"
    GOOD_EASIER = "good_easier"
    FLIP_TO_EASE = "flip_to_ease"
    FLIP_TO_INCREASE = "flip_to_increase"
    OPTIMAL = "optimal"


class StatusColor(Enum):
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    ATTENTION = "attention"


ADVICE_TEXT: Dict[Advice, str] = {
    Advice.IDLE:             "Tap start to begin workout",
    Advice.LEARNING:         "Learning rhythm...",
    Advice.INCREASE:         "Increase rhythm",
    Advice.EASE:             "Ease rhythm",
    Advice.GOOD_HIGHER:      "Good response. Slightly higher rhythm is efficient.",
    Advice.GOOD_EASIER:      "Good response. Slightly easier rhythm is efficient.",
    Advice.FLIP_TO_EASE:     "Too costly. Next I'll ease rhythm.",
    Advice.FLIP_TO_INCREASE: "Too easy. Next I'll increase rhythm.",
    Advice.OPTIMAL:          "Optimal rhythm",
}


def render(advice: Advice) -> str:
    return ADVICE_TEXT[advice]


def color_for(advice: Advice, recording: bool) -> StatusColor:
    """
    NEUTRAL while idle or still learning, POSITIVE on a plateau,
    ATTENTION for any active directional guidance.
    """
    if not recording or advice in (Advice.IDLE, Advice.LEARNING):
        return StatusColor.NEUTRAL
    if advice is Advice.OPTIMAL:
        return StatusColor.POSITIVE
    return StatusColor.ATTENTION


def start_advice(direction: Direction) -> Advice:
    return Advice.INCREASE if direction is Direction.UP else Advice.EASE


def improvement_advice(direction: Direction) -> Advice:
    return Advice.GOOD_HIGHER if direction is Direction.UP else Advice.GOOD_EASIER


def flip_advice(old_direction: Direction) -> Advice:
    return Advice.FLIP_TO_EASE if old_direction is Direction.UP else Advice.FLIP_TO_INCREASE
