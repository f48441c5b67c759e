# itknows/config.py
from __future__ import annotations
import copy
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from itknows.logbuffer import get_logger

log = get_logger("config")

# --------- policy constants ---------
TICK_PERIOD_SEC: float = 1.0
EVALUATION_DELAY_SEC: int = 15   # experiment runs this long before it is judged
COOLDOWN_SEC: int = 15           # measured from the start of the previous experiment
HISTORY_CAPACITY: int = 60       # ~1 minute at 1 Hz

SENSITIVITY_STEPS = (1.0, 2.0, 3.0, 4.0, 5.0)
DEFAULT_SENSITIVITY: float = 3.0

# --------- defaults (mirror configs/defaults.yaml) ---------
DEFAULTS: Dict[str, Dict[str, Any]] = {
    "optimiser": {
        "sensitivity": DEFAULT_SENSITIVITY,
        "tick_period_sec": TICK_PERIOD_SEC,
        "evaluation_delay_sec": EVALUATION_DELAY_SEC,
        "cooldown_sec": COOLDOWN_SEC,
        "history_capacity": HISTORY_CAPACITY,
    },
    "feedback": {
        "haptics_enabled": True,
        "emitter": "tone",
        "volume": 0.6,
    },
    "source": {
        "name": "ble",
        "device": None,
        "scan_timeout_sec": 5.0,
    },
    "logging": {
        "logs_dir": "outputs/logs",
        "history_csv": None,
    },
}


def validate_sensitivity(value: float) -> float:
    """Return `value` as float, or raise ValueError unless it is one of SENSITIVITY_STEPS."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"sensitivity must be a number (got {value!r})")
    if v not in SENSITIVITY_STEPS:
        steps = ", ".join(f"{s:g}" for s in SENSITIVITY_STEPS)
        raise ValueError(f"sensitivity must be one of {steps} bpm (got {v:g})")
    return v


@dataclass
class OptimiserConfig:
    sensitivity: float = DEFAULT_SENSITIVITY
    tick_period_sec: float = TICK_PERIOD_SEC
    evaluation_delay_sec: int = EVALUATION_DELAY_SEC
    cooldown_sec: int = COOLDOWN_SEC
    history_capacity: int = HISTORY_CAPACITY
    haptics_enabled: bool = True

    def __post_init__(self):
        self.sensitivity = validate_sensitivity(self.sensitivity)
        if self.tick_period_sec <= 0:
            raise ValueError(f"tick_period_sec must be > 0 (got {self.tick_period_sec})")
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be >= 1 (got {self.history_capacity})")

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "OptimiserConfig":
        """Build from a resolved config dict (see `resolve_config`)."""
        known = {f.name for f in fields(cls)}
        opt = dict(cfg.get("optimiser", {}))
        kwargs = {k: v for k, v in opt.items() if k in known}
        if "feedback" in cfg and "haptics_enabled" in cfg["feedback"]:
            kwargs["haptics_enabled"] = bool(cfg["feedback"]["haptics_enabled"])
        return cls(**kwargs)


def load_yaml(path) -> Dict[str, Any]:
    """Load YAML if present; else return {}."""
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    import yaml  # requires PyYAML
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config at {p} must be a mapping at the top level.")
    return data


def merge_config(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Shallow per-section merge; sections not in `base` are ignored with a warning."""
    cfg = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if k not in cfg:
            log.warning("ignoring unknown config section '%s'", k)
            continue
        if isinstance(v, dict):
            for kk, vv in v.items():
                if kk not in cfg[k]:
                    log.warning("ignoring unknown config key '%s.%s'", k, kk)
                    continue
                cfg[k][kk] = vv
        else:
            log.warning("config section '%s' must be a mapping; ignored", k)
    return cfg


def resolve_config(path=None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """DEFAULTS <- YAML file <- explicit overrides (e.g. from the CLI)."""
    cfg = merge_config(DEFAULTS, load_yaml(path))
    cfg = merge_config(cfg, overrides)
    cfg["optimiser"]["sensitivity"] = validate_sensitivity(cfg["optimiser"]["sensitivity"])
    return cfg
