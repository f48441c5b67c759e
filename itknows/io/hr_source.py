from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Type

BpmCallback = Callable[[float], None]
DisconnectCallback = Callable[[Optional[str]], None]


class HRSource(ABC):
    """Unified interface all HR sources must implement."""

    def __init__(self, **kwargs) -> None:
        self._kwargs = kwargs
        self._on_bpm: Optional[BpmCallback] = None
        self._on_disconnect_cb: Optional[DisconnectCallback] = None

    @abstractmethod
    def connect(self, on_bpm: BpmCallback) -> None:
        """
        Open the link and start delivering readings to `on_bpm(bpm)`.
        Readings arrive on the source's own thread, in arrival order.
        """
        ...

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @property
    def connected_name(self) -> Optional[str]:
        """Human-readable name of the connected device, if any."""
        return None

    def _deliver(self, bpm: float) -> None:
        cb = self._on_bpm
        if cb is not None:
            cb(bpm)

    def set_disconnect_handler(self, callback: Optional[DisconnectCallback]) -> None:
        """
        `callback(name)` runs once when the link drops without disconnect()
        being called. It runs on the source's own thread.
        """
        self._on_disconnect_cb = callback

    def _notify_disconnect(self, name: Optional[str]) -> None:
        cb = self._on_disconnect_cb
        if cb is not None:
            cb(name)

    def disconnect(self) -> None:
        """Optional cleanup."""
        ...

    def close(self) -> None:
        """Optional cleanup."""
        ...


_SOURCE_REGISTRY: Dict[str, Type[HRSource]] = {}

def register_source(name: str):
    """Decorator to register a concrete HRSource under a CLI name."""
    def deco(cls: Type[HRSource]) -> Type[HRSource]:
        _SOURCE_REGISTRY[name.lower()] = cls
        return cls
    return deco

def _load_builtin_sources() -> None:
    # each module registers itself on import
    import itknows.io.sim_source  # noqa: F401
    import itknows.io.ble_bridge  # noqa: F401

def create_source(name: str, **kwargs) -> HRSource:
    _load_builtin_sources()
    key = (name or "").lower()
    if key not in _SOURCE_REGISTRY:
        raise ValueError(f"Unknown HR source '{name}'. Available: {sorted(_SOURCE_REGISTRY.keys())}")
    return _SOURCE_REGISTRY[key](**kwargs)

def available_sources() -> List[str]:
    _load_builtin_sources()
    return sorted(_SOURCE_REGISTRY.keys())
