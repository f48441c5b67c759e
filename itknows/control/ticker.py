# itknows/control/ticker.py
from __future__ import annotations
import threading
from typing import Callable, Optional

from itknows.logbuffer import get_logger

log = get_logger("ticker")


class PeriodicTicker:
    """
    Calls `fn()` every `period` seconds on a daemon thread until cancelled.

    - cancel() is idempotent and safe to call from inside `fn`.
    - Once cancel() returns no new call to `fn` is started; a call already
      running is allowed to finish (callers guard their own state).
    - Exceptions from `fn` are logged and the ticker keeps running.
    """
    def __init__(self, period: float, fn: Callable[[], None], name: str = "itknows-ticker"):
        if period <= 0:
            raise ValueError(f"period must be > 0 (got {period})")
        self.period = float(period)
        self._fn = fn
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self.period):
            if self._stop.is_set():
                break
            try:
                self._fn()
            except Exception:
                log.exception("tick failed; ticker keeps running")

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: float = 2.0) -> None:
        """Wait for the thread to exit. No-op from the ticker thread itself."""
        t = self._thread
        if t is None or t is threading.current_thread():
            return
        t.join(timeout=timeout)
