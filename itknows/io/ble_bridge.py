from __future__ import annotations
import asyncio
from threading import Thread
from typing import List, Optional, Tuple

from bleak import BleakClient, BleakScanner

from itknows.io.hr_source import BpmCallback, HRSource, register_source
from itknows.logbuffer import get_logger

log = get_logger("ble")

# Standard Heart Rate service / measurement characteristic
HR_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HR_CHAR_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

HEART_RATE_VALUE_FORMAT_BIT = 0b_0000_0001

UNKNOWN_NAME = "(unknown)"


def parse_hr_measurement(data: bytes) -> Optional[int]:
    """
    Parse Bluetooth SIG Heart Rate Measurement value.
    Returns bpm as int, or None if the packet is short or reports 0.
    """
    if not data:
        return None
    flags = data[0]
    if flags & HEART_RATE_VALUE_FORMAT_BIT:
        if len(data) < 3:
            return None
        bpm = int.from_bytes(data[1:3], byteorder="little")
    else:
        if len(data) < 2:
            return None
        bpm = data[1]
    return bpm if bpm > 0 else None


def _looks_like_address(query: str) -> bool:
    return ":" in query or query.count("-") >= 4


async def a_scan_devices(timeout: float = 5.0, hr_only: bool = False) -> List[Tuple[str, str]]:
    found = {}

    def callback(device, info):
        if hr_only and HR_SERVICE_UUID not in (info.service_uuids or []):
            return
        if device.address not in found:
            found[device.address] = info.local_name or device.name or UNKNOWN_NAME

    scanner = BleakScanner(callback)
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()
    return sorted(found.items(), key=lambda kv: kv[1])


def scan_devices(timeout: float = 5.0, hr_only: bool = False) -> List[Tuple[str, str]]:
    """Blocking scan. Returns [(address, name), ...], one entry per address."""
    return asyncio.run(a_scan_devices(timeout=timeout, hr_only=hr_only))


@register_source("ble")
class BleHeartRateSource(HRSource):
    """
    Bleak client on a dedicated asyncio loop thread so HR notifications keep
    arriving while the caller's thread does something else.
    `device` may be a BLE address or (part of) an advertised name.
    """
    def __init__(self, device: Optional[str] = None, scan_timeout: float = 5.0, **kwargs):
        super().__init__(**kwargs)
        self.device_query = (device or "").strip()
        self.scan_timeout = float(scan_timeout)

        self._client: Optional[BleakClient] = None
        self._connected: bool = False
        self._name: Optional[str] = None

        # Dedicated asyncio loop & thread (lazy-started on connect)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[Thread] = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connected_name(self) -> Optional[str]:
        return self._name if self._connected else None

    # ---------- loop/thread helpers ----------
    def _ensure_loop(self):
        if self._loop is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = Thread(target=self._loop.run_forever, name="itknows-ble", daemon=True)
        self._thread.start()

    def _run(self, coro):
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return fut.result()

    # ---------- async internals ----------
    async def _a_find_device(self) -> Optional[Tuple[str, str]]:
        dq = self.device_query
        if dq and _looks_like_address(dq):
            return dq, dq
        devices = await a_scan_devices(timeout=self.scan_timeout, hr_only=not dq)
        dq_lower = dq.lower()
        for address, name in devices:
            if not dq or dq_lower in name.lower():
                return address, name
        return None

    def _on_hr_notify(self, sender, data: bytearray):
        bpm = parse_hr_measurement(bytes(data))
        if bpm is None:
            return
        try:
            self._deliver(float(bpm))
        except Exception:
            log.exception("HR callback failed")

    def _on_disconnect(self, client):
        was_connected, name = self._connected, self._name
        self._connected = False
        self._name = None
        if not was_connected:
            return
        log.warning("device %s disconnected", name, extra={"event": "BLE"})
        try:
            self._notify_disconnect(name)
        except Exception:
            log.exception("disconnect handler failed")

    async def _a_connect(self):
        if self._connected:
            return
        found = await self._a_find_device()
        if not found:
            what = f"'{self.device_query}'" if self.device_query else "with a heart-rate service"
            raise RuntimeError(f"No BLE device {what} found. Ensure the HR strap is on and retry.")
        address, name = found
        self._client = BleakClient(address, disconnected_callback=self._on_disconnect)
        await self._client.connect()
        await self._client.start_notify(HR_CHAR_UUID, self._on_hr_notify)
        self._name = name or UNKNOWN_NAME
        self._connected = True
        log.info("connected to %s (%s)", self._name, address, extra={"event": "BLE"})

    async def _a_disconnect(self):
        # cleared first so the disconnected_callback sees a requested disconnect
        self._connected = False
        if self._client and self._client.is_connected:
            try:
                await self._client.stop_notify(HR_CHAR_UUID)
            except Exception as e:
                log.debug("stop_notify failed: %s", e)
            try:
                await self._client.disconnect()
            except Exception as e:
                log.debug("disconnect failed: %s", e)
        self._client = None

    # ---------- public sync API ----------
    def connect(self, on_bpm: BpmCallback) -> None:
        self._on_bpm = on_bpm
        self._ensure_loop()
        self._run(self._a_connect())

    def disconnect(self) -> None:
        if self._loop is None:
            return
        try:
            self._run(self._a_disconnect())
        except Exception as e:
            log.warning("disconnect failed: %s", e)
        self._name = None

    def close(self) -> None:
        """Fully stop the background loop/thread. Call after disconnect()."""
        if self._loop is None:
            return
        self.disconnect()
        try:
            self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread:
                self._thread.join(timeout=2.0)
        finally:
            self._thread = None
            self._loop = None
