# tests/test_ble_parse.py
import pytest

from itknows.io.ble_bridge import BleHeartRateSource, _looks_like_address, parse_hr_measurement


@pytest.mark.parametrize("packet,expected", [
    (bytes([0x00, 72]), 72),
    (bytes([0x10, 150, 0x20, 0x03]), 150),      # 8-bit + RR interval
    (bytes([0x01, 0x2C, 0x01]), 300),           # 16-bit little-endian
    (bytes([0x01, 0x48, 0x00, 0x00]), 72),
])
def test_parse_valid(packet, expected):
    assert parse_hr_measurement(packet) == expected


@pytest.mark.parametrize("packet", [b"", bytes([0x00]), bytes([0x01, 0x48]), bytes([0x00, 0x00])])
def test_parse_rejects_short_or_zero(packet):
    assert parse_hr_measurement(packet) is None


def test_looks_like_address():
    assert _looks_like_address("AA:BB:CC:DD:EE:FF")
    assert _looks_like_address("12345678-1234-1234-1234-123456789abc")
    assert not _looks_like_address("Polar H10")


def _linked_source(name="Polar H10"):
    src = BleHeartRateSource(device="AA:BB:CC:DD:EE:FF")
    src._connected = True
    src._name = name
    return src


def test_dropped_link_notifies_once_and_clears_name():
    src = _linked_source()
    dropped = []
    src.set_disconnect_handler(dropped.append)
    assert src.connected_name == "Polar H10"

    src._on_disconnect(None)
    assert dropped == ["Polar H10"]
    assert not src.connected
    assert src.connected_name is None

    src._on_disconnect(None)
    assert dropped == ["Polar H10"]


def test_failing_disconnect_handler_is_contained():
    src = _linked_source()

    def boom(name):
        raise RuntimeError("handler failed")

    src.set_disconnect_handler(boom)
    src._on_disconnect(None)
    assert not src.connected
