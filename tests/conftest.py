"""Shared test fixtures for pulse_bridge tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from pulse_bridge.decoder import HeartRateSample
from pulse_bridge.profiles import STANDARD_PROFILE, Vendor
from pulse_bridge.scanner import DeviceHandle
from tests.helpers import make_characteristic, make_device, make_hr_packet


@pytest.fixture
def hr_packet_full() -> bytes:
    """Packet with all fields populated."""
    return make_hr_packet(
        150,
        is_16bit=True,
        sensor_contact=True,
        energy=1500,
        rr_intervals=[800, 850],
    )


@pytest.fixture
def sample() -> HeartRateSample:
    """A decoded 72 bpm sample."""
    return HeartRateSample(bpm=72, timestamp=1.0, vendor=Vendor.STANDARD)


@pytest.fixture
def device_handle() -> DeviceHandle:
    """Handle for a standard HR strap."""
    device = make_device()
    return DeviceHandle(device=device, vendor=Vendor.STANDARD, name="HR Monitor", address=device.address)


@pytest.fixture
def mock_bleak_client():
    """Create a mock BleakClient exposing the HR characteristic."""
    client = AsyncMock()
    client.is_connected = True
    client.connect = AsyncMock(return_value=True)
    client.disconnect = AsyncMock()
    client.start_notify = AsyncMock()
    client.stop_notify = AsyncMock()

    char = make_characteristic()
    services = MagicMock()
    services.get_characteristic = MagicMock(
        side_effect=lambda uuid: char if uuid == STANDARD_PROFILE.char_uuid else None
    )
    client.services = services
    return client


@pytest.fixture
def mock_scanner(device_handle):
    """Scanner whose scan() immediately finds device_handle."""
    scanner = MagicMock()
    scanner.scan = AsyncMock(return_value=device_handle)
    scanner.discover = AsyncMock(return_value=[device_handle])
    return scanner


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample config dict as would be parsed from TOML."""
    return {
        "osc": {
            "host": "192.168.1.20",
            "port": 9001,
            "path": "/avatar/parameters/Heartrate",
            "mode": "int",
            "divisor": 200.0,
        },
        "file": {"path": "out/bpm.txt", "enabled": False},
        "ble": {
            "scan_timeout": 10.0,
            "connect_timeout": 15.0,
            "reconnect_min": 2.0,
            "reconnect_max": 60.0,
            "notify_timeout": 20.0,
        },
        "device": {
            "address": "11:22:33:44:55:66",
            "name_filter": "Polar",
        },
        "log": {"level": "DEBUG", "ble_debug": True},
    }


@pytest.fixture
def partial_config_dict() -> dict:
    """Partial config dict with some values missing."""
    return {
        "osc": {"port": 9100},
        "ble": {"scan_timeout": 3.0},
    }
