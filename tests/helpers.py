"""Shared test helper functions for pulse_bridge tests."""

from __future__ import annotations

from unittest.mock import MagicMock

from bleak.uuids import normalize_uuid_str


def make_hr_packet(
    bpm: int,
    *,
    is_16bit: bool = False,
    sensor_contact: bool | None = None,
    energy: int | None = None,
    rr_intervals: list[int] | None = None,
) -> bytes:
    """Build a BLE HR measurement packet.

    Args:
        bpm: Heart rate in BPM
        is_16bit: If True, use 16-bit BPM format
        sensor_contact: None=not supported, True=detected, False=not detected
        energy: Energy expended in joules (if supported)
        rr_intervals: RR intervals in 1/1024 second units
    """
    flags = 0
    if is_16bit:
        flags |= 0b1
    if sensor_contact is not None:
        flags |= 0b100
        if sensor_contact:
            flags |= 0b10
    if energy is not None:
        flags |= 0b1000
    if rr_intervals:
        flags |= 0b10000

    data = bytearray([flags])
    data.extend(bpm.to_bytes(2 if is_16bit else 1, "little"))
    if energy is not None:
        data.extend(energy.to_bytes(2, "little"))
    for rr in rr_intervals or []:
        data.extend(rr.to_bytes(2, "little"))
    return bytes(data)


def make_device(address: str = "AA:BB:CC:DD:EE:FF", name: str | None = "HR Monitor") -> MagicMock:
    """Mock bleak BLEDevice."""
    device = MagicMock()
    device.address = address
    device.name = name
    return device


def make_advertisement(*services: str, local_name: str | None = None) -> MagicMock:
    """Mock AdvertisementData advertising the given 16-bit service ids."""
    adv = MagicMock()
    adv.local_name = local_name
    adv.service_uuids = [normalize_uuid_str(s) for s in services]
    return adv


def make_characteristic(uuid: str = "2A37", properties: tuple[str, ...] = ("notify",)) -> MagicMock:
    """Mock BleakGATTCharacteristic."""
    char = MagicMock()
    char.uuid = normalize_uuid_str(uuid)
    char.properties = list(properties)
    return char
