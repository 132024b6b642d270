"""Heart Rate Measurement (0x2A37) payload parser.

Only the BPM field is read. The flags byte still decides how long a
well-formed payload must be: bit 0 selects a uint16 BPM and bit 3 adds a
uint16 energy expended field after it. Sensor contact bits and RR intervals
are ignored.
"""

from .errors import MalformedPayload

FLAG_UINT16 = 0x01
FLAG_ENERGY = 0x08


def required_length(flags: int) -> int:
    """Smallest payload, flags byte included, that the flags allow."""
    length = 1 + (2 if flags & FLAG_UINT16 else 1)
    if flags & FLAG_ENERGY:
        length += 2
    return length


def parse_bpm(data: bytes) -> int:
    """Extract the BPM from a heart rate measurement payload.

    Raises:
        MalformedPayload: If data is empty or shorter than its flags declare
    """
    if not data:
        raise MalformedPayload("Empty HR data received")

    flags = data[0]
    need = required_length(flags)
    if len(data) < need:
        raise MalformedPayload(f"HR data too short: {len(data)} bytes, flags 0x{flags:02x} need {need}")

    if flags & FLAG_UINT16:
        return int.from_bytes(data[1:3], "little")
    return data[1]
