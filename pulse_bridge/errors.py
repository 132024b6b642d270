"""Exceptions raised along the BLE to sink pipeline."""


class BridgeError(Exception):
    """Base class for all pulse_bridge errors."""


class ScanError(BridgeError):
    """Scanning did not produce a device."""


class ScanTimeout(ScanError):
    """No matching advertisement seen before the scan timeout."""


class AdapterUnavailable(ScanError):
    """The platform reports no usable Bluetooth adapter."""


class ConnectError(BridgeError):
    """GATT connection could not be established."""


class ConnectRejected(ConnectError):
    """The device or platform refused the connection."""


class ConnectTimeout(ConnectError):
    """The connection attempt did not complete in time."""


class SubscribeError(BridgeError):
    """Heart rate notifications could not be enabled."""


class CharacteristicMissing(SubscribeError):
    """The vendor's heart rate characteristic is not exposed by the device."""


class SubscribeRejected(SubscribeError):
    """The characteristic exists but refused the notification subscription."""


class DecodeError(BridgeError, ValueError):
    """A notification payload did not yield a usable sample."""


class MalformedPayload(DecodeError):
    """Payload is empty or shorter than its flags require."""


class OutOfRange(DecodeError):
    """Decoded BPM is outside the plausible physiological range."""

    def __init__(self, bpm: int, low: int, high: int):
        super().__init__(f"BPM {bpm} outside [{low}, {high}]")
        self.bpm = bpm


class LinkLost(BridgeError):
    """The transport reported loss of an established connection."""
