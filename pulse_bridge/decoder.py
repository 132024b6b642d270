"""Turn raw notifications into validated heart rate samples."""

import time
from dataclasses import dataclass

from .errors import OutOfRange
from .profiles import Vendor, VendorProfile

MIN_BPM = 1
MAX_BPM = 250


@dataclass(frozen=True)
class HeartRateSample:
    """A single validated heart rate reading."""

    bpm: int
    timestamp: float  # time.monotonic() at decode
    vendor: Vendor


def decode(profile: VendorProfile, raw: bytes) -> HeartRateSample:
    """Decode a notification payload with the profile's decoder.

    Raises:
        MalformedPayload: If the payload layout is invalid
        OutOfRange: If BPM is outside [MIN_BPM, MAX_BPM]
    """
    bpm = profile.decode(bytes(raw))
    if not MIN_BPM <= bpm <= MAX_BPM:
        raise OutOfRange(bpm, MIN_BPM, MAX_BPM)
    return HeartRateSample(bpm=bpm, timestamp=time.monotonic(), vendor=profile.vendor)
