"""Known wearable vendors and how to find and decode their heart rate data."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from bleak.uuids import normalize_uuid_str

from .parser import parse_bpm

HR_SERVICE_UUID = normalize_uuid_str("180D")
HR_CHAR_UUID = normalize_uuid_str("2A37")

BpmDecoder = Callable[[bytes], int]


class Vendor(Enum):
    STANDARD = "standard"
    XIAOMI = "xiaomi"
    HUAWEI = "huawei"


@dataclass(frozen=True)
class VendorProfile:
    """GATT layout and payload decoding for one family of wearables.

    A profile matches an advertisement when the advertised name contains
    one of ``name_markers`` or, failing that, when ``service_uuid`` is among
    the advertised services. ``decode`` maps a raw notification payload to a
    BPM value and raises ``DecodeError`` on malformed input.
    """

    vendor: Vendor
    service_uuid: str
    char_uuid: str
    decode: BpmDecoder
    name_markers: tuple[str, ...] = ()

    def matches_name(self, name: str | None) -> bool:
        if not name:
            return False
        return any(marker in name for marker in self.name_markers)

    def matches_services(self, service_uuids: Iterable[str]) -> bool:
        return self.service_uuid in {uuid.lower() for uuid in service_uuids}


# Wrist bands that only expose heart rate once "HR broadcast" is enabled; they
# often omit the service UUID from their advertisement, so match by name.
XIAOMI_PROFILE = VendorProfile(
    vendor=Vendor.XIAOMI,
    service_uuid=HR_SERVICE_UUID,
    char_uuid=HR_CHAR_UUID,
    decode=parse_bpm,
    name_markers=("Xiaomi Smart Band", "Xiaomi Band"),
)

HUAWEI_PROFILE = VendorProfile(
    vendor=Vendor.HUAWEI,
    service_uuid=HR_SERVICE_UUID,
    char_uuid=HR_CHAR_UUID,
    decode=parse_bpm,
    name_markers=("HUAWEI", "HONOR"),
)

STANDARD_PROFILE = VendorProfile(
    vendor=Vendor.STANDARD,
    service_uuid=HR_SERVICE_UUID,
    char_uuid=HR_CHAR_UUID,
    decode=parse_bpm,
)

# Order matters: name-matched profiles win over the generic service match.
PROFILES: tuple[VendorProfile, ...] = (XIAOMI_PROFILE, HUAWEI_PROFILE, STANDARD_PROFILE)


def match_profile(
    name: str | None,
    service_uuids: Iterable[str] = (),
    profiles: Iterable[VendorProfile] = PROFILES,
) -> VendorProfile | None:
    """Return the profile an advertisement belongs to, or None."""
    profiles = tuple(profiles)
    service_uuids = list(service_uuids or [])

    for profile in profiles:
        if profile.matches_name(name):
            return profile
    for profile in profiles:
        if profile.matches_services(service_uuids):
            return profile
    return None


def get_profile(vendor: Vendor) -> VendorProfile:
    """Look up the profile for a vendor."""
    for profile in PROFILES:
        if profile.vendor is vendor:
            return profile
    raise KeyError(vendor)
