"""BLE advertisement scanning for supported heart rate wearables."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .errors import AdapterUnavailable, ScanTimeout
from .profiles import PROFILES, Vendor, VendorProfile, get_profile, match_profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceHandle:
    """A discovered peripheral and the vendor profile it matched."""

    device: BLEDevice
    vendor: Vendor
    name: str
    address: str

    @property
    def profile(self) -> VendorProfile:
        return get_profile(self.vendor)


class Scanner:
    """Finds the first advertising device that matches a known vendor profile."""

    def __init__(
        self,
        name_filter: str | None = None,
        address: str | None = None,
        profiles: Iterable[VendorProfile] = PROFILES,
    ):
        self._filter_lower = name_filter.lower() if name_filter else None
        self._address = address.upper() if address else None
        self._profiles = tuple(profiles)

    def _match(
        self,
        device: BLEDevice,
        adv: AdvertisementData,
        hint: DeviceHandle | None = None,
    ) -> DeviceHandle | None:
        """Return a handle if the advertisement belongs to a wanted device."""
        if self._address and device.address.upper() != self._address:
            return None

        name = adv.local_name or device.name

        # A remembered device is accepted on address alone
        if hint is not None and device.address == hint.address:
            return DeviceHandle(device=device, vendor=hint.vendor, name=name or hint.name, address=device.address)

        if self._filter_lower and (not name or self._filter_lower not in name.lower()):
            return None

        profile = match_profile(name, adv.service_uuids or [], self._profiles)
        if profile is None:
            return None
        return DeviceHandle(device=device, vendor=profile.vendor, name=name or "Unknown", address=device.address)

    async def _start(self, scanner: BleakScanner) -> None:
        try:
            await scanner.start()
        except (BleakError, OSError) as e:
            raise AdapterUnavailable(str(e) or type(e).__name__) from e

    async def _stop(self, scanner: BleakScanner) -> None:
        try:
            await scanner.stop()
        except (BleakError, OSError) as e:
            logger.debug("Error stopping scanner: %s", e)

    async def scan(self, timeout: float = 5.0, hint: DeviceHandle | None = None) -> DeviceHandle:
        """Scan until the first matching device advertises.

        Args:
            timeout: Maximum scan duration in seconds
            hint: Previously connected device to accept without re-filtering

        Returns:
            DeviceHandle for the first matching advertisement

        Raises:
            ScanTimeout: If nothing matched within timeout
            AdapterUnavailable: If the Bluetooth adapter cannot be used
        """
        loop = asyncio.get_running_loop()
        found: asyncio.Future[DeviceHandle] = loop.create_future()

        def detection_callback(device: BLEDevice, adv: AdvertisementData) -> None:
            if found.done():
                return
            handle = self._match(device, adv, hint)
            if handle is not None:
                logger.debug("Matched %s (%s) as %s", handle.name, handle.address, handle.vendor.value)
                found.set_result(handle)

        scanner = BleakScanner(detection_callback=detection_callback)
        await self._start(scanner)
        try:
            return await asyncio.wait_for(found, timeout)
        except TimeoutError:
            raise ScanTimeout(f"No supported device found within {timeout:.1f}s") from None
        finally:
            await self._stop(scanner)

    async def discover(self, timeout: float = 5.0) -> list[DeviceHandle]:
        """Scan for the full timeout and return every matching device."""
        devices: dict[str, DeviceHandle] = {}  # Deduplicate by address

        def detection_callback(device: BLEDevice, adv: AdvertisementData) -> None:
            if device.address in devices:
                return
            handle = self._match(device, adv)
            if handle is not None:
                logger.debug("Discovered: %s (%s)", handle.name, handle.address)
                devices[device.address] = handle

        scanner = BleakScanner(detection_callback=detection_callback)
        await self._start(scanner)
        try:
            await asyncio.sleep(timeout)
        finally:
            await self._stop(scanner)

        logger.debug("Scan complete, found %d device(s)", len(devices))
        return list(devices.values())
