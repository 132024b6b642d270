"""Tests for pulse_bridge.scanner module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bleak.exc import BleakError

from pulse_bridge.errors import AdapterUnavailable, ScanTimeout
from pulse_bridge.profiles import Vendor
from pulse_bridge.scanner import DeviceHandle, Scanner
from tests.helpers import make_advertisement, make_device


def _mock_scanner_class(MockScanner, *advertisements):
    """Make BleakScanner.start() replay advertisements into the callback."""

    async def start():
        callback = MockScanner.call_args.kwargs["detection_callback"]
        for device, adv in advertisements:
            callback(device, adv)

    instance = MagicMock()
    instance.start = AsyncMock(side_effect=start)
    instance.stop = AsyncMock()
    MockScanner.return_value = instance
    return instance


class TestScannerMatch:
    """Tests for Scanner._match filtering."""

    def test_matches_hr_service(self):
        """Device advertising the HR service matches."""
        handle = Scanner()._match(make_device(), make_advertisement("180D"))
        assert handle is not None
        assert handle.vendor is Vendor.STANDARD
        assert handle.address == "AA:BB:CC:DD:EE:FF"

    def test_prefers_local_name(self):
        """Advertised local name is used over the cached device name."""
        adv = make_advertisement(local_name="Xiaomi Smart Band 9")
        handle = Scanner()._match(make_device(name=None), adv)
        assert handle.name == "Xiaomi Smart Band 9"
        assert handle.vendor is Vendor.XIAOMI

    def test_rejects_unknown_device(self):
        """Device with no known signature is ignored."""
        adv = make_advertisement("1800", local_name="Speaker")
        assert Scanner()._match(make_device(name="Speaker"), adv) is None

    def test_unnamed_hr_device(self):
        """Unnamed HR device gets a placeholder name."""
        handle = Scanner()._match(make_device(name=None), make_advertisement("180D"))
        assert handle.name == "Unknown"

    def test_name_filter(self):
        """Name filter is a case-insensitive substring match."""
        scanner = Scanner(name_filter="polar")
        adv = make_advertisement("180D")
        assert scanner._match(make_device(name="Polar H10"), adv) is not None
        assert scanner._match(make_device(name="Garmin HRM"), adv) is None
        assert scanner._match(make_device(name=None), adv) is None

    def test_fixed_address(self):
        """Configured address restricts matches to that device."""
        scanner = Scanner(address="aa:bb:cc:dd:ee:ff")
        adv = make_advertisement("180D")
        assert scanner._match(make_device("AA:BB:CC:DD:EE:FF"), adv) is not None
        assert scanner._match(make_device("11:22:33:44:55:66"), adv) is None

    def test_hint_skips_profile_filtering(self):
        """A remembered device matches even without a recognisable advertisement."""
        hint = DeviceHandle(device=make_device(), vendor=Vendor.HUAWEI, name="HUAWEI Band", address="AA:BB:CC:DD:EE:FF")
        handle = Scanner()._match(make_device(name=None), make_advertisement(), hint)
        assert handle is not None
        assert handle.vendor is Vendor.HUAWEI
        assert handle.name == "HUAWEI Band"

    def test_hint_for_other_address_ignored(self):
        """The hint only applies to its own address."""
        hint = DeviceHandle(device=make_device(), vendor=Vendor.HUAWEI, name="HUAWEI Band", address="AA:BB:CC:DD:EE:FF")
        other = make_device("11:22:33:44:55:66", name=None)
        assert Scanner()._match(other, make_advertisement(), hint) is None


class TestScan:
    """Tests for Scanner.scan method."""

    @pytest.mark.asyncio
    async def test_returns_first_match(self):
        """scan() returns the first matching advertisement."""
        first = make_device("AA:BB:CC:DD:EE:01", "Polar H10")
        second = make_device("AA:BB:CC:DD:EE:02", "Polar OH1")
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = _mock_scanner_class(
                MockScanner,
                (first, make_advertisement("180D")),
                (second, make_advertisement("180D")),
            )
            handle = await Scanner().scan(timeout=1.0)

        assert handle.address == "AA:BB:CC:DD:EE:01"
        instance.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_skips_non_matching(self):
        """Non-matching advertisements before the match are skipped."""
        other = make_device("11:22:33:44:55:66", "Speaker")
        strap = make_device("AA:BB:CC:DD:EE:FF", "HRM-Pro")
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            _mock_scanner_class(
                MockScanner,
                (other, make_advertisement("1800")),
                (strap, make_advertisement("180D")),
            )
            handle = await Scanner().scan(timeout=1.0)

        assert handle.name == "HRM-Pro"

    @pytest.mark.asyncio
    async def test_unknown_device_times_out(self):
        """A device without known signatures is never returned."""
        other = make_device("11:22:33:44:55:66", "Speaker")
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = _mock_scanner_class(MockScanner, (other, make_advertisement("1800")))
            with pytest.raises(ScanTimeout):
                await Scanner().scan(timeout=0.05)

        instance.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_adapter_unavailable(self):
        """Scanner start failure raises AdapterUnavailable."""
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = MagicMock()
            instance.start = AsyncMock(side_effect=BleakError("No Bluetooth adapters found."))
            instance.stop = AsyncMock()
            MockScanner.return_value = instance

            with pytest.raises(AdapterUnavailable, match="No Bluetooth adapters"):
                await Scanner().scan(timeout=1.0)

    @pytest.mark.asyncio
    async def test_adapter_os_error(self):
        """OS-level errors starting the scan count as adapter unavailable."""
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = MagicMock()
            instance.start = AsyncMock(side_effect=FileNotFoundError())
            instance.stop = AsyncMock()
            MockScanner.return_value = instance

            with pytest.raises(AdapterUnavailable):
                await Scanner().scan(timeout=1.0)

    @pytest.mark.asyncio
    async def test_stop_error_does_not_mask_result(self):
        """Errors stopping the scanner are logged, not raised."""
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = _mock_scanner_class(MockScanner, (make_device(), make_advertisement("180D")))
            instance.stop.side_effect = BleakError("already stopped")
            handle = await Scanner().scan(timeout=1.0)

        assert handle.vendor is Vendor.STANDARD

    @pytest.mark.asyncio
    async def test_scan_with_hint(self):
        """Hinted device is found even if it advertises nothing recognisable."""
        hint = DeviceHandle(device=make_device(), vendor=Vendor.XIAOMI, name="Xiaomi Smart Band 9", address="AA:BB:CC:DD:EE:FF")
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            _mock_scanner_class(MockScanner, (make_device(name=None), make_advertisement()))
            handle = await Scanner().scan(timeout=1.0, hint=hint)

        assert handle.vendor is Vendor.XIAOMI


class TestDiscover:
    """Tests for Scanner.discover method."""

    @pytest.mark.asyncio
    async def test_returns_all_matches_deduplicated(self):
        """discover() returns each matching device once."""
        strap = make_device("AA:BB:CC:DD:EE:FF", "Polar H10")
        band = make_device("11:22:33:44:55:66", None)
        other = make_device("22:33:44:55:66:77", "Speaker")
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            _mock_scanner_class(
                MockScanner,
                (strap, make_advertisement("180D")),
                (strap, make_advertisement("180D")),
                (band, make_advertisement(local_name="HONOR Band 9")),
                (other, make_advertisement("1800")),
            )
            with patch("pulse_bridge.scanner.asyncio.sleep", new_callable=AsyncMock):
                devices = await Scanner().discover(timeout=5.0)

        assert [(d.address, d.vendor) for d in devices] == [
            ("AA:BB:CC:DD:EE:FF", Vendor.STANDARD),
            ("11:22:33:44:55:66", Vendor.HUAWEI),
        ]

    @pytest.mark.asyncio
    async def test_returns_empty_when_no_devices(self):
        """discover() returns empty list when nothing matches."""
        with patch("pulse_bridge.scanner.BleakScanner") as MockScanner:
            instance = _mock_scanner_class(MockScanner)
            with patch("pulse_bridge.scanner.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
                devices = await Scanner().discover(timeout=3.0)

        assert devices == []
        mock_sleep.assert_called_once_with(3.0)
        instance.start.assert_called_once()
        instance.stop.assert_called_once()
