"""Entry point for pulse-bridge."""

import argparse
import asyncio
import logging
import signal
from dataclasses import replace

from .config import Config, load_config
from .errors import ScanError
from .log import setup_logging
from .scanner import Scanner
from .sinks import OscMode
from .supervisor import Supervisor

logger = logging.getLogger(__name__)

# Shutdown event for graceful termination
_shutdown_event: asyncio.Event | None = None


def _signal_handler() -> None:
    """Handle shutdown signals."""
    if _shutdown_event:
        logger.info("Shutdown requested...")
        _shutdown_event.set()


def _install_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: Ctrl+C arrives as KeyboardInterrupt and cancels run()
            pass


async def list_devices(config: Config) -> None:
    """Scan once and print every supported device in range."""
    scanner = Scanner(
        name_filter=config.device.name_filter or None,
        address=config.device.address or None,
    )
    try:
        devices = await scanner.discover(timeout=config.ble.scan_timeout)
    except ScanError as e:
        print(f"Cannot scan for devices: {e}")
        return
    if not devices:
        print("No supported heart rate devices found.")
        return

    print("Found devices:")
    for i, handle in enumerate(devices, 1):
        print(f"  {i}. {handle.name} ({handle.address}) [{handle.vendor.value}]")


async def run(config: Config) -> None:
    """Run the bridge until a shutdown signal arrives."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()
    _install_signal_handlers()

    supervisor = Supervisor.from_config(config)
    if supervisor.osc_sink:
        target = "avatar bundle" if config.osc.osc_mode is OscMode.BUNDLE else config.osc.path
        logger.info("Sending %s OSC to %s:%d %s", config.osc.mode, config.osc.host, config.osc.port, target)
    if supervisor.file_sink:
        logger.info("Writing heart rate to %s", supervisor.file_sink.path)

    try:
        await supervisor.run(_shutdown_event)
    finally:
        logger.info("Shutdown complete")


def _apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Return config with command-line overrides applied."""
    osc = replace(
        config.osc,
        host=args.osc_host,
        port=args.osc_port,
        mode=args.osc_mode or config.osc.mode,
        enabled=config.osc.enabled and not args.no_osc,
    )
    file = replace(config.file, path=args.output, enabled=config.file.enabled and not args.no_file)
    device = replace(config.device, address=args.device or "", name_filter=args.name or "")
    return replace(config, osc=osc, file=file, device=device)


def main() -> None:
    """CLI entry point."""
    config = load_config()

    parser = argparse.ArgumentParser(description="BLE heart rate to OSC and text file bridge")
    parser.add_argument("-d", "--device", default=config.device.address or None, help="Only connect to this address")
    parser.add_argument(
        "-n",
        "--name",
        default=config.device.name_filter or None,
        help="Filter by device name (case-insensitive substring)",
    )
    parser.add_argument("--osc-host", default=config.osc.host, help="OSC destination host")
    parser.add_argument("--osc-port", type=int, default=config.osc.port, help="OSC destination port")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--int",
        dest="osc_mode",
        action="store_const",
        const=OscMode.INT.value,
        help="Send BPM as an OSC int instead of a normalised float",
    )
    mode.add_argument(
        "--bundle",
        dest="osc_mode",
        action="store_const",
        const=OscMode.BUNDLE.value,
        help="Send the full avatar parameter bundle (hr_connected, hr_percent, HR, ...)",
    )
    parser.add_argument("--no-osc", action="store_true", help="Disable OSC output")
    parser.add_argument("-o", "--output", default=config.file.path, help="Heart rate text file")
    parser.add_argument("--no-file", action="store_true", help="Disable text file output")
    parser.add_argument("--list", action="store_true", help="List supported devices in range and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--ble-debug", action="store_true", help="Include bleak debug logging")
    args = parser.parse_args()

    # Setup logging before anything else
    log_level = "DEBUG" if args.verbose else config.log.level
    setup_logging(log_level, ble_debug=args.ble_debug or config.log.ble_debug)

    config = _apply_args(config, args)

    try:
        if args.list:
            asyncio.run(list_devices(config))
        else:
            asyncio.run(run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
