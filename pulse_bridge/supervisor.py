"""Top-level loop tying the BLE connection to the sinks."""

import asyncio
import logging

from .config import Config
from .connection import Backoff, ConnectionManager, ConnectionState
from .decoder import HeartRateSample, decode
from .errors import DecodeError, OutOfRange
from .profiles import VendorProfile
from .scanner import Scanner
from .sinks import FileSink, OscSink

logger = logging.getLogger(__name__)


class Supervisor:
    """Runs the connection state machine and fans samples out to the sinks.

    Every decoded sample goes to the OSC sink and then the file sink. Bad
    payloads and sink failures are logged and dropped; nothing here stops
    the connection loop except shutdown.
    """

    def __init__(
        self,
        scanner: Scanner,
        osc_sink: OscSink | None = None,
        file_sink: FileSink | None = None,
        *,
        scan_timeout: float = 5.0,
        connect_timeout: float = 10.0,
        reconnect_min: float = 1.0,
        reconnect_max: float = 30.0,
        notify_timeout: float = 0.0,
    ):
        self.scanner = scanner
        self.osc_sink = osc_sink
        self.file_sink = file_sink
        self.manager = ConnectionManager(
            scanner,
            self.handle_notification,
            scan_timeout=scan_timeout,
            connect_timeout=connect_timeout,
            backoff=Backoff(reconnect_min, reconnect_max),
            notify_timeout=notify_timeout,
            on_state=self._on_state,
        )
        self.last_sample: HeartRateSample | None = None
        self.forwarded = 0
        self.dropped = 0

    @classmethod
    def from_config(cls, config: Config) -> "Supervisor":
        """Build scanner, sinks and connection settings from config."""
        scanner = Scanner(
            name_filter=config.device.name_filter or None,
            address=config.device.address or None,
        )
        osc_sink = None
        if config.osc.enabled:
            osc_sink = OscSink(
                host=config.osc.host,
                port=config.osc.port,
                path=config.osc.path,
                mode=config.osc.osc_mode,
                divisor=config.osc.divisor,
            )
        file_sink = FileSink(config.file.path) if config.file.enabled else None
        return cls(
            scanner,
            osc_sink,
            file_sink,
            scan_timeout=config.ble.scan_timeout,
            connect_timeout=config.ble.connect_timeout,
            reconnect_min=config.ble.reconnect_min,
            reconnect_max=config.ble.reconnect_max,
            notify_timeout=config.ble.notify_timeout,
        )

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    def _on_state(self, state: ConnectionState) -> None:
        if state is ConnectionState.SCANNING:
            logger.info("Scanning for heart rate devices...")

    def handle_notification(self, profile: VendorProfile, raw: bytes) -> HeartRateSample | None:
        """Decode one notification and forward it to every sink."""
        try:
            sample = decode(profile, raw)
        except OutOfRange as e:
            self.dropped += 1
            logger.debug("Dropped sample: %s", e)
            return None
        except DecodeError as e:
            self.dropped += 1
            logger.warning("Malformed HR packet: %s", e)
            return None

        self.dispatch(sample)
        return sample

    def dispatch(self, sample: HeartRateSample) -> None:
        logger.debug("HR: %d bpm", sample.bpm)
        if self.osc_sink is not None:
            self.osc_sink.send(sample)
        if self.file_sink is not None:
            self.file_sink.write(sample)
        self.last_sample = sample
        self.forwarded += 1

    def close(self) -> None:
        if self.osc_sink is not None:
            self.osc_sink.close()

    async def run(self, shutdown: asyncio.Event) -> None:
        """Run until shutdown is set, then release BLE and sink resources."""
        manager_task = asyncio.create_task(self.manager.run())
        shutdown_task = asyncio.create_task(shutdown.wait())
        try:
            done, pending = await asyncio.wait(
                [manager_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            # The manager only returns once stopped; re-raise anything it let through
            if manager_task in done:
                manager_task.result()
        finally:
            for task in (manager_task, shutdown_task):
                if not task.done():
                    task.cancel()
            await self.manager.stop()
            self.close()
            logger.info("Forwarded %d sample(s), dropped %d", self.forwarded, self.dropped)
