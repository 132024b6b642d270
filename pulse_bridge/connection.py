"""Connection lifecycle for a single heart rate wearable."""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum

from bleak import BleakClient
from bleak.exc import BleakError

from .errors import (
    AdapterUnavailable,
    CharacteristicMissing,
    ConnectError,
    ConnectRejected,
    ConnectTimeout,
    LinkLost,
    ScanError,
    SubscribeError,
    SubscribeRejected,
)
from .profiles import VendorProfile
from .scanner import DeviceHandle, Scanner

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[VendorProfile, bytes], None]
StateCallback = Callable[["ConnectionState"], None]

# Consecutive adapter failures before the problem is reported as an error
ADAPTER_FAILURE_THRESHOLD = 3


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"  # never entered automatically


class Backoff:
    """Capped exponential retry delay."""

    def __init__(self, initial: float = 1.0, cap: float = 30.0, factor: float = 2.0):
        self.initial = initial
        self.cap = max(cap, initial)
        self.factor = factor
        self._delay = initial

    @property
    def current(self) -> float:
        return self._delay

    def next(self) -> float:
        """Return the delay to wait now and grow the following one."""
        delay = self._delay
        self._delay = min(self._delay * self.factor, self.cap)
        return delay

    def reset(self) -> None:
        self._delay = self.initial


class ConnectionManager:
    """State machine owning the one BLE connection of the process.

    Each call to ``step()`` performs the work of the current state and moves
    to the next one. Failures never escape: they are logged, a backoff delay
    is scheduled and the machine returns to ``DISCONNECTED``, from where it
    scans again once the delay has elapsed. Raw notification payloads are
    handed to ``on_notification`` together with the matched vendor profile.
    """

    def __init__(
        self,
        scanner: Scanner,
        on_notification: NotificationCallback,
        *,
        scan_timeout: float = 5.0,
        connect_timeout: float = 10.0,
        backoff: Backoff | None = None,
        notify_timeout: float = 0.0,
        on_state: StateCallback | None = None,
    ):
        self._scanner = scanner
        self._on_notification = on_notification
        self._scan_timeout = scan_timeout
        self._connect_timeout = connect_timeout
        self._backoff = backoff or Backoff()
        self._notify_timeout = notify_timeout
        self._on_state = on_state

        self._state = ConnectionState.DISCONNECTED
        self._device: DeviceHandle | None = None
        self._hint: DeviceHandle | None = None
        self._client: BleakClient | None = None
        self._profile: VendorProfile | None = None
        self._retry_delay: float | None = None
        self._adapter_failures = 0
        self._last_notification = 0.0
        self._link_lost = asyncio.Event()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def device(self) -> DeviceHandle | None:
        """Device currently being connected to or held."""
        return self._device

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state:
            self._on_state(state)

    def _schedule_retry(self, reason: str, level: int = logging.WARNING) -> None:
        self._retry_delay = self._backoff.next()
        logger.log(level, "%s, retrying in %.1fs", reason, self._retry_delay)
        self._set_state(ConnectionState.DISCONNECTED)

    async def _wait_stopped(self, delay: float) -> bool:
        """Sleep for delay; return True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), delay)
        except TimeoutError:
            return False
        return True

    def _on_disconnect(self, client: BleakClient) -> None:
        """Bleak disconnect callback."""
        if client is self._client:
            self._link_lost.set()

    def _notify_handler(self, _: object, data: bytearray) -> None:
        """Forward raw HR notifications."""
        self._last_notification = time.monotonic()
        if self._profile is not None:
            self._on_notification(self._profile, bytes(data))

    async def _release(self) -> None:
        """Unsubscribe and disconnect the current client, if any."""
        client, self._client = self._client, None
        profile, self._profile = self._profile, None
        if client is None:
            return
        try:
            if client.is_connected:
                if profile is not None:
                    await client.stop_notify(profile.char_uuid)
                await client.disconnect()
        except Exception as e:
            logger.debug("Error releasing client: %s", e)

    async def _connect(self, handle: DeviceHandle) -> None:
        await self._release()
        self._link_lost.clear()
        self._client = BleakClient(handle.device, disconnected_callback=self._on_disconnect)
        try:
            await asyncio.wait_for(self._client.connect(), self._connect_timeout)
        except TimeoutError:
            raise ConnectTimeout(f"no response within {self._connect_timeout:.1f}s") from None
        except (BleakError, OSError) as e:
            raise ConnectRejected(str(e) or type(e).__name__) from e

    async def _subscribe(self, handle: DeviceHandle) -> None:
        profile = handle.profile
        client = self._client
        if client is None:
            raise SubscribeRejected("not connected")

        try:
            # Raises if the link dropped before service discovery finished
            char = client.services.get_characteristic(profile.char_uuid)
        except (BleakError, OSError) as e:
            raise SubscribeRejected(str(e) or type(e).__name__) from e
        if char is None:
            raise CharacteristicMissing(f"{profile.char_uuid} not found on {handle.name}")
        if "notify" not in char.properties:
            raise SubscribeRejected(f"{profile.char_uuid} does not support notifications")

        self._profile = profile
        try:
            await client.start_notify(char, self._notify_handler)
        except (BleakError, OSError) as e:
            self._profile = None
            raise SubscribeRejected(str(e) or type(e).__name__) from e

    async def _hold(self) -> None:
        """Wait while subscribed; raise LinkLost when the link goes away."""
        while not self._link_lost.is_set():
            if self._notify_timeout <= 0:
                await self._link_lost.wait()
                break
            remaining = self._last_notification + self._notify_timeout - time.monotonic()
            if remaining <= 0:
                raise LinkLost(f"no heart rate data for {self._notify_timeout:.0f}s")
            try:
                await asyncio.wait_for(self._link_lost.wait(), remaining)
            except TimeoutError:
                pass

        if not self.stopped:
            raise LinkLost("device disconnected")

    async def _on_disconnected(self) -> None:
        if self._retry_delay:
            delay, self._retry_delay = self._retry_delay, None
            if await self._wait_stopped(delay):
                return
        self._set_state(ConnectionState.SCANNING)

    async def _on_scanning(self) -> None:
        try:
            handle = await self._scanner.scan(self._scan_timeout, hint=self._hint)
        except AdapterUnavailable as e:
            self._adapter_failures += 1
            if self._adapter_failures >= ADAPTER_FAILURE_THRESHOLD:
                self._schedule_retry(
                    f"Bluetooth adapter unavailable for {self._adapter_failures} consecutive scans ({e})",
                    logging.ERROR,
                )
            else:
                self._schedule_retry(f"Bluetooth adapter unavailable ({e})")
            return
        except ScanError as e:
            self._adapter_failures = 0
            self._schedule_retry(str(e))
            return

        self._adapter_failures = 0
        self._device = handle
        logger.info("Found %s (%s)", handle.name, handle.address)
        self._set_state(ConnectionState.CONNECTING)

    async def _on_connecting(self) -> None:
        handle = self._device
        if handle is None:
            self._set_state(ConnectionState.SCANNING)
            return

        logger.debug("Connecting to %s...", handle.address)
        try:
            await self._connect(handle)
        except ConnectError as e:
            await self._release()
            self._schedule_retry(f"Connection to {handle.name} failed: {e}")
            return
        self._set_state(ConnectionState.SUBSCRIBING)

    async def _on_subscribing(self) -> None:
        handle = self._device
        if handle is None:
            self._set_state(ConnectionState.SCANNING)
            return

        try:
            await self._subscribe(handle)
        except SubscribeError as e:
            # Profile mismatch: forget the device and look for another one
            await self._release()
            self._hint = None
            self._device = None
            self._schedule_retry(f"Cannot subscribe to {handle.name}: {e}")
            return

        self._backoff.reset()
        self._hint = handle
        self._last_notification = time.monotonic()
        logger.info("Connected to %s, receiving heart rate", handle.name)
        self._set_state(ConnectionState.CONNECTED)

    async def _on_connected(self) -> None:
        try:
            await self._hold()
        except LinkLost as e:
            name = self._device.name if self._device else "device"
            logger.warning("Lost connection to %s: %s", name, e)
            self._set_state(ConnectionState.RECONNECTING)

    async def _on_reconnecting(self) -> None:
        await self._release()
        self._device = None
        self._set_state(ConnectionState.SCANNING)

    async def step(self) -> ConnectionState:
        """Run the current state's work and return the resulting state."""
        handlers = {
            ConnectionState.DISCONNECTED: self._on_disconnected,
            ConnectionState.SCANNING: self._on_scanning,
            ConnectionState.CONNECTING: self._on_connecting,
            ConnectionState.SUBSCRIBING: self._on_subscribing,
            ConnectionState.CONNECTED: self._on_connected,
            ConnectionState.RECONNECTING: self._on_reconnecting,
        }
        handler = handlers.get(self._state)
        if handler is None:
            raise RuntimeError(f"No transition out of {self._state.value}")
        await handler()
        return self._state

    async def run(self) -> None:
        """Drive the state machine until stop() is called."""
        while not self.stopped:
            state = self._state
            try:
                await self.step()
            except Exception:
                if self.stopped:
                    break
                logger.exception("Unexpected error while %s", state.value)
                await self._release()
                self._device = None
                self._schedule_retry("Recovered from unexpected error")

    async def stop(self) -> None:
        """Abandon any wait and release the BLE connection."""
        logger.debug("Stopping connection manager...")
        self._stop_event.set()
        self._link_lost.set()
        await self._release()
        self._device = None
        self._set_state(ConnectionState.DISCONNECTED)
