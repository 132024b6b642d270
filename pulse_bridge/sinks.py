"""Outputs for decoded heart rate samples: OSC over UDP and a text file."""

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path

from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_bundle_builder import IMMEDIATELY, OscBundleBuilder
from pythonosc.osc_message import OscMessage
from pythonosc.osc_message_builder import OscMessageBuilder
from pythonosc.udp_client import SimpleUDPClient

from .decoder import HeartRateSample

logger = logging.getLogger(__name__)

DEFAULT_OSC_HOST = "127.0.0.1"
DEFAULT_OSC_PORT = 9000
DEFAULT_OSC_PATH = "/avatar/parameters/HR"
# BPM that maps to 1.0 in float mode; higher values are clamped
DEFAULT_DIVISOR = 255.0
MAX_INT_BPM = 255

# Avatar parameters read by Pulsoid-compatible prefabs
AVATAR_PREFIX = "/avatar/parameters/"
BUNDLE_PERCENT_MAX = 200.0
BUNDLE_NORMALISED_MAX = 240


class OscMode(Enum):
    FLOAT = "float"
    INT = "int"
    BUNDLE = "bundle"


def _message(address: str, value, arg_type: str | None = None) -> OscMessage:
    builder = OscMessageBuilder(address=address)
    builder.add_arg(value, arg_type)
    return builder.build()


def build_avatar_bundle(bpm: int) -> OscBundle:
    """Bundle every avatar heart rate parameter into one datagram.

    Carries the activity flags, two normalised values (/200 and /240) and
    the integer BPM capped at 240.
    """
    active = bpm > 0
    hr = max(0, min(bpm, BUNDLE_NORMALISED_MAX))
    builder = OscBundleBuilder(IMMEDIATELY)
    for name, value, arg_type in (
        ("hr_connected", active, None),
        ("isHRActive", active, None),
        ("hr_percent", min(hr, BUNDLE_PERCENT_MAX) / BUNDLE_PERCENT_MAX, OscMessageBuilder.ARG_TYPE_FLOAT),
        ("VRCOSC/Heartrate/Normalised", hr / BUNDLE_NORMALISED_MAX, OscMessageBuilder.ARG_TYPE_FLOAT),
        ("HR", hr, OscMessageBuilder.ARG_TYPE_INT),
    ):
        builder.add_content(_message(AVATAR_PREFIX + name, value, arg_type))
    return builder.build()


class OscSink:
    """Sends each sample as a single OSC datagram to a local listener.

    FLOAT and INT modes send one message to ``path``. BUNDLE mode ignores
    ``path`` and sends the avatar parameter bundle instead.

    Sends are fire-and-forget: nothing is queued or retried, and a failed
    send is logged and dropped since the next notification supersedes it.
    """

    def __init__(
        self,
        host: str = DEFAULT_OSC_HOST,
        port: int = DEFAULT_OSC_PORT,
        path: str = DEFAULT_OSC_PATH,
        mode: OscMode = OscMode.FLOAT,
        divisor: float = DEFAULT_DIVISOR,
    ):
        if divisor <= 0:
            raise ValueError(f"divisor must be positive, got {divisor}")
        self.host = host
        self.port = port
        self.path = path
        self.mode = mode
        self.divisor = divisor
        self._client: SimpleUDPClient | None = SimpleUDPClient(host, port)

    def normalize(self, bpm: int) -> float | int:
        """Map BPM to the value carried in the OSC payload."""
        if self.mode is OscMode.INT:
            return max(0, min(bpm, MAX_INT_BPM))
        return max(0.0, min(bpm, self.divisor)) / self.divisor

    def build(self, sample: HeartRateSample) -> OscMessage | OscBundle:
        """Build the OSC packet for a sample."""
        if self.mode is OscMode.BUNDLE:
            return build_avatar_bundle(sample.bpm)
        if self.mode is OscMode.INT:
            return _message(self.path, self.normalize(sample.bpm), OscMessageBuilder.ARG_TYPE_INT)
        return _message(self.path, self.normalize(sample.bpm), OscMessageBuilder.ARG_TYPE_FLOAT)

    def send(self, sample: HeartRateSample) -> bool:
        """Send one datagram; return False if it could not be sent."""
        if self._client is None:
            return False
        try:
            self._client.send(self.build(sample))
        except OSError as e:
            logger.warning("OSC send to %s:%d failed: %s", self.host, self.port, e)
            return False
        return True

    def close(self) -> None:
        """Close the UDP socket; later sends are no-ops."""
        client, self._client = self._client, None
        if client is not None:
            client.close()


class FileSink:
    """Keeps a text file holding only the latest BPM.

    Each write goes to a temporary file in the target directory which then
    replaces the target, so pollers never read a partial value.
    """

    def __init__(self, path: str | Path = "HeartRate.txt"):
        self.path = Path(path)

    def write(self, sample: HeartRateSample) -> bool:
        """Replace the file contents; return False if the write failed."""
        directory = self.path.parent
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="ascii",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(str(sample.bpm))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.warning("Failed to write heart rate to '%s': %s", self.path, e)
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError as cleanup_error:
                    logger.debug("Could not remove '%s': %s", tmp_name, cleanup_error)
            return False
        return True

    def read(self) -> int | None:
        """Return the BPM currently on disk, if any."""
        try:
            return int(self.path.read_text(encoding="ascii"))
        except (OSError, ValueError):
            return None
