"""Relay BLE heart rate wearables to VR avatar OSC parameters and a text file."""

from .config import Config, load_config
from .connection import Backoff, ConnectionManager, ConnectionState
from .decoder import HeartRateSample, decode
from .log import setup_logging
from .parser import parse_bpm
from .profiles import PROFILES, Vendor, VendorProfile, match_profile
from .scanner import DeviceHandle, Scanner
from .sinks import FileSink, OscMode, OscSink
from .supervisor import Supervisor

__all__ = [
    "parse_bpm",
    "HeartRateSample",
    "decode",
    "Vendor",
    "VendorProfile",
    "PROFILES",
    "match_profile",
    "DeviceHandle",
    "Scanner",
    "ConnectionManager",
    "ConnectionState",
    "Backoff",
    "OscSink",
    "OscMode",
    "FileSink",
    "Supervisor",
    "Config",
    "load_config",
    "setup_logging",
]
