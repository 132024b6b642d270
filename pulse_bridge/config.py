"""Configuration file loading and defaults."""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .sinks import DEFAULT_DIVISOR, DEFAULT_OSC_HOST, DEFAULT_OSC_PATH, DEFAULT_OSC_PORT, OscMode

logger = logging.getLogger(__name__)


@dataclass
class OscConfig:
    enabled: bool = True
    host: str = DEFAULT_OSC_HOST
    port: int = DEFAULT_OSC_PORT
    path: str = DEFAULT_OSC_PATH
    mode: str = OscMode.FLOAT.value
    divisor: float = DEFAULT_DIVISOR

    def __post_init__(self) -> None:
        # Fail early on typos rather than at first send
        OscMode(self.mode)

    @property
    def osc_mode(self) -> OscMode:
        return OscMode(self.mode)


@dataclass
class FileConfig:
    enabled: bool = True
    path: str = "HeartRate.txt"


@dataclass
class BLEConfig:
    scan_timeout: float = 5.0
    connect_timeout: float = 10.0
    reconnect_min: float = 1.0
    reconnect_max: float = 30.0
    notify_timeout: float = 0.0  # 0 disables the silence watchdog


@dataclass
class DeviceConfig:
    address: str = ""
    name_filter: str = ""


@dataclass
class LogConfig:
    level: str = "INFO"
    ble_debug: bool = False


@dataclass
class Config:
    osc: OscConfig = field(default_factory=OscConfig)
    file: FileConfig = field(default_factory=FileConfig)
    ble: BLEConfig = field(default_factory=BLEConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    log: LogConfig = field(default_factory=LogConfig)


def load_config() -> Config:
    """Load config from file, with defaults for missing values."""
    paths = [
        Path("./config.toml"),
        Path.home() / ".config" / "pulse-bridge" / "config.toml",
    ]

    for path in paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
                return _parse_config(data)
            except tomllib.TOMLDecodeError as e:
                logger.warning("Failed to parse config '%s': %s. Using defaults.", path, e)
                return Config()

    return Config()


def _parse_config(data: dict) -> Config:
    """Parse TOML dict into Config dataclass.

    Uses dataclass defaults for missing values.
    """
    return Config(
        osc=OscConfig(**data.get("osc", {})),
        file=FileConfig(**data.get("file", {})),
        ble=BLEConfig(**data.get("ble", {})),
        device=DeviceConfig(**data.get("device", {})),
        log=LogConfig(**data.get("log", {})),
    )
