"""
Settings and configuration management for the RF Sweep Measurement System.

This module provides centralized configuration with dataclasses for
reader settings, sweep and capture settings and the measurement
database, persisted as JSON.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional
import json
import os

from core.tag_manager import DEFAULT_TARGET_EPCS
from protocols.models import SweepConfig


@dataclass
class ReaderSettings:
    """RFID Reader configuration settings."""
    uri: str = "tmr:///dev/ttyUSB0"
    antennas: List[int] = field(default_factory=lambda: [1])
    baud_rate: int = 115200
    read_plan_timeout_ms: int = 1000

    # LLRP readers address frequencies by channel index (kHz, hop table order)
    channel_plan_khz: List[int] = field(default_factory=list)


@dataclass
class SweepSettings:
    """Frequency/power sweep settings."""
    min_freq: int = 840000
    max_freq: int = 928000
    freq_step: float = 5.0
    min_pow: int = 3150
    max_pow: int = 3150
    pow_step: int = 100
    tags: List[str] = field(default_factory=lambda: list(DEFAULT_TARGET_EPCS))
    tags_file: Optional[str] = None
    dwell_ms: int = 500
    settle_ms: int = 500
    sentinel_power: int = 3200
    repeats: int = 1
    region_index: Optional[int] = 22  # OPEN REGION
    log_return_loss: bool = False


@dataclass
class CaptureSettings:
    """Continuous capture settings."""
    read_power: int = 3000
    duration_s: float = 5.0
    dwell_ms: int = 500
    region_index: Optional[int] = 1


@dataclass
class StoreSettings:
    """Measurement database settings."""
    database: str = "default.db"
    export_dir: str = "."


@dataclass
class Settings:
    """Main application settings container."""
    reader: ReaderSettings = field(default_factory=ReaderSettings)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    store: StoreSettings = field(default_factory=StoreSettings)

    # Application info
    app_name: str = "RF Sweep Measurement System"
    version: str = "1.0.0"
    log_level: str = "INFO"

    SECTIONS = ("reader", "sweep", "capture", "store")

    def save_to_file(self, filepath: str = "settings.json"):
        """Save current settings to JSON file."""
        data = {name: asdict(getattr(self, name)) for name in self.SECTIONS}
        data["log_level"] = self.log_level
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load_from_file(cls, filepath: str = "settings.json") -> 'Settings':
        """
        Load settings from JSON file.

        Missing file or keys keep their defaults; unknown keys are ignored.

        Raises:
            ValueError: If the file is not valid JSON
        """
        settings = cls()

        if not os.path.exists(filepath):
            return settings

        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error loading settings from {filepath}: {e}") from e

        for name in cls.SECTIONS:
            section = getattr(settings, name)
            for key, value in data.get(name, {}).items():
                if hasattr(section, key):
                    setattr(section, key, value)

        settings.log_level = data.get("log_level", settings.log_level)
        return settings

    def sweep_config(self, tags: Optional[List[str]] = None) -> SweepConfig:
        """Frozen run configuration for a frequency/power sweep."""
        sweep = self.sweep
        return SweepConfig(
            min_freq=int(sweep.min_freq),
            max_freq=int(sweep.max_freq),
            freq_step=float(sweep.freq_step),
            min_pow=int(sweep.min_pow),
            max_pow=int(sweep.max_pow),
            pow_step=int(sweep.pow_step),
            antennas=tuple(self.reader.antennas),
            tags=tuple(tags if tags is not None else sweep.tags),
            dwell_ms=int(sweep.dwell_ms),
            settle_ms=int(sweep.settle_ms),
            read_plan_timeout_ms=int(self.reader.read_plan_timeout_ms),
            sentinel_power=int(sweep.sentinel_power),
            repeats=int(sweep.repeats),
            region_index=sweep.region_index,
            log_return_loss=bool(sweep.log_return_loss),
        )

    def capture_config(self) -> SweepConfig:
        """Frozen run configuration for a continuous capture."""
        capture = self.capture
        return SweepConfig(
            antennas=tuple(self.reader.antennas),
            tags=(),
            dwell_ms=int(capture.dwell_ms),
            read_plan_timeout_ms=int(self.reader.read_plan_timeout_ms),
            region_index=capture.region_index,
            read_power=int(capture.read_power),
            duration_s=float(capture.duration_s),
        )
