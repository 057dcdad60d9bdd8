"""
Measurement data model.

Sweep configuration, grid cells, normalised tag observations and the
per-frequency result of the tags of interest.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from core.reader_device import MetadataFlag
from core.record_store import MeasurementRecord
from core.tag_manager import DEFAULT_TARGET_EPCS


NOT_SEEN_RSSI = -99
NOT_SEEN_PHASE = 0


@dataclass(frozen=True)
class SweepConfig:
    """Immutable per-run configuration."""
    # Frequency axis in kHz; freq_step is in MHz (grid offsets are freq_step * 1000)
    min_freq: int = 840000
    max_freq: int = 928000
    freq_step: float = 5.0

    # Power axis in cdBm
    min_pow: int = 3150
    max_pow: int = 3150
    pow_step: int = 100

    antennas: Tuple[int, ...] = (1,)
    tags: Tuple[str, ...] = tuple(DEFAULT_TARGET_EPCS)

    dwell_ms: int = 500
    settle_ms: int = 500
    read_plan_timeout_ms: int = 1000
    sentinel_power: int = 3200
    repeats: int = 1
    region_index: Optional[int] = 22
    log_return_loss: bool = False

    # Continuous capture
    read_power: int = 3000
    duration_s: float = 5.0

    @property
    def freq_step_khz(self) -> float:
        return self.freq_step * 1000

    def validate(self):
        """
        Check the configuration.

        Raises:
            ValueError: On a non-positive step, a sub-kHz frequency step, a
                non-positive dwell or a negative duration
        """
        if self.freq_step <= 0:
            raise ValueError(f"Frequency step must be > 0, got {self.freq_step}")
        if self.freq_step * 1000 < 1:
            raise ValueError(f"Frequency step must be at least 1 kHz (0.001 MHz), got {self.freq_step}")
        if self.pow_step <= 0:
            raise ValueError(f"Power step must be > 0, got {self.pow_step}")
        if self.dwell_ms <= 0:
            raise ValueError(f"Read dwell must be > 0 ms, got {self.dwell_ms}")
        if self.settle_ms < 0:
            raise ValueError(f"Settle time must be >= 0 ms, got {self.settle_ms}")
        if self.duration_s < 0:
            raise ValueError(f"Capture duration must be >= 0 s, got {self.duration_s}")
        if self.repeats < 0:
            raise ValueError(f"Repeats must be >= 0, got {self.repeats}")
        if not self.antennas:
            raise ValueError("At least one antenna is required")
        if self.region_index is not None and self.region_index < 0:
            raise ValueError(f"Region index must be >= 0, got {self.region_index}")


@dataclass(frozen=True)
class Cell:
    """One (frequency, power) pair of the sweep grid."""
    frequency: int
    power: int


@dataclass(frozen=True)
class ContinuousCell:
    """The single time-bounded session of a continuous capture."""
    power: int
    duration_s: float


@dataclass(frozen=True)
class TagObservation:
    """Normalised tag read."""
    epc: str
    rssi: int = 0
    phase: int = 0
    frequency: int = 0
    antenna: int = 0
    timestamp_s: int = 0
    read_count: int = 0
    protocol: int = 0
    metadata: MetadataFlag = MetadataFlag.NONE


@dataclass
class CellResult:
    """
    First observation of every tag of interest at one frequency.

    Later observations of an already recorded tag are discarded.
    """
    frequency: int
    targets: Tuple[str, ...]
    first_seen: Dict[str, Tuple[TagObservation, int]] = field(default_factory=dict)
    powers_visited: List[int] = field(default_factory=list)

    @property
    def seen(self) -> set:
        return set(self.first_seen)

    @property
    def complete(self) -> bool:
        """True once every tag of interest has been observed."""
        return len(self.first_seen) == len(self.targets)

    @property
    def missing(self) -> List[str]:
        return [epc for epc in self.targets if epc not in self.first_seen]

    def record(self, observation: TagObservation, power: int) -> bool:
        """Record an observation; True only for the first one of a target tag."""
        if observation.epc not in self.targets or observation.epc in self.first_seen:
            return False
        self.first_seen[observation.epc] = (observation, power)
        return True

    def record_for(self, epc: str, sentinel_power: int) -> MeasurementRecord:
        """Row for one tag of interest, or its not-seen sentinel."""
        if epc in self.first_seen:
            observation, power = self.first_seen[epc]
            return MeasurementRecord(
                epc=epc,
                rssi=observation.rssi,
                phase=observation.phase,
                frequency=self.frequency,
                power=power,
            )
        return MeasurementRecord(
            epc=epc,
            rssi=NOT_SEEN_RSSI,
            phase=NOT_SEEN_PHASE,
            frequency=self.frequency,
            power=sentinel_power,
        )

    def rows(self, sentinel_power: int) -> List[MeasurementRecord]:
        """One row per tag of interest, in configured order."""
        return [self.record_for(epc, sentinel_power) for epc in self.targets]
