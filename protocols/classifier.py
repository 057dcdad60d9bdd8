"""
Tag Observation Classifier.

Normalises the raw reads drained from one timed read and applies the
per-frequency tag-of-interest matching used by the sweep protocol.
"""

from typing import Iterable, Iterator, Optional

from core.reader_device import (
    TagRead,
    MetadataFlag,
    MalformedObservation,
    EMBEDDED_OP_ERROR_LENGTH,
)
from core.record_store import MeasurementRecord
from core.tag_manager import TagManager
from utils.logging import Logger, get_logger

from .models import TagObservation, CellResult


def combine_timestamp(high: int, low: int) -> int:
    """Seconds from a millisecond timestamp split into 32-bit halves, high first."""
    timestamp_ms = ((high & 0xFFFFFFFF) << 32) | (low & 0xFFFFFFFF)
    return timestamp_ms // 1000


class TagObservationClassifier:
    """
    Classifies tag reads.

    Fields a read does not carry default to 0. A read that cannot be
    classified is logged and skipped without interrupting the drain.
    """

    def __init__(self, tag_manager: TagManager, logger: Optional[Logger] = None):
        self.tag_manager = tag_manager
        self.logger = logger or get_logger()
        self.drained = 0
        self.skipped = 0

    def reset_counters(self):
        self.drained = 0
        self.skipped = 0

    def normalize(self, tag_read: TagRead) -> TagObservation:
        """
        Extract the fields needed downstream from a raw read.

        Raises:
            MalformedObservation: Empty EPC or failed embedded tag operation
        """
        if not tag_read.epc:
            raise MalformedObservation("tag read without EPC")

        if tag_read.has(MetadataFlag.DATA) and tag_read.data_length == EMBEDDED_OP_ERROR_LENGTH:
            code = int.from_bytes(tag_read.data[:2], "big") if len(tag_read.data) >= 2 else 0
            raise MalformedObservation(
                f"Embedded tagOp failed for {tag_read.epc.hex().upper()}: error 0x{code:04X}"
            )

        def present(flag, value):
            return value if tag_read.has(flag) else 0

        timestamp_s = 0
        if tag_read.has(MetadataFlag.TIMESTAMP):
            timestamp_s = combine_timestamp(tag_read.timestamp_high, tag_read.timestamp_low)

        return TagObservation(
            epc=tag_read.epc.hex().upper(),
            rssi=present(MetadataFlag.RSSI, tag_read.rssi),
            phase=present(MetadataFlag.PHASE, tag_read.phase),
            frequency=present(MetadataFlag.FREQUENCY, tag_read.frequency),
            antenna=present(MetadataFlag.ANTENNAID, tag_read.antenna),
            timestamp_s=timestamp_s,
            read_count=present(MetadataFlag.READCOUNT, tag_read.read_count),
            protocol=present(MetadataFlag.PROTOCOL, tag_read.protocol),
            metadata=tag_read.metadata,
        )

    def drain(self, reads: Iterable[TagRead]) -> Iterator[TagObservation]:
        """Normalise every read of a read window, skipping malformed ones."""
        for tag_read in reads:
            self.drained += 1
            try:
                yield self.normalize(tag_read)
            except MalformedObservation as e:
                self.skipped += 1
                self.logger.warning(f"Skipping tag read: {e}")

    def begin_cell(self, frequency: int) -> CellResult:
        """Start the accumulator for one sweep frequency."""
        return CellResult(frequency=frequency, targets=tuple(self.tag_manager.epcs))

    def accept(self, cell_result: CellResult, observation: TagObservation, power: int) -> bool:
        """
        Match an observation against the tags of interest.

        Returns:
            True if this is the first observation of a tag of interest at
            this frequency, False if it is another tag or a duplicate
        """
        return cell_result.record(observation, power)

    @staticmethod
    def to_capture_record(observation: TagObservation, power: int) -> MeasurementRecord:
        """Continuous capture row for one observation."""
        return MeasurementRecord(
            epc=observation.epc,
            rssi=observation.rssi,
            phase=observation.phase,
            frequency=observation.frequency,
            power=power,
            antenna=observation.antenna,
            timestamp_s=observation.timestamp_s,
            read_count=observation.read_count,
            protocol=observation.protocol,
        )
