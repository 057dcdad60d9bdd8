"""
Reader Device Interface for the RF Sweep Measurement System.

This module defines the ReaderDevice abstraction the measurement
protocols drive, the raw TagRead record a device produces for each
physical detection, and the factory that picks a backend from the
reader URI.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional


class RFIDReaderError(Exception):
    """Base exception for RFID reader errors."""
    pass


class DeviceConfigError(RFIDReaderError):
    """Raised when connecting to the reader or getting/setting a parameter fails."""
    pass


class DeviceBufferFull(RFIDReaderError):
    """Raised by read() when the on-device tag buffer filled up during the dwell."""
    pass


class MalformedObservation(RFIDReaderError):
    """Raised when a single tag read cannot be classified."""
    pass


# Parameter names
PARAM_VERSION_MODEL = "/reader/version/model"
PARAM_REGION_ID = "/reader/region/id"
PARAM_SUPPORTED_REGIONS = "/reader/region/supportedRegions"
PARAM_HOP_TABLE = "/reader/region/hopTable"
PARAM_ANTENNA_RETURN_LOSS = "/reader/antenna/returnLoss"
PARAM_READ_POWER = "/reader/radio/readPower"
PARAM_METADATA_FLAGS = "/reader/metadataflags"
PARAM_READ_PLAN = "/reader/read/plan"

# Tag protocol identifiers
PROTOCOL_IDS = {
    "NONE": 0,
    "ISO180006B": 3,
    "GEN2": 5,
    "ISO180006B_UCODE": 6,
    "IPX64": 7,
    "IPX256": 8,
    "ATA": 29,
    "ISO14443A": 32,
    "ISO15693": 37,
    "LF125KHZ": 40,
}

# Reserved data length signalling a failed embedded tag operation
EMBEDDED_OP_ERROR_LENGTH = 0x8000


class MetadataFlag(enum.IntFlag):
    """Optional metadata fields a tag read may carry."""
    NONE = 0
    READCOUNT = 1 << 0
    RSSI = 1 << 1
    ANTENNAID = 1 << 2
    FREQUENCY = 1 << 3
    TIMESTAMP = 1 << 4
    PHASE = 1 << 5
    PROTOCOL = 1 << 6
    DATA = 1 << 7
    GPIO_STATUS = 1 << 8
    GEN2_Q = 1 << 9
    GEN2_LF = 1 << 10
    GEN2_TARGET = 1 << 11
    TAGTYPE = 1 << 12
    ALL = (1 << 13) - 1


@dataclass(frozen=True)
class TagRead:
    """One raw detection as surfaced by a reader device."""
    epc: bytes
    metadata: MetadataFlag = MetadataFlag.NONE
    rssi: int = 0
    phase: int = 0
    frequency: int = 0
    antenna: int = 0
    read_count: int = 0
    protocol: int = 0
    timestamp_high: int = 0
    timestamp_low: int = 0
    data: bytes = b""
    data_length: int = 0

    def has(self, flag: MetadataFlag) -> bool:
        """Check whether an optional field is present on this read."""
        return bool(self.metadata & flag)


def split_timestamp_ms(timestamp_ms: int) -> tuple:
    """Split a 64-bit millisecond timestamp into (high, low) 32-bit halves."""
    timestamp_ms = int(timestamp_ms) & 0xFFFFFFFFFFFFFFFF
    return timestamp_ms >> 32, timestamp_ms & 0xFFFFFFFF


class ReaderDevice(ABC):
    """
    Abstract base class for RFID reader backends.

    A device performs blocking timed reads; the detections of the most
    recent read are surfaced one at a time through next_observation().
    """

    # Backends whose region is fixed by the reader's own configuration
    fixed_region = False

    def __init__(self, uri: str):
        self.uri = uri
        self.connected = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return backend name"""
        pass

    @abstractmethod
    def connect(self):
        """
        Open the connection to the reader.

        Raises:
            DeviceConfigError: If the reader cannot be reached
        """
        pass

    @abstractmethod
    def disconnect(self):
        """Close the connection to the reader."""
        pass

    @abstractmethod
    def get_param(self, name: str) -> Any:
        """Get a reader parameter. Raises DeviceConfigError on failure."""
        pass

    @abstractmethod
    def set_param(self, name: str, value: Any):
        """Set a reader parameter. Raises DeviceConfigError on failure."""
        pass

    @abstractmethod
    def install_read_plan(self, antennas: List[int], protocol: str, timeout_ms: int):
        """Install a simple read plan for the given antennas and tag protocol."""
        pass

    @abstractmethod
    def read(self, dwell_ms: int):
        """
        Read tags for dwell_ms milliseconds, blocking the caller.

        Raises:
            DeviceBufferFull: The tag buffer filled; buffered reads are still available
            DeviceConfigError: The read failed
        """
        pass

    @abstractmethod
    def next_observation(self) -> Optional[TagRead]:
        """Return the next buffered read of the last read() call, or None."""
        pass

    def observations(self) -> Iterator[TagRead]:
        """Iterate over the reads buffered by the last read() call."""
        while True:
            tag_read = self.next_observation()
            if tag_read is None:
                return
            yield tag_read

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False


def get_reader_device(uri: str, settings=None) -> ReaderDevice:
    """
    Factory function to get a reader backend for a URI

    Args:
        uri: 'tmr:///dev/ttyUSB0', 'tmr://192.168.1.100', 'llrp://192.168.1.100'
        settings: Optional ReaderSettings with backend options

    Returns:
        ReaderDevice instance (not yet connected)

    Raises:
        DeviceConfigError: If the URI scheme is unknown
    """
    scheme = uri.split("://", 1)[0].lower() if "://" in uri else ""

    if scheme == "tmr":
        from .backends.mercury import MercuryReaderDevice
        baud_rate = settings.baud_rate if settings else 115200
        return MercuryReaderDevice(uri, baud_rate=baud_rate)

    elif scheme == "llrp":
        from .backends.llrp import LLRPReaderDevice
        channel_plan = settings.channel_plan_khz if settings else None
        return LLRPReaderDevice(uri, channel_plan_khz=channel_plan)

    else:
        raise DeviceConfigError(
            f"Unknown reader URI: {uri}. "
            f"Supported schemes: tmr://, llrp://"
        )
