"""
Mercury API reader backend.

Wraps the python-mercuryapi binding of the ThingMagic Mercury C API so
that serial modules ('tmr:///dev/ttyUSB0') and network readers
('tmr://192.168.1.100') can be driven as a ReaderDevice.
"""

from typing import Any, List, Optional

try:
    import mercury
    MERCURY_AVAILABLE = True
except ImportError:
    MERCURY_AVAILABLE = False

from ..reader_device import (
    ReaderDevice,
    TagRead,
    MetadataFlag,
    DeviceConfigError,
    DeviceBufferFull,
    PROTOCOL_IDS,
    PARAM_VERSION_MODEL,
    PARAM_REGION_ID,
    PARAM_SUPPORTED_REGIONS,
    PARAM_HOP_TABLE,
    PARAM_ANTENNA_RETURN_LOSS,
    PARAM_READ_POWER,
    PARAM_METADATA_FLAGS,
    PARAM_READ_PLAN,
    split_timestamp_ms,
)


class MercuryReaderDevice(ReaderDevice):
    """ThingMagic reader driven through the python-mercuryapi binding"""

    def __init__(self, uri: str, baud_rate: int = 115200):
        super().__init__(uri)
        self.baud_rate = baud_rate

        self._reader: Optional[Any] = None
        self._antennas: List[int] = [1]
        self._protocol = "GEN2"
        self._read_power: Optional[int] = None
        self._metadata = MetadataFlag.ALL
        self._buffer: List[TagRead] = []

    @property
    def name(self) -> str:
        return "mercury"

    def connect(self):
        if not MERCURY_AVAILABLE:
            raise DeviceConfigError(
                "python-mercuryapi is not installed; install the 'mercury' extra"
            )
        try:
            self._reader = mercury.Reader(self.uri, baudrate=self.baud_rate)
        except (RuntimeError, TypeError) as e:
            raise DeviceConfigError(f"connecting reader {self.uri}: {e}") from e
        self.connected = True

    def disconnect(self):
        self._reader = None
        self._buffer = []
        self.connected = False

    def _require_reader(self):
        if self._reader is None:
            raise DeviceConfigError("Reader is not connected")
        return self._reader

    def get_param(self, name: str) -> Any:
        reader = self._require_reader()
        try:
            if name == PARAM_VERSION_MODEL:
                return reader.get_model()
            if name == PARAM_REGION_ID:
                return reader.get_region()
            if name == PARAM_SUPPORTED_REGIONS:
                return list(reader.get_supported_regions())
            if name == PARAM_HOP_TABLE:
                return list(reader.get_hop_table())
            if name == PARAM_READ_POWER:
                powers = reader.get_read_powers()
                return powers[0][1] if powers else self._read_power
            if name == PARAM_METADATA_FLAGS:
                return self._metadata
            if name == PARAM_READ_PLAN:
                return {"antennas": list(self._antennas), "protocol": self._protocol}
        except (RuntimeError, TypeError, ValueError) as e:
            raise DeviceConfigError(f"getting {name}: {e}") from e

        if name == PARAM_ANTENNA_RETURN_LOSS:
            raise DeviceConfigError(f"{name} is not supported by the {self.name} backend")
        raise DeviceConfigError(f"Unknown parameter: {name}")

    def set_param(self, name: str, value: Any):
        reader = self._require_reader()
        try:
            if name == PARAM_REGION_ID:
                reader.set_region(value)
            elif name == PARAM_HOP_TABLE:
                reader.set_hop_table([int(f) for f in value])
            elif name == PARAM_READ_POWER:
                self._read_power = int(value)
                reader.set_read_powers([(ant, self._read_power) for ant in self._antennas])
            elif name == PARAM_METADATA_FLAGS:
                # The binding always reports the full metadata set
                self._metadata = MetadataFlag(value)
            else:
                raise DeviceConfigError(f"Cannot set parameter: {name}")
        except (RuntimeError, TypeError, ValueError) as e:
            raise DeviceConfigError(f"setting {name}: {e}") from e

    def install_read_plan(self, antennas: List[int], protocol: str, timeout_ms: int):
        reader = self._require_reader()
        self._antennas = list(antennas)
        self._protocol = protocol
        try:
            if self._read_power is None:
                reader.set_read_plan(self._antennas, protocol)
            else:
                reader.set_read_plan(self._antennas, protocol, read_power=self._read_power)
        except (RuntimeError, TypeError, ValueError) as e:
            raise DeviceConfigError(f"setting read plan: {e}") from e

    def read(self, dwell_ms: int):
        reader = self._require_reader()
        self._buffer = []
        try:
            raw = reader.read(timeout=int(dwell_ms))
        except RuntimeError as e:
            if "buffer full" in str(e).lower():
                raise DeviceBufferFull(str(e)) from e
            raise DeviceConfigError(f"reading tags: {e}") from e
        self._buffer = [self.to_tag_read(trd, self._protocol) for trd in raw]

    def next_observation(self) -> Optional[TagRead]:
        if not self._buffer:
            return None
        return self._buffer.pop(0)

    @staticmethod
    def to_tag_read(trd, default_protocol: str = "GEN2") -> TagRead:
        """Convert a mercury TagReadData into a TagRead."""
        flags = MetadataFlag.NONE
        fields = {}

        for attr, flag in (
            ("rssi", MetadataFlag.RSSI),
            ("phase", MetadataFlag.PHASE),
            ("frequency", MetadataFlag.FREQUENCY),
            ("antenna", MetadataFlag.ANTENNAID),
            ("read_count", MetadataFlag.READCOUNT),
        ):
            value = getattr(trd, attr, None)
            if value is not None:
                fields[attr] = int(value)
                flags |= flag

        timestamp = getattr(trd, "timestamp", None)
        if timestamp is not None:
            high, low = split_timestamp_ms(round(float(timestamp) * 1000))
            fields["timestamp_high"] = high
            fields["timestamp_low"] = low
            flags |= MetadataFlag.TIMESTAMP

        protocol = getattr(trd, "protocol", None) or default_protocol
        if protocol in PROTOCOL_IDS:
            fields["protocol"] = PROTOCOL_IDS[protocol]
            flags |= MetadataFlag.PROTOCOL

        data = getattr(trd, "epc_mem_data", None)
        if data:
            fields["data"] = bytes(data)
            fields["data_length"] = len(data)
            flags |= MetadataFlag.DATA

        return TagRead(epc=_epc_bytes(trd.epc), metadata=flags, **fields)


def _epc_bytes(epc) -> bytes:
    """The binding reports EPCs as ASCII hex; fall back to the raw bytes."""
    if isinstance(epc, (bytes, bytearray)):
        try:
            text = bytes(epc).decode("ascii")
        except UnicodeDecodeError:
            return bytes(epc)
    else:
        text = str(epc)
    try:
        return bytes.fromhex(text)
    except ValueError:
        return text.encode() if not isinstance(epc, (bytes, bytearray)) else bytes(epc)
