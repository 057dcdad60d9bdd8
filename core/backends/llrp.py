"""
LLRP reader backend.

This module provides the LLRPReaderDevice class which wraps the SLLURP
library for communication with fixed readers speaking LLRP
('llrp://192.168.1.100'). Tag reports arrive asynchronously on the
Twisted reactor thread and are buffered until the timed read ends.
"""

import threading
import time
from typing import Any, Dict, List, Optional

# LLRP / SLLURP imports
try:
    from sllurp.llrp import (
        LLRPReaderConfig,
        LLRPReaderClient,
        LLRP_DEFAULT_PORT,
        LLRPReaderState
    )
    from twisted.internet import reactor
    SLLURP_AVAILABLE = True
except ImportError:
    SLLURP_AVAILABLE = False
    LLRP_DEFAULT_PORT = 5084

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
from utils.logging import get_logger


def power_cdbm_to_index(power_cdbm: int) -> int:
    """Convert cdBm to the reader transmit power table index (10dBm=1, 33dBm=93, step=0.25dBm)."""
    power_dbm = power_cdbm / 100.0
    return max(1, min(93, int((power_dbm - 10.0) / 0.25) + 1))


class LLRPReaderDevice(ReaderDevice):
    """
    RFID reader reached over LLRP using SLLURP.

    The region of an LLRP reader is fixed by its own configuration, so
    region selection is skipped. Frequencies are addressed as channel
    indexes; a channel plan (kHz per channel, in hop table order) is
    needed to set a hop table by frequency.
    """

    fixed_region = True
    MAX_BUFFERED_READS = 4096

    def __init__(
        self,
        uri: str,
        channel_plan_khz: Optional[List[int]] = None,
        mode_identifier: int = 1002,
        session: int = 0,
        search_mode: str = "2",
        connect_timeout_s: float = 10.0
    ):
        super().__init__(uri)
        self.host, self.port = self._parse_uri(uri)
        self.channel_plan_khz = list(channel_plan_khz or [])
        self.mode_identifier = mode_identifier
        self.session = session
        self.search_mode = search_mode
        self.connect_timeout_s = connect_timeout_s

        self._reader_client: Optional[Any] = None
        self._reactor_thread: Optional[threading.Thread] = None
        self._connected_event = threading.Event()
        self._lock = threading.Lock()

        self._antennas: List[int] = [1]
        self._tx_power_index = power_cdbm_to_index(3000)
        self._read_power = 3000
        self._channel_index: Optional[int] = None
        self._metadata = MetadataFlag.ALL

        self._collecting = False
        self._pending: List[TagRead] = []
        self._overflowed = False
        self._buffer: List[TagRead] = []

    @property
    def name(self) -> str:
        return "llrp"

    @staticmethod
    def _parse_uri(uri: str) -> tuple:
        address = uri.split("://", 1)[1].strip("/")
        if ":" in address:
            host, port = address.rsplit(":", 1)
            return host, int(port)
        return address, LLRP_DEFAULT_PORT

    def _factory_args(self) -> Dict:
        args = {
            "tx_power": self._tx_power_index,
            "mode_identifier": self.mode_identifier,
            "report_every_n_tags": 1,
            "start_inventory": False,
            "tag_content_selector": {
                "EnableROSpecID": False,
                "EnableAntennaID": True,
                "EnablePeakRSSI": True,
                "EnableChannelIndex": True,
                "EnableFirstSeenTimestamp": True,
                "EnableLastSeenTimestamp": False,
                "EnableTagSeenCount": True,
            },
            "impinj_extended_configuration": True,
            "impinj_reports": True,
            "impinj_tag_content_selector": {
                "EnableRFPhaseAngle": True,
                "EnablePeakRSSI": True,
                "EnableRFDopplerFrequency": False,
                "EnableOptimizerOne": False,
            },
            "impinj_search_mode": str(self.search_mode),
            "session": self.session,
            "antennas": self._antennas,
        }
        if self._channel_index is not None:
            args["frequencies"] = self._frequencies_config()
        return args

    def _frequencies_config(self) -> Dict:
        return {
            "HopTableId": 1,
            "ChannelIndex": self._channel_index,
            "Channelist": [self._channel_index],
            "Automatic": False,
        }

    def connect(self):
        if not SLLURP_AVAILABLE:
            raise DeviceConfigError("sllurp library not available - cannot connect")

        self._connected_event.clear()
        try:
            config = LLRPReaderConfig(self._factory_args())
            self._reader_client = LLRPReaderClient(self.host, self.port, config)
            self._reader_client.add_tag_report_callback(self._handle_tag_report)
            self._reader_client.add_state_callback(
                LLRPReaderState.STATE_CONNECTED,
                self._handle_state_change
            )
            self._reader_client.add_state_callback(
                LLRPReaderState.STATE_DISCONNECTED,
                self._handle_state_change
            )

            # Start reactor thread if not running
            if self._reactor_thread is None:
                self._reactor_thread = threading.Thread(
                    target=self._run_reactor,
                    daemon=True
                )
                self._reactor_thread.start()

            self._reader_client.connect()
        except Exception as e:
            raise DeviceConfigError(f"connecting reader {self.uri}: {e}") from e

        if not self._connected_event.wait(self.connect_timeout_s):
            raise DeviceConfigError(
                f"connecting reader {self.uri}: no response after {self.connect_timeout_s:.0f}s"
            )

    def disconnect(self):
        if self._reader_client:
            try:
                self._reader_client.disconnect()
            except Exception as e:
                get_logger().warning(f"Disconnect error: {e}")
        self._reader_client = None
        self.connected = False

    def _update_config(self, changes: Dict):
        if self._reader_client is None:
            raise DeviceConfigError("Reader is not connected")
        try:
            self._reader_client.update_config(changes)
        except Exception as e:
            raise DeviceConfigError(f"updating reader config {sorted(changes)}: {e}") from e

    def get_param(self, name: str) -> Any:
        if name == PARAM_VERSION_MODEL:
            return "LLRP"
        if name == PARAM_READ_POWER:
            return self._read_power
        if name == PARAM_HOP_TABLE:
            if self._channel_index is None:
                return list(self.channel_plan_khz)
            return [self.channel_plan_khz[self._channel_index - 1]]
        if name == PARAM_METADATA_FLAGS:
            return self._metadata
        if name == PARAM_READ_PLAN:
            return {"antennas": list(self._antennas), "protocol": "GEN2"}
        if name in (PARAM_REGION_ID, PARAM_SUPPORTED_REGIONS, PARAM_ANTENNA_RETURN_LOSS):
            raise DeviceConfigError(f"{name} is not supported by the {self.name} backend")
        raise DeviceConfigError(f"Unknown parameter: {name}")

    def set_param(self, name: str, value: Any):
        if name == PARAM_READ_POWER:
            self._read_power = int(value)
            self._tx_power_index = power_cdbm_to_index(self._read_power)
            self._update_config({"tx_power": self._tx_power_index})
        elif name == PARAM_HOP_TABLE:
            frequencies = [int(f) for f in value]
            if len(frequencies) != 1:
                raise DeviceConfigError("LLRP hop table must hold exactly one frequency")
            self._channel_index = self.channel_index_for(frequencies[0])
            self._update_config({"frequencies": self._frequencies_config()})
        elif name == PARAM_METADATA_FLAGS:
            self._metadata = MetadataFlag(value)
        else:
            raise DeviceConfigError(f"Cannot set parameter {name} on the {self.name} backend")

    def channel_index_for(self, frequency_khz: int) -> int:
        """Map a frequency in kHz to its 1-based channel index."""
        if frequency_khz not in self.channel_plan_khz:
            raise DeviceConfigError(
                f"Frequency {frequency_khz} kHz is not in the reader channel plan"
            )
        return self.channel_plan_khz.index(frequency_khz) + 1

    def install_read_plan(self, antennas: List[int], protocol: str, timeout_ms: int):
        if protocol != "GEN2":
            raise DeviceConfigError(f"LLRP readers only support GEN2, not {protocol}")
        self._antennas = list(antennas)
        self._update_config({"antennas": self._antennas})

    def read(self, dwell_ms: int):
        with self._lock:
            self._pending = []
            self._overflowed = False
            self._collecting = True

        self._update_config({"start_inventory": True})
        time.sleep(dwell_ms / 1000.0)
        self._update_config({"start_inventory": False})

        with self._lock:
            self._collecting = False
            self._buffer = self._pending
            self._pending = []
            overflowed = self._overflowed

        if overflowed:
            raise DeviceBufferFull(
                f"more than {self.MAX_BUFFERED_READS} tag reports in {dwell_ms} ms"
            )

    def next_observation(self) -> Optional[TagRead]:
        with self._lock:
            if not self._buffer:
                return None
            return self._buffer.pop(0)

    def _run_reactor(self):
        """Run Twisted reactor in background thread."""
        try:
            if not reactor.running:
                reactor.run(installSignalHandlers=False)
        except Exception as e:
            get_logger().error(f"Reactor error: {e}")

    def _handle_state_change(self, reader, state):
        """Handle reader state changes."""
        if state == LLRPReaderState.STATE_CONNECTED:
            self.connected = True
            self._connected_event.set()
        elif state == LLRPReaderState.STATE_DISCONNECTED:
            self.connected = False

    def _handle_tag_report(self, reader, tag_reports):
        """Buffer incoming tag reports while a timed read is running."""
        parsed = []
        for tag in tag_reports:
            tag_read = self.parse_tag_report(tag, self.channel_plan_khz)
            if tag_read is not None:
                parsed.append(tag_read)

        with self._lock:
            if not self._collecting:
                return
            room = self.MAX_BUFFERED_READS - len(self._pending)
            if len(parsed) > room:
                self._overflowed = True
                parsed = parsed[:max(room, 0)]
            self._pending.extend(parsed)

    @staticmethod
    def parse_tag_report(tag: Dict, channel_plan_khz: Optional[List[int]] = None) -> Optional[TagRead]:
        """Parse a raw LLRP tag report dict into a TagRead."""
        epc_raw = tag.get("EPC-96") or tag.get("EPCUnknown") or tag.get("EPC")
        if not epc_raw:
            return None

        if isinstance(epc_raw, bytes):
            try:
                epc = bytes.fromhex(epc_raw.decode("ascii"))
            except (UnicodeDecodeError, ValueError):
                epc = epc_raw
        else:
            try:
                epc = bytes.fromhex(str(epc_raw))
            except ValueError:
                return None

        flags = MetadataFlag.PROTOCOL
        fields = {"protocol": PROTOCOL_IDS["GEN2"]}

        rssi = tag.get("ImpinjPeakRSSI", tag.get("PeakRSSI"))
        if rssi is not None:
            rssi = float(rssi)
            if rssi < -150:  # Impinj high-res RSSI (x100)
                rssi = rssi / 100.0
            fields["rssi"] = int(round(rssi))
            flags |= MetadataFlag.RSSI

        phase = _extract_phase(tag)
        if phase is not None:
            fields["phase"] = phase
            flags |= MetadataFlag.PHASE

        antenna = tag.get("AntennaID")
        if antenna is not None:
            fields["antenna"] = int(antenna)
            flags |= MetadataFlag.ANTENNAID

        count = tag.get("TagSeenCount")
        if count is not None:
            fields["read_count"] = int(count)
            flags |= MetadataFlag.READCOUNT

        first_seen_us = tag.get("FirstSeenTimestampUTC")
        if first_seen_us is not None:
            high, low = split_timestamp_ms(int(first_seen_us) // 1000)
            fields["timestamp_high"] = high
            fields["timestamp_low"] = low
            flags |= MetadataFlag.TIMESTAMP

        channel = tag.get("ChannelIndex")
        if channel is not None and channel_plan_khz and 0 < int(channel) <= len(channel_plan_khz):
            fields["frequency"] = channel_plan_khz[int(channel) - 1]
            flags |= MetadataFlag.FREQUENCY

        return TagRead(epc=epc, metadata=flags, **fields)


def _extract_phase(tag: Dict) -> Optional[int]:
    """Extract phase angle in degrees from an Impinj tag report."""
    def get_val(obj, keys):
        for k in keys:
            if k in obj:
                v = obj[k]
                if isinstance(v, dict):
                    return v.get("Value")
                return v
        return None

    phase_keys = ["ImpinjRFPhaseAngle", "RFPhaseAngle", "PhaseAngle", "Phase"]
    p_val = get_val(tag, phase_keys)

    # Check Custom field as fallback
    if p_val is None and "Custom" in tag:
        for item in tag["Custom"]:
            if isinstance(item, dict):
                p_val = get_val(item, phase_keys)
                if p_val is not None:
                    break

    if p_val is None:
        return None
    try:
        return int(round(float(p_val) / 4096.0 * 360.0)) % 360
    except (TypeError, ValueError):
        return None
