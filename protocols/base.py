"""
Base Protocol interface for the RF Sweep Measurement System.

This module defines the controller states, the run result and the base
protocol class that owns the reader device and the record store for the
lifetime of a run.
"""

import enum
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from core.reader_device import (
    ReaderDevice,
    MetadataFlag,
    DeviceBufferFull,
    DeviceConfigError,
    PARAM_VERSION_MODEL,
    PARAM_REGION_ID,
    PARAM_SUPPORTED_REGIONS,
    PARAM_READ_POWER,
    PARAM_METADATA_FLAGS,
)
from core.record_store import RecordStore, StoreError, MeasurementRecord, TableDefinition
from core.tag_manager import TagManager
from utils.keyboard import CancelSignal
from utils.logging import Logger, get_logger

from .classifier import TagObservationClassifier
from .models import SweepConfig, TagObservation, CellResult


# Models that need special handling during device setup
HF_LF_MODEL = "M3e"
LLRP_FIXED_MODEL = "Mercury6"


class ControllerState(enum.Enum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    READING = "reading"
    DRAINING = "draining"
    CELL_COMPLETE = "cell_complete"
    SESSION_COMPLETE = "session_complete"
    STOPPED = "stopped"


@dataclass
class RunResult:
    """Complete result from protocol execution."""
    success: bool = True
    error_message: str = ""
    mode: str = ""

    start_time: str = ""
    end_time: str = ""

    cells_visited: int = 0
    columns_completed: int = 0
    sweeps_completed: int = 0
    reads_drained: int = 0
    reads_skipped: int = 0
    buffer_full_events: int = 0
    rows_written: int = 0

    cancelled: bool = False
    final_state: ControllerState = ControllerState.IDLE

    cell_results: List[CellResult] = field(default_factory=list)


class BaseProtocol(ABC):
    """
    Abstract base class for measurement protocols.

    A protocol exclusively owns its reader device and record store for a
    run: run() recreates the measurement table, prepares the device,
    executes the protocol loop and always ends in the STOPPED state with
    the device disconnected and the store closed.
    """

    table: TableDefinition = None
    mode: str = ""

    def __init__(
        self,
        reader: ReaderDevice,
        store: RecordStore,
        config: SweepConfig,
        tag_manager: Optional[TagManager] = None,
        cancel_signal: Optional[CancelSignal] = None,
        logger: Optional[Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize protocol with required components.

        Args:
            reader: ReaderDevice instance (not yet connected)
            store: RecordStore instance
            config: SweepConfig for this run
            tag_manager: Tags of interest (built from config.tags if None)
            cancel_signal: Operator cancel signal
            logger: Logger (process-wide logger if None)
            sleep: Sleep function, seconds
            clock: Monotonic clock, seconds
        """
        config.validate()
        self.reader = reader
        self.store = store
        self.config = config
        self.tag_manager = tag_manager or TagManager.from_epcs(config.tags)
        self.cancel_signal = cancel_signal or CancelSignal()
        self.logger = logger or get_logger()
        self.classifier = TagObservationClassifier(self.tag_manager, logger=self.logger)

        self._sleep = sleep
        self._clock = clock
        self.state = ControllerState.IDLE

        self._progress_callback: Optional[Callable[[str, float], None]] = None
        self._state_callback: Optional[Callable[[ControllerState], None]] = None

    def set_progress_callback(self, callback: Callable[[str, float], None]):
        """
        Set callback for progress updates.

        Callback receives (status_message, progress_fraction)
        """
        self._progress_callback = callback

    def set_state_callback(self, callback: Callable[[ControllerState], None]):
        """Set callback called with every controller state change."""
        self._state_callback = callback

    def _update_progress(self, message: str, fraction: float = 0.0):
        """Report progress to callback if set."""
        self.logger.debug(message)
        if self._progress_callback:
            self._progress_callback(message, fraction)

    def _transition(self, state: ControllerState):
        if state is self.state:
            return
        self.logger.debug(f"{self.mode}: {self.state.value} -> {state.value}")
        self.state = state
        if self._state_callback:
            self._state_callback(state)

    def stop(self):
        """Request protocol to stop at the next loop boundary."""
        self.cancel_signal.request()

    def _cancel_requested(self, result: RunResult) -> bool:
        if self.cancel_signal.is_requested():
            if not result.cancelled:
                self.logger.info("Stopping...")
            result.cancelled = True
            return True
        return False

    def run(self) -> RunResult:
        """
        Execute the protocol.

        Returns:
            RunResult with execution statistics

        Raises:
            DeviceConfigError: Connecting, configuring or reading the device failed
            StoreError: The measurement table could not be written
        """
        result = RunResult(mode=self.mode, start_time=self._get_timestamp())
        self.classifier.reset_counters()

        try:
            self.store.init_schema(self.table)
            self.prepare_device()
            self._run_loop(result)
            result.success = True
        except (DeviceConfigError, StoreError) as e:
            result.success = False
            result.error_message = str(e)
            self.logger.error(str(e))
            raise
        finally:
            result.reads_drained = self.classifier.drained
            result.reads_skipped = self.classifier.skipped
            result.rows_written = self.store.rows_written
            self._shutdown()
            result.final_state = self.state
            result.end_time = self._get_timestamp()

        return result

    @abstractmethod
    def _run_loop(self, result: RunResult):
        """Protocol main loop, entered with the device prepared."""
        pass

    def _initial_power(self) -> Optional[int]:
        """Read power applied once during device preparation, if any."""
        return None

    def prepare_device(self):
        """
        Connect and configure the reader for this run.

        Raises:
            DeviceConfigError: On any connect/parameter failure
        """
        self._transition(ControllerState.CONFIGURING)
        self.reader.connect()

        model = str(self.reader.get_param(PARAM_VERSION_MODEL))
        self.logger.info(f"Connected to {self.reader.uri} ({self.reader.name}, model {model})")
        hf_lf = model == HF_LF_MODEL

        if not hf_lf:
            if self.config.region_index is not None and not self.reader.fixed_region:
                self._select_region(self.config.region_index)

            power = self._initial_power()
            if power is not None:
                self.reader.set_param(PARAM_READ_POWER, power)
                self.logger.info(f"Read power: {self.reader.get_param(PARAM_READ_POWER)} cdBm")

        if model != LLRP_FIXED_MODEL:
            self.reader.set_param(PARAM_METADATA_FLAGS, MetadataFlag.ALL)

        protocol = "ISO14443A" if hf_lf else "GEN2"
        self.reader.install_read_plan(
            list(self.config.antennas), protocol, self.config.read_plan_timeout_ms
        )
        self.logger.info(
            f"Read plan: antennas {list(self.config.antennas)}, {protocol}, "
            f"timeout {self.config.read_plan_timeout_ms} ms"
        )

    def _select_region(self, index: int):
        regions = list(self.reader.get_param(PARAM_SUPPORTED_REGIONS) or [])
        if not regions:
            raise DeviceConfigError("Reader doesn't support any regions")
        if not 0 <= index < len(regions):
            raise DeviceConfigError(
                f"Region index {index} is out of range; "
                f"reader supports {len(regions)} regions (0-{len(regions) - 1})"
            )
        self.reader.set_param(PARAM_REGION_ID, regions[index])
        self.logger.info(f"Region: {regions[index]} (index {index})")

    def _timed_read(self, result: RunResult) -> Iterator[TagObservation]:
        """Issue one timed read and return the classified observations."""
        self._transition(ControllerState.READING)
        try:
            self.reader.read(self.config.dwell_ms)
        except DeviceBufferFull as e:
            result.buffer_full_events += 1
            self.logger.warning(f"reading tags: {e}")

        self._transition(ControllerState.DRAINING)
        return self.classifier.drain(self.reader.observations())

    def _insert(self, record: MeasurementRecord):
        self.store.insert_record(record)

    def _shutdown(self):
        self._transition(ControllerState.STOPPED)
        try:
            self.reader.disconnect()
        finally:
            self.store.close()

    def _get_timestamp(self) -> str:
        """Get current timestamp string."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
