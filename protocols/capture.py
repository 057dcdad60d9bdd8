"""
Continuous Capture Protocol.

Reads at a fixed power until the time budget elapses or the operator
cancels, persisting every tag read with its full metadata.
"""

from typing import Optional

from core.record_store import CAPTURE_TABLE

from .base import BaseProtocol, RunResult, ControllerState
from .grid import GridGenerator


class ContinuousCaptureProtocol(BaseProtocol):
    """
    Continuous Capture Protocol.

    No tag filtering or deduplication: each read becomes one row.
    """

    table = CAPTURE_TABLE
    mode = "capture"

    def _initial_power(self) -> Optional[int]:
        return self.config.read_power

    def _run_loop(self, result: RunResult):
        session = GridGenerator(self.config).continuous_cell()
        self.logger.info(
            f"Capturing for {session.duration_s:.1f} s at {session.power} cdBm"
        )

        start = self._clock()
        while True:
            self._transition(ControllerState.IDLE)
            elapsed = self._clock() - start
            if elapsed >= session.duration_s:
                self._transition(ControllerState.SESSION_COMPLETE)
                break
            if self._cancel_requested(result):
                break

            self._update_progress(
                f"Capture {elapsed:.1f}/{session.duration_s:.1f} s",
                min(1.0, elapsed / session.duration_s) if session.duration_s else 1.0
            )

            for observation in self._timed_read(result):
                record = self.classifier.to_capture_record(observation, session.power)
                self._insert(record)
                self.logger.info(
                    f"{record.epc} | {record.power} | {record.rssi} | {record.phase} | "
                    f"{record.frequency} | {record.antenna} | {record.timestamp_s}"
                )
            result.cells_visited += 1
