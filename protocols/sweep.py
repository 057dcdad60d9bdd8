"""
Frequency/Power Sweep Protocol.

This protocol walks a frequency x power grid, recording at each
frequency the first observation of every tag of interest and the
lowest power step at which it was seen.
"""

from typing import Iterator, Optional

from core.reader_device import (
    DeviceConfigError,
    PARAM_HOP_TABLE,
    PARAM_READ_POWER,
    PARAM_ANTENNA_RETURN_LOSS,
)
from core.record_store import SWEEP_TABLE

from .base import BaseProtocol, RunResult, ControllerState
from .models import Cell, CellResult
from .grid import GridGenerator


class FrequencySweepProtocol(BaseProtocol):
    """
    Frequency/Power Sweep Protocol.

    For each frequency the read power climbs from min_pow in pow_step
    increments. Once every tag of interest has been seen at a frequency
    the remaining power steps are skipped. Tags never seen at a
    frequency get a not-seen row (rssi -99, phase 0, sentinel power).
    """

    table = SWEEP_TABLE
    mode = "sweep"

    def _run_loop(self, result: RunResult):
        grid = GridGenerator(self.config)
        total = grid.frequency_count()

        if total == 0 or grid.power_count() == 0:
            self.logger.info("Sweep grid is empty, nothing to measure")
            return

        self.logger.info(
            f"Sweeping {total} frequencies x {grid.power_count()} powers "
            f"for {self.tag_manager.count} tags of interest"
        )

        repeat = 0
        while self.config.repeats == 0 or repeat < self.config.repeats:
            repeat += 1
            for idx, (frequency, cells) in enumerate(grid.columns()):
                self._update_progress(
                    f"Sweep {repeat}: {frequency} kHz ({idx + 1}/{total})",
                    (idx + 1) / total
                )
                cell_result = self._sweep_frequency(frequency, cells, result)
                if cell_result is None:
                    return
                result.cell_results.append(cell_result)
                result.columns_completed += 1
            result.sweeps_completed += 1

    def _sweep_frequency(
        self,
        frequency: int,
        cells: Iterator[Cell],
        result: RunResult
    ) -> Optional[CellResult]:
        """
        Measure one frequency.

        Returns:
            The completed CellResult, or None if cancelled
        """
        cell_result = self.classifier.begin_cell(frequency)
        hop_table_set = False

        for cell in cells:
            self._transition(ControllerState.IDLE)
            if self._cancel_requested(result):
                return None

            self._transition(ControllerState.CONFIGURING)
            if not hop_table_set:
                self.reader.set_param(PARAM_HOP_TABLE, [frequency])
                hop_table_set = True
                if self.config.log_return_loss:
                    self._log_return_loss()
            self.reader.set_param(PARAM_READ_POWER, cell.power)
            self.logger.info(f"{cell.frequency} : {cell.power}")

            for observation in self._timed_read(result):
                if self.classifier.accept(cell_result, observation, cell.power):
                    record = cell_result.record_for(observation.epc, self.config.sentinel_power)
                    self._insert(record)
                    self.logger.info(
                        f"{record.epc} : {record.rssi} - {record.phase} - "
                        f"{record.frequency} - {record.power}"
                    )

            cell_result.powers_visited.append(cell.power)
            result.cells_visited += 1
            self._sleep(self.config.settle_ms / 1000.0)

            if cell_result.complete:
                break

        self._transition(ControllerState.CELL_COMPLETE)
        for epc in cell_result.missing:
            self._insert(cell_result.record_for(epc, self.config.sentinel_power))
        if cell_result.missing:
            self.logger.info(f"{frequency} kHz: not seen {', '.join(cell_result.missing)}")

        return cell_result

    def _log_return_loss(self):
        """Log the antenna return loss at the current hop table frequency."""
        try:
            ports = self.reader.get_param(PARAM_ANTENNA_RETURN_LOSS)
        except DeviceConfigError as e:
            self.logger.warning(f"getting the antenna return loss: {e}")
            return
        for port, value in ports:
            self.logger.info(f"Antenna {port} | return loss {value}")
