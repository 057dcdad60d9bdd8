#!/usr/bin/env python3
"""Tests for the continuous capture protocol"""

import pytest

from core.reader_device import PARAM_READ_POWER, PARAM_REGION_ID, PARAM_HOP_TABLE
from core.record_store import RecordStore
from protocols.base import ControllerState
from protocols.models import SweepConfig
from protocols.capture import ContinuousCaptureProtocol
from tests.fakes import EPC_A, EPC_OTHER, FakeReaderDevice, make_read, fetch_rows
from utils.keyboard import CancelSignal


def make_config(**overrides):
    values = dict(tags=(), read_power=3000, duration_s=2.0, dwell_ms=500, region_index=1)
    values.update(overrides)
    return SweepConfig(**values)


@pytest.fixture
def run_capture(db_path, fake_clock, quiet_logger):
    def _run(reader, config=None, cancel_signal=None, state_log=None):
        protocol = ContinuousCaptureProtocol(
            reader,
            RecordStore(str(db_path)),
            config or make_config(),
            cancel_signal=cancel_signal,
            logger=quiet_logger,
            sleep=fake_clock.sleep,
            clock=fake_clock,
        )
        if state_log is not None:
            protocol.set_state_callback(state_log.append)
        return protocol.run()
    return _run


class TestCaptureSession:

    def test_duration_bound(self, run_capture, fake_clock):
        reader = FakeReaderDevice(clock=fake_clock)
        result = run_capture(reader, make_config(duration_s=2.0, dwell_ms=500))

        assert result.cells_visited == 4
        assert 2.0 <= fake_clock.now < 2.0 + 0.5
        assert result.final_state is ControllerState.STOPPED

    def test_every_read_is_a_row(self, run_capture, fake_clock, db_path):
        reader = FakeReaderDevice(clock=fake_clock, default_reads=[
            make_read(EPC_A, rssi=-51, frequency=915750, antenna=2, timestamp_ms=1_700_000_000_500),
            make_read(EPC_A, rssi=-52),
            make_read(EPC_OTHER, rssi=-60),
        ])
        result = run_capture(reader, make_config(duration_s=1.0))

        rows = fetch_rows(db_path)
        assert len(rows) == 2 * 3
        assert rows[0] == (EPC_A, -51, 90, 915750, 3000, 2, 1_700_000_000, 1, 5)
        assert rows[1][0] == EPC_A
        assert rows[2][0] == EPC_OTHER
        assert result.rows_written == 6

    def test_power_set_once_at_startup(self, run_capture, fake_clock):
        reader = FakeReaderDevice(clock=fake_clock)
        run_capture(reader, make_config(read_power=3150))

        powers = [c[2] for c in reader.set_params() if c[1] == PARAM_READ_POWER]
        assert powers == [3150]
        assert not any(c[1] == PARAM_HOP_TABLE for c in reader.set_params())

    def test_region_selected(self, run_capture, fake_clock):
        reader = FakeReaderDevice(clock=fake_clock)
        run_capture(reader, make_config(region_index=0))
        assert ("set_param", PARAM_REGION_ID, "NA") in reader.calls

    def test_no_settle_between_reads(self, run_capture, fake_clock):
        reader = FakeReaderDevice(clock=fake_clock)
        run_capture(reader)
        assert fake_clock.sleeps == []

    def test_zero_duration(self, run_capture, fake_clock, db_path):
        states = []
        reader = FakeReaderDevice(clock=fake_clock)
        result = run_capture(reader, make_config(duration_s=0), state_log=states)

        assert result.cells_visited == 0
        assert fetch_rows(db_path) == []
        assert states[-2:] == [ControllerState.SESSION_COMPLETE, ControllerState.STOPPED]


class TestCaptureCancellation:

    def test_cancel_stops_at_next_read(self, run_capture, fake_clock, db_path):
        cancel = CancelSignal()
        reader = FakeReaderDevice(
            clock=fake_clock,
            default_reads=[make_read(EPC_A)],
            on_read=lambda dev: cancel.request(),
        )
        result = run_capture(reader, make_config(duration_s=60), cancel_signal=cancel)

        assert result.cancelled
        assert result.cells_visited == 1
        assert len(fetch_rows(db_path)) == 1
        assert not reader.connected
