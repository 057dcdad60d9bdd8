#!/usr/bin/env python3
"""Tests for the SQLite measurement record store"""

import pytest

from core.record_store import (
    RecordStore,
    MeasurementRecord,
    StoreError,
    SWEEP_TABLE,
    CAPTURE_TABLE,
)
from tests.fakes import EPC_A, EPC_B, fetch_rows


class TestTableDefinition:

    def test_sweep_columns(self):
        assert SWEEP_TABLE.column_names == ("epc", "rssi", "phase", "freq", "pow")
        assert SWEEP_TABLE.create_sql() == (
            "CREATE TABLE ToP(epc TEXT, rssi INT, phase INT, freq INT, pow INT);"
        )

    def test_capture_extends_sweep(self):
        assert CAPTURE_TABLE.column_names[:5] == SWEEP_TABLE.column_names
        assert CAPTURE_TABLE.column_names[5:] == ("ant", "ts", "read_count", "protocol")

    def test_insert_sql(self):
        assert SWEEP_TABLE.insert_sql() == (
            "INSERT INTO ToP(epc, rssi, phase, freq, pow) VALUES(?, ?, ?, ?, ?);"
        )


class TestRecordStore:

    def test_insert_in_order(self, db_path):
        with RecordStore(str(db_path)) as store:
            store.init_schema(SWEEP_TABLE)
            store.insert_record(MeasurementRecord(EPC_A, -40, 12, 840000, 3150))
            store.insert_record(MeasurementRecord(EPC_B, -99, 0, 840000, 3200))
            assert store.rows_written == 2
            assert store.fetch_all() == [
                (EPC_A, -40, 12, 840000, 3150),
                (EPC_B, -99, 0, 840000, 3200),
            ]

    def test_rows_committed_immediately(self, db_path):
        store = RecordStore(str(db_path))
        store.init_schema(SWEEP_TABLE)
        store.insert_record(MeasurementRecord(EPC_A, -40, 12, 840000, 3150))
        assert len(fetch_rows(db_path)) == 1
        store.close()

    def test_init_schema_drops_previous_rows(self, db_path):
        store = RecordStore(str(db_path))
        store.init_schema(SWEEP_TABLE)
        store.insert_record(MeasurementRecord(EPC_A, -40, 12, 840000, 3150))
        store.init_schema(CAPTURE_TABLE)
        assert store.rows_written == 0
        assert store.fetch_all() == []
        store.close()

    def test_capture_row(self, db_path):
        store = RecordStore(str(db_path))
        store.init_schema(CAPTURE_TABLE)
        store.insert_record(MeasurementRecord(
            EPC_A, -48, 100, 866300, 3000,
            antenna=1, timestamp_s=1_700_000_000, read_count=4, protocol=5,
        ))
        assert store.fetch_all() == [(EPC_A, -48, 100, 866300, 3000, 1, 1_700_000_000, 4, 5)]
        store.close()

    def test_epc_stored_as_text(self, db_path):
        store = RecordStore(str(db_path))
        store.init_schema(SWEEP_TABLE)
        store.insert_record(MeasurementRecord("000000000000000000001234", -40, 0, 840000, 3150))
        assert store.fetch_all()[0][0] == "000000000000000000001234"
        store.close()

    def test_insert_without_schema(self):
        store = RecordStore(":memory:")
        with pytest.raises(StoreError):
            store.insert_record(MeasurementRecord(EPC_A, -40, 12, 840000, 3150))

    def test_open_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = RecordStore(str(blocker / "sub" / "db.sqlite"))
        with pytest.raises(StoreError):
            store.init_schema(SWEEP_TABLE)

    def test_close_is_idempotent(self):
        store = RecordStore(":memory:")
        store.open()
        store.close()
        store.close()
        assert not store.is_open
