#!/usr/bin/env python3
"""Tests for the command-line application"""

import json

import pytest

from cli import app
from core.reader_device import PARAM_REGION_ID
from tests.fakes import EPC_A, EPC_B, EPC_OTHER, FakeReaderDevice, make_read, fetch_rows
from utils.logging import get_logger


@pytest.fixture(autouse=True)
def reset_log_level():
    yield
    get_logger().set_level("INFO")


@pytest.fixture
def reader(monkeypatch):
    device = FakeReaderDevice(reads={(840000, 3150): [make_read(EPC_A, rssi=-40)]})
    monkeypatch.setattr(app, "get_reader_device", lambda uri, settings=None: device)
    return device


@pytest.fixture
def base_args(tmp_path, db_path):
    return ["--settings", str(tmp_path / "settings.json"), "--file", str(db_path)]


class TestSweepCommand:

    def test_sweep(self, reader, base_args, db_path):
        code = app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args,
            "--minfreq", "840000", "--maxfreq", "845000", "--settle", "0", "--reg", "1",
        ])
        assert code == 0
        assert len(fetch_rows(db_path)) == 4
        assert ("set_param", PARAM_REGION_ID, "EU3") in reader.calls

    def test_epc_overrides(self, reader, base_args, db_path):
        code = app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args,
            "--minfreq", "840000", "--maxfreq", "840000", "--settle", "0", "--reg", "none",
            "--epc2", EPC_OTHER,
        ])
        assert code == 0
        assert [r[0] for r in fetch_rows(db_path)] == [EPC_A, EPC_OTHER]
        assert not any(c[1] == PARAM_REGION_ID for c in reader.set_params())

    def test_epc_list(self, reader, base_args, db_path):
        app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args, "--maxfreq", "840000", "--settle", "0",
            "--reg", "0", "--epc", EPC_B, "--epc", EPC_OTHER, "--epc", EPC_A,
        ])
        assert [r[0] for r in fetch_rows(db_path)] == [EPC_A, EPC_B, EPC_OTHER]

    def test_tags_file(self, reader, base_args, db_path, tmp_path):
        tags_file = tmp_path / "tags.json"
        tags_file.write_text(json.dumps({"tags": [{"epc": EPC_OTHER, "label": "ref"}]}))
        app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args, "--maxfreq", "840000", "--settle", "0",
            "--reg", "0", "--tags-file", str(tags_file),
        ])
        assert fetch_rows(db_path) == [(EPC_OTHER, -99, 0, 840000, 3200)]

    def test_sub_khz_frequency_step(self, reader, base_args):
        code = app.main(["sweep", "tmr:///dev/ttyUSB0", *base_args, "--freqstep", "0.0004"])
        assert code == 1
        assert not reader.calls

    @pytest.mark.parametrize("data", [[EPC_OTHER], {"tags": [42]}, {"tags": "x"}])
    def test_malformed_tags_file(self, reader, base_args, tmp_path, data):
        tags_file = tmp_path / "tags.json"
        tags_file.write_text(json.dumps(data))
        code = app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args, "--tags-file", str(tags_file),
        ])
        assert code == 1
        assert not reader.calls

    def test_tags_file_of_epc_strings(self, reader, base_args, db_path, tmp_path):
        tags_file = tmp_path / "tags.json"
        tags_file.write_text(json.dumps({"tags": [EPC_OTHER]}))
        code = app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args, "--maxfreq", "840000", "--settle", "0",
            "--reg", "0", "--tags-file", str(tags_file),
        ])
        assert code == 0
        assert [r[0] for r in fetch_rows(db_path)] == [EPC_OTHER]

    def test_settings_file(self, reader, tmp_path, db_path):
        settings_file = tmp_path / "bench.json"
        settings_file.write_text(json.dumps({
            "sweep": {"max_freq": 840000, "settle_ms": 0, "region_index": None},
            "store": {"database": str(db_path)},
        }))
        assert app.main(["sweep", "tmr:///dev/ttyUSB0", "--settings", str(settings_file)]) == 0
        assert len(fetch_rows(db_path)) == 2

    def test_region_out_of_range(self, reader, base_args):
        assert app.main(["sweep", "tmr:///dev/ttyUSB0", *base_args, "--reg", "40"]) == 1

    def test_invalid_step(self, reader, base_args):
        assert app.main(["sweep", "tmr:///dev/ttyUSB0", *base_args, "--freqstep", "0"]) == 1

    def test_unknown_reader_uri(self, base_args):
        assert app.main(["sweep", "eapi:///dev/ttyS0", *base_args]) == 1

    def test_bad_arguments(self, base_args):
        assert app.main(["sweep", "tmr:///dev/ttyUSB0", "--ant", "x"]) == 1
        assert app.main([]) == 1


class TestCaptureCommand:

    def test_capture_zero_time(self, reader, base_args, db_path):
        code = app.main(["capture", "tmr:///dev/ttyUSB0", *base_args, "--time", "0", "--pow", "3150"])
        assert code == 0
        assert fetch_rows(db_path) == []
        assert reader.params["/reader/radio/readPower"] == 3150


class TestExportCommand:

    def test_export(self, reader, base_args, db_path, tmp_path):
        app.main([
            "sweep", "tmr:///dev/ttyUSB0", *base_args,
            "--minfreq", "840000", "--maxfreq", "845000", "--settle", "0", "--reg", "1",
        ])
        out = tmp_path / "csv"
        code = app.main(["export", str(db_path), "--out", str(out), "--pivot", "--summary",
                         "--settings", str(tmp_path / "settings.json")])
        assert code == 0
        assert len(list(out.glob("*.csv"))) == 3

    def test_export_missing_database(self, tmp_path):
        assert app.main(["export", str(tmp_path / "none.db"), "--out", str(tmp_path)]) == 1


class TestApplyArguments:

    def test_verbose_sets_debug(self):
        parser = app.build_parser()
        args = parser.parse_args(["capture", "tmr:///dev/ttyUSB0", "-v", "--ant", "1,2"])
        settings = app.apply_arguments(app.Settings(), args)
        assert settings.log_level == "DEBUG"
        assert settings.reader.antennas == [1, 2]
        assert settings.capture.region_index == 1
