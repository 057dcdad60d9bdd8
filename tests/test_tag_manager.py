#!/usr/bin/env python3
"""Tests for the tags of interest manager"""

import json

import pytest

from core.tag_manager import TagManager, Tag, DEFAULT_TARGET_EPCS, normalize_epc
from tests.fakes import EPC_A, EPC_B, EPC_OTHER


class TestTag:

    def test_normalize_epc(self):
        assert normalize_epc("e2:00 49-3f") == "E200493F"

    def test_match_is_exact(self):
        tag = Tag(EPC_A.lower())
        assert tag.matches_epc(EPC_A)
        assert not tag.matches_epc(EPC_A[:-2])


class TestTagManager:

    def test_from_epcs_keeps_order_and_drops_duplicates(self):
        manager = TagManager.from_epcs([EPC_B, EPC_A, EPC_B.lower()])
        assert manager.epcs == [EPC_B, EPC_A]
        assert manager.count == 2

    def test_default_targets(self):
        assert TagManager.from_epcs(DEFAULT_TARGET_EPCS).epcs == [EPC_A, EPC_B]

    def test_find_tag_by_epc(self):
        manager = TagManager.from_epcs([EPC_A])
        assert manager.find_tag_by_epc(EPC_A.lower()).epc == EPC_A
        assert manager.find_tag_by_epc(EPC_OTHER) is None


class TestTagFile:

    def write(self, tmp_path, data):
        path = tmp_path / "tags.json"
        path.write_text(json.dumps(data))
        return str(path)

    def test_load_with_labels(self, tmp_path):
        path = self.write(tmp_path, {"tags": [
            {"epc": EPC_A, "label": "left"},
            {"epc": EPC_B.lower(), "label": " right "},
        ]})
        loaded = TagManager(config_file=path)
        assert loaded.epcs == [EPC_A, EPC_B]
        assert loaded.labels == ["left", "right"]

    def test_load_bare_epc_strings(self, tmp_path):
        path = self.write(tmp_path, {"tags": [EPC_B, EPC_A]})
        assert TagManager(config_file=path).epcs == [EPC_B, EPC_A]

    def test_load_skips_blank_epcs(self, tmp_path):
        path = self.write(tmp_path, {"tags": [{"epc": ""}, {"epc": EPC_OTHER}]})
        assert TagManager(config_file=path).epcs == [EPC_OTHER]

    def test_missing_file(self, tmp_path):
        manager = TagManager(config_file=str(tmp_path / "nope.json"))
        assert manager.count == 0

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "tags.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            TagManager(config_file=str(path))

    @pytest.mark.parametrize("data", [
        [EPC_A],
        {"tags": EPC_A},
        {"tags": [42]},
        {"tags": [{"epc": 42}]},
        {"tags": ["not-an-epc"]},
    ])
    def test_malformed_file(self, tmp_path, data):
        with pytest.raises(ValueError):
            TagManager(config_file=self.write(tmp_path, data))
