"""Shared fixtures."""

import io
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from tests.fakes import FakeClock
from utils.logging import Logger


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def quiet_logger():
    return Logger(stream=io.StringIO())


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "measurements.db"
