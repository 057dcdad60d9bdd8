#!/usr/bin/env python3
"""Tests for sweep grid generation"""

import pytest

from protocols.models import SweepConfig, Cell
from protocols.grid import GridGenerator


class TestFrequencyAxis:

    def test_boundary_inclusive(self):
        grid = GridGenerator(SweepConfig(min_freq=840000, max_freq=845000, freq_step=5))
        assert list(grid.frequencies()) == [840000, 845000]

    def test_count_for_exact_multiple(self):
        grid = GridGenerator(SweepConfig(min_freq=860000, max_freq=930000, freq_step=5))
        assert grid.frequency_count() == (930000 - 860000) // 5000 + 1

    def test_last_frequency_never_exceeds_max(self):
        grid = GridGenerator(SweepConfig(min_freq=840000, max_freq=928000, freq_step=5))
        freqs = list(grid.frequencies())
        assert freqs[0] == 840000
        assert freqs[-1] == 925000
        assert len(freqs) == 18

    def test_fractional_step(self):
        grid = GridGenerator(SweepConfig(min_freq=900000, max_freq=902000, freq_step=0.5))
        assert list(grid.frequencies()) == [900000, 900500, 901000, 901500, 902000]

    def test_single_frequency(self):
        grid = GridGenerator(SweepConfig(min_freq=915000, max_freq=915000))
        assert list(grid.frequencies()) == [915000]

    def test_min_above_max_is_empty(self):
        grid = GridGenerator(SweepConfig(min_freq=928000, max_freq=840000))
        assert list(grid.frequencies()) == []
        assert list(grid) == []


class TestPowerAxis:

    def test_boundary_inclusive(self):
        grid = GridGenerator(SweepConfig(min_pow=2000, max_pow=3000, pow_step=100))
        powers = list(grid.powers())
        assert len(powers) == 11
        assert powers[0] == 2000 and powers[-1] == 3000

    def test_step_not_dividing_range(self):
        grid = GridGenerator(SweepConfig(min_pow=2000, max_pow=2250, pow_step=100))
        assert list(grid.powers()) == [2000, 2100, 2200]

    def test_empty_power_range_gives_no_cells(self):
        grid = GridGenerator(SweepConfig(min_pow=3200, max_pow=3100))
        assert grid.power_count() == 0
        assert list(grid.columns()) == []
        assert len(grid) == 0


class TestGridIteration:

    def test_frequency_major_order(self):
        grid = GridGenerator(SweepConfig(
            min_freq=840000, max_freq=845000, freq_step=5,
            min_pow=3000, max_pow=3100, pow_step=100,
        ))
        assert list(grid) == [
            Cell(840000, 3000), Cell(840000, 3100),
            Cell(845000, 3000), Cell(845000, 3100),
        ]
        assert len(grid) == 4

    def test_restartable(self):
        grid = GridGenerator(SweepConfig(min_freq=840000, max_freq=850000))
        assert list(grid) == list(grid)

    def test_columns_group_cells_by_frequency(self):
        grid = GridGenerator(SweepConfig(
            min_freq=840000, max_freq=845000, min_pow=3000, max_pow=3200, pow_step=100,
        ))
        columns = [(freq, list(cells)) for freq, cells in grid.columns()]
        assert [freq for freq, _ in columns] == [840000, 845000]
        assert all(len(cells) == 3 for _, cells in columns)
        assert all(c.frequency == freq for freq, cells in columns for c in cells)

    def test_continuous_cell(self):
        grid = GridGenerator(SweepConfig(read_power=3150, duration_s=2.5))
        session = grid.continuous_cell()
        assert session.power == 3150
        assert session.duration_s == 2.5


class TestConfigValidation:

    @pytest.mark.parametrize("kwargs", [
        {"freq_step": 0},
        {"freq_step": -5},
        {"freq_step": 0.0004},
        {"pow_step": 0},
        {"dwell_ms": 0},
        {"settle_ms": -1},
        {"duration_s": -1},
        {"repeats": -1},
        {"antennas": ()},
        {"region_index": -1},
    ])
    def test_invalid_config_rejected(self, kwargs):
        with pytest.raises(ValueError):
            GridGenerator(SweepConfig(**kwargs))
