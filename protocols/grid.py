"""
Sweep grid generation.

Frequencies and powers are closed ranges: stepping starts at the minimum
and continues while the value does not exceed the maximum.
"""

from typing import Iterator, Tuple

from .models import SweepConfig, Cell, ContinuousCell


class GridGenerator:
    """Restartable, lazy sequence of sweep cells, frequency-major."""

    def __init__(self, config: SweepConfig):
        config.validate()
        self.config = config

    def frequencies(self) -> Iterator[int]:
        """Frequencies in kHz; the step is freq_step * 1000 kHz."""
        step = self.config.freq_step_khz
        i = 0
        while True:
            freq = self.config.min_freq + int(round(i * step))
            if freq > self.config.max_freq:
                return
            yield freq
            i += 1

    def powers(self) -> Iterator[int]:
        """Read powers in cdBm."""
        pow_ = self.config.min_pow
        while pow_ <= self.config.max_pow:
            yield pow_
            pow_ += self.config.pow_step

    def frequency_count(self) -> int:
        return sum(1 for _ in self.frequencies())

    def power_count(self) -> int:
        return sum(1 for _ in self.powers())

    def columns(self) -> Iterator[Tuple[int, Iterator[Cell]]]:
        """Yield (frequency, lazy cells at that frequency)."""
        if self.power_count() == 0:
            return
        for freq in self.frequencies():
            yield freq, (Cell(freq, p) for p in self.powers())

    def __iter__(self) -> Iterator[Cell]:
        for _, cells in self.columns():
            yield from cells

    def __len__(self) -> int:
        return self.frequency_count() * self.power_count()

    def continuous_cell(self) -> ContinuousCell:
        """The single always-on session of a continuous capture."""
        return ContinuousCell(power=self.config.read_power, duration_s=self.config.duration_s)
