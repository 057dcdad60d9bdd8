"""
Protocol module for the RF Sweep Measurement System.

This module contains measurement protocol implementations:
- Frequency/Power Sweep Protocol
- Continuous Capture Protocol
"""

from .models import SweepConfig, CellResult
from .base import BaseProtocol, RunResult, ControllerState
from .grid import GridGenerator
from .classifier import TagObservationClassifier
from .sweep import FrequencySweepProtocol
from .capture import ContinuousCaptureProtocol

__all__ = [
    'BaseProtocol',
    'RunResult',
    'SweepConfig',
    'CellResult',
    'ControllerState',
    'GridGenerator',
    'TagObservationClassifier',
    'FrequencySweepProtocol',
    'ContinuousCaptureProtocol'
]
