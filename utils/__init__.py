"""
Utility functions for the RF Sweep Measurement System.
"""

from .logging import Logger, get_logger
from .keyboard import CancelSignal, KeyboardCancelSignal

__all__ = ['Logger', 'get_logger', 'CancelSignal', 'KeyboardCancelSignal']
