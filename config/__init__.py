"""
Configuration module for the RF Sweep Measurement System.
"""

from .settings import Settings, ReaderSettings, SweepSettings, CaptureSettings, StoreSettings

__all__ = ['Settings', 'ReaderSettings', 'SweepSettings', 'CaptureSettings', 'StoreSettings']
