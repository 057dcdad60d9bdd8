"""
Command-line interface for the RF Sweep Measurement System.
"""

from .app import main

__all__ = ['main']
