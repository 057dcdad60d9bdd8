#!/usr/bin/env python3
"""
RF Sweep Measurement System - Entry Point

Run this script to start a sweep, a continuous capture or an export.
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cli.app import main

if __name__ == "__main__":
    sys.exit(main())
