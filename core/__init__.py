"""
Core module for the RF Sweep Measurement System.

This module contains the hardware abstraction layer:
- Reader device interface and backends
- Measurement record store
- Tags of interest management
"""

from .reader_device import (
    ReaderDevice,
    TagRead,
    MetadataFlag,
    RFIDReaderError,
    DeviceConfigError,
    DeviceBufferFull,
    MalformedObservation,
    get_reader_device,
)
from .record_store import RecordStore, MeasurementRecord, StoreError
from .tag_manager import TagManager

__all__ = [
    'ReaderDevice',
    'TagRead',
    'MetadataFlag',
    'RFIDReaderError',
    'DeviceConfigError',
    'DeviceBufferFull',
    'MalformedObservation',
    'get_reader_device',
    'RecordStore',
    'MeasurementRecord',
    'StoreError',
    'TagManager'
]
