"""
Partition log storage.

This package provides an append-only, file-backed log per partition with:
- Binary record format with CRC validation and tombstone support
- Crash recovery by truncating a torn tail
- Blocking reads for tailing consumers
"""

from commandlog.core.log.format import MagicByte, Record, RecordFrame
from commandlog.core.log.log import PartitionLog

__all__ = [
    "MagicByte",
    "Record",
    "RecordFrame",
    "PartitionLog",
]
