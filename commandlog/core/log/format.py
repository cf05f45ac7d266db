"""
Record format for partition log files.

Defines the binary layout of a single stored record, including support for
records without a value (tombstones).
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import crc32c

from commandlog.errors import LogCorruptionError


class MagicByte(IntEnum):
    """Record format version."""

    V1 = 1
    CURRENT = V1


NULL_LENGTH = -1


@dataclass
class Record:
    """
    A single record in a partition log.

    Attributes:
        offset: Logical offset in the partition
        timestamp: Unix timestamp in milliseconds
        key: Optional record key
        value: Record payload, None for a tombstone
    """

    offset: int
    timestamp: int
    key: Optional[bytes]
    value: Optional[bytes]

    def __post_init__(self) -> None:
        """Validate record fields."""
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")
        if self.timestamp < 0:
            raise ValueError(f"Timestamp must be non-negative, got {self.timestamp}")
        if self.key is not None and not isinstance(self.key, bytes):
            raise TypeError(f"Key must be bytes or None, got {type(self.key)}")
        if self.value is not None and not isinstance(self.value, bytes):
            raise TypeError(f"Value must be bytes or None, got {type(self.value)}")

    @property
    def is_tombstone(self) -> bool:
        return self.value is None


class RecordFrame:
    """
    Encodes and decodes records on disk.

    Wire format:
        Length (4 bytes) - Total length excluding this field
        CRC32C (4 bytes) - Checksum of remaining data
        Magic byte (1 byte) - Format version
        Timestamp (8 bytes) - Record timestamp
        Key length (4 bytes) - Length of key (-1 if null)
        Key (variable)
        Value length (4 bytes) - Length of value (-1 if tombstone)
        Value (variable)

    The offset is not stored; it is implied by the record's position in the file.
    """

    LENGTH_FIELD_SIZE = 4
    CRC_FIELD_SIZE = 4
    MAX_FRAME_SIZE = 100 * 1024 * 1024

    @staticmethod
    def _pack_bytes(data: Optional[bytes]) -> bytes:
        if data is None:
            return struct.pack(">i", NULL_LENGTH)
        return struct.pack(">i", len(data)) + data

    @classmethod
    def encode(cls, record: Record) -> bytes:
        """
        Serialize a record to bytes.

        Args:
            record: Record to encode

        Returns:
            Framed record bytes
        """
        payload = (
            struct.pack(">BQ", MagicByte.CURRENT, record.timestamp)
            + cls._pack_bytes(record.key)
            + cls._pack_bytes(record.value)
        )

        crc = crc32c.crc32c(payload)
        total_length = cls.CRC_FIELD_SIZE + len(payload)

        return struct.pack(">II", total_length, crc) + payload

    @staticmethod
    def _unpack_bytes(payload: bytes, position: int) -> tuple[Optional[bytes], int]:
        if position + 4 > len(payload):
            raise LogCorruptionError(f"Truncated length field at {position}")

        length = struct.unpack(">i", payload[position : position + 4])[0]
        position += 4

        if length == NULL_LENGTH:
            return None, position

        if length < 0 or position + length > len(payload):
            raise LogCorruptionError(f"Invalid field length {length} at {position}")

        return payload[position : position + length], position + length

    @classmethod
    def decode(cls, frame: bytes, offset: int) -> Record:
        """
        Deserialize a framed record.

        Args:
            frame: Bytes of one frame, including the length prefix
            offset: Logical offset for the record

        Returns:
            Decoded record

        Raises:
            LogCorruptionError: If the frame is truncated or fails its checksum
        """
        if len(frame) < cls.LENGTH_FIELD_SIZE + cls.CRC_FIELD_SIZE:
            raise LogCorruptionError(f"Frame too short: {len(frame)} bytes")

        length, crc = struct.unpack(">II", frame[:8])

        if len(frame) != cls.LENGTH_FIELD_SIZE + length:
            raise LogCorruptionError(
                f"Frame length mismatch: expected {cls.LENGTH_FIELD_SIZE + length} bytes, "
                f"got {len(frame)} bytes"
            )

        payload = frame[8:]

        computed_crc = crc32c.crc32c(payload)
        if computed_crc != crc:
            raise LogCorruptionError(f"CRC mismatch: expected {crc}, computed {computed_crc}")

        if len(payload) < 9:
            raise LogCorruptionError(f"Payload too short: {len(payload)} bytes")

        magic_byte, timestamp = struct.unpack(">BQ", payload[:9])

        if magic_byte != MagicByte.V1:
            raise LogCorruptionError(f"Unsupported magic byte: {magic_byte}")

        key, position = cls._unpack_bytes(payload, 9)
        value, position = cls._unpack_bytes(payload, position)

        if position != len(payload):
            raise LogCorruptionError(
                f"Trailing bytes in frame: {len(payload) - position}"
            )

        return Record(offset=offset, timestamp=timestamp, key=key, value=value)
