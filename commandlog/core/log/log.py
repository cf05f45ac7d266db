"""
Append-only log for a single partition.

Records are stored in one file per partition and mirrored in memory for
reads. The file is the source of truth: several PartitionLog instances, in
this process or in others, may share it. Appends hold an exclusive file lock
and first load frames written by other instances, so offsets stay gapless
across writers. Reads pick up foreign frames under a shared lock.
"""

import fcntl
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from commandlog.core.log.format import Record, RecordFrame
from commandlog.errors import ClientClosedError, LogCorruptionError
from commandlog.utils.logging import get_logger

logger = get_logger(__name__)


class PartitionLog:
    """
    Durable, ordered record storage for one topic-partition.

    Properties:
    - Append-only writes under an exclusive file lock, so offsets form a
      gapless sequence even with writers in other processes
    - CRC-checked frames; a torn tail left by a crash is truncated by the
      next writer
    - Blocking reads through wait_for_records(), woken by local appends and
      by polling the file for foreign ones

    Attributes:
        directory: Directory holding the log file
        path: Path to the log file
    """

    LOG_FILE_SUFFIX = ".log"
    OFFSET_PADDING = 20
    FILE_POLL_INTERVAL_SEC = 0.05

    def __init__(self, directory: Path):
        """
        Open or create a partition log.

        Args:
            directory: Directory to store the log file
        """
        self.directory = Path(directory)

        self.directory.mkdir(parents=True, exist_ok=True)

        self.path = self.directory / f"{'0' * self.OFFSET_PADDING}{self.LOG_FILE_SUFFIX}"

        self._records: List[Record] = []
        self._start_offset = 0
        # Bytes of the file covered by self._records
        self._file_size = 0

        self._lock = threading.RLock()
        self._appended = threading.Condition(self._lock)

        self._fd: Optional[int] = os.open(
            self.path, os.O_RDWR | os.O_CREAT | os.O_APPEND, 0o644
        )

        with self._lock, self._file_lock(fcntl.LOCK_EX):
            self._sync(truncate_torn_tail=True)

        logger.info(
            "Initialized partition log",
            path=str(self.path),
            records=len(self._records),
        )

    @contextmanager
    def _file_lock(self, operation: int) -> Iterator[None]:
        """Hold a flock on the log file. Callers hold self._lock."""
        fcntl.flock(self._fd, operation)
        try:
            yield
        finally:
            fcntl.flock(self._fd, fcntl.LOCK_UN)

    def _sync(self, truncate_torn_tail: bool = False) -> None:
        """
        Load frames appended to the file since the last sync.

        Must be called with self._lock and a file lock held. Only a holder of
        the exclusive lock may pass truncate_torn_tail, since a torn tail is
        then known to be left over from a crashed writer.

        Raises:
            LogCorruptionError: If the file shrank below already loaded data
        """
        size = os.fstat(self._fd).st_size
        if size == self._file_size:
            return
        if size < self._file_size:
            raise LogCorruptionError(
                f"Log file shrank from {self._file_size} to {size} bytes: {self.path}"
            )

        data = os.pread(self._fd, size - self._file_size, self._file_size)
        position = 0
        loaded = 0

        while position < len(data):
            header_end = position + RecordFrame.LENGTH_FIELD_SIZE
            if header_end > len(data):
                break

            length = int.from_bytes(data[position:header_end], byteorder="big")
            if length <= 0 or length > RecordFrame.MAX_FRAME_SIZE:
                logger.error("Invalid frame length", position=self._file_size + position, length=length)
                break

            frame_end = header_end + length
            if frame_end > len(data):
                break

            try:
                record = RecordFrame.decode(data[position:frame_end], self._next_offset())
            except LogCorruptionError as e:
                logger.error("Corrupt frame in log", position=self._file_size + position, error=str(e))
                break

            self._records.append(record)
            position = frame_end
            loaded += 1

        self._file_size += position

        if position < len(data) and truncate_torn_tail:
            os.ftruncate(self._fd, self._file_size)
            logger.warning(
                "Truncated log to last valid record",
                path=str(self.path),
                valid_bytes=self._file_size,
                discarded_bytes=len(data) - position,
            )

        if loaded:
            logger.debug("Loaded records from log file", path=str(self.path), records=loaded)
            self._appended.notify_all()

    def _refresh(self) -> None:
        """Pick up frames written by other instances. Caller holds self._lock."""
        if self._fd is None:
            return
        if os.fstat(self._fd).st_size == self._file_size:
            return
        with self._file_lock(fcntl.LOCK_SH):
            self._sync()

    def _next_offset(self) -> int:
        return self._start_offset + len(self._records)

    def append(
        self,
        key: Optional[bytes],
        value: Optional[bytes],
        timestamp: Optional[int] = None,
        sync: bool = False,
    ) -> Record:
        """
        Append a record to the log.

        The record becomes visible to readers only after it is written and,
        if requested, fsynced.

        Args:
            key: Optional record key
            value: Record payload, None for a tombstone
            timestamp: Record timestamp in milliseconds (None for current time)
            sync: Fsync before the record becomes visible

        Returns:
            The stored record with its assigned offset

        Raises:
            ClientClosedError: If the log is closed
            IOError: If the write fails or is partial; the file is cut back
                to its size before the write
        """
        with self._lock:
            if self._fd is None:
                raise ClientClosedError(f"Cannot append to closed log: {self.path}")

            with self._file_lock(fcntl.LOCK_EX):
                self._sync(truncate_torn_tail=True)

                record = Record(
                    offset=self._next_offset(),
                    timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
                    key=key,
                    value=value,
                )
                data = RecordFrame.encode(record)

                try:
                    bytes_written = os.write(self._fd, data)
                    if bytes_written != len(data):
                        raise IOError(
                            f"Partial write: expected {len(data)} bytes, wrote {bytes_written} bytes"
                        )

                    if sync:
                        os.fsync(self._fd)
                except OSError:
                    os.ftruncate(self._fd, self._file_size)
                    raise

                self._file_size += len(data)
                self._records.append(record)

            self._appended.notify_all()

        logger.debug(
            "Appended to log",
            offset=record.offset,
            key_size=len(key) if key else 0,
            tombstone=value is None,
        )

        return record

    def read(self, start_offset: int, max_records: int = 500) -> List[Record]:
        """
        Read records starting from an offset.

        Args:
            start_offset: First offset to return
            max_records: Maximum number of records to return

        Returns:
            Records in offset order, empty if start_offset is at the end
        """
        with self._lock:
            self._refresh()
            start = max(start_offset, self._start_offset) - self._start_offset
            return self._records[start : start + max_records]

    def wait_for_records(
        self,
        offset: int,
        timeout_sec: float,
        interrupted: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Block until a record at or after offset exists.

        Local appends wake the waiter at once; appends by other instances are
        noticed within FILE_POLL_INTERVAL_SEC.

        Args:
            offset: Offset the caller wants to read next
            timeout_sec: Maximum time to wait in seconds
            interrupted: Predicate that ends the wait early when it returns True

        Returns:
            True if records are available, False on timeout or interruption
        """
        deadline = time.monotonic() + max(timeout_sec, 0.0)

        with self._appended:
            while True:
                self._refresh()
                if self._next_offset() > offset:
                    return True
                if interrupted is not None and interrupted():
                    return False

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False

                self._appended.wait(min(remaining, self.FILE_POLL_INTERVAL_SEC))

    def notify_waiters(self) -> None:
        """Wake every thread blocked in wait_for_records() so it re-checks its predicate."""
        with self._appended:
            self._appended.notify_all()

    @property
    def start_offset(self) -> int:
        """Offset of the earliest retained record."""
        return self._start_offset

    @property
    def end_offset(self) -> int:
        """Offset one past the last record in the log file."""
        with self._lock:
            self._refresh()
            return self._next_offset()

    def close(self) -> None:
        """Close the log file. Idempotent."""
        with self._lock:
            if self._fd is None:
                return
            os.close(self._fd)
            self._fd = None
            self._appended.notify_all()

        logger.info("Closed partition log", path=str(self.path))

    @property
    def closed(self) -> bool:
        return self._fd is None

    def __enter__(self) -> "PartitionLog":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
