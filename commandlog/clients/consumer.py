"""
Consumer client for reading records from the log service.

Provides a manually-assigned consumer with:
- Explicit assignment of a single partition (no group membership)
- Polling with timeout
- Seek operations and position queries
- wakeup() to abort a blocking poll from another thread

A consumer is not thread-safe: apart from wakeup(), all calls must come
from one thread at a time.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from commandlog.broker.service import LogService, get_service
from commandlog.clients.records import ConsumerRecord, TopicPartition
from commandlog.core.log.log import PartitionLog
from commandlog.errors import (
    ClientClosedError,
    NotAssignedError,
    WakeupError,
)
from commandlog.utils.logging import get_logger

logger = get_logger(__name__)

Deserializer = Callable[[str, Optional[bytes]], Any]


def _identity(topic: str, data: Optional[bytes]) -> Optional[bytes]:
    return data


@dataclass
class ConsumerConfig:
    """
    Configuration for consumer.

    Attributes:
        data_dir: Data directory of the log service to read from
        client_id: Identifier used in log output
        max_poll_records: Max records returned per poll
    """
    data_dir: str = "/tmp/commandlog"
    client_id: str = "commandlog-consumer"
    max_poll_records: int = 500


class Consumer:
    """
    Manually-assigned consumer client.

    Example:
        consumer = Consumer(data_dir="/var/lib/commandlog")
        consumer.assign([TopicPartition("commands", 0)])

        while running:
            for record in consumer.poll(timeout_ms=1000):
                print(f"Offset: {record.offset}, Value: {record.value}")

        consumer.close()
    """

    def __init__(
        self,
        config: Optional[ConsumerConfig] = None,
        key_deserializer: Optional[Deserializer] = None,
        value_deserializer: Optional[Deserializer] = None,
        service: Optional[LogService] = None,
        **kwargs,
    ):
        """
        Initialize consumer.

        Args:
            config: Consumer configuration
            key_deserializer: Decodes record keys (default: raw bytes)
            value_deserializer: Decodes record values (default: raw bytes)
            service: Log service to read from (default: shared service for
                config.data_dir)
            **kwargs: Config overrides; unknown keys are ignored
        """
        self.config = config or ConsumerConfig()

        for key, value in kwargs.items():
            if hasattr(self.config, key):
                setattr(self.config, key, value)

        self._key_deserializer = key_deserializer or _identity
        self._value_deserializer = value_deserializer or _identity
        self._service = service or get_service(self.config.data_dir)

        self._assignment: Set[TopicPartition] = set()
        self._positions: Dict[TopicPartition, int] = {}
        self._closed = False
        self._wakeup = threading.Event()

        logger.info(
            "Consumer initialized",
            client_id=self.config.client_id,
            data_dir=str(self._service.data_dir),
        )

    def assign(self, partitions: Iterable[TopicPartition]) -> None:
        """
        Assign the partition to read, replacing any previous assignment.

        Args:
            partitions: At most one partition; empty clears the assignment

        Raises:
            ValueError: If more than one partition is given
        """
        self._ensure_open()

        new_assignment = set(partitions)
        if len(new_assignment) > 1:
            raise ValueError(
                f"A consumer reads a single partition, got {len(new_assignment)}"
            )

        for tp in new_assignment:
            self._log(tp)

        for tp in self._assignment - new_assignment:
            self._positions.pop(tp, None)

        self._assignment = new_assignment

        logger.info(
            "Assigned partitions",
            client_id=self.config.client_id,
            partitions=sorted(str(tp) for tp in new_assignment),
        )

    def assignment(self) -> Set[TopicPartition]:
        """
        Get current partition assignment.

        Returns:
            Set of assigned partitions
        """
        return self._assignment.copy()

    def poll(self, timeout_ms: int = 1000) -> List[ConsumerRecord]:
        """
        Poll for records.

        Blocks until at least one record is available on the assigned
        partition or the timeout elapses.

        Args:
            timeout_ms: Timeout in milliseconds

        Returns:
            Decoded records in offset order, possibly empty

        Raises:
            WakeupError: If wakeup() was called before or during the poll
            SerializationError: If a key or value cannot be decoded; the
                position is left at the first record of the batch
        """
        self._ensure_open()

        deadline = time.monotonic() + max(timeout_ms, 0) / 1000.0

        while True:
            self._check_wakeup()

            records = self._fetch()
            if records:
                logger.debug(
                    "Polled records",
                    client_id=self.config.client_id,
                    count=len(records),
                )
                return records

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return []

            self._wait_for_records(remaining)

    def _fetch(self) -> List[ConsumerRecord]:
        """Read and decode up to max_poll_records from the assigned partition."""
        if not self._assignment:
            return []

        tp = next(iter(self._assignment))
        fetched = [
            ConsumerRecord(
                topic=tp.topic,
                partition=tp.partition,
                offset=record.offset,
                timestamp=record.timestamp,
                key=self._key_deserializer(tp.topic, record.key),
                value=self._value_deserializer(tp.topic, record.value),
            )
            for record in self._log(tp).read(self.position(tp), self.config.max_poll_records)
        ]

        if fetched:
            self._positions[tp] = fetched[-1].offset + 1
        return fetched

    def _wait_for_records(self, remaining: float) -> None:
        """Block until data may be available, the timeout passes, or wakeup()."""
        if not self._assignment:
            self._wakeup.wait(remaining)
            return

        tp = next(iter(self._assignment))
        self._log(tp).wait_for_records(
            self.position(tp),
            remaining,
            interrupted=self._wakeup.is_set,
        )

    def _check_wakeup(self) -> None:
        if self._wakeup.is_set():
            self._wakeup.clear()
            raise WakeupError("Poll aborted by wakeup")

    def wakeup(self) -> None:
        """
        Abort the current (or next) blocking poll.

        Safe to call from any thread. The interrupted poll raises WakeupError.
        """
        self._wakeup.set()
        if not self._service.closed:
            for tp in list(self._assignment):
                self._log(tp).notify_waiters()

        logger.debug("Consumer wakeup requested", client_id=self.config.client_id)

    def seek(self, tp: TopicPartition, offset: int) -> None:
        """
        Seek to specific offset.

        Args:
            tp: Topic-partition
            offset: Next offset to read
        """
        self._ensure_assigned(tp)

        if offset < 0:
            raise ValueError(f"Offset must be non-negative, got {offset}")

        self._positions[tp] = offset

        logger.debug("Seeked to offset", partition=str(tp), offset=offset)

    def seek_to_beginning(self, partitions: Optional[Iterable[TopicPartition]] = None) -> None:
        """
        Seek to the earliest retained record of partitions.

        Args:
            partitions: Partitions to seek (None = all assigned)
        """
        targets = list(partitions) if partitions is not None else list(self._assignment)

        for tp in targets:
            self._ensure_assigned(tp)
            self._positions[tp] = self._log(tp).start_offset

        logger.debug("Seeked to beginning", partitions=len(targets))

    def position(self, tp: TopicPartition) -> int:
        """
        Get the offset of the next record to be read from a partition.

        A partition without a position starts at its earliest record.

        Args:
            tp: Topic-partition

        Returns:
            Current position

        Raises:
            NotAssignedError: If tp is not assigned
        """
        self._ensure_assigned(tp)

        if tp not in self._positions:
            self._positions[tp] = self._log(tp).start_offset

        return self._positions[tp]

    def end_offsets(self, partitions: Iterable[TopicPartition]) -> Dict[TopicPartition, int]:
        """
        Get the end offset (one past the last record) of partitions.

        Args:
            partitions: Partitions to query

        Returns:
            Mapping of partition to end offset
        """
        self._ensure_open()
        return {tp: self._log(tp).end_offset for tp in partitions}

    def _log(self, tp: TopicPartition) -> PartitionLog:
        return self._service.get_log(tp)

    def _ensure_assigned(self, tp: TopicPartition) -> None:
        self._ensure_open()
        if tp not in self._assignment:
            raise NotAssignedError(f"Partition {tp} is not assigned to this consumer")

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError("Consumer is closed")

    def close(self) -> None:
        """Close consumer and release resources. Idempotent."""
        if self._closed:
            return

        self._closed = True

        logger.info("Consumer closed", client_id=self.config.client_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
