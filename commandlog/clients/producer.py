"""
Producer client for appending records to the log service.

Provides:
- Asynchronous send returning a Future resolved on acknowledgment
- Serialization in the caller's thread
- A single sender thread, so acknowledgments follow log order
- flush() and close() with cancellation of pending sends

send() is safe to call from multiple threads.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

from commandlog.broker.service import LogService, get_service
from commandlog.clients.records import ProducerRecord, RecordMetadata, TopicPartition
from commandlog.errors import ClientClosedError
from commandlog.utils.logging import get_logger

logger = get_logger(__name__)

Serializer = Callable[[str, Any], Optional[bytes]]


def _identity(topic: str, data: Any) -> Optional[bytes]:
    return data


class Acks:
    """Acknowledgment levels."""
    ALL = "all"  # fsync before acknowledging
    LEADER = "1"  # acknowledge once written to the log file


@dataclass
class ProducerConfig:
    """
    Configuration for producer.

    Attributes:
        data_dir: Data directory of the log service to write to
        client_id: Identifier used in log output
        acks: Durability required before a send is acknowledged
    """
    data_dir: str = "/tmp/commandlog"
    client_id: str = "commandlog-producer"
    acks: str = Acks.ALL


class Producer:
    """
    Producer client.

    Example:
        producer = Producer(data_dir="/var/lib/commandlog")

        future = producer.send(ProducerRecord("commands", 0, key=b"k", value=b"v"))
        metadata = future.result()
        print(f"Appended at offset {metadata.offset}")

        producer.close()
    """

    def __init__(
        self,
        config: Optional[ProducerConfig] = None,
        key_serializer: Optional[Serializer] = None,
        value_serializer: Optional[Serializer] = None,
        service: Optional[LogService] = None,
        **kwargs,
    ):
        """
        Initialize producer.

        Args:
            config: Producer configuration
            key_serializer: Encodes record keys (default: raw bytes)
            value_serializer: Encodes record values (default: raw bytes)
            service: Log service to write to (default: shared service for
                config.data_dir)
            **kwargs: Config overrides; unknown keys are ignored
        """
        self.config = config or ProducerConfig()

        for key, value in kwargs.items():
            if hasattr(self.config, key):
                setattr(self.config, key, value)

        if self.config.acks not in (Acks.ALL, Acks.LEADER):
            raise ValueError(f"Invalid acks: {self.config.acks}")

        self._key_serializer = key_serializer or _identity
        self._value_serializer = value_serializer or _identity
        self._service = service or get_service(self.config.data_dir)

        self._closed = False
        self._close_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="producer-sender")

        logger.info(
            "Producer initialized",
            client_id=self.config.client_id,
            data_dir=str(self._service.data_dir),
            acks=self.config.acks,
        )

    def send(self, record: ProducerRecord) -> "Future[RecordMetadata]":
        """
        Send a record.

        Args:
            record: Record to append

        Returns:
            Future that resolves to RecordMetadata once the record is durable

        Raises:
            ClientClosedError: If producer is closed
            SerializationError: If the key or value cannot be encoded
        """
        key = self._key_serializer(record.topic, record.key)
        value = self._value_serializer(record.topic, record.value)

        with self._close_lock:
            if self._closed:
                raise ClientClosedError("Producer is closed")

            return self._executor.submit(self._append, record, key, value)

    def _append(
        self,
        record: ProducerRecord,
        key: Optional[bytes],
        value: Optional[bytes],
    ) -> RecordMetadata:
        """Append on the sender thread and build the acknowledgment."""
        log = self._service.get_log(TopicPartition(record.topic, record.partition))

        # acks=all: readers must not see the record before it is on disk
        stored = log.append(
            key,
            value,
            timestamp=record.timestamp,
            sync=self.config.acks == Acks.ALL,
        )

        logger.debug(
            "Record acknowledged",
            topic=record.topic,
            partition=record.partition,
            offset=stored.offset,
        )

        return RecordMetadata(
            topic=record.topic,
            partition=record.partition,
            offset=stored.offset,
            timestamp=stored.timestamp,
        )

    def flush(self, timeout_ms: Optional[int] = None) -> None:
        """
        Wait until every send issued so far has completed.

        Args:
            timeout_ms: Max time to wait (None = wait forever)
        """
        with self._close_lock:
            if self._closed:
                return
            barrier = self._executor.submit(lambda: None)

        barrier.result(timeout=timeout_ms / 1000.0 if timeout_ms is not None else None)

        logger.debug("Producer flushed", client_id=self.config.client_id)

    def close(self) -> None:
        """
        Close producer and release resources. Idempotent.

        A send already being appended completes; sends still queued are
        cancelled and their futures raise CancelledError.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._executor.shutdown(wait=True, cancel_futures=True)

        logger.info("Producer closed", client_id=self.config.client_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
