"""
Command topic client.

Gives a cluster of nodes a strictly ordered, durable sequence of commands by
reading and writing a single partition of one topic:

- send() appends a command and blocks until it is acknowledged
- get_new_commands() tails records appended since the last read
- get_restore_commands() replays the whole partition to rebuild state
- get_consumer_position() / get_end_offset() report catch-up progress

Threading: send() may be called concurrently. The read-side operations
(get_new_commands, get_restore_commands, get_consumer_position,
get_end_offset, is_caught_up) share the consumer's position and must be
called from one thread at a time; callers synchronize externally. close()
may be called from any thread and interrupts a blocking poll, which then
raises WakeupError. Any operation other than close() raises
CommandTopicClosedError after close().
"""

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from commandlog.broker.service import LogService
from commandlog.clients.consumer import Consumer, ConsumerConfig
from commandlog.clients.producer import Producer, ProducerConfig
from commandlog.clients.records import (
    ConsumerRecord,
    ProducerRecord,
    RecordMetadata,
    TopicPartition,
)
from commandlog.computation.command import (
    Command,
    CommandId,
    CommandValue,
    QueuedCommand,
    Tombstone,
)
from commandlog.errors import CommandTopicClosedError, classify_send_error
from commandlog.serde.json_serde import get_json_deserializer, get_json_serializer
from commandlog.utils.logging import get_logger

logger = get_logger(__name__)

COMMAND_TOPIC_PARTITION = 0


class CommandTopic:
    """
    Reads and writes commands on partition 0 of the command topic.

    Example:
        topic = CommandTopic.create(
            "_command_topic",
            consumer_properties={"data_dir": "/var/lib/commandlog"},
            producer_properties={"data_dir": "/var/lib/commandlog"},
        )

        for queued in topic.get_restore_commands(timeout_ms=1000):
            apply(queued.command_id, queued.command)

        while running:
            for record in topic.get_new_commands(timeout_ms=1000):
                apply(record.key, record.value)

        topic.close()
    """

    def __init__(
        self,
        command_topic_name: str,
        command_consumer: Consumer,
        command_producer: Producer,
    ):
        """
        Bind the clients to the command topic partition.

        The consumer is assigned exactly the one partition; ownership of both
        clients passes to the command topic, which closes them in close().

        Args:
            command_topic_name: Name of the command topic
            command_consumer: Read-side client
            command_producer: Write-side client
        """
        if command_topic_name is None:
            raise ValueError("command_topic_name is required")
        if command_consumer is None:
            raise ValueError("command_consumer is required")
        if command_producer is None:
            raise ValueError("command_producer is required")

        self._command_topic_name = command_topic_name
        self._partition = TopicPartition(command_topic_name, COMMAND_TOPIC_PARTITION)
        self._consumer = command_consumer
        self._producer = command_producer

        self._closed = False
        self._close_lock = threading.Lock()

        self._consumer.assign([self._partition])

        logger.info("Command topic opened", topic=command_topic_name)

    @classmethod
    def create(
        cls,
        command_topic_name: str,
        consumer_properties: Dict[str, Any],
        producer_properties: Dict[str, Any],
        service: Optional[LogService] = None,
    ) -> "CommandTopic":
        """
        Build a command topic with JSON-encoded clients.

        Keys are decoded strictly and values leniently.

        Args:
            command_topic_name: Name of the command topic
            consumer_properties: Passed through to the consumer configuration
            producer_properties: Passed through to the producer configuration
            service: Log service to use (default: shared service per data_dir)

        Returns:
            Open command topic

        Raises:
            ValueError: If a property map is missing or the two maps name
                different data directories
        """
        if consumer_properties is None:
            raise ValueError("consumer_properties is required")
        if producer_properties is None:
            raise ValueError("producer_properties is required")

        consumer_dir = Path(consumer_properties.get("data_dir", ConsumerConfig.data_dir)).resolve()
        producer_dir = Path(producer_properties.get("data_dir", ProducerConfig.data_dir)).resolve()
        if consumer_dir != producer_dir:
            raise ValueError(
                f"Consumer and producer must share one data_dir, got "
                f"{consumer_dir} and {producer_dir}"
            )

        consumer = Consumer(
            key_deserializer=get_json_deserializer(CommandId, strict=True),
            value_deserializer=get_json_deserializer(Command, strict=False),
            service=service,
            **consumer_properties,
        )
        producer = Producer(
            key_serializer=get_json_serializer(strict=True),
            value_serializer=get_json_serializer(strict=False),
            service=service,
            **producer_properties,
        )

        return cls(command_topic_name, consumer, producer)

    @property
    def name(self) -> str:
        return self._command_topic_name

    def send(self, command_id: CommandId, command: CommandValue) -> RecordMetadata:
        """
        Append a command and wait for its acknowledgment.

        Args:
            command_id: Key of the record
            command: Command payload, or TOMBSTONE to append a record
                without one

        Returns:
            Metadata including the assigned offset

        Raises:
            ValueError: If command_id or command is None
            InterruptedFailure: If the wait for acknowledgment was cancelled
            SendFailure: If the append failed with an unclassified error
            CommandLogError: Any already-classified client error, unchanged
        """
        self._ensure_open()

        if command_id is None:
            raise ValueError("command_id is required")
        if command is None:
            raise ValueError("command is required")

        record = ProducerRecord(
            topic=self._command_topic_name,
            partition=COMMAND_TOPIC_PARTITION,
            key=command_id,
            value=command,
        )

        try:
            metadata = self._producer.send(record).result()
        except Exception as e:
            failure = classify_send_error(e)
            logger.error(
                "Failed to send command",
                command_id=str(command_id),
                error=repr(e),
                failure=type(failure).__name__,
            )
            if failure is e:
                raise
            raise failure from e

        logger.debug("Sent command", command_id=str(command_id), offset=metadata.offset)

        return metadata

    def get_new_commands(self, timeout_ms: int) -> List[ConsumerRecord]:
        """
        Poll for records appended since the last read.

        Tombstones are returned as-is; values may be TOMBSTONE.

        Args:
            timeout_ms: Max time to block waiting for records

        Returns:
            Records in log order, possibly empty
        """
        self._ensure_open()
        return self._consumer.poll(timeout_ms)

    def get_restore_commands(self, timeout_ms: int) -> List[QueuedCommand]:
        """
        Replay the command topic from its first retained record.

        Polls until the first empty batch and skips tombstones. Records
        appended concurrently may or may not be included: an empty poll means
        the consumer caught up with what existed while it was polling, not a
        point-in-time snapshot.

        Args:
            timeout_ms: Max time each poll blocks

        Returns:
            Commands in log order
        """
        self._ensure_open()

        restore_commands: List[QueuedCommand] = []

        self._consumer.seek_to_beginning([self._partition])

        logger.debug("Reading prior command records", topic=self._command_topic_name)

        records = self._consumer.poll(timeout_ms)
        while records:
            logger.debug("Received records from poll", count=len(records))

            for record in records:
                if isinstance(record.value, Tombstone):
                    continue
                restore_commands.append(QueuedCommand(record.key, record.value, None))

            records = self._consumer.poll(timeout_ms)

        logger.info(
            "Restored commands",
            topic=self._command_topic_name,
            commands=len(restore_commands),
        )

        return restore_commands

    def get_consumer_position(self) -> int:
        """Offset of the next record the consumer will read."""
        self._ensure_open()
        return self._consumer.position(self._partition)

    def get_end_offset(self) -> int:
        """Offset one past the last record in the command topic."""
        self._ensure_open()
        return self._consumer.end_offsets([self._partition])[self._partition]

    def is_caught_up(self) -> bool:
        """
        Check whether the consumer has read every record appended so far.

        Returns:
            True if the consumer position has reached the end offset
        """
        return self.get_consumer_position() >= self.get_end_offset()

    def close(self) -> None:
        """
        Interrupt any blocking poll and release both clients. Idempotent.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._consumer.wakeup()
        self._consumer.close()
        self._producer.close()

        logger.info("Command topic closed", topic=self._command_topic_name)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise CommandTopicClosedError(
                f"Command topic {self._command_topic_name} is closed"
            )

    def __enter__(self) -> "CommandTopic":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
