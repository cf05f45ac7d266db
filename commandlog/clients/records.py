"""Record types shared by the consumer and producer clients."""

import time
from dataclasses import dataclass
from typing import Any, Optional

from commandlog.core.topic import TopicPartition

__all__ = ["ConsumerRecord", "ProducerRecord", "RecordMetadata", "TopicPartition"]


@dataclass
class ConsumerRecord:
    """
    A decoded record consumed from a topic-partition.

    Attributes:
        topic: Topic name
        partition: Partition number
        offset: Record offset
        timestamp: Record timestamp in milliseconds
        key: Decoded key
        value: Decoded value
    """
    topic: str
    partition: int
    offset: int
    timestamp: int
    key: Any
    value: Any


@dataclass
class ProducerRecord:
    """
    A record to be appended.

    Attributes:
        topic: Topic name
        partition: Partition number
        key: Record key, encoded by the producer's key serializer
        value: Record value, encoded by the producer's value serializer
        timestamp: Record timestamp (None for current time)
    """
    topic: str
    partition: int
    key: Any
    value: Any
    timestamp: Optional[int] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = int(time.time() * 1000)


@dataclass
class RecordMetadata:
    """
    Acknowledgment for a durably appended record.

    Attributes:
        topic: Topic name
        partition: Partition number
        offset: Offset assigned by the log
        timestamp: Record timestamp as stored
    """
    topic: str
    partition: int
    offset: int
    timestamp: int
