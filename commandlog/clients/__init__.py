"""Consumer and producer clients for the log service."""

from commandlog.clients.consumer import Consumer, ConsumerConfig
from commandlog.clients.producer import Acks, Producer, ProducerConfig
from commandlog.clients.records import (
    ConsumerRecord,
    ProducerRecord,
    RecordMetadata,
    TopicPartition,
)

__all__ = [
    "Acks",
    "Consumer",
    "ConsumerConfig",
    "ConsumerRecord",
    "Producer",
    "ProducerConfig",
    "ProducerRecord",
    "RecordMetadata",
    "TopicPartition",
]
