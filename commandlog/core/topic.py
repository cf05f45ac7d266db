"""Topic-partition identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TopicPartition:
    """
    Represents a topic-partition pair.

    Attributes:
        topic: Topic name
        partition: Partition number
    """
    topic: str
    partition: int

    def __str__(self) -> str:
        return f"{self.topic}-{self.partition}"
