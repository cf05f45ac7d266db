"""
In-process log service.

Owns the partition logs stored under one data directory and hands them to
consumers and producers. Every topic has a single partition, 0. Clients in
one process that name the same data directory share one service instance,
so appends made by a producer wake consumers blocked on the same partition
at once; instances in other processes see them through the log file.
"""

import threading
from pathlib import Path
from typing import Dict, Set, Union

from commandlog.core.log.log import PartitionLog
from commandlog.core.topic import TopicPartition
from commandlog.errors import ClientClosedError, UnknownTopicOrPartitionError
from commandlog.utils.logging import get_logger

logger = get_logger(__name__)


class LogService:
    """
    Registry of topics and their partition logs under a data directory.

    Layout on disk: ``<data_dir>/<topic>/partition-0/``. Topics are created
    on first use.
    """

    PARTITION_DIR_PREFIX = "partition-"
    PARTITION = 0

    def __init__(self, data_dir: Union[str, Path]):
        """
        Initialize log service.

        Args:
            data_dir: Root directory for topic data
        """
        self.data_dir = Path(data_dir)

        self._topics: Set[str] = set()
        self._logs: Dict[TopicPartition, PartitionLog] = {}
        self._closed = False
        self._lock = threading.RLock()

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._discover_topics()

        logger.info(
            "Log service initialized",
            data_dir=str(self.data_dir),
            topics=len(self._topics),
        )

    def _discover_topics(self) -> None:
        """Register topics already present on disk."""
        for topic_dir in sorted(self.data_dir.iterdir()):
            if (topic_dir / f"{self.PARTITION_DIR_PREFIX}{self.PARTITION}").is_dir():
                self._topics.add(topic_dir.name)

    def create_topic(self, topic: str) -> None:
        """
        Create a topic if it does not exist yet.

        Args:
            topic: Topic name

        Raises:
            ValueError: If the name cannot be used as a directory name
        """
        if not topic or "/" in topic or topic in (".", ".."):
            raise ValueError(f"Invalid topic name: {topic!r}")

        with self._lock:
            self._ensure_open()

            if topic in self._topics:
                return

            self._partition_dir(TopicPartition(topic, self.PARTITION)).mkdir(
                parents=True, exist_ok=True
            )
            self._topics.add(topic)

            logger.info("Created topic", topic=topic)

    def get_log(self, tp: TopicPartition) -> PartitionLog:
        """
        Get the log for a topic-partition, opening it on first access.

        Args:
            tp: Topic-partition

        Returns:
            Partition log

        Raises:
            UnknownTopicOrPartitionError: If the partition is not 0
        """
        with self._lock:
            log = self._logs.get(tp)
            if log is not None:
                return log

            if tp.partition != self.PARTITION:
                raise UnknownTopicOrPartitionError(
                    f"Partition {tp.partition} does not exist for topic {tp.topic}; "
                    f"topics have only partition {self.PARTITION}"
                )

            self.create_topic(tp.topic)

            log = PartitionLog(directory=self._partition_dir(tp))
            self._logs[tp] = log
            return log

    def _partition_dir(self, tp: TopicPartition) -> Path:
        return self.data_dir / tp.topic / f"{self.PARTITION_DIR_PREFIX}{tp.partition}"

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError(f"Log service is closed: {self.data_dir}")

    def close(self) -> None:
        """Close every open partition log. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

            for log in self._logs.values():
                log.close()
            self._logs.clear()

        _forget_service(self)

        logger.info("Log service closed", data_dir=str(self.data_dir))

    @property
    def closed(self) -> bool:
        return self._closed


_services: Dict[Path, LogService] = {}
_services_lock = threading.Lock()


def get_service(data_dir: Union[str, Path]) -> LogService:
    """
    Get the shared log service for a data directory.

    Args:
        data_dir: Root directory for topic data

    Returns:
        Open log service, created on first request
    """
    path = Path(data_dir).resolve()
    with _services_lock:
        service = _services.get(path)
        if service is None or service.closed:
            service = LogService(path)
            _services[path] = service
        return service


def _forget_service(service: LogService) -> None:
    with _services_lock:
        for path, registered in list(_services.items()):
            if registered is service:
                del _services[path]


def close_all_services() -> None:
    """Close every shared log service (mainly for testing and shutdown)."""
    with _services_lock:
        services = list(_services.values())

    for service in services:
        service.close()
