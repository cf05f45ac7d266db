"""
commandlog - an ordered, durable command log shared by cluster nodes.

This package provides:
- A command topic client that appends, tails and replays commands on a
  single partition, so every node applies the same commands in the same order
- Strict JSON keys and lenient JSON values with explicit tombstones
- Consumer and producer clients over an in-process, file-backed log service
"""

__version__ = "0.1.0"

from commandlog.command_topic import CommandTopic
from commandlog.computation.command import (
    TOMBSTONE,
    Command,
    CommandAction,
    CommandId,
    CommandType,
    QueuedCommand,
    Tombstone,
)

__all__ = [
    "TOMBSTONE",
    "Command",
    "CommandAction",
    "CommandId",
    "CommandTopic",
    "CommandType",
    "QueuedCommand",
    "Tombstone",
]
