"""Command model: identifiers, payloads and queued commands."""

from commandlog.computation.command import (
    TOMBSTONE,
    Command,
    CommandAction,
    CommandId,
    CommandType,
    CommandValue,
    QueuedCommand,
    Tombstone,
)

__all__ = [
    "TOMBSTONE",
    "Command",
    "CommandAction",
    "CommandId",
    "CommandType",
    "CommandValue",
    "QueuedCommand",
    "Tombstone",
]
