"""
Command types stored in the command topic.

A record's key is a CommandId and its value is either a Command or the
Tombstone marker for a record without a payload.
"""

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class CommandType(str, Enum):
    """Kind of entity a command applies to."""
    STREAM = "STREAM"
    TABLE = "TABLE"
    TOPIC = "TOPIC"
    FUNCTION = "FUNCTION"
    TERMINATE = "TERMINATE"
    CLUSTER = "CLUSTER"
    TYPE = "TYPE"


class CommandAction(str, Enum):
    """What a command does to its entity."""
    CREATE = "CREATE"
    DROP = "DROP"
    EXECUTE = "EXECUTE"
    TERMINATE = "TERMINATE"


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class CommandId:
    """
    Identity of a command and key of its log record.

    Serialized as ``TYPE/entity/ACTION``. Equality, hashing and ordering
    follow the serialized form.

    Attributes:
        type: Entity kind
        entity: Entity name, must not contain "/"
        action: Action applied to the entity
    """
    type: CommandType
    entity: str
    action: CommandAction

    SEPARATOR = "/"

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        object.__setattr__(self, "type", CommandType(self.type))
        object.__setattr__(self, "action", CommandAction(self.action))
        if not isinstance(self.entity, str) or not self.entity:
            raise ValueError(f"Entity must be a non-empty string, got {self.entity!r}")
        if self.SEPARATOR in self.entity:
            raise ValueError(f"Entity must not contain '{self.SEPARATOR}': {self.entity!r}")

    @classmethod
    def from_string(cls, value: str) -> "CommandId":
        """
        Parse a serialized command id.

        Args:
            value: String of the form ``TYPE/entity/ACTION``

        Returns:
            Parsed CommandId

        Raises:
            ValueError: If the string is malformed or names an unknown type
                or action
        """
        if not isinstance(value, str):
            raise ValueError(f"Command id must be a string, got {type(value).__name__}")

        parts = value.split(cls.SEPARATOR)
        if len(parts) != 3:
            raise ValueError(f"Expected command id of form TYPE/entity/ACTION, got {value!r}")

        return cls(CommandType(parts[0]), parts[1], CommandAction(parts[2]))

    def to_string(self) -> str:
        return f"{self.type.value}{self.SEPARATOR}{self.entity}{self.SEPARATOR}{self.action.value}"

    def __str__(self) -> str:
        return self.to_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CommandId):
            return NotImplemented
        return self.to_string() == other.to_string()

    def __lt__(self, other: "CommandId") -> bool:
        if not isinstance(other, CommandId):
            return NotImplemented
        return self.to_string() < other.to_string()

    def __hash__(self) -> int:
        return hash(self.to_string())


@dataclass
class Command:
    """
    Payload of a command record.

    Attributes:
        statement: Statement text to execute
        overwrite_properties: Properties set by the issuing session
        original_properties: Server properties in effect when issued
        version: Payload format version, None if unversioned
    """
    statement: str
    overwrite_properties: Dict[str, Any] = field(default_factory=dict)
    original_properties: Dict[str, Any] = field(default_factory=dict)
    version: Optional[int] = None

    JSON_FIELDS = ("statement", "overwriteProperties", "originalProperties", "version")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON document stored in the log."""
        data = {
            "statement": self.statement,
            "overwriteProperties": self.overwrite_properties,
            "originalProperties": self.original_properties,
        }
        if self.version is not None:
            data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], strict: bool = False) -> "Command":
        """
        Create from a JSON document.

        Args:
            data: Decoded JSON object
            strict: Reject unknown fields instead of ignoring them

        Returns:
            Command

        Raises:
            ValueError: If the document is not an object, lacks a statement,
                has fields of the wrong type, or (strict only) has unknown fields
        """
        if not isinstance(data, dict):
            raise ValueError(f"Command must be a JSON object, got {type(data).__name__}")

        unknown = sorted(set(data) - set(cls.JSON_FIELDS))
        if strict and unknown:
            raise ValueError(f"Unknown command fields: {unknown}")

        statement = data.get("statement")
        if not isinstance(statement, str):
            raise ValueError("Command statement must be a string")

        overwrite = data.get("overwriteProperties") or {}
        original = data.get("originalProperties") or {}
        if not isinstance(overwrite, dict) or not isinstance(original, dict):
            raise ValueError("Command properties must be JSON objects")

        version = data.get("version")
        if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
            raise ValueError(f"Command version must be an integer, got {version!r}")

        return cls(
            statement=statement,
            overwrite_properties=overwrite,
            original_properties=original,
            version=version,
        )


@dataclass(frozen=True)
class Tombstone:
    """Value of a record that carries no command."""

    def __repr__(self) -> str:
        return "TOMBSTONE"


TOMBSTONE = Tombstone()

CommandValue = Union[Command, Tombstone]


@dataclass
class QueuedCommand:
    """
    A command read back from the log during restore.

    Attributes:
        command_id: Identity of the command
        command: Command payload
        offset: Offset of the record in the log, None if not tracked
    """
    command_id: CommandId
    command: Command
    offset: Optional[int] = None
