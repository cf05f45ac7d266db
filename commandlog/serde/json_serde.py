"""
JSON serializers and deserializers for command topic records.

Keys use strict mode: any decode problem raises SerializationError.
Values use lenient mode: unknown fields are ignored so that payloads written
by newer nodes still decode, and a missing value decodes to TOMBSTONE.
"""

import json
from typing import Any, Optional, Type

from commandlog.computation.command import TOMBSTONE, Command, CommandId, Tombstone
from commandlog.errors import SerializationError


def _to_json_value(data: Any) -> Any:
    if isinstance(data, CommandId):
        return data.to_string()
    if isinstance(data, Command):
        return data.to_dict()
    return data


class JsonSerializer:
    """
    Encodes keys or values as compact UTF-8 JSON.

    In strict mode, values JSON cannot represent raise SerializationError;
    in lenient mode they are written as their string form.
    """

    def __init__(self, strict: bool):
        self.strict = strict

    def __call__(self, topic: str, data: Any) -> Optional[bytes]:
        if data is None or isinstance(data, Tombstone):
            if self.strict:
                raise SerializationError(f"Cannot serialize null for topic {topic} in strict mode")
            return None

        try:
            text = json.dumps(
                _to_json_value(data),
                sort_keys=True,
                separators=(",", ":"),
                default=None if self.strict else str,
            )
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Failed to serialize {type(data).__name__} for topic {topic}: {e}"
            ) from e

        return text.encode("utf-8")


class JsonDeserializer:
    """
    Decodes UTF-8 JSON into CommandId or Command.

    Strict mode rejects null input and unknown fields; lenient mode maps null
    input to TOMBSTONE and ignores unknown fields.
    """

    def __init__(self, target: Type, strict: bool):
        if target not in (CommandId, Command):
            raise ValueError(f"Unsupported deserialization target: {target!r}")

        self.target = target
        self.strict = strict

    def __call__(self, topic: str, data: Optional[bytes]) -> Any:
        if data is None:
            if self.strict:
                raise SerializationError(
                    f"Missing {self.target.__name__} in record from topic {topic}"
                )
            return TOMBSTONE

        try:
            decoded = json.loads(data.decode("utf-8"))

            if self.target is CommandId:
                return CommandId.from_string(decoded)

            return Command.from_dict(decoded, strict=self.strict)

        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(
                f"Failed to deserialize {self.target.__name__} from topic {topic}: {e}"
            ) from e


def get_json_serializer(strict: bool) -> JsonSerializer:
    """
    Get a JSON serializer.

    Args:
        strict: Fail on values JSON cannot represent

    Returns:
        Serializer callable ``(topic, data) -> bytes | None``
    """
    return JsonSerializer(strict)


def get_json_deserializer(target: Type, strict: bool) -> JsonDeserializer:
    """
    Get a JSON deserializer.

    Args:
        target: CommandId or Command
        strict: Fail on null input and unknown fields

    Returns:
        Deserializer callable ``(topic, bytes | None) -> target``
    """
    return JsonDeserializer(target, strict)
