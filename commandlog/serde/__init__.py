"""Serialization of command topic keys and values."""

from commandlog.serde.json_serde import (
    JsonDeserializer,
    JsonSerializer,
    get_json_deserializer,
    get_json_serializer,
)

__all__ = [
    "JsonDeserializer",
    "JsonSerializer",
    "get_json_deserializer",
    "get_json_serializer",
]
