"""Tests for command topic JSON serialization."""

import json

import pytest

from commandlog.computation.command import TOMBSTONE, Command, CommandId
from commandlog.errors import SerializationError
from commandlog.serde.json_serde import get_json_deserializer, get_json_serializer


class TestKeySerde:
    """Test strict CommandId serialization."""

    @pytest.fixture
    def serializer(self):
        return get_json_serializer(strict=True)

    @pytest.fixture
    def deserializer(self):
        return get_json_deserializer(CommandId, strict=True)

    def test_serialize_key(self, serializer):
        """Test keys encode as a JSON string."""
        data = serializer("commands", CommandId.from_string("STREAM/orders/CREATE"))

        assert data == b'"STREAM/orders/CREATE"'

    def test_deserialize_key(self, deserializer):
        """Test keys decode back to CommandId."""
        command_id = deserializer("commands", b'"TABLE/users/DROP"')

        assert command_id == CommandId.from_string("TABLE/users/DROP")

    @pytest.mark.parametrize("data", [
        b'"STREAM/orders"',
        b'"UNKNOWN/orders/CREATE"',
        b'{"type": "STREAM"}',
        b'not json',
        b'\xff\xfe',
    ])
    def test_malformed_key_is_fatal(self, deserializer, data):
        """Test every key decode problem raises."""
        with pytest.raises(SerializationError):
            deserializer("commands", data)

    def test_missing_key_is_fatal(self, deserializer):
        """Test a null key raises in strict mode."""
        with pytest.raises(SerializationError):
            deserializer("commands", None)

    def test_null_key_not_serialized(self, serializer):
        """Test strict serializers refuse null."""
        with pytest.raises(SerializationError):
            serializer("commands", None)


class TestValueSerde:
    """Test lenient Command serialization."""

    @pytest.fixture
    def serializer(self):
        return get_json_serializer(strict=False)

    @pytest.fixture
    def deserializer(self):
        return get_json_deserializer(Command, strict=False)

    def test_serialize_command(self, serializer):
        """Test commands encode as a JSON object."""
        data = serializer("commands", Command("CREATE STREAM s;", {"k": "v"}))

        assert json.loads(data) == {
            "statement": "CREATE STREAM s;",
            "overwriteProperties": {"k": "v"},
            "originalProperties": {},
        }

    def test_deserialize_command(self, serializer, deserializer):
        """Test encoded commands decode to an equal command."""
        command = Command("CREATE STREAM s;", {"k": "v"}, {"o": 1}, version=2)

        assert deserializer("commands", serializer("commands", command)) == command

    def test_unknown_fields_tolerated(self, deserializer):
        """Test fields added by newer writers are ignored."""
        data = b'{"statement": "s", "queryPlan": {"id": 1}, "futureFlag": true}'

        assert deserializer("commands", data) == Command("s")

    def test_tombstone_serializes_to_null(self, serializer):
        """Test tombstones are written without a value."""
        assert serializer("commands", TOMBSTONE) is None

    def test_null_value_is_tombstone(self, deserializer):
        """Test a missing value decodes to the tombstone."""
        assert deserializer("commands", None) is TOMBSTONE

    def test_malformed_value_raises(self, deserializer):
        """Test invalid JSON still fails in lenient mode."""
        with pytest.raises(SerializationError):
            deserializer("commands", b"{not json")

    def test_lenient_serializer_stringifies_unknown_types(self, serializer):
        """Test non-JSON property values are written as strings."""
        data = serializer("commands", Command("s", {"when": object}))

        assert isinstance(json.loads(data)["overwriteProperties"]["when"], str)

    def test_strict_serializer_rejects_unknown_types(self):
        """Test non-JSON property values fail in strict mode."""
        with pytest.raises(SerializationError):
            get_json_serializer(strict=True)("commands", Command("s", {"when": object}))


class TestDeserializerTargets:
    """Test deserializer construction."""

    def test_unsupported_target(self):
        """Test only command types are accepted."""
        with pytest.raises(ValueError):
            get_json_deserializer(dict, strict=True)
