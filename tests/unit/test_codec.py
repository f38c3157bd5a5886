"""
Unit tests for the cycle-safe JSON codec.
"""

import json

import pytest

from hotline_watcher.errors import CodecError
from hotline_watcher.events.codec import dumps, loads


class TestCodec:
    """Test dumps/loads."""

    def test_plain_data_is_plain_json(self):
        """Data without shared references encodes as ordinary JSON."""
        value = {"id": 1, "tags": [{"id": 5, "name": "spam"}], "reason": None}

        encoded = dumps(value)

        assert json.loads(encoded) == value
        assert "$id" not in encoded

    def test_plain_json_decodes_unchanged(self):
        """Upstream JSON without annotations decodes as-is."""
        raw = '{"type": "NEW_REPORT", "data": {"report": {"id": 1}}}'

        assert loads(raw) == {"type": "NEW_REPORT", "data": {"report": {"id": 1}}}

    def test_cycle_round_trip(self):
        """A tag/category cycle survives encoding with identity intact."""
        category = {"id": 1, "name": "Abuse", "tags": []}
        tag = {"id": 5, "name": "spam", "category": category}
        category["tags"].append(tag)

        decoded = loads(dumps({"tags": [tag]}))

        decoded_tag = decoded["tags"][0]
        assert decoded_tag["name"] == "spam"
        assert decoded_tag["category"]["tags"][0] is decoded_tag

    def test_shared_list_reference(self):
        """A list reached twice is emitted once and referenced after."""
        shared = [1, 2, 3]
        encoded = dumps({"a": shared, "b": shared})

        raw = json.loads(encoded)
        assert raw["a"] == {"$id": 1, "$values": [1, 2, 3]}
        assert raw["b"] == {"$ref": 1}

        decoded = loads(encoded)
        assert decoded["a"] is decoded["b"]

    def test_self_referencing_list(self):
        """A list containing itself decodes to the same structure."""
        value = []
        value.append(value)

        decoded = loads(dumps(value))

        assert decoded[0] is decoded

    def test_unknown_reference(self):
        """Dangling references are rejected."""
        with pytest.raises(CodecError):
            loads('{"a": {"$ref": 9}}')

    def test_invalid_json(self):
        """Garbage input raises CodecError."""
        with pytest.raises(CodecError):
            loads(b"not json")

    def test_unencodable_value(self):
        """Objects JSON cannot represent raise CodecError."""
        with pytest.raises(CodecError):
            dumps({"value": object()})

    @pytest.mark.parametrize(
        "payload",
        [
            '{"a": {"$ref": [1]}}',
            '{"$id": {}, "name": "x"}',
            '{"$id": "1", "$values": []}',
            '{"$id": true, "name": "x"}',
            '{"$id": 1, "$values": {"a": 1}}',
        ],
    )
    def test_malformed_reference_markers(self, payload):
        """Non-integer ids and non-list values raise CodecError."""
        with pytest.raises(CodecError):
            loads(payload)
