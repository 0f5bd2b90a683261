"""Unit tests for cache serialization."""

import json
from uuid import uuid4

import pytest

from warden.core.cache import deserialize, dump_collection, load_collection, serialize
from warden.permissions.schemas import RoleRecord


pytestmark = pytest.mark.unit


class TestSerialize:
    """Tests for special type encoding."""

    def test_uuid_round_trips(self) -> None:
        ident = uuid4()

        restored = deserialize(serialize({"id": ident, "ids": (ident,)}))

        assert restored == {"id": ident, "ids": [ident]}

    def test_unknown_type_fails(self) -> None:
        with pytest.raises(TypeError):
            serialize(object())


class TestCollections:
    """Tests for generation-tagged collection envelopes."""

    def test_records_survive_with_generation(self) -> None:
        permission_id = uuid4()
        record = RoleRecord(
            id=uuid4(),
            name="editor",
            guard="web",
            context_type="Team",
            context_id="1",
            permission_ids=(permission_id,),
        )

        generation, items = load_collection(dump_collection(7, [record]), RoleRecord)

        assert generation == 7
        assert items == [record]

    def test_record_ids_are_tagged_uuids(self) -> None:
        permission_id = uuid4()
        record = RoleRecord(id=uuid4(), name="editor", guard="web", permission_ids=(permission_id,))

        payload = json.loads(dump_collection(1, [record]))
        [item] = payload["items"]

        assert item["__class__"] == "RoleRecord"
        assert item["data"]["permission_ids"] == [{"__uuid__": True, "value": str(permission_id)}]

    def test_rejects_non_envelope(self) -> None:
        with pytest.raises(ValueError):
            load_collection(serialize(["not", "an", "envelope"]), RoleRecord)
