"""Serialization utilities for cached registry collections.

Collections are stored as JSON envelopes tagged with the generation
counter they were loaded under.
"""

import json
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel


RecordT = TypeVar("RecordT", bound=BaseModel)


class CacheEncoder(json.JSONEncoder):
    """JSON encoder for cache values.

    Handles:
    - Pydantic models (dumped in python mode, so nested ids stay UUIDs)
    - UUIDs
    """

    def default(self, obj: Any) -> Any:
        """Encode special types to JSON-serializable format.

        Args:
            obj: Object to encode

        Returns:
            JSON-serializable representation
        """
        if isinstance(obj, BaseModel):
            return {
                "__pydantic__": True,
                "__class__": obj.__class__.__name__,
                "data": obj.model_dump(),
            }
        if isinstance(obj, UUID):
            return {"__uuid__": True, "value": str(obj)}
        return super().default(obj)


def serialize(value: Any) -> str:
    """Serialize a value for caching.

    Args:
        value: Value to serialize

    Returns:
        JSON string representation
    """
    return json.dumps(value, cls=CacheEncoder)


def deserialize(data: str) -> Any:
    """Deserialize a cached value.

    Args:
        data: JSON string from cache

    Returns:
        Deserialized Python object

    Note:
        Pydantic models are returned as dicts. The caller
        should reconstruct the model if needed.
    """
    return json.loads(data, object_hook=_decode_hook)


def _decode_hook(obj: dict[str, Any]) -> Any:
    """JSON decode hook for special types."""
    if "__uuid__" in obj:
        return UUID(obj["value"])
    if "__pydantic__" in obj:
        # Return the data dict - caller reconstructs the model
        return obj["data"]
    return obj


def dump_collection(generation: int, records: list[BaseModel]) -> str:
    """Serialize a registry collection with its generation tag."""
    return serialize({"generation": generation, "items": records})


def load_collection(data: str, model: type[RecordT]) -> tuple[int, list[RecordT]]:
    """Deserialize a registry collection.

    Args:
        data: JSON produced by ``dump_collection``
        model: Record class to rebuild each item as

    Returns:
        Tuple of (generation, records)

    Raises:
        ValueError: If the payload is not a collection envelope
    """
    payload = deserialize(data)
    if not isinstance(payload, dict) or "items" not in payload:
        raise ValueError("Cached value is not a registry collection")
    items = [model.model_validate(item) for item in payload["items"]]
    return int(payload.get("generation", 0)), items
