"""
JSON serialization utilities for busworq.

Message bodies go over the wire as UTF-8 JSON. The encoder handles the Python
types that commonly end up in message payloads (datetimes, UUIDs, decimals,
enums, pydantic models) and ``decode_body`` turns a received Service Bus
message back into Python objects.
"""

import datetime
import decimal
import json
import uuid
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles common Python types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
            return obj.isoformat()

        if isinstance(obj, datetime.timedelta):
            return str(obj)

        if isinstance(obj, set):
            return list(obj)

        if isinstance(obj, decimal.Decimal):
            return str(obj)

        if isinstance(obj, bytes):
            return obj.decode("utf-8")

        if isinstance(obj, (Path, uuid.UUID)):
            return str(obj)

        if isinstance(obj, Enum):
            return obj.value

        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")

        if hasattr(obj, "to_json"):
            return obj.to_json()

        if hasattr(obj, "__dict__"):
            return obj.__dict__

        return super().default(obj)


def serialize(obj: Any) -> str:
    """
    Serialize any Python object to a JSON string.

    Example:
        >>> serialize({"id": uuid.UUID(int=1), "tags": {"a"}})
        '{"id": "00000000-0000-0000-0000-000000000001", "tags": ["a"]}'
    """
    return json.dumps(obj, cls=JSONEncoder)


def deserialize(json_str: str) -> Any:
    """Deserialize a JSON string back into Python objects."""
    return json.loads(json_str)


def decode_body(message: Any) -> Any:
    """
    Decode the body of a received message.

    Data bodies arrive as an iterable of byte sections and are joined before
    decoding. Value bodies (already Python objects) are returned unchanged.
    Text that is not valid JSON is returned as a string, and bodies that are
    not UTF-8 at all come back as raw bytes.
    """
    body = message.body

    if isinstance(body, (bytes, bytearray)):
        raw = bytes(body)
    elif isinstance(body, str):
        raw = body.encode("utf-8")
    elif isinstance(body, (dict, list, int, float, bool)) or body is None:
        return body
    else:
        raw = b"".join(
            section if isinstance(section, bytes) else str(section).encode("utf-8")
            for section in body
        )

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw

    try:
        return deserialize(text)
    except json.JSONDecodeError:
        return text
