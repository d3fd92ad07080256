"""
Canonical JSON serialization for request fingerprints.

Two-phase approach:
1. Normalize: Convert attribute values and stdlib types to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Data connector results caches are keyed by stable_hash() of the inputs that
determine the external call, so two requests with the same principal and
dependency values share one cache entry regardless of dict ordering.
"""

from __future__ import annotations

import base64
import hashlib
import math
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import rfc8785

from attresolver.contracts.attribute import (
    ByteValue,
    EmptyValue,
    IdPAttribute,
    OpaqueValue,
    ScopedStringValue,
    StringValue,
)


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to a JSON-safe primitive.

    Raises:
        ValueError: If value is a NaN or Infinity float/Decimal
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}")
        return obj

    if obj is None or isinstance(obj, str | int | bool):
        return obj

    # Attribute values carry their type so "x" and b"x" never collide
    if isinstance(obj, StringValue):
        return {"string": obj.value}
    if isinstance(obj, ScopedStringValue):
        return {"scoped": [obj.value, obj.scope]}
    if isinstance(obj, ByteValue):
        return {"bytes": base64.b64encode(obj.value).decode("ascii")}
    if isinstance(obj, EmptyValue):
        return {"empty": obj.kind}
    if isinstance(obj, OpaqueValue):
        return {"opaque": _normalize_for_canonical(obj.value)}
    if isinstance(obj, IdPAttribute):
        return {"id": obj.id, "values": [_normalize_value(v) for v in obj.values]}

    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return obj.astimezone(UTC).isoformat()

    if isinstance(obj, bytes):
        return {"__bytes__": base64.b64encode(obj).decode("ascii")}

    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot canonicalize non-finite Decimal: {obj}")
        return str(obj)

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    if isinstance(data, set | frozenset):
        return sorted((_normalize_for_canonical(v) for v in data), key=repr)
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Args:
        obj: Data structure to serialize

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """Compute stable hash of object.

    Returns:
        SHA-256 hex digest of canonical JSON
    """
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
