"""Identity attribute value types.

An attribute is an id plus an ordered sequence of typed values. Duplicates
within one attribute are permitted at this layer; deduplication is a policy
of individual definitions.

Values are frozen dataclasses so they can be shared between concurrent
resolution contexts and used as dict keys.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class StringValue:
    """A plain string value."""

    value: str

    def display(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ScopedStringValue:
    """A string value qualified by a scope (e.g., ``jdoe@example.org``)."""

    value: str
    scope: str

    def display(self) -> str:
        return f"{self.value}@{self.scope}"


@dataclass(frozen=True, slots=True)
class ByteValue:
    """A binary value (e.g., an LDAP objectGUID)."""

    value: bytes

    def display(self) -> str:
        return self.value.hex()


@dataclass(frozen=True, slots=True)
class EmptyValue:
    """A present-but-empty value: a null or zero-length source value.

    Definitions drop these by default; `simple` keeps them unless
    strip_nulls is set.
    """

    kind: str = "null"  # "null" or "zero_length"

    def display(self) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class OpaqueValue:
    """Any other value carried through the graph untouched."""

    value: Any

    def display(self) -> str:
        return str(self.value)


type AttributeValue = StringValue | ScopedStringValue | ByteValue | EmptyValue | OpaqueValue

NULL_VALUE = EmptyValue("null")
ZERO_LENGTH_VALUE = EmptyValue("zero_length")


def to_attribute_value(raw: Any) -> AttributeValue:
    """Wrap a raw Python value coming from an external source.

    Args:
        raw: Value as returned by a database driver, JSON decoder, or config

    Returns:
        The matching attribute value type
    """
    if isinstance(raw, StringValue | ScopedStringValue | ByteValue | EmptyValue | OpaqueValue):
        return raw
    if raw is None:
        return NULL_VALUE
    if isinstance(raw, str):
        return StringValue(raw) if raw else ZERO_LENGTH_VALUE
    if isinstance(raw, bytes | bytearray | memoryview):
        return ByteValue(bytes(raw))
    if isinstance(raw, bool | int | float):
        return StringValue(str(raw))
    return OpaqueValue(raw)


@dataclass(frozen=True, slots=True)
class IdPAttribute:
    """A resolved identity attribute.

    Attributes:
        id: Attribute id (unique within one result set)
        values: Ordered values; may be empty
    """

    id: str
    values: tuple[AttributeValue, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("IdPAttribute id must be a non-empty string")

    @classmethod
    def of(cls, attribute_id: str, values: Iterable[Any]) -> IdPAttribute:
        """Build an attribute, wrapping raw Python values as needed."""
        return cls(attribute_id, tuple(to_attribute_value(v) for v in values))

    def with_id(self, attribute_id: str) -> IdPAttribute:
        """Return a copy carrying the same values under a different id."""
        return IdPAttribute(attribute_id, self.values)

    def display_values(self) -> list[str]:
        """Values rendered as strings, for logging and CLI output."""
        return [v.display() for v in self.values]
