# src/attresolver/plugins/value_transforms.py
"""Pure value-transform helpers used by attribute definitions.

Nothing here knows about the resolver or the resolution context: each
function maps source values to output values and is safe to call from any
number of threads.

Value maps:
    A ValueMap has one return value and an ordered list of SourceValueRules.
    A rule matches either as a substring (partial_match=True) or as a full
    regular expression match; case sensitivity is per rule. A full-match
    rule's return value may reference capture groups as $1, $2, ...

    apply_value_maps() evaluates maps and rules in declared order and the
    FIRST matching rule wins for each source value.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from attresolver.contracts import (
    AttributeValue,
    ByteValue,
    EmptyValue,
    ResolutionError,
    ScopedStringValue,
    StringValue,
    UnsupportedAttributeTypeError,
)

_GROUP_REFERENCE = re.compile(r"\$(\d+)")


def string_of(value: AttributeValue, *, plugin_id: str) -> str | None:
    """Return the string content of a value, None for empty values.

    Raises:
        UnsupportedAttributeTypeError: For byte and opaque values
    """
    if isinstance(value, EmptyValue):
        return None
    if isinstance(value, StringValue | ScopedStringValue):
        return value.value or None
    kind = "byte" if isinstance(value, ByteValue) else type(value).__name__
    raise UnsupportedAttributeTypeError(f"'{plugin_id}' requires string values, got a {kind} value")


def string_values(values: Iterable[AttributeValue], *, plugin_id: str) -> list[str]:
    """String contents of values, skipping empty ones.

    Raises:
        UnsupportedAttributeTypeError: On the first non-string value
    """
    result: list[str] = []
    for value in values:
        text = string_of(value, plugin_id=plugin_id)
        if text is not None:
            result.append(text)
    return result


@dataclass(frozen=True)
class SourceValueRule:
    """One match rule within a value map.

    Attributes:
        pattern: Substring (partial_match) or regular expression (full match)
        ignore_case: Case-insensitive matching for this rule only
        partial_match: Substring containment instead of a full regex match
    """

    pattern: str
    ignore_case: bool = False
    partial_match: bool = False
    _regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.pattern:
            raise ValueError("source value pattern must be non-empty")
        if not self.partial_match:
            flags = re.IGNORECASE if self.ignore_case else 0
            try:
                object.__setattr__(self, "_regex", re.compile(self.pattern, flags))
            except re.error as e:
                raise ValueError(f"invalid source value pattern {self.pattern!r}: {e}") from e

    def apply(self, value: str, return_value: str) -> str | None:
        """Return the mapped value if this rule matches, else None."""
        if self._regex is None:
            if self.ignore_case:
                matched = self.pattern.casefold() in value.casefold()
            else:
                matched = self.pattern in value
            return return_value if matched else None

        match = self._regex.fullmatch(value)
        if match is None:
            return None
        return _GROUP_REFERENCE.sub(lambda ref: _group_or_empty(match, int(ref.group(1))), return_value)


def _group_or_empty(match: re.Match[str], index: int) -> str:
    if index > (match.re.groups or 0):
        return ""
    return match.group(index) or ""


@dataclass(frozen=True)
class ValueMap:
    """A return value plus the rules that produce it."""

    return_value: str
    source_values: tuple[SourceValueRule, ...]

    def __post_init__(self) -> None:
        if not self.source_values:
            raise ValueError(f"value map returning {self.return_value!r} has no source values")

    def apply(self, value: str) -> str | None:
        """Result of the first matching rule, or None."""
        for rule in self.source_values:
            mapped = rule.apply(value, self.return_value)
            if mapped is not None:
                return mapped
        return None


def apply_value_maps(
    value_maps: Sequence[ValueMap],
    values: Iterable[str],
    *,
    pass_through: bool = False,
) -> list[str]:
    """Map each source value through the first matching rule.

    Args:
        value_maps: Maps in declared order
        values: Source string values, in order
        pass_through: Emit unmatched values verbatim instead of dropping them

    Returns:
        Output values in source order; duplicates are kept. Empty mapped
        values are dropped.
    """
    output: list[str] = []
    for value in values:
        mapped: str | None = None
        for value_map in value_maps:
            mapped = value_map.apply(value)
            if mapped is not None:
                break
        if mapped is None:
            if pass_through:
                output.append(value)
        elif mapped:
            output.append(mapped)
    return output


def with_default(values: list[str], default_value: str | None) -> list[str]:
    """Substitute the default as the sole value when nothing was produced."""
    if not values and default_value is not None:
        return [default_value]
    return values


def scope_values(values: Iterable[str], scope: str) -> list[ScopedStringValue]:
    """Qualify every value with one scope."""
    return [ScopedStringValue(value, scope) for value in values]


def split_prescoped(value: str, delimiter: str, *, plugin_id: str) -> ScopedStringValue:
    """Split ``value<delimiter>scope`` at the first delimiter.

    Raises:
        ResolutionError: If the delimiter is missing or either side is empty
    """
    local, sep, scope = value.partition(delimiter)
    if not sep:
        raise ResolutionError(f"'{plugin_id}': value {value!r} does not contain the scope delimiter {delimiter!r}")
    if not local or not scope:
        raise ResolutionError(f"'{plugin_id}': value {value!r} has an empty value or scope")
    return ScopedStringValue(local, scope)


def regex_first_group(regex: re.Pattern[str], value: str) -> str | None:
    """First capture group of a full match, or None if the value doesn't match.

    A pattern without groups yields the whole match. A group that
    participates in the match with zero length yields "".
    """
    match = regex.fullmatch(value)
    if match is None:
        return None
    if regex.groups == 0:
        return match.group(0)
    return match.group(1) or ""

