"""Per-plugin resolution outcomes.

These types answer: "What did a plugin produce for this request?"

A PluginResult is what the resolver stores in a context's memo table.
Use the factory methods to create instances.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from attresolver.contracts.attribute import IdPAttribute
from attresolver.contracts.enums import ResolutionStatus
from attresolver.contracts.errors import FailureReason, ResolutionError

_NO_ATTRIBUTES: Mapping[str, IdPAttribute] = MappingProxyType({})


@dataclass(frozen=True)
class PluginResult:
    """Outcome of resolving one plugin.

    For an attribute definition, ``attributes`` holds exactly one entry
    keyed by the definition id. For a data connector it maps raw attribute
    name to attribute.

    Invariants (checked in __post_init__):
    - RESOLVED has at least one attribute
    - EMPTY, SKIPPED and FAILED have none
    - FAILED carries a reason and the originating error
    """

    status: ResolutionStatus
    attributes: Mapping[str, IdPAttribute] = field(default=_NO_ATTRIBUTES)
    reason: FailureReason | None = None
    error: ResolutionError | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.status == ResolutionStatus.RESOLVED and not self.attributes:
            raise ValueError("PluginResult with status 'resolved' MUST carry at least one attribute; use PluginResult.empty() instead")
        if self.status != ResolutionStatus.RESOLVED and self.attributes:
            raise ValueError(f"PluginResult with status '{self.status}' must not carry attributes")
        if self.status == ResolutionStatus.FAILED and (self.reason is None or self.error is None):
            raise ValueError("PluginResult with status 'failed' MUST provide reason and error; use PluginResult.failed(error)")

    @classmethod
    def resolved(cls, attributes: Mapping[str, IdPAttribute]) -> PluginResult:
        """Create a result carrying values.

        Attributes with no values are dropped; if none remain the result is EMPTY.
        """
        kept = {name: attr for name, attr in attributes.items() if attr.values}
        if not kept:
            return cls.empty()
        return cls(status=ResolutionStatus.RESOLVED, attributes=MappingProxyType(kept))

    @classmethod
    def of_attribute(cls, attribute: IdPAttribute) -> PluginResult:
        """Create a definition result from its single output attribute."""
        return cls.resolved({attribute.id: attribute})

    @classmethod
    def empty(cls) -> PluginResult:
        """Create a legitimate empty result (no rows, no matching rule)."""
        return cls(status=ResolutionStatus.EMPTY)

    @classmethod
    def skipped(cls) -> PluginResult:
        """Create a result for a plugin whose activation condition was false."""
        return cls(status=ResolutionStatus.SKIPPED)

    @classmethod
    def failed(cls, error: ResolutionError) -> PluginResult:
        """Create a failed result from the error the plugin raised."""
        return cls(status=ResolutionStatus.FAILED, reason=error.to_reason(), error=error)

    @property
    def is_failed(self) -> bool:
        return self.status == ResolutionStatus.FAILED

    @property
    def has_values(self) -> bool:
        """True if this result contributes any values."""
        return self.status == ResolutionStatus.RESOLVED
