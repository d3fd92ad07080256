"""Per-request resolution context.

A ResolutionContext is created for exactly one resolution request and
discarded afterwards. It is never shared between threads, so it needs no
locking; the plugins it is resolved against are shared and read-only.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from attresolver.contracts import IdPAttribute, PluginResult


@dataclass
class ResolutionContext:
    """Request-scoped memo tables plus the request being resolved.

    Attributes:
        principal: Authenticated principal name
        requester: Relying party entity id, if known
        issuer: Identity provider entity id, if known
        requested: Attribute ids the caller asked for (informational;
            plugins may use it in activation conditions)
        resolved_definitions: Definition id -> result (memo table)
        resolved_connectors: Connector id -> result (memo table)
        in_progress: Plugin ids on the current resolution path, outermost
            first (cycle sentinel)
        resolved_attributes: Final attribute set, populated by
            AttributeResolver.resolve_attributes()
    """

    principal: str
    requester: str | None = None
    issuer: str | None = None
    requested: tuple[str, ...] = ()
    context_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    resolved_definitions: dict[str, PluginResult] = field(default_factory=dict)
    resolved_connectors: dict[str, PluginResult] = field(default_factory=dict)
    in_progress: list[str] = field(default_factory=list)
    resolved_attributes: dict[str, IdPAttribute] = field(default_factory=dict)

    @classmethod
    def for_request(
        cls,
        principal: str,
        *,
        requester: str | None = None,
        issuer: str | None = None,
        requested: Iterable[str] = (),
    ) -> ResolutionContext:
        """Create a fresh context for one request."""
        return cls(principal=principal, requester=requester, issuer=issuer, requested=tuple(requested))

    def get_result(self, plugin_id: str) -> PluginResult | None:
        """Memoized result for a plugin of either kind, or None if not yet resolved."""
        if plugin_id in self.resolved_definitions:
            return self.resolved_definitions[plugin_id]
        return self.resolved_connectors.get(plugin_id)

    def is_resolved(self, plugin_id: str) -> bool:
        return plugin_id in self.resolved_definitions or plugin_id in self.resolved_connectors

    def request_namespace(self) -> dict[str, Any]:
        """The `request` mapping seen by activation conditions and templates."""
        return {
            "principal": self.principal,
            "requester": self.requester,
            "issuer": self.issuer,
            "requested": list(self.requested),
        }
