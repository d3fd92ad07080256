# src/attresolver/plugins/protocols.py
"""Plugin protocols defining the contracts for each plugin type.

These protocols define what the resolver needs from a plugin. They are used
for type checking; runtime discovery relies on the base classes in base.py.

Plugin Types:
- Attribute Definition: computes one named attribute from its dependencies
- Data Connector: fetches raw attributes from an external system
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from attresolver.contracts import Dependency, IdPAttribute, PluginKind, PluginResult, PluginState

if TYPE_CHECKING:
    from attresolver.engine.context import ResolutionContext


@runtime_checkable
class ResolverPluginProtocol(Protocol):
    """The one capability the resolver dispatches on.

    Lifecycle:
    1. __init__(plugin_id) - UNCONFIGURED
    2. configure(options) - CONFIGURED (repeatable until initialized)
    3. initialize() - INITIALIZED, locked against mutation
    4. resolve(context) - any number of times, from any thread
    5. destroy() - DESTROYED, permanently unusable
    """

    name: str
    plugin_version: str
    kind: PluginKind

    @property
    def id(self) -> str: ...

    @property
    def state(self) -> PluginState: ...

    @property
    def dependencies(self) -> Sequence[Dependency]: ...

    @property
    def propagate_errors(self) -> bool: ...

    def configure(self, options: dict[str, Any]) -> None: ...

    def initialize(self) -> None: ...

    def destroy(self) -> None: ...

    def is_active(self, context: "ResolutionContext") -> bool: ...

    def resolve(self, context: "ResolutionContext") -> PluginResult: ...


@runtime_checkable
class AttributeDefinitionProtocol(ResolverPluginProtocol, Protocol):
    """Protocol for attribute definitions."""

    @property
    def output_id(self) -> str: ...

    @property
    def dependency_only(self) -> bool: ...


@runtime_checkable
class DataConnectorProtocol(ResolverPluginProtocol, Protocol):
    """Protocol for data connectors."""

    @property
    def failover_connector_id(self) -> str | None: ...

    def exported_attributes(self, result: PluginResult) -> dict[str, IdPAttribute]: ...
