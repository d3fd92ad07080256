# src/attresolver/core/dag/models.py
"""Types and exceptions for dependency graph operations.

Leaf module: imports only from contracts (prevents import cycles).
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass

from attresolver.contracts.dependency import Dependency
from attresolver.contracts.enums import PluginKind
from attresolver.contracts.errors import ConfigurationError


class GraphValidationError(ConfigurationError):
    """Raised when static validation of the plugin graph fails."""


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """Information about one plugin in the dependency graph.

    Attributes:
        plugin_id: Unique id across definitions and connectors
        kind: Attribute definition or data connector
        plugin_name: Registered plugin type name (e.g., "mapped", "rdbms")
        dependencies: Declared dependencies, in declaration order
        failover_id: Connector resolved in place of this one when it fails
    """

    plugin_id: str
    kind: PluginKind
    plugin_name: str
    dependencies: tuple[Dependency, ...] = ()
    failover_id: str | None = None


def _suggest_similar(name: str, candidates: list[str]) -> list[str]:
    """Suggest similar plugin ids for wiring validation errors."""
    return difflib.get_close_matches(name, candidates, n=3, cutoff=0.6)
