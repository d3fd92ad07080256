"""DependencyGraph: static view of the resolver plugin graph.

Edges point from a dependency to its dependent (the direction values
flow), so a topological sort yields dependencies first. A connector's
failover target is an edge too: the target is resolved while the failing
connector is still on the resolution path, so anything the target needs
must not need that connector.

The graph loader runs validate() once at configuration time. The resolver
still detects cycles dynamically per request; this class exists so a bad
graph is rejected before any request is served.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, cast

import networkx as nx
from networkx import DiGraph

from attresolver.contracts.enums import PluginKind
from attresolver.core.dag.models import GraphValidationError, NodeInfo, _suggest_similar

if TYPE_CHECKING:
    from attresolver.plugins.protocols import DataConnectorProtocol, ResolverPluginProtocol


class DependencyGraph:
    """Dependency graph over attribute definitions and data connectors.

    Wraps a NetworkX DiGraph with domain-specific operations.

    Example:
        graph = DependencyGraph.from_plugins([*definitions, *connectors])
        graph.validate()
        order = graph.resolution_order()
    """

    def __init__(self) -> None:
        self._graph: DiGraph[str] = nx.DiGraph()

    @classmethod
    def from_plugins(cls, plugins: Iterable[ResolverPluginProtocol]) -> DependencyGraph:
        """Build a graph from plugin instances.

        Raises:
            GraphValidationError: If two plugins share an id
        """
        graph = cls()
        for plugin in plugins:
            failover_id = None
            if plugin.kind == PluginKind.DATA_CONNECTOR:
                failover_id = cast("DataConnectorProtocol", plugin).failover_connector_id
            graph.add_plugin(
                NodeInfo(
                    plugin_id=plugin.id,
                    kind=plugin.kind,
                    plugin_name=plugin.name,
                    dependencies=tuple(plugin.dependencies),
                    failover_id=failover_id,
                )
            )
        return graph

    def has_plugin(self, plugin_id: str) -> bool:
        """Check if a plugin with this id was declared."""
        return self._graph.has_node(plugin_id) and "info" in self._graph.nodes[plugin_id]

    def add_plugin(self, info: NodeInfo) -> None:
        """Add a plugin, the edges to its dependencies and to its failover target.

        Dependencies and failover targets on undeclared ids create
        placeholder nodes; validate() reports them.

        Raises:
            GraphValidationError: If a plugin with the same id was already added
        """
        if self.has_plugin(info.plugin_id):
            existing: NodeInfo = self._graph.nodes[info.plugin_id]["info"]
            raise GraphValidationError(
                f"Duplicate plugin id '{info.plugin_id}': declared as both {existing.kind} '{existing.plugin_name}' "
                f"and {info.kind} '{info.plugin_name}'. Ids must be unique across definitions and connectors."
            )
        self._graph.add_node(info.plugin_id, info=info)
        for dep in info.dependencies:
            self._graph.add_edge(dep.plugin_id, info.plugin_id)
        if info.failover_id is not None:
            self._graph.add_edge(info.failover_id, info.plugin_id)

    def get_node_info(self, plugin_id: str) -> NodeInfo:
        """Get NodeInfo for a declared plugin.

        Raises:
            KeyError: If the plugin was not declared
        """
        if not self.has_plugin(plugin_id):
            raise KeyError(f"Plugin not found: {plugin_id}")
        info: NodeInfo = self._graph.nodes[plugin_id]["info"]
        return info

    def validate(self) -> None:
        """Validate the graph structure.

        Validates:
        1. Every dependency names a declared plugin
        2. Attribute-scoped dependencies target data connectors only
        3. Failover targets are declared data connectors
        4. Graph is acyclic, counting failover edges

        Raises:
            GraphValidationError: If validation fails
        """
        declared = self._declared()
        for plugin_id in sorted(declared):
            info = self.get_node_info(plugin_id)
            for dep in info.dependencies:
                if dep.plugin_id not in declared:
                    suggestions = _suggest_similar(dep.plugin_id, sorted(declared))
                    hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
                    raise GraphValidationError(f"Plugin '{plugin_id}' depends on unknown plugin '{dep.plugin_id}'.{hint}")
                target = self.get_node_info(dep.plugin_id)
                if dep.attribute_id is not None and target.kind != PluginKind.DATA_CONNECTOR:
                    raise GraphValidationError(
                        f"Plugin '{plugin_id}' names attribute '{dep.attribute_id}' of '{dep.plugin_id}', "
                        f"but '{dep.plugin_id}' is an attribute definition. Only data connector dependencies may name an attribute."
                    )
            if info.failover_id is not None:
                target_id = info.failover_id
                if target_id not in declared or self.get_node_info(target_id).kind != PluginKind.DATA_CONNECTOR:
                    raise GraphValidationError(f"Data connector '{plugin_id}' names unknown failover connector '{target_id}'")

        if not nx.is_directed_acyclic_graph(self._graph):
            try:
                cycle = nx.find_cycle(self._graph)
                path = [edge[0] for edge in cycle]
                path.append(cycle[0][0])
                raise GraphValidationError(f"Dependency graph contains a cycle: {' -> '.join(path)}")
            except nx.NetworkXNoCycle:
                raise GraphValidationError("Dependency graph contains a cycle") from None

    def resolution_order(self) -> list[str]:
        """Plugin ids with every dependency before its dependents.

        Ties are broken by id so the order is stable across runs.

        Raises:
            GraphValidationError: If the graph contains a cycle
        """
        try:
            order = list(nx.lexicographical_topological_sort(self._graph))
        except nx.NetworkXUnfeasible as e:
            raise GraphValidationError(f"Dependency graph contains a cycle: {e}") from e
        declared = self._declared()
        return [plugin_id for plugin_id in order if plugin_id in declared]

    def _declared(self) -> set[str]:
        return {node_id for node_id, data in self._graph.nodes(data=True) if "info" in data}
