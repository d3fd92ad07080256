"""Build an AttributeResolver from validated settings.

Steps:
1. Instantiate each declared plugin from the registry by plugin name
2. configure() it with its options (the deployment-wide retry policy is
   filled in for connectors that accept one and don't set their own)
3. Statically validate the whole graph: unknown dependencies, cycles and
   failover wiring fail here, before any request is served
4. initialize() every plugin; if one fails, the ones already initialized
   are destroyed again
"""

from __future__ import annotations

from typing import Any

from attresolver.contracts import ConfigurationError
from attresolver.core.config import PluginSettings, ResolverSettings
from attresolver.core.dag import DependencyGraph, GraphValidationError
from attresolver.core.logging import get_logger
from attresolver.engine.resolver import AttributeResolver
from attresolver.plugins.base import BaseAttributeDefinition, BaseDataConnector, BaseResolverPlugin
from attresolver.plugins.manager import PluginManager

logger = get_logger(__name__)


def _options_for(cls: type[BaseResolverPlugin], declared: PluginSettings, settings: ResolverSettings) -> dict[str, Any]:
    options = dict(declared.options)
    if "retry" in cls.config_class.model_fields and "retry" not in options:
        options["retry"] = settings.retry.model_dump()
    return options


def _instantiate_definition(declared: PluginSettings, settings: ResolverSettings, manager: PluginManager) -> BaseAttributeDefinition:
    cls = manager.get_definition_by_name(declared.plugin)
    if cls is None:
        available = sorted(c.name for c in manager.get_definitions())
        raise ConfigurationError(f"Attribute definition '{declared.id}': unknown plugin '{declared.plugin}'. Available: {available}")
    definition = cls(declared.id)
    definition.configure(_options_for(cls, declared, settings))
    return definition


def _instantiate_connector(declared: PluginSettings, settings: ResolverSettings, manager: PluginManager) -> BaseDataConnector:
    cls = manager.get_connector_by_name(declared.plugin)
    if cls is None:
        available = sorted(c.name for c in manager.get_connectors())
        raise ConfigurationError(f"Data connector '{declared.id}': unknown plugin '{declared.plugin}'. Available: {available}")
    connector = cls(declared.id)
    connector.configure(_options_for(cls, declared, settings))
    return connector


def validate_failover(connectors: list[BaseDataConnector]) -> None:
    """Failover targets must be declared connectors and must not chain back.

    Failover targets that depend on the connector they stand in for are
    cycles in the dependency graph and are reported by its validate().

    Raises:
        GraphValidationError: On an unknown target or a failover loop
    """
    by_id = {connector.id: connector for connector in connectors}
    for connector in connectors:
        target = connector.failover_connector_id
        if target is not None and target not in by_id:
            raise GraphValidationError(f"Data connector '{connector.id}' names unknown failover connector '{target}'")

    for connector in connectors:
        chain = [connector.id]
        target = connector.failover_connector_id
        while target is not None:
            if target in chain:
                raise GraphValidationError(f"Failover loop: {' -> '.join([*chain, target])}")
            chain.append(target)
            target = by_id[target].failover_connector_id


def build_resolver(settings: ResolverSettings, manager: PluginManager) -> AttributeResolver:
    """Instantiate, validate and initialize the configured plugin graph.

    Args:
        settings: Validated resolver settings
        manager: Registry with every plugin the settings refer to

    Returns:
        A resolver ready to serve requests

    Raises:
        ConfigurationError: Unknown plugin names, invalid options, invalid
            wiring, or a plugin that fails to initialize
    """
    definitions = [_instantiate_definition(d, settings, manager) for d in settings.attribute_definitions]
    connectors = [_instantiate_connector(c, settings, manager) for c in settings.data_connectors]
    plugins: list[BaseResolverPlugin] = [*definitions, *connectors]

    validate_failover(connectors)
    graph = DependencyGraph.from_plugins(plugins)
    graph.validate()

    initialized: list[BaseResolverPlugin] = []
    try:
        for plugin in plugins:
            plugin.initialize()
            initialized.append(plugin)
    except ConfigurationError:
        for plugin in initialized:
            plugin.destroy()
        raise

    logger.info(
        "resolver_built",
        definitions=len(definitions),
        connectors=len(connectors),
        resolution_order=graph.resolution_order(),
    )
    return AttributeResolver(
        definitions,
        connectors,
        requested=settings.requested,
        strip_nulls=settings.strip_nulls,
    )
