# src/attresolver/plugins/__init__.py
"""Plugin system: attribute definitions and data connectors via pluggy.

This module provides the plugin infrastructure for the resolver:

- Protocols: Type contracts for plugin implementations
- Base classes: Lifecycle state machine and failure policy
- Config base classes: Typed, strict plugin options
- Manager: Plugin discovery and registration
- Hookspecs: pluggy hook definitions

Built-in plugins live in plugins/definitions and plugins/connectors and are
discovered by folder scanning (see discovery.py).
"""

from attresolver.plugins.base import (
    BaseAttributeDefinition,
    BaseDataConnector,
    BaseResolverPlugin,
)
from attresolver.plugins.config_base import (
    AttributeDefinitionConfig,
    DataConnectorConfig,
    ExternalConnectorConfig,
    PluginConfig,
    PluginConfigError,
    ResolverPluginConfig,
    ResultsCacheConfig,
)
from attresolver.plugins.hookspecs import hookimpl, hookspec
from attresolver.plugins.manager import PluginManager, PluginSpec
from attresolver.plugins.protocols import (
    AttributeDefinitionProtocol,
    DataConnectorProtocol,
    ResolverPluginProtocol,
)

__all__ = [  # Grouped by category for readability
    # Base classes
    "BaseAttributeDefinition",
    "BaseDataConnector",
    "BaseResolverPlugin",
    # Config
    "AttributeDefinitionConfig",
    "DataConnectorConfig",
    "ExternalConnectorConfig",
    "PluginConfig",
    "PluginConfigError",
    "ResolverPluginConfig",
    "ResultsCacheConfig",
    # Registration
    "PluginManager",
    "PluginSpec",
    "hookimpl",
    "hookspec",
    # Protocols
    "AttributeDefinitionProtocol",
    "DataConnectorProtocol",
    "ResolverPluginProtocol",
]
