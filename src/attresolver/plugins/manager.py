# src/attresolver/plugins/manager.py
"""Plugin manager for discovery, registration, and lookup.

Uses pluggy for hook-based plugin registration.
"""

from dataclasses import dataclass
from typing import Any

import pluggy

from attresolver.contracts import PluginKind
from attresolver.core.canonical import stable_hash
from attresolver.plugins.base import BaseAttributeDefinition, BaseDataConnector, BaseResolverPlugin
from attresolver.plugins.hookspecs import (
    PROJECT_NAME,
    AttributeDefinitionSpec,
    DataConnectorSpec,
)


def _config_hash(plugin_cls: type[BaseResolverPlugin]) -> str:
    """Stable hash of a plugin's option names and types.

    Changes whenever the accepted configuration changes shape.
    """
    fields_repr = {name: str(field.annotation) for name, field in plugin_cls.config_class.model_fields.items()}
    return stable_hash(fields_repr)


@dataclass(frozen=True)
class PluginSpec:
    """Registration record for a plugin type.

    Frozen for immutability - plugin specs shouldn't change after creation.
    """

    name: str
    kind: PluginKind
    version: str
    config_hash: str

    @classmethod
    def from_plugin(cls, plugin_cls: type[BaseResolverPlugin]) -> "PluginSpec":
        """Create spec from a plugin class."""
        return cls(
            name=plugin_cls.name,
            kind=plugin_cls.kind,
            version=plugin_cls.plugin_version,
            config_hash=_config_hash(plugin_cls),
        )


class PluginManager:
    """Manages plugin discovery, registration, and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        definitions = manager.get_definitions()
        mapped = manager.get_definition_by_name("mapped")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)

        # Register hookspecs
        self._pm.add_hookspecs(AttributeDefinitionSpec)
        self._pm.add_hookspecs(DataConnectorSpec)

        # Caches - map name to plugin class for duplicate detection
        self._definitions: dict[str, type[BaseAttributeDefinition]] = {}
        self._connectors: dict[str, type[BaseDataConnector]] = {}

    def register_builtin_plugins(self) -> None:
        """Discover and register all built-in plugins.

        Scans plugin directories for classes inheriting from base classes
        and registers them via dynamically-generated hookimpls.

        Call this once at startup to make built-in plugins discoverable.
        """
        from attresolver.plugins.discovery import create_dynamic_hookimpl, discover_all_plugins

        discovered = discover_all_plugins()

        self.register(create_dynamic_hookimpl(discovered["definitions"], "attresolver_get_attribute_definitions"))
        self.register(create_dynamic_hookimpl(discovered["connectors"], "attresolver_get_data_connectors"))

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            # Leave the manager as it was before the offending registration
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        """Refresh plugin caches from hooks.

        Raises:
            ValueError: If a plugin with the same name and kind is already registered
        """
        new_definitions: dict[str, type[BaseAttributeDefinition]] = {}
        new_connectors: dict[str, type[BaseDataConnector]] = {}

        for definitions in self._pm.hook.attresolver_get_attribute_definitions():
            for cls in definitions:
                name = cls.name
                if name in new_definitions:
                    raise ValueError(f"Duplicate attribute definition plugin name: '{name}'. Already registered by {new_definitions[name].__name__}")
                new_definitions[name] = cls

        for connectors in self._pm.hook.attresolver_get_data_connectors():
            for cls in connectors:
                name = cls.name
                if name in new_connectors:
                    raise ValueError(f"Duplicate data connector plugin name: '{name}'. Already registered by {new_connectors[name].__name__}")
                new_connectors[name] = cls

        # All validated, update caches
        self._definitions = new_definitions
        self._connectors = new_connectors

    # === Getters ===

    def get_definitions(self) -> list[type[BaseAttributeDefinition]]:
        """Get all registered attribute definition plugins."""
        return list(self._definitions.values())

    def get_connectors(self) -> list[type[BaseDataConnector]]:
        """Get all registered data connector plugins."""
        return list(self._connectors.values())

    def get_specs(self) -> list[PluginSpec]:
        """Registration records for every plugin, definitions first."""
        return [PluginSpec.from_plugin(cls) for cls in [*self._definitions.values(), *self._connectors.values()]]

    # === Lookup by name ===

    def get_definition_by_name(self, name: str) -> type[BaseAttributeDefinition] | None:
        """Get attribute definition plugin by name."""
        return self._definitions.get(name)

    def get_connector_by_name(self, name: str) -> type[BaseDataConnector] | None:
        """Get data connector plugin by name."""
        return self._connectors.get(name)
