# src/attresolver/plugins/hookspecs.py
"""pluggy hook specifications for resolver plugins.

Plugins implement these hooks to register themselves with the resolver.
The plugin manager calls these hooks during discovery.

Usage (implementing a plugin):
    from attresolver.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def attresolver_get_attribute_definitions(self):
            return [MyDefinition]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from attresolver.plugins.base import BaseAttributeDefinition, BaseDataConnector

# Project name for pluggy
PROJECT_NAME = "attresolver"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class AttributeDefinitionSpec:
    """Hook specifications for attribute definition plugins."""

    @hookspec
    def attresolver_get_attribute_definitions(self) -> list[type["BaseAttributeDefinition"]]:  # type: ignore[empty-body]
        """Return attribute definition plugin classes.

        Returns:
            List of definition classes (not instances)
        """


class DataConnectorSpec:
    """Hook specifications for data connector plugins."""

    @hookspec
    def attresolver_get_data_connectors(self) -> list[type["BaseDataConnector"]]:  # type: ignore[empty-body]
        """Return data connector plugin classes.

        Returns:
            List of connector classes (not instances)
        """
