"""Simple attribute definition: dependency values, unchanged."""

from pydantic import Field

from attresolver.contracts import AttributeValue, EmptyValue
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition
from attresolver.plugins.config_base import AttributeDefinitionConfig
from attresolver.plugins.dependency_support import get_merged_attribute_values


class SimpleConfig(AttributeDefinitionConfig):
    """Configuration for the simple definition."""

    strip_nulls: bool = Field(default=False, description="Drop null and zero-length values")


class SimpleDefinition(BaseAttributeDefinition):
    """Pass dependency values through as one attribute.

    Config options:
        dependencies: Required. Values are merged in declaration order
        strip_nulls: Drop null and zero-length values (default: False)
    """

    name = "simple"
    plugin_version = "1.0.0"
    config_class = SimpleConfig

    @property
    def config(self) -> SimpleConfig:
        config = super().config
        assert isinstance(config, SimpleConfig)
        return config

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        values = get_merged_attribute_values(context, self.dependencies)
        if self.config.strip_nulls:
            return [value for value in values if not isinstance(value, EmptyValue)]
        return values
