"""Scoped and prescoped attribute definitions.

Both produce ScopedStringValues. The scoped definition attaches a scope it
is given (a literal or a one-valued dependency attribute); the prescoped
definition splits values that already carry their scope ("jdoe@example.org").
"""

from collections.abc import Sequence
from typing import Self

from pydantic import Field, model_validator

from attresolver.contracts import AttributeValue, ComponentInitializationError, Dependency, ResolutionError
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition
from attresolver.plugins.config_base import AttributeDefinitionConfig
from attresolver.plugins.dependency_support import get_merged_attribute_values
from attresolver.plugins.value_transforms import scope_values, split_prescoped, string_values


class ScopedConfig(AttributeDefinitionConfig):
    """Configuration for the scoped definition.

    Exactly one of scope and scope_source must be set.
    """

    scope: str | None = Field(default=None, min_length=1, description="Literal scope for every value")
    scope_source: Dependency | None = Field(
        default=None,
        description="Dependency attribute ('id' or 'id.attribute') supplying the scope; must yield one value",
    )

    @model_validator(mode="before")
    @classmethod
    def parse_scope_source(cls, data: object) -> object:
        if isinstance(data, dict) and data.get("scope_source") is not None and not isinstance(data["scope_source"], Dependency):
            return {**data, "scope_source": Dependency.parse(data["scope_source"])}
        return data

    @model_validator(mode="after")
    def validate_scope_choice(self) -> Self:
        if (self.scope is None) == (self.scope_source is None):
            raise ValueError("exactly one of 'scope' and 'scope_source' must be set")
        if self.scope_source is not None and self.scope_source in self.dependencies:
            raise ValueError(f"scope_source '{self.scope_source}' must not also be listed in dependencies")
        return self


class ScopedDefinition(BaseAttributeDefinition):
    """Qualify string values with a scope.

    Config options:
        dependencies: Required. Values to scope
        scope: Literal scope
        scope_source: Dependency whose single value is the scope
    """

    name = "scoped"
    plugin_version = "1.0.0"
    config_class = ScopedConfig

    @property
    def config(self) -> ScopedConfig:
        config = super().config
        assert isinstance(config, ScopedConfig)
        return config

    @property
    def dependencies(self) -> Sequence[Dependency]:
        # The scope source is resolved like any other dependency
        declared = tuple(super().dependencies)
        if self._config is None or self.config.scope_source is None:
            return declared
        return (*declared, self.config.scope_source)

    def _value_dependencies(self) -> Sequence[Dependency]:
        return tuple(super().dependencies)

    def _validate(self) -> None:
        if not self._value_dependencies():
            raise ComponentInitializationError(f"Attribute definition '{self.id}' requires at least one dependency")

    def _scope(self, context: ResolutionContext) -> str:
        source = self.config.scope_source
        if source is None:
            assert self.config.scope is not None
            return self.config.scope
        scopes = string_values(get_merged_attribute_values(context, [source]), plugin_id=self.id)
        if len(scopes) != 1:
            raise ResolutionError(f"scope source '{source}' must yield exactly one value, got {len(scopes)}")
        return scopes[0]

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        scope = self._scope(context)
        values = string_values(get_merged_attribute_values(context, self._value_dependencies()), plugin_id=self.id)
        return list(scope_values(values, scope))


class PrescopedConfig(AttributeDefinitionConfig):
    """Configuration for the prescoped definition."""

    scope_delimiter: str = Field(default="@", min_length=1)


class PrescopedDefinition(BaseAttributeDefinition):
    """Split "value<delimiter>scope" strings into scoped values.

    A value without the delimiter fails the definition.

    Config options:
        dependencies: Required. Prescoped values
        scope_delimiter: Separator between value and scope (default: "@")
    """

    name = "prescoped"
    plugin_version = "1.0.0"
    config_class = PrescopedConfig

    @property
    def config(self) -> PrescopedConfig:
        config = super().config
        assert isinstance(config, PrescopedConfig)
        return config

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        values = string_values(get_merged_attribute_values(context, self.dependencies), plugin_id=self.id)
        return [split_prescoped(value, self.config.scope_delimiter, plugin_id=self.id) for value in values]
