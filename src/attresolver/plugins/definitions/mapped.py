"""Mapped attribute definition.

Maps string dependency values to new values through an ordered list of
value maps. For each source value the first matching rule (maps in order,
rules in order within a map) decides the output value.

Example configuration:
    - id: affiliation
      plugin: mapped
      options:
        dependencies: [ldap.eduPersonAffiliation]
        pass_through: false
        default_value: affiliate
        value_maps:
          - return_value: member
            source_values:
              - value: "staff|faculty"
              - value: stud
                partial_match: true
                ignore_case: true
"""

import re
from typing import Self

from pydantic import Field, field_validator, model_validator

from attresolver.contracts import AttributeValue, ComponentInitializationError, StringValue
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition
from attresolver.plugins.config_base import AttributeDefinitionConfig, PluginConfig
from attresolver.plugins.dependency_support import get_merged_attribute_values
from attresolver.plugins.value_transforms import (
    SourceValueRule,
    ValueMap,
    apply_value_maps,
    string_values,
    with_default,
)


class SourceValueConfig(PluginConfig):
    """One source value rule."""

    value: str = Field(min_length=1, description="Regular expression, or substring when partial_match is set")
    ignore_case: bool = False
    partial_match: bool = False

    @model_validator(mode="after")
    def validate_pattern(self) -> Self:
        if not self.partial_match:
            try:
                re.compile(self.value)
            except re.error as e:
                raise ValueError(f"invalid source value pattern {self.value!r}: {e}") from e
        return self

    def to_rule(self) -> SourceValueRule:
        return SourceValueRule(self.value, ignore_case=self.ignore_case, partial_match=self.partial_match)


class ValueMapConfig(PluginConfig):
    """A return value and the rules that produce it."""

    return_value: str
    source_values: list[SourceValueConfig] = Field(min_length=1)

    def to_value_map(self) -> ValueMap:
        return ValueMap(self.return_value, tuple(rule.to_rule() for rule in self.source_values))


class MappedConfig(AttributeDefinitionConfig):
    """Configuration for the mapped definition."""

    value_maps: list[ValueMapConfig] = Field(default_factory=list)
    pass_through: bool = Field(default=False, description="Emit unmatched values unchanged")
    default_value: str | None = Field(
        default=None,
        description="Sole output value when no source value produced an output",
    )

    @field_validator("default_value")
    @classmethod
    def normalize_default(cls, v: str | None) -> str | None:
        # An empty default means "no default"
        return v or None


class MappedDefinition(BaseAttributeDefinition):
    """Map string values through ordered value maps.

    Config options:
        dependencies: Required. Source values, merged in declaration order
        value_maps: Required. List of {return_value, source_values}; each
            source value is {value, ignore_case, partial_match}
        pass_through: Emit unmatched values unchanged (default: False)
        default_value: Emitted once when nothing else was produced
    """

    name = "mapped"
    plugin_version = "1.0.0"
    config_class = MappedConfig

    def __init__(self, plugin_id: str) -> None:
        super().__init__(plugin_id)
        self._value_maps: tuple[ValueMap, ...] = ()

    @property
    def config(self) -> MappedConfig:
        config = super().config
        assert isinstance(config, MappedConfig)
        return config

    @property
    def value_maps(self) -> tuple[ValueMap, ...]:
        return self._value_maps

    def _validate(self) -> None:
        super()._validate()
        if not self.config.value_maps:
            raise ComponentInitializationError(f"Mapped attribute definition '{self.id}' requires at least one value map")

    def _on_initialize(self) -> None:
        self._value_maps = tuple(value_map.to_value_map() for value_map in self.config.value_maps)

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        sources = string_values(get_merged_attribute_values(context, self.dependencies), plugin_id=self.id)
        mapped = apply_value_maps(self._value_maps, sources, pass_through=self.config.pass_through)
        return [StringValue(value) for value in with_default(mapped, self.config.default_value)]
