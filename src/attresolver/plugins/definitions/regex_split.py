"""Regex split attribute definition."""

import re
from typing import Self

from pydantic import Field, model_validator

from attresolver.contracts import ZERO_LENGTH_VALUE, AttributeValue, StringValue
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition
from attresolver.plugins.config_base import AttributeDefinitionConfig
from attresolver.plugins.dependency_support import get_merged_attribute_values
from attresolver.plugins.value_transforms import regex_first_group, string_values


class RegexSplitConfig(AttributeDefinitionConfig):
    """Configuration for the regex split definition."""

    regex: str = Field(min_length=1, description="Pattern matched against the whole value")
    ignore_case: bool = False

    @model_validator(mode="after")
    def validate_regex(self) -> Self:
        try:
            re.compile(self.regex)
        except re.error as e:
            raise ValueError(f"invalid regex {self.regex!r}: {e}") from e
        return self


class RegexSplitDefinition(BaseAttributeDefinition):
    """Emit the first capture group of each matching value.

    Values that don't match the whole pattern contribute nothing.

    Config options:
        dependencies: Required. Source values
        regex: Required. Pattern; group 1 becomes the output value
        ignore_case: Case-insensitive matching (default: False)
    """

    name = "regex_split"
    plugin_version = "1.0.0"
    config_class = RegexSplitConfig

    def __init__(self, plugin_id: str) -> None:
        super().__init__(plugin_id)
        self._regex: re.Pattern[str] | None = None

    @property
    def config(self) -> RegexSplitConfig:
        config = super().config
        assert isinstance(config, RegexSplitConfig)
        return config

    def _on_initialize(self) -> None:
        self._regex = re.compile(self.config.regex, re.IGNORECASE if self.config.ignore_case else 0)

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        assert self._regex is not None
        output: list[AttributeValue] = []
        for value in string_values(get_merged_attribute_values(context, self.dependencies), plugin_id=self.id):
            group = regex_first_group(self._regex, value)
            if group is None:
                continue
            output.append(StringValue(group) if group else ZERO_LENGTH_VALUE)
        return output
