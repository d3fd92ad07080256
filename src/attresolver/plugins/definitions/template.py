"""Template attribute definition.

Renders a jinja2 template once per value index across its source
attributes: value i of the output is the template rendered with value i of
every source attribute. All source attributes must carry the same number
of values.

Templates run in a SandboxedEnvironment with StrictUndefined, so a typo in
a variable name fails the definition instead of rendering "".

Example:
    template: "{{ uid }}@{{ request.issuer }}"
    source_attributes: [uid]
"""

from typing import Any

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment
from pydantic import Field

from attresolver.contracts import (
    AttributeValue,
    ByteValue,
    ComponentInitializationError,
    EmptyValue,
    OpaqueValue,
    ResolutionError,
    ScopedStringValue,
    StringValue,
)
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition
from attresolver.plugins.config_base import AttributeDefinitionConfig
from attresolver.plugins.dependency_support import get_all_attribute_values


class TemplateConfig(AttributeDefinitionConfig):
    """Configuration for the template definition."""

    template: str = Field(min_length=1, description="jinja2 template text")
    source_attributes: list[str] = Field(
        default_factory=list,
        description="Source attribute names exposed to the template (default: every dependency attribute)",
    )


def _template_value(value: AttributeValue) -> Any:
    """Native value a template sees for one attribute value."""
    match value:
        case EmptyValue(kind="null"):
            return None
        case EmptyValue():
            return ""
        case StringValue(value=text) | ScopedStringValue(value=text):
            return text
        case ByteValue(value=data):
            return data
        case OpaqueValue(value=native):
            return native
    raise TypeError(f"unexpected attribute value {value!r}")


class TemplateDefinition(BaseAttributeDefinition):
    """Build values by rendering a jinja2 template.

    Config options:
        dependencies: Required. Sources of the template variables
        template: Required. jinja2 template; `request` holds the principal,
            requester and issuer
        source_attributes: Variables to expose; all must have equal value counts
    """

    name = "template"
    plugin_version = "1.0.0"
    config_class = TemplateConfig

    def __init__(self, plugin_id: str) -> None:
        super().__init__(plugin_id)
        self._env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)
        self._template: Any = None

    @property
    def config(self) -> TemplateConfig:
        config = super().config
        assert isinstance(config, TemplateConfig)
        return config

    def _on_initialize(self) -> None:
        try:
            self._template = self._env.from_string(self.config.template)
        except TemplateError as e:
            raise ComponentInitializationError(f"Template attribute definition '{self.id}' has an invalid template: {e}") from e

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        available = get_all_attribute_values(context, self.dependencies)
        names = self.config.source_attributes or sorted(available)
        sources = {name: available.get(name, []) for name in names}

        counts = {len(values) for values in sources.values()}
        if len(counts) > 1:
            detail = ", ".join(f"{name}={len(values)}" for name, values in sources.items())
            raise ResolutionError(f"source attributes have different numbers of values ({detail})")
        count = counts.pop() if counts else 0

        request = context.request_namespace()
        output: list[AttributeValue] = []
        for index in range(count):
            variables = {name: _template_value(values[index]) for name, values in sources.items()}
            try:
                rendered = self._template.render(request=request, **variables)
            except TemplateError as e:
                raise ResolutionError(f"template could not be rendered for value {index + 1}: {e}") from e
            output.append(StringValue(rendered))
        return output
