"""Static data connector: attributes fixed in configuration."""

from typing import Any

from pydantic import Field

from attresolver.contracts import IdPAttribute
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseDataConnector
from attresolver.plugins.config_base import DataConnectorConfig


class StaticConfig(DataConnectorConfig):
    """Configuration for the static connector."""

    attributes: dict[str, list[Any]] = Field(
        default_factory=dict,
        description="Raw attribute name -> values returned for every request",
    )


class StaticConnector(BaseDataConnector):
    """Return the same attributes for every request.

    Config options:
        attributes: Mapping of attribute name to a list of values
    """

    name = "static"
    plugin_version = "1.0.0"
    config_class = StaticConfig

    def __init__(self, plugin_id: str, **kwargs: Any) -> None:
        super().__init__(plugin_id, **kwargs)
        self._attributes: dict[str, IdPAttribute] = {}

    @property
    def config(self) -> StaticConfig:
        config = super().config
        assert isinstance(config, StaticConfig)
        return config

    def _on_initialize(self) -> None:
        super()._on_initialize()
        self._attributes = {name: IdPAttribute.of(name, values) for name, values in self.config.attributes.items()}

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        return dict(self._attributes)
