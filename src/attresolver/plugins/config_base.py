# src/attresolver/plugins/config_base.py
"""Base classes for typed plugin configurations.

This module provides base classes that plugins inherit from to get:
- Strict validation (reject unknown fields)
- Factory methods with clear error messages
- The options every definition or connector shares (dependencies,
  activation condition, failure policy)

Example usage:
    class MappedConfig(AttributeDefinitionConfig):
        value_maps: list[ValueMapConfig]
        pass_through: bool = False

    cfg = MappedConfig.from_dict(options)
"""

from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from attresolver.contracts.dependency import Dependency
from attresolver.contracts.errors import ConfigurationError
from attresolver.core.config import RetrySettings


class PluginConfigError(ConfigurationError):
    """Raised when plugin configuration is invalid."""


class PluginConfig(BaseModel):
    """Base class for typed plugin configurations.

    All plugin configs inherit from this class.
    """

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> Self:
        """Create config from dict with clear error on validation failure.

        Args:
            config: Dictionary of configuration values.

        Returns:
            Validated configuration instance.

        Raises:
            PluginConfigError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: config must be a dict, got {type(config).__name__}.")
        try:
            return cls.model_validate(config)
        except ValidationError as e:
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: {e}") from e
        except ValueError as e:
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: {e}") from e


class ResolverPluginConfig(PluginConfig):
    """Options shared by every attribute definition and data connector."""

    dependencies: list[Dependency] = Field(
        default_factory=list,
        description="Plugins this one reads from: 'id', 'id.attribute', or {plugin, attribute}",
    )
    activation_condition: str | None = Field(
        default=None,
        description="Expression over `request`; the plugin is skipped when it evaluates false",
    )
    propagate_errors: bool = Field(
        default=True,
        description="Fail the whole request when this plugin fails (False = best-effort)",
    )
    tolerate_failed_dependencies: bool = Field(
        default=False,
        description="Treat failed dependencies as contributing no values instead of failing",
    )

    @field_validator("dependencies", mode="before")
    @classmethod
    def parse_dependencies(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [item if isinstance(item, Dependency) else Dependency.parse(item) for item in v]

    @field_validator("dependencies")
    @classmethod
    def reject_duplicate_dependencies(cls, v: list[Dependency]) -> list[Dependency]:
        """Dependencies are an ordered set."""
        seen: set[Dependency] = set()
        for dep in v:
            if dep in seen:
                raise ValueError(f"duplicate dependency '{dep}'")
            seen.add(dep)
        return v


class AttributeDefinitionConfig(ResolverPluginConfig):
    """Options shared by every attribute definition."""

    output_id: str | None = Field(
        default=None,
        description="Id of the produced attribute (defaults to the plugin id)",
    )
    dependency_only: bool = Field(
        default=False,
        description="Resolve for other plugins only; never part of the final attribute set",
    )


class ResultsCacheConfig(PluginConfig):
    """Bounds for a data connector's cross-request results cache."""

    max_size: int = Field(default=1000, gt=0, description="Maximum cached requests")
    ttl_seconds: float = Field(default=300.0, gt=0, description="Entry lifetime in seconds")


class DataConnectorConfig(ResolverPluginConfig):
    """Options shared by every data connector."""

    no_result_is_error: bool = Field(
        default=False,
        description="Treat zero results from the source as a failure",
    )
    export_attributes: list[str] = Field(
        default_factory=list,
        description="Raw attribute names released directly in the final attribute set",
    )
    export_all_attributes: bool = Field(
        default=False,
        description="Release every raw attribute directly",
    )
    failover_connector_id: str | None = Field(
        default=None,
        description="Connector resolved in this one's place when it fails",
    )
    no_retry_delay_seconds: float | None = Field(
        default=None,
        gt=0,
        description="After a failure, fail immediately without contacting the source for this long",
    )
    results_cache: ResultsCacheConfig | None = Field(
        default=None,
        description="Cross-request results cache (disabled when absent)",
    )

    @model_validator(mode="after")
    def validate_export_options(self) -> Self:
        if self.export_all_attributes and self.export_attributes:
            raise ValueError("export_attributes and export_all_attributes are mutually exclusive")
        return self


class ExternalConnectorConfig(DataConnectorConfig):
    """Options for connectors that call an external system."""

    retry: RetrySettings = Field(
        default_factory=RetrySettings,
        description="Retry policy for the external call",
    )
