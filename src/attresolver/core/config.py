# src/attresolver/core/config.py
"""
Configuration schema and loading for the attribute resolver.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Per-plugin options are opaque here: each plugin validates its own options
through its PluginConfig subclass when it is configured.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class PluginSettings(BaseModel):
    """One plugin declaration: an attribute definition or a data connector."""

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(min_length=1, description="Unique id across all definitions and connectors")
    plugin: str = Field(min_length=1, description="Plugin name (simple, mapped, rdbms, http, etc.)")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Plugin-specific configuration options, including dependencies",
    )

    @field_validator("id")
    @classmethod
    def validate_id_has_no_dot(cls, v: str) -> str:
        """Dots separate plugin id from attribute id in dependency declarations."""
        if "." in v:
            raise ValueError(f"plugin id '{v}' must not contain '.'")
        return v


class DefinitionSettings(PluginSettings):
    """Attribute definition declaration."""


class ConnectorSettings(PluginSettings):
    """Data connector declaration."""


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")


class RetrySettings(BaseModel):
    """Default retry behavior for data connectors that call external sources."""

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, gt=0, description="Maximum attempts (1 = no retry)")
    initial_delay_seconds: float = Field(default=0.5, gt=0, description="Initial backoff delay")
    max_delay_seconds: float = Field(default=10.0, gt=0, description="Maximum backoff delay")
    exponential_base: float = Field(default=2.0, gt=1.0, description="Exponential backoff base")


class ResolverSettings(BaseModel):
    """Top-level resolver configuration.

    This is the single source of truth for the plugin graph of one deployment.
    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    attribute_definitions: list[DefinitionSettings] = Field(
        description="Attribute definitions, in declared order (later ids win on collision)",
    )
    data_connectors: list[ConnectorSettings] = Field(
        default_factory=list,
        description="Data connectors, in declared order",
    )
    requested: list[str] = Field(
        default_factory=list,
        description="Plugin ids to resolve per request (empty = every attribute definition)",
    )
    strip_nulls: bool = Field(
        default=False,
        description="Drop null and zero-length values from the final attribute set",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )
    retry: RetrySettings = Field(
        default_factory=RetrySettings,
        description="Default retry policy for external data connectors",
    )

    @field_validator("attribute_definitions")
    @classmethod
    def validate_definitions_not_empty(cls, v: list[DefinitionSettings]) -> list[DefinitionSettings]:
        """At least one attribute definition is required."""
        if not v:
            raise ValueError("At least one attribute definition is required")
        return v

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "ResolverSettings":
        """Ids are shared between definitions and connectors and must be unique."""
        ids = [p.id for p in self.attribute_definitions] + [p.id for p in self.data_connectors]
        duplicates = sorted({plugin_id for plugin_id in ids if ids.count(plugin_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate plugin id(s): {duplicates}")
        return self

    @model_validator(mode="after")
    def validate_requested_exist(self) -> "ResolverSettings":
        """Ensure requested ids name declared plugins."""
        declared = {p.id for p in self.attribute_definitions} | {p.id for p in self.data_connectors}
        missing = [plugin_id for plugin_id in self.requested if plugin_id not in declared]
        if missing:
            raise ValueError(f"requested id(s) {missing} not declared. Available: {sorted(declared)}")
        return self


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original so validation can report it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_top_level(raw: dict[str, Any]) -> dict[str, Any]:
    """Dynaconf uppercases top-level keys; nested plugin options keep their case."""
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    return {k.lower(): v for k, v in raw.items() if k not in internal_keys}


def load_settings(config_path: Path) -> ResolverSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (ATTRESOLVER_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: ATTRESOLVER_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ResolverSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ATTRESOLVER",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    raw_config = _lowercase_top_level(dynaconf_settings.as_dict())
    raw_config = _expand_env_vars(raw_config)

    return ResolverSettings(**raw_config)
