# src/attresolver/cli.py
"""attresolver Command Line Interface.

Entry point for the attresolver CLI tool.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from attresolver import __version__
from attresolver.contracts import ConfigurationError, ResolutionError
from attresolver.core.config import ResolverSettings, load_settings

if TYPE_CHECKING:
    from attresolver.engine.resolver import AttributeResolver
    from attresolver.plugins.manager import PluginManager

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

# Module-level singleton for plugin manager
_plugin_manager_cache: PluginManager | None = None


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton).

    Returns:
        PluginManager with all built-in plugins registered
    """
    global _plugin_manager_cache

    from attresolver.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="attresolver",
    help="attresolver: identity attribute resolution.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"attresolver version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a better message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """attresolver: identity attribute resolution."""
    from attresolver.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]{title}[/]",
        border_style="red",
        expand=False,
    )
    console.print(panel)


def _load_settings_or_exit(settings_path: Path) -> ResolverSettings:
    """Load settings, reporting failures as formatted errors.

    Raises:
        typer.Exit: With code 1 on any settings error
    """
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


def _build_resolver_or_exit(config: ResolverSettings) -> AttributeResolver:
    from attresolver.engine.loader import build_resolver

    try:
        return build_resolver(config, _get_plugin_manager())
    except ConfigurationError as e:
        _format_validation_error(
            title="Resolver Configuration Error",
            message=str(e),
            hint="Check plugin names, options, dependencies and failover connectors.",
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate resolver configuration without resolving anything."""
    config = _load_settings_or_exit(Path(settings).expanduser())
    resolver = _build_resolver_or_exit(config)
    try:
        typer.echo("Resolver configuration valid!")
        typer.echo(f"  Attribute definitions: {len(config.attribute_definitions)}")
        typer.echo(f"  Data connectors: {len(config.data_connectors)}")
    finally:
        resolver.destroy()


@app.command()
def resolve(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    principal: str = typer.Option(
        ...,
        "--principal",
        "-p",
        help="Principal name to resolve attributes for.",
    ),
    requester: str | None = typer.Option(
        None,
        "--requester",
        "-r",
        help="Relying party entity id.",
    ),
    issuer: str | None = typer.Option(
        None,
        "--issuer",
        help="Identity provider entity id.",
    ),
    attribute: list[str] | None = typer.Option(
        None,
        "--attribute",
        "-a",
        help="Plugin id to resolve (repeatable; default: the configured set).",
    ),
) -> None:
    """Resolve attributes for one principal and print them as JSON."""
    from attresolver.engine.context import ResolutionContext

    config = _load_settings_or_exit(Path(settings).expanduser())
    resolver = _build_resolver_or_exit(config)
    requested = list(attribute) if attribute else None
    context = ResolutionContext.for_request(principal, requester=requester, issuer=issuer, requested=requested or ())
    try:
        attributes = resolver.resolve_attributes(context, requested)
    except ConfigurationError as e:
        _format_validation_error(title="Resolver Configuration Error", message=str(e))
        raise typer.Exit(1) from None
    except ResolutionError as e:
        _format_validation_error(title="Resolution Failed", message=str(e))
        raise typer.Exit(1) from None
    finally:
        resolver.destroy()

    output = {attribute_id: attr.display_values() for attribute_id, attr in sorted(attributes.items())}
    typer.echo(json.dumps(output, indent=2))


# Plugins subcommand group
plugins_app = typer.Typer(help="Plugin management commands.")
app.add_typer(plugins_app, name="plugins")


@dataclass(frozen=True)
class PluginInfo:
    """Metadata for a registered plugin.

    Attributes:
        name: The plugin identifier used in configuration files.
        description: Human-readable description of the plugin's purpose.
    """

    name: str
    description: str


def _build_plugin_registry() -> dict[str, list[PluginInfo]]:
    """Build plugin registry dynamically from discovered plugins.

    Returns:
        Dict mapping plugin kind to list of PluginInfo for each plugin.
    """
    from attresolver.plugins.discovery import get_plugin_description

    manager = _get_plugin_manager()

    return {
        "definition": [PluginInfo(name=cls.name, description=get_plugin_description(cls)) for cls in manager.get_definitions()],
        "connector": [PluginInfo(name=cls.name, description=get_plugin_description(cls)) for cls in manager.get_connectors()],
    }


@plugins_app.command("list")
def plugins_list(
    plugin_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Filter by plugin kind (definition, connector).",
    ),
) -> None:
    """List available plugins."""
    registry = _build_plugin_registry()
    valid_types = set(registry.keys())

    if plugin_type and plugin_type not in valid_types:
        typer.echo(f"Error: Invalid type '{plugin_type}'.", err=True)
        typer.echo(f"Valid types: {', '.join(sorted(valid_types))}", err=True)
        raise typer.Exit(1)

    types_to_show = [plugin_type] if plugin_type else list(registry.keys())

    for ptype in types_to_show:
        plugins = registry[ptype]
        typer.echo(f"\n{ptype.upper()}S:")
        if plugins:
            for plugin in plugins:
                typer.echo(f"  {plugin.name:20} - {plugin.description}")
        else:
            typer.echo("  (none available)")

    typer.echo()  # Final newline


if __name__ == "__main__":
    app()
