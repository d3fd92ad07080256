"""Dynamic plugin discovery by folder scanning.

Scans plugin directories for classes that:
1. Inherit from a base class (BaseAttributeDefinition, BaseDataConnector)
2. Have a `name` class attribute
3. Are not abstract (no @abstractmethod methods without implementation)
"""

import importlib.util
import inspect
import sys
from pathlib import Path
from typing import Any

from attresolver.core.logging import get_logger

logger = get_logger(__name__)

# Files that should never be scanned for plugins
EXCLUDED_FILES: frozenset[str] = frozenset(
    {
        "__init__.py",
        "base.py",
        "config_base.py",
        "dependency_support.py",
        "discovery.py",
        "hookspecs.py",
        "manager.py",
        "protocols.py",
        "value_transforms.py",
    }
)


def discover_plugins_in_directory(
    directory: Path,
    base_class: type,
) -> list[type]:
    """Discover plugin classes in a directory.

    Scans all .py files in the directory (non-recursive) and finds classes
    that inherit from base_class and have a `name` attribute.

    Args:
        directory: Path to scan for plugin files
        base_class: Base class that plugins must inherit from

    Returns:
        List of discovered plugin classes
    """
    discovered: list[type] = []

    if not directory.exists():
        logger.warning("plugin_directory_missing", directory=str(directory))
        return discovered

    for py_file in sorted(directory.glob("*.py")):
        if py_file.name in EXCLUDED_FILES:
            continue

        # Built-in plugin code is ours; import errors are bugs and propagate
        discovered.extend(_discover_in_file(py_file, base_class))

    return discovered


def _discover_in_file(py_file: Path, base_class: type) -> list[type]:
    """Discover plugin classes in a single Python file.

    Args:
        py_file: Path to Python file
        base_class: Base class that plugins must inherit from

    Returns:
        List of plugin classes found in the file
    """
    # Parent directory in the module name avoids collisions between folders
    parent_name = py_file.parent.name
    module_name = f"attresolver.plugins._discovered.{parent_name}.{py_file.stem}"
    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        return []

    module = importlib.util.module_from_spec(spec)
    # dataclass field resolution looks up cls.__module__ in sys.modules
    sys.modules[module.__name__] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module.__name__, None)
        raise

    discovered: list[type] = []
    for name, obj in inspect.getmembers(module, inspect.isclass):
        # Must be defined in this module (not imported)
        if obj.__module__ != module.__name__:
            continue

        if not issubclass(obj, base_class) or obj is base_class:
            continue

        if inspect.isabstract(obj):
            continue

        plugin_name = getattr(obj, "name", None)
        if not plugin_name:
            logger.warning(
                "plugin_without_name",
                class_name=name,
                file=str(py_file),
                base_class=base_class.__name__,
            )
            continue

        discovered.append(obj)

    return discovered


def _get_base_classes() -> dict[str, type]:
    """Get base classes for plugin discovery (deferred import)."""
    from attresolver.plugins.base import BaseAttributeDefinition, BaseDataConnector

    return {
        "definitions": BaseAttributeDefinition,
        "connectors": BaseDataConnector,
    }


# Which directories to scan for each plugin kind (non-recursive)
PLUGIN_SCAN_CONFIG: dict[str, list[str]] = {
    "definitions": ["definitions"],
    "connectors": ["connectors"],
}


def discover_all_plugins() -> dict[str, list[type]]:
    """Discover all built-in plugins by scanning configured directories.

    Returns:
        Dict mapping plugin kind to list of discovered plugin classes:
        {
            "definitions": [SimpleDefinition, MappedDefinition, ...],
            "connectors": [StaticConnector, HTTPConnector, ...],
        }
    """
    plugins_root = Path(__file__).parent
    base_classes = _get_base_classes()
    result: dict[str, list[type]] = {}

    for plugin_type, directories in PLUGIN_SCAN_CONFIG.items():
        base_class = base_classes[plugin_type]

        all_discovered: list[type] = []
        seen: dict[str, type] = {}

        for dir_name in directories:
            for cls in discover_plugins_in_directory(plugins_root / dir_name, base_class):
                cls_name: str = cls.name  # type: ignore[attr-defined]
                if cls_name in seen:
                    raise ValueError(
                        f"Duplicate {plugin_type} plugin name '{cls_name}': "
                        f"found in both {seen[cls_name].__module__} and {cls.__module__}. "
                        f"Plugin names must be unique within each kind."
                    )
                seen[cls_name] = cls
                all_discovered.append(cls)

        result[plugin_type] = all_discovered

    return result


def get_plugin_description(plugin_cls: type) -> str:
    """Extract description from plugin class docstring.

    Returns the first non-empty line of the docstring, stripped of whitespace.
    If no docstring exists, returns a default message using the plugin name.
    """
    if plugin_cls.__doc__:
        for line in plugin_cls.__doc__.strip().split("\n"):
            cleaned = line.strip()
            if cleaned:
                return cleaned

    name = getattr(plugin_cls, "name", plugin_cls.__name__)
    return f"{name} plugin"


def create_dynamic_hookimpl(
    plugin_classes: list[type],
    hook_method_name: str,
) -> object:
    """Create a pluggy hookimpl object for plugin registration.

    Dynamically generates a class with the appropriate hook method
    decorated with @hookimpl that returns the provided plugin classes.

    Args:
        plugin_classes: List of plugin classes to register
        hook_method_name: Name of the hook method (e.g., "attresolver_get_data_connectors")

    Returns:
        Object instance with the decorated hook method
    """
    from attresolver.plugins.hookspecs import hookimpl

    class DynamicHookImpl:
        """Dynamically generated hook implementer."""

    def hook_method(self: Any) -> list[type]:
        return plugin_classes

    setattr(DynamicHookImpl, hook_method_name, hookimpl(hook_method))

    return DynamicHookImpl()
