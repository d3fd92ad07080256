"""Dependency declarations between resolver plugins."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Dependency:
    """A typed edge from a plugin to one of its sources.

    Attributes:
        plugin_id: Id of the definition or connector depended upon
        attribute_id: For connector dependencies, the one raw attribute to
            read. None means every attribute the connector exposes, or the
            definition's own output.
    """

    plugin_id: str
    attribute_id: str | None = None

    def __post_init__(self) -> None:
        if not self.plugin_id:
            raise ValueError("Dependency plugin_id must be a non-empty string")

    @classmethod
    def parse(cls, raw: str | dict[str, Any]) -> Dependency:
        """Parse a dependency from configuration.

        Accepts "plugin", "plugin.attribute", or a mapping with
        ``plugin`` and optional ``attribute`` keys.

        Raises:
            ValueError: If the declaration is malformed
        """
        if isinstance(raw, str):
            plugin_id, sep, attribute_id = raw.partition(".")
            if sep and not attribute_id:
                raise ValueError(f"Invalid dependency '{raw}': empty attribute after '.'")
            return cls(plugin_id, attribute_id or None)
        if isinstance(raw, dict):
            unknown = set(raw) - {"plugin", "attribute"}
            if unknown:
                raise ValueError(f"Invalid dependency {raw!r}: unknown keys {sorted(unknown)}")
            if "plugin" not in raw:
                raise ValueError(f"Invalid dependency {raw!r}: 'plugin' is required")
            return cls(str(raw["plugin"]), raw.get("attribute"))
        raise ValueError(f"Invalid dependency {raw!r}: expected string or mapping, got {type(raw).__name__}")

    def __str__(self) -> str:
        if self.attribute_id is None:
            return self.plugin_id
        return f"{self.plugin_id}.{self.attribute_id}"
