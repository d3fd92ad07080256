"""Error taxonomy for attribute resolution.

Two families, never mixed:

- ConfigurationError: the plugin graph or a plugin's lifecycle is wrong
  (cycle, use before initialize, use after destroy, missing configuration).
  Always fatal, never retried, surfaced to the caller immediately.
- ResolutionError: a single plugin could not produce its values for this
  request (source unreachable, bad value type, no rows). Recorded per plugin
  in the resolution context; whether it aborts the request depends on the
  failing plugin's ``propagate_errors`` flag.

Empty results are not errors and have no exception type.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import NotRequired, TypedDict


class FailureReason(TypedDict):
    """Schema for the failure payload stored in a FAILED PluginResult.

    Kept JSON-friendly so the CLI can print it verbatim.
    """

    error: str  # Human-readable message
    type: str  # Exception class name (e.g., "NoResultError")
    chain: NotRequired[list[str]]  # Plugin ids from the requested plugin down to the failure


class ConfigurationError(Exception):
    """Raised when the plugin graph or a plugin's lifecycle is misconfigured.

    Never recorded as a per-plugin result: the whole resolve() call fails.
    """


class CircularDependencyError(ConfigurationError):
    """Raised when a plugin is reached again while it is still being resolved.

    Attributes:
        cycle: Plugin ids forming the cycle, first id repeated at the end
            (e.g., ["a", "b", "a"]).
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class UninitializedComponentError(ConfigurationError):
    """Raised when a plugin is used before initialize() has been called."""


class DestroyedComponentError(ConfigurationError):
    """Raised when a plugin is used, or re-initialized, after destroy()."""


class UnmodifiableComponentError(ConfigurationError):
    """Raised when a plugin is reconfigured after initialize()."""


class ComponentInitializationError(ConfigurationError):
    """Raised when initialize() finds the plugin's configuration incomplete."""


class ResolutionError(Exception):
    """Raised when a plugin fails to resolve its values for one request.

    Attributes:
        plugin_id: Id of the plugin that failed (None until the engine
            attributes the error to a plugin)
        chain: Plugin ids leading from the requested plugin to the failing one
    """

    def __init__(self, message: str, *, plugin_id: str | None = None, chain: Sequence[str] = ()) -> None:
        self.message = message
        self.plugin_id = plugin_id
        self.chain = list(chain)
        super().__init__(self._format())

    def _format(self) -> str:
        if self.plugin_id is None:
            return self.message
        if len(self.chain) > 1:
            return f"Plugin '{self.plugin_id}' failed (via {' -> '.join(self.chain)}): {self.message}"
        return f"Plugin '{self.plugin_id}' failed: {self.message}"

    def attributed_to(self, plugin_id: str, chain: Sequence[str]) -> ResolutionError:
        """Attach the failing plugin and its dependency chain.

        The first attribution wins: an error re-raised by a dependent keeps
        naming the plugin where it originated.
        """
        if self.plugin_id is None:
            self.plugin_id = plugin_id
            self.chain = list(chain)
            self.args = (self._format(),)
        return self

    def to_reason(self) -> FailureReason:
        """Convert to the JSON-friendly payload stored in PluginResult."""
        reason: FailureReason = {"error": self.message, "type": type(self).__name__}
        if self.chain:
            reason["chain"] = list(self.chain)
        return reason


class DependencyFailedError(ResolutionError):
    """Raised when a plugin cannot resolve because a dependency failed."""

    def __init__(self, dependency_id: str) -> None:
        self.dependency_id = dependency_id
        super().__init__(f"dependency '{dependency_id}' failed to resolve")


class UnsupportedAttributeTypeError(ResolutionError):
    """Raised when a source value has a type the plugin cannot process.

    Example: a byte value fed to a definition that only maps strings.
    """


class NoResultError(ResolutionError):
    """Raised when a data connector finds nothing and no_result_is_error is set."""


class MultipleResultError(ResolutionError):
    """Raised when a data connector expecting one result finds several."""
