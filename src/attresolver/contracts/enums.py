"""Status codes and lifecycle states used across subsystem boundaries."""

from enum import StrEnum


class PluginState(StrEnum):
    """Lifecycle state of a resolver plugin.

    Transitions are monotonic: UNCONFIGURED -> CONFIGURED -> INITIALIZED -> DESTROYED.
    There is no path back from DESTROYED.
    """

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    INITIALIZED = "initialized"
    DESTROYED = "destroyed"


class ResolutionStatus(StrEnum):
    """Outcome of resolving one plugin within one resolution context.

    EMPTY and SKIPPED are legitimate outcomes, never errors. FAILED is
    recorded in the memo table so dependents see a definitive failure.
    """

    RESOLVED = "resolved"
    EMPTY = "empty"
    SKIPPED = "skipped"
    FAILED = "failed"


class PluginKind(StrEnum):
    """The two families of resolver plugin."""

    ATTRIBUTE_DEFINITION = "attribute_definition"
    DATA_CONNECTOR = "data_connector"
