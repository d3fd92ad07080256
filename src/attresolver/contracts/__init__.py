"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine/plugins.

Import patterns:
    from attresolver.contracts import IdPAttribute, PluginResult, ResolutionError
"""

from attresolver.contracts.attribute import (
    NULL_VALUE,
    ZERO_LENGTH_VALUE,
    AttributeValue,
    ByteValue,
    EmptyValue,
    IdPAttribute,
    OpaqueValue,
    ScopedStringValue,
    StringValue,
    to_attribute_value,
)
from attresolver.contracts.dependency import Dependency
from attresolver.contracts.enums import PluginKind, PluginState, ResolutionStatus
from attresolver.contracts.errors import (
    CircularDependencyError,
    ComponentInitializationError,
    ConfigurationError,
    DependencyFailedError,
    DestroyedComponentError,
    FailureReason,
    MultipleResultError,
    NoResultError,
    ResolutionError,
    UninitializedComponentError,
    UnmodifiableComponentError,
    UnsupportedAttributeTypeError,
)
from attresolver.contracts.results import PluginResult

__all__ = [
    "NULL_VALUE",
    "ZERO_LENGTH_VALUE",
    "AttributeValue",
    "ByteValue",
    "CircularDependencyError",
    "ComponentInitializationError",
    "ConfigurationError",
    "Dependency",
    "DependencyFailedError",
    "DestroyedComponentError",
    "EmptyValue",
    "FailureReason",
    "IdPAttribute",
    "MultipleResultError",
    "NoResultError",
    "OpaqueValue",
    "PluginKind",
    "PluginResult",
    "PluginState",
    "ResolutionError",
    "ResolutionStatus",
    "ScopedStringValue",
    "StringValue",
    "UninitializedComponentError",
    "UnmodifiableComponentError",
    "UnsupportedAttributeTypeError",
    "to_attribute_value",
]
