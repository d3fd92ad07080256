"""Read already-resolved dependency values out of a resolution context.

Plugins call these during their own resolution step. They never trigger
resolution: the resolver has resolved every dependency before invoking the
dependent plugin.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from attresolver.contracts import AttributeValue, Dependency, DependencyFailedError, IdPAttribute, PluginResult

if TYPE_CHECKING:
    from attresolver.engine.context import ResolutionContext


def _result_for(context: "ResolutionContext", dependency: Dependency) -> PluginResult:
    result = context.get_result(dependency.plugin_id)
    if result is None:
        raise LookupError(
            f"Dependency '{dependency.plugin_id}' has not been resolved in context {context.context_id}; "
            f"plugins must be resolved through AttributeResolver"
        )
    return result


def check_dependencies(context: "ResolutionContext", dependencies: Sequence[Dependency]) -> None:
    """Fail if any dependency failed.

    Raises:
        DependencyFailedError: For the first failed dependency in declaration order
    """
    for dependency in dependencies:
        result = _result_for(context, dependency)
        if result.is_failed:
            raise DependencyFailedError(dependency.plugin_id)


def _attributes_of(context: "ResolutionContext", dependency: Dependency) -> list[IdPAttribute]:
    """Attributes contributed by one dependency (nothing for empty/skipped/failed)."""
    result = _result_for(context, dependency)
    if not result.has_values:
        return []
    # A definition result holds exactly its own output
    if dependency.attribute_id is None or dependency.plugin_id in context.resolved_definitions:
        return list(result.attributes.values())
    attribute = result.attributes.get(dependency.attribute_id)
    return [attribute] if attribute is not None else []


def get_merged_attribute_values(context: "ResolutionContext", dependencies: Sequence[Dependency]) -> list[AttributeValue]:
    """All dependency values merged into one list, in declaration order.

    Duplicates are kept; deduplication is a definition-level policy.
    """
    values: list[AttributeValue] = []
    for dependency in dependencies:
        for attribute in _attributes_of(context, dependency):
            values.extend(attribute.values)
    return values


def get_all_attribute_values(context: "ResolutionContext", dependencies: Sequence[Dependency]) -> dict[str, list[AttributeValue]]:
    """Dependency values keyed by source attribute name.

    A definition dependency is keyed by the definition's plugin id; connector
    attributes by their raw attribute name. Values for the same name coming
    from several dependencies are concatenated.
    """
    values: dict[str, list[AttributeValue]] = {}
    for dependency in dependencies:
        is_definition = dependency.plugin_id in context.resolved_definitions
        for attribute in _attributes_of(context, dependency):
            key = dependency.plugin_id if is_definition else attribute.id
            values.setdefault(key, []).extend(attribute.values)
    return values
