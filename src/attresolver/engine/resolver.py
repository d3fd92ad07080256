# src/attresolver/engine/resolver.py
"""AttributeResolver: executes the plugin graph for one request at a time.

The resolver is stateless between requests. All per-request state lives in
the ResolutionContext passed to resolve(); the plugin instances are shared,
initialized and read-only, so any number of threads may resolve separate
contexts concurrently.

Algorithm for each requested plugin id (see _resolve_plugin):
    memo hit -> return
    on the current path -> CircularDependencyError
    push onto path
    activation condition false -> SKIPPED
    resolve dependencies depth-first, in declaration order
    invoke the plugin once, store its result (including FAILED)
    pop from path

Failure policy:
    A FAILED result stays in the memo table so dependents see a definitive
    failure. If the failing plugin has propagate_errors=True the failure is
    raised to the caller (fail-fast); otherwise the plugin is simply absent
    from the final attribute set (best-effort). Configuration errors always
    propagate.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from attresolver.contracts import (
    ConfigurationError,
    EmptyValue,
    IdPAttribute,
    PluginResult,
    ResolutionError,
    ResolutionStatus,
)
from attresolver.contracts.errors import CircularDependencyError
from attresolver.core.logging import get_logger, request_scope
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseAttributeDefinition, BaseDataConnector, BaseResolverPlugin

logger = get_logger(__name__)


class AttributeResolver:
    """Resolves attribute definitions and data connectors against a context.

    Example:
        resolver = AttributeResolver(definitions=[...], connectors=[...])
        context = ResolutionContext.for_request("jdoe", requester="https://sp.example.org")
        attributes = resolver.resolve_attributes(context)

    Args:
        definitions: Initialized attribute definitions, in declared order
        connectors: Initialized data connectors, in declared order
        requested: Default plugin ids for resolve_attributes() (empty means
            every attribute definition)
        strip_nulls: Drop null and zero-length values from the final set
        resolver_id: Name used in log events
    """

    def __init__(
        self,
        definitions: Sequence[BaseAttributeDefinition],
        connectors: Sequence[BaseDataConnector] = (),
        *,
        requested: Sequence[str] = (),
        strip_nulls: bool = False,
        resolver_id: str = "resolver",
    ) -> None:
        self._id = resolver_id
        self._strip_nulls = strip_nulls
        self._definitions: dict[str, BaseAttributeDefinition] = {}
        self._connectors: dict[str, BaseDataConnector] = {}
        for definition in definitions:
            self._check_unique(definition)
            self._definitions[definition.id] = definition
        for connector in connectors:
            self._check_unique(connector)
            self._connectors[connector.id] = connector

        unknown = [plugin_id for plugin_id in requested if not self.has_plugin(plugin_id)]
        if unknown:
            raise ConfigurationError(f"Resolver '{resolver_id}': requested unknown plugin id(s) {unknown}")
        self._requested = tuple(requested)

    def _check_unique(self, plugin: BaseResolverPlugin) -> None:
        if self.has_plugin(plugin.id):
            raise ConfigurationError(f"Resolver '{self._id}': duplicate plugin id '{plugin.id}'")

    # === Lookup ===

    @property
    def id(self) -> str:
        return self._id

    @property
    def definitions(self) -> dict[str, BaseAttributeDefinition]:
        return dict(self._definitions)

    @property
    def connectors(self) -> dict[str, BaseDataConnector]:
        return dict(self._connectors)

    def has_plugin(self, plugin_id: str) -> bool:
        return plugin_id in self._definitions or plugin_id in self._connectors

    def get_plugin(self, plugin_id: str) -> BaseResolverPlugin:
        """Look up a plugin of either kind.

        Raises:
            ConfigurationError: If no plugin has this id
        """
        if plugin_id in self._definitions:
            return self._definitions[plugin_id]
        if plugin_id in self._connectors:
            return self._connectors[plugin_id]
        raise ConfigurationError(f"Resolver '{self._id}': unknown plugin id '{plugin_id}'")

    # === Lifecycle ===

    def destroy(self) -> None:
        """Destroy every plugin; the resolver is unusable afterwards."""
        for plugin in [*self._definitions.values(), *self._connectors.values()]:
            plugin.destroy()

    # === Resolution ===

    def resolve(self, context: ResolutionContext, plugin_ids: Iterable[str]) -> None:
        """Resolve plugins (and their dependencies) into the context's memo tables.

        Args:
            context: Per-request context; mutated in place
            plugin_ids: Plugins to resolve, in order

        Raises:
            ConfigurationError: Cycle, unknown id, or plugin lifecycle violation
            ResolutionError: A plugin with propagate_errors=True failed
        """
        with request_scope(context.context_id, self._id):
            for plugin_id in plugin_ids:
                self._resolve_plugin(context, plugin_id)

    def resolve_attributes(self, context: ResolutionContext, plugin_ids: Sequence[str] | None = None) -> dict[str, IdPAttribute]:
        """Resolve a request end to end and return the final attribute set.

        Resolves connectors that export attributes, then the requested
        plugins (argument, else the resolver's configured list, else every
        definition), then merges results in declared order.

        Returns:
            Attribute id -> attribute; also stored on context.resolved_attributes

        Raises:
            ConfigurationError: Cycle, unknown id, or plugin lifecycle violation
            ResolutionError: A plugin with propagate_errors=True failed
        """
        if plugin_ids is None:
            plugin_ids = self._requested or tuple(self._definitions)

        exporting = [c.id for c in self._connectors.values() if c.config.export_all_attributes or c.config.export_attributes]
        with request_scope(context.context_id, self._id):
            self.resolve(context, exporting)
            self.resolve(context, plugin_ids)

            context.resolved_attributes = self._finalize(context)
            logger.info(
                "attributes_resolved",
                principal=context.principal,
                requester=context.requester,
                attribute_ids=sorted(context.resolved_attributes),
            )
        return context.resolved_attributes

    def _memo_for(self, plugin: BaseResolverPlugin, context: ResolutionContext) -> dict[str, PluginResult]:
        if isinstance(plugin, BaseDataConnector):
            return context.resolved_connectors
        return context.resolved_definitions

    def _resolve_plugin(self, context: ResolutionContext, plugin_id: str) -> None:
        plugin = self.get_plugin(plugin_id)
        memo = self._memo_for(plugin, context)

        if plugin_id in memo:
            return

        if plugin_id in context.in_progress:
            start = context.in_progress.index(plugin_id)
            raise CircularDependencyError([*context.in_progress[start:], plugin_id])

        context.in_progress.append(plugin_id)
        try:
            result = self._evaluate(context, plugin)
            if result.is_failed and isinstance(plugin, BaseDataConnector) and plugin.failover_connector_id:
                result = self._failover(context, plugin, result)
            memo[plugin_id] = result
            self._log_result(plugin, result)
            if result.is_failed and plugin.propagate_errors:
                assert result.error is not None
                raise result.error
        finally:
            context.in_progress.pop()

    def _evaluate(self, context: ResolutionContext, plugin: BaseResolverPlugin) -> PluginResult:
        chain = list(context.in_progress)
        try:
            if not plugin.is_active(context):
                return PluginResult.skipped()
        except ResolutionError as e:
            return PluginResult.failed(e.attributed_to(plugin.id, chain))

        for dependency in plugin.dependencies:
            self._resolve_plugin(context, dependency.plugin_id)

        result = plugin.resolve(context)
        if result.is_failed:
            assert result.error is not None
            return PluginResult.failed(result.error.attributed_to(plugin.id, chain))
        return result

    def _failover(self, context: ResolutionContext, connector: BaseDataConnector, failed: PluginResult) -> PluginResult:
        """Resolve the failover connector and record its result under the failed connector's id."""
        failover_id = connector.failover_connector_id
        assert failover_id is not None
        logger.info(
            "connector_failover",
            connector_id=connector.id,
            failover_connector_id=failover_id,
            reason=failed.reason,
        )
        try:
            self._resolve_plugin(context, failover_id)
        except ResolutionError:
            # The failover's own failure is already recorded under its id
            return failed
        failover_result = context.get_result(failover_id)
        if failover_result is None or failover_result.is_failed:
            return failed
        return failover_result

    def _log_result(self, plugin: BaseResolverPlugin, result: PluginResult) -> None:
        if result.status == ResolutionStatus.FAILED:
            log = logger.error if plugin.propagate_errors else logger.warning
            log(
                "plugin_failed",
                plugin_id=plugin.id,
                reason=result.reason,
                fail_fast=plugin.propagate_errors,
            )
        elif result.status == ResolutionStatus.SKIPPED:
            logger.debug("plugin_skipped", plugin_id=plugin.id)
        else:
            logger.debug(
                "plugin_resolved",
                plugin_id=plugin.id,
                status=result.status.value,
                attribute_ids=sorted(result.attributes),
            )

    # === Final merge ===

    def _finalize(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        """Union of exported connector attributes and resolved definitions.

        Declared order decides collisions: connectors first, then
        definitions; the later entry wins and a warning is logged.
        """
        merged: dict[str, IdPAttribute] = {}
        sources: dict[str, str] = {}

        def add(attribute: IdPAttribute, source_id: str) -> None:
            if self._strip_nulls:
                attribute = IdPAttribute(attribute.id, tuple(v for v in attribute.values if not isinstance(v, EmptyValue)))
            if not attribute.values:
                return
            if attribute.id in merged:
                logger.warning(
                    "attribute_id_collision",
                    attribute_id=attribute.id,
                    overridden_source=sources[attribute.id],
                    winning_source=source_id,
                )
            merged[attribute.id] = attribute
            sources[attribute.id] = source_id

        for connector_id, connector in self._connectors.items():
            result = context.resolved_connectors.get(connector_id)
            if result is not None:
                for attribute in connector.exported_attributes(result).values():
                    add(attribute, connector_id)

        for definition_id, definition in self._definitions.items():
            result = context.resolved_definitions.get(definition_id)
            if result is None or not result.has_values or definition.dependency_only:
                continue
            for attribute in result.attributes.values():
                add(attribute, definition_id)

        return merged
