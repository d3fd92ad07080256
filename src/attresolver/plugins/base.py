# src/attresolver/plugins/base.py
"""Base classes for resolver plugin implementations.

Plugins MUST subclass BaseAttributeDefinition or BaseDataConnector.

Why base class inheritance is required:
- Plugin discovery uses issubclass() checks against base classes
- The lifecycle state machine and failure policy live here, so every
  plugin enforces them identically
- Subclasses implement one narrow method (resolve_values() or fetch())
  and never touch lifecycle state

Lifecycle Contract:
    __init__(plugin_id) -> configure(options) -> initialize() -> resolve(ctx)* -> destroy()

- UNCONFIGURED: constructed, no options yet
- CONFIGURED: options parsed and validated field-by-field; configure()
  may be called again to replace them
- INITIALIZED: cross-field checks passed (e.g., a mapped definition has
  dependencies and value maps), resources acquired; configuration is
  locked and resolve() may be called concurrently from many requests
- DESTROYED: resources released; every further call raises
  DestroyedComponentError, including initialize()

The resolver evaluates is_active() and resolves dependencies BEFORE calling
resolve(); resolve() itself only reads dependency results from the context.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from attresolver.contracts import (
    AttributeValue,
    ComponentInitializationError,
    Dependency,
    DestroyedComponentError,
    IdPAttribute,
    NoResultError,
    PluginKind,
    PluginResult,
    PluginState,
    ResolutionError,
    UninitializedComponentError,
    UnmodifiableComponentError,
)
from attresolver.core.cache import ResultsCache
from attresolver.core.canonical import stable_hash
from attresolver.core.logging import get_logger
from attresolver.engine.conditions import ActivationCondition, ConditionEvaluationError
from attresolver.plugins.config_base import (
    AttributeDefinitionConfig,
    DataConnectorConfig,
    ResolverPluginConfig,
)
from attresolver.plugins.dependency_support import check_dependencies, get_all_attribute_values

if TYPE_CHECKING:
    from attresolver.engine.context import ResolutionContext

logger = get_logger(__name__)

type ActivationPredicate = Callable[["ResolutionContext"], bool]


class BaseResolverPlugin(ABC):
    """Lifecycle and failure policy shared by definitions and connectors."""

    name: str
    kind: ClassVar[PluginKind]
    plugin_version: str = "0.0.0"
    config_class: ClassVar[type[ResolverPluginConfig]] = ResolverPluginConfig

    def __init__(self, plugin_id: str) -> None:
        if not plugin_id or not plugin_id.strip():
            raise ComponentInitializationError(f"{type(self).__name__} requires a non-empty id")
        self._id = plugin_id
        self._state = PluginState.UNCONFIGURED
        self._config: ResolverPluginConfig | None = None
        self._condition: ActivationPredicate | None = None
        self._lifecycle_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, state={self._state.value})"

    # === Identity and configuration ===

    @property
    def id(self) -> str:
        return self._id

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def config(self) -> ResolverPluginConfig:
        """Parsed options.

        Raises:
            UninitializedComponentError: If configure() was never called
        """
        if self._config is None:
            raise UninitializedComponentError(f"Plugin '{self._id}' has not been configured")
        return self._config

    @property
    def dependencies(self) -> Sequence[Dependency]:
        return tuple(self._config.dependencies) if self._config is not None else ()

    @property
    def propagate_errors(self) -> bool:
        return self.config.propagate_errors

    @property
    def tolerate_failed_dependencies(self) -> bool:
        return self.config.tolerate_failed_dependencies

    def configure(self, options: dict[str, Any]) -> None:
        """Parse and store options.

        Raises:
            PluginConfigError: If options fail validation
            ConditionSyntaxError, ConditionSecurityError: If the activation condition is invalid
            UnmodifiableComponentError: If already initialized
            DestroyedComponentError: If destroyed
        """
        with self._lifecycle_lock:
            self._ensure_modifiable()
            config = self.config_class.from_dict(options)
            condition = None
            if config.activation_condition is not None:
                condition = self._expression_predicate(ActivationCondition(config.activation_condition))
            self._config = config
            self._condition = condition
            self._state = PluginState.CONFIGURED

    def set_activation_condition(self, condition: ActivationPredicate | None) -> None:
        """Install a programmatic activation predicate (replaces any configured expression).

        Raises:
            UnmodifiableComponentError: If already initialized
            DestroyedComponentError: If destroyed
        """
        with self._lifecycle_lock:
            self._ensure_modifiable()
            self._condition = condition

    def _ensure_modifiable(self) -> None:
        if self._state == PluginState.DESTROYED:
            raise DestroyedComponentError(f"Plugin '{self._id}' has been destroyed")
        if self._state == PluginState.INITIALIZED:
            raise UnmodifiableComponentError(f"Plugin '{self._id}' is initialized and can no longer be modified")

    @staticmethod
    def _expression_predicate(condition: ActivationCondition) -> ActivationPredicate:
        def predicate(context: ResolutionContext) -> bool:
            return condition.evaluate(context.request_namespace())

        return predicate

    # === Lifecycle ===

    def initialize(self) -> None:
        """Validate the configuration as a whole and lock it.

        Calling initialize() on an initialized plugin is a no-op.

        Raises:
            DestroyedComponentError: If destroyed
            ComponentInitializationError: If unconfigured or the configuration is incomplete
        """
        with self._lifecycle_lock:
            if self._state == PluginState.DESTROYED:
                raise DestroyedComponentError(f"Plugin '{self._id}' has been destroyed and cannot be re-initialized")
            if self._state == PluginState.INITIALIZED:
                return
            if self._state == PluginState.UNCONFIGURED:
                raise ComponentInitializationError(f"Plugin '{self._id}' cannot be initialized before it is configured")
            self._validate()
            self._on_initialize()
            self._state = PluginState.INITIALIZED

    def destroy(self) -> None:
        """Release resources. Idempotent; there is no way back."""
        with self._lifecycle_lock:
            if self._state == PluginState.DESTROYED:
                return
            try:
                if self._state == PluginState.INITIALIZED:
                    self._on_destroy()
            finally:
                self._state = PluginState.DESTROYED

    def _validate(self) -> None:  # noqa: B027 - optional hook
        """Cross-field checks run by initialize().

        Raise ComponentInitializationError for incomplete configuration.
        """

    def _on_initialize(self) -> None:  # noqa: B027 - optional hook
        """Acquire resources (connection pools, compiled templates)."""

    def _on_destroy(self) -> None:  # noqa: B027 - optional hook
        """Release resources acquired in _on_initialize()."""

    # === Resolution ===

    def _ensure_usable(self) -> None:
        if self._state == PluginState.DESTROYED:
            raise DestroyedComponentError(f"Plugin '{self._id}' has been destroyed")
        if self._state != PluginState.INITIALIZED:
            raise UninitializedComponentError(f"Plugin '{self._id}' must be initialized before use (state: {self._state.value})")

    def is_active(self, context: ResolutionContext) -> bool:
        """Evaluate the activation condition for one request.

        Raises:
            DestroyedComponentError, UninitializedComponentError: Outside INITIALIZED
            ResolutionError: If the condition cannot be evaluated against this request
        """
        self._ensure_usable()
        if self._condition is None:
            return True
        try:
            return bool(self._condition(context))
        except ConditionEvaluationError as e:
            raise ResolutionError(f"activation condition could not be evaluated: {e}") from e

    def resolve(self, context: ResolutionContext) -> PluginResult:
        """Produce this plugin's result for one request.

        Resolution failures are returned as PluginResult.failed(), never
        raised; the resolver applies the propagate_errors policy.

        Raises:
            DestroyedComponentError, UninitializedComponentError: Outside INITIALIZED
        """
        self._ensure_usable()
        try:
            if not self.tolerate_failed_dependencies:
                check_dependencies(context, self.dependencies)
            return self._do_resolve(context)
        except ResolutionError as e:
            return PluginResult.failed(e)

    @abstractmethod
    def _do_resolve(self, context: ResolutionContext) -> PluginResult:
        """Kind-specific resolution (implemented by the definition and connector bases)."""
        raise NotImplementedError


class BaseAttributeDefinition(BaseResolverPlugin):
    """Base class for attribute definitions.

    Subclasses implement resolve_values(), returning the output values in
    order. An empty list yields an EMPTY result; raise ResolutionError (or
    a subclass) to fail.

    Example:
        class UpperCase(BaseAttributeDefinition):
            name = "upper"

            def resolve_values(self, context):
                values = get_merged_attribute_values(context, self.dependencies)
                return [StringValue(v.value.upper()) for v in values if isinstance(v, StringValue)]
    """

    kind = PluginKind.ATTRIBUTE_DEFINITION
    config_class: ClassVar[type[ResolverPluginConfig]] = AttributeDefinitionConfig

    # Most definitions compute from dependencies; those that don't override this
    requires_dependencies: ClassVar[bool] = True

    @property
    def config(self) -> AttributeDefinitionConfig:
        config = super().config
        assert isinstance(config, AttributeDefinitionConfig)
        return config

    @property
    def output_id(self) -> str:
        """Id of the produced attribute (the plugin id unless overridden)."""
        if self._config is None:
            return self._id
        return self.config.output_id or self._id

    @property
    def dependency_only(self) -> bool:
        return self.config.dependency_only

    def _validate(self) -> None:
        if self.requires_dependencies and not self.dependencies:
            raise ComponentInitializationError(f"Attribute definition '{self._id}' requires at least one dependency")

    def _do_resolve(self, context: ResolutionContext) -> PluginResult:
        values = self.resolve_values(context)
        return PluginResult.of_attribute(IdPAttribute(self.output_id, tuple(values)))

    @abstractmethod
    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        """Compute the output values from already-resolved dependencies."""
        raise NotImplementedError


class BaseDataConnector(BaseResolverPlugin):
    """Base class for data connectors.

    Subclasses implement fetch(), returning raw attribute name -> attribute.
    This base adds, in order:
    - the no-retry window after a failure (no_retry_delay_seconds)
    - the cross-request results cache (results_cache)
    - the no_result_is_error policy

    Example:
        class Directory(BaseDataConnector):
            name = "directory"

            def fetch(self, context):
                entry = self._client.lookup(context.principal)
                return {k: IdPAttribute.of(k, v) for k, v in entry.items()}
    """

    kind = PluginKind.DATA_CONNECTOR
    config_class: ClassVar[type[ResolverPluginConfig]] = DataConnectorConfig

    def __init__(self, plugin_id: str, *, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__(plugin_id)
        self._clock = clock
        self._results_cache: ResultsCache[dict[str, IdPAttribute]] | None = None
        self._failure_lock = threading.Lock()
        self._last_failure: float | None = None

    @property
    def config(self) -> DataConnectorConfig:
        config = super().config
        assert isinstance(config, DataConnectorConfig)
        return config

    @property
    def failover_connector_id(self) -> str | None:
        return self.config.failover_connector_id if self._config is not None else None

    @property
    def results_cache(self) -> ResultsCache[dict[str, IdPAttribute]] | None:
        return self._results_cache

    def _validate(self) -> None:
        if self.config.failover_connector_id == self._id:
            raise ComponentInitializationError(f"Data connector '{self._id}' cannot be its own failover connector")

    def _on_initialize(self) -> None:
        cache_config = self.config.results_cache
        if cache_config is not None:
            self._results_cache = ResultsCache(
                max_size=cache_config.max_size,
                ttl_seconds=cache_config.ttl_seconds,
                clock=self._clock,
            )

    def _on_destroy(self) -> None:
        cache = self._results_cache
        if cache is not None:
            logger.info("results_cache_closed", connector_id=self._id, hits=cache.hits, misses=cache.misses, entries=len(cache))
            cache.clear()
            self._results_cache = None

    def exported_attributes(self, result: PluginResult) -> dict[str, IdPAttribute]:
        """Raw attributes this connector releases directly into the final set."""
        if not result.has_values:
            return {}
        if self.config.export_all_attributes:
            return dict(result.attributes)
        return {name: result.attributes[name] for name in self.config.export_attributes if name in result.attributes}

    def cache_key(self, context: ResolutionContext) -> str:
        """Fingerprint of everything that determines the external call.

        Override when the call depends on less (or more) than the principal,
        the relying party and the dependency values.
        """
        return stable_hash(
            {
                "connector": self._id,
                "principal": context.principal,
                "requester": context.requester,
                "issuer": context.issuer,
                "dependencies": get_all_attribute_values(context, self.dependencies),
            }
        )

    def _in_no_retry_window(self) -> bool:
        delay = self.config.no_retry_delay_seconds
        if delay is None:
            return False
        with self._failure_lock:
            return self._last_failure is not None and self._clock() - self._last_failure < delay

    def _record_failure(self) -> None:
        with self._failure_lock:
            self._last_failure = self._clock()

    def _do_resolve(self, context: ResolutionContext) -> PluginResult:
        if self._in_no_retry_window():
            raise ResolutionError(f"data connector '{self._id}' failed recently; not contacting the source until the retry delay elapses")

        try:
            if self._results_cache is not None:
                attributes = self._results_cache.get_or_compute(self.cache_key(context), lambda: self.fetch(context))
            else:
                attributes = self.fetch(context)
        except ResolutionError:
            self._record_failure()
            raise

        if not any(attr.values for attr in attributes.values()):
            if self.config.no_result_is_error:
                raise NoResultError(f"data connector '{self._id}' returned no results for principal '{context.principal}'")
            return PluginResult.empty()
        return PluginResult.resolved(attributes)

    @abstractmethod
    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        """Fetch raw attributes from the source.

        Return an empty mapping for "no results". Wrap library errors in
        ResolutionError; any other exception is treated as a plugin bug and
        propagates to the caller.
        """
        raise NotImplementedError
