# tests/plugins/test_base_lifecycle.py
"""Tests for the plugin lifecycle state machine and connector policies."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from attresolver.contracts import (
    ComponentInitializationError,
    DestroyedComponentError,
    NoResultError,
    PluginState,
    ResolutionStatus,
    UninitializedComponentError,
    UnmodifiableComponentError,
)
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.config_base import PluginConfigError
from attresolver.plugins.definitions.simple import SimpleDefinition

Factory = Callable[..., Any]


class FakeClock:
    def __init__(self) -> None:
        self.now = 5000.0

    def __call__(self) -> float:
        return self.now


class TestLifecycle:
    """UNCONFIGURED -> CONFIGURED -> INITIALIZED -> DESTROYED."""

    def test_happy_path(self) -> None:
        definition = SimpleDefinition("uid")
        assert definition.state == PluginState.UNCONFIGURED

        definition.configure({"dependencies": ["people.uid"]})
        assert definition.state == PluginState.CONFIGURED

        definition.initialize()
        assert definition.state == PluginState.INITIALIZED

        definition.destroy()
        assert definition.state == PluginState.DESTROYED

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ComponentInitializationError):
            SimpleDefinition("  ")

    def test_initialize_before_configure(self) -> None:
        with pytest.raises(ComponentInitializationError, match="before it is configured"):
            SimpleDefinition("uid").initialize()

    def test_missing_dependencies_rejected_at_initialize(self) -> None:
        definition = SimpleDefinition("uid")
        definition.configure({})

        with pytest.raises(ComponentInitializationError, match="requires at least one dependency"):
            definition.initialize()
        assert definition.state == PluginState.CONFIGURED

    def test_reconfigure_before_initialize(self) -> None:
        definition = SimpleDefinition("uid")
        definition.configure({"dependencies": ["a"]})
        definition.configure({"dependencies": ["b"]})

        assert [str(d) for d in definition.dependencies] == ["b"]

    def test_configure_after_initialize_rejected(self, make_simple: Factory) -> None:
        definition = make_simple("uid", ["people"])

        with pytest.raises(UnmodifiableComponentError):
            definition.configure({"dependencies": ["other"]})
        with pytest.raises(UnmodifiableComponentError):
            definition.set_activation_condition(None)

    def test_initialize_twice_is_noop(self, make_simple: Factory) -> None:
        definition = make_simple("uid", ["people"])

        definition.initialize()

        assert definition.state == PluginState.INITIALIZED

    def test_resolve_before_initialize(self, context: ResolutionContext) -> None:
        definition = SimpleDefinition("uid")
        definition.configure({"dependencies": ["people"]})

        with pytest.raises(UninitializedComponentError):
            definition.resolve(context)

    def test_use_after_destroy(self, context: ResolutionContext, make_simple: Factory) -> None:
        definition = make_simple("uid", ["people"])
        definition.destroy()

        with pytest.raises(DestroyedComponentError):
            definition.initialize()
        with pytest.raises(DestroyedComponentError):
            definition.resolve(context)
        with pytest.raises(DestroyedComponentError):
            definition.is_active(context)
        with pytest.raises(DestroyedComponentError):
            definition.configure({"dependencies": ["people"]})

    def test_destroy_is_idempotent(self, make_simple: Factory) -> None:
        definition = make_simple("uid", ["people"])

        definition.destroy()
        definition.destroy()

        assert definition.state == PluginState.DESTROYED

    def test_unconfigured_config_access(self) -> None:
        with pytest.raises(UninitializedComponentError):
            _ = SimpleDefinition("uid").config


class TestCommonOptions:
    """Options every plugin shares."""

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(PluginConfigError, match="Invalid configuration for SimpleConfig"):
            SimpleDefinition("uid").configure({"dependencies": ["people"], "colour": "red"})

    def test_duplicate_dependencies_rejected(self) -> None:
        with pytest.raises(PluginConfigError, match="duplicate dependency"):
            SimpleDefinition("uid").configure({"dependencies": ["people.uid", "people.uid"]})

    def test_dependency_forms(self) -> None:
        definition = SimpleDefinition("uid")
        definition.configure({"dependencies": ["people", "people.uid", {"plugin": "other", "attribute": "id"}]})

        assert [str(d) for d in definition.dependencies] == ["people", "people.uid", "other.id"]

    def test_invalid_activation_condition_rejected_at_configure(self) -> None:
        from attresolver.engine.conditions import ConditionSecurityError

        with pytest.raises(ConditionSecurityError):
            SimpleDefinition("uid").configure({"dependencies": ["people"], "activation_condition": "open('x')"})

    def test_output_id_defaults_to_plugin_id(self, make_simple: Factory) -> None:
        assert make_simple("uid", ["people"]).output_id == "uid"
        assert make_simple("uid", ["people"], output_id="principal").output_id == "principal"

    def test_connector_cannot_fail_over_to_itself(self) -> None:
        from attresolver.plugins.connectors.static import StaticConnector

        connector = StaticConnector("people")
        connector.configure({"failover_connector_id": "people"})

        with pytest.raises(ComponentInitializationError, match="own failover"):
            connector.initialize()

    def test_export_options_are_exclusive(self) -> None:
        from attresolver.plugins.connectors.static import StaticConnector

        with pytest.raises(PluginConfigError, match="mutually exclusive"):
            StaticConnector("people").configure({"export_attributes": ["mail"], "export_all_attributes": True})


class TestConnectorPolicies:
    """No-result, no-retry window and results cache handling in the connector base."""

    def test_no_result_is_empty_by_default(self, context: ResolutionContext, make_static: Factory) -> None:
        result = make_static("people", {}).resolve(context)

        assert result.status == ResolutionStatus.EMPTY

    def test_no_result_is_error(self, context: ResolutionContext, make_static: Factory) -> None:
        result = make_static("people", {"mail": []}, no_result_is_error=True).resolve(context)

        assert result.is_failed
        assert isinstance(result.error, NoResultError)

    def test_no_retry_window(self, context: ResolutionContext, make_failing_connector: Factory) -> None:
        clock = FakeClock()
        connector = make_failing_connector("people", clock=clock, no_retry_delay_seconds=60)

        assert connector.resolve(context).is_failed
        assert connector.fetch_count == 1

        clock.now += 30
        second = connector.resolve(ResolutionContext.for_request("jdoe"))
        assert second.is_failed
        assert "failed recently" in second.error.message
        assert connector.fetch_count == 1

        clock.now += 31
        connector.resolve(ResolutionContext.for_request("jdoe"))
        assert connector.fetch_count == 2

    def test_without_no_retry_window_every_request_calls_source(self, context: ResolutionContext, make_failing_connector: Factory) -> None:
        connector = make_failing_connector("people")

        connector.resolve(context)
        connector.resolve(ResolutionContext.for_request("jdoe"))

        assert connector.fetch_count == 2

    def test_results_cache_short_circuits_source(self, make_counting_connector: Factory) -> None:
        connector = make_counting_connector("people", {"mail": ["jdoe@example.org"]}, results_cache={"max_size": 10, "ttl_seconds": 60})

        first = connector.resolve(ResolutionContext.for_request("jdoe", requester="rp"))
        second = connector.resolve(ResolutionContext.for_request("jdoe", requester="rp"))
        connector.resolve(ResolutionContext.for_request("asmith", requester="rp"))

        assert first == second
        assert connector.fetch_count == 2
        assert connector.results_cache is not None
        assert len(connector.results_cache) == 2

    def test_results_cache_dropped_on_destroy(self, make_static: Factory) -> None:
        from structlog.testing import capture_logs

        connector = make_static("people", {"mail": ["x"]}, results_cache={})
        connector.resolve(ResolutionContext.for_request("jdoe"))
        connector.resolve(ResolutionContext.for_request("jdoe"))

        assert connector.results_cache is not None
        with capture_logs() as logs:
            connector.destroy()

        assert connector.results_cache is None
        closed = [log for log in logs if log["event"] == "results_cache_closed"]
        assert [(log["connector_id"], log["hits"], log["misses"], log["entries"]) for log in closed] == [("people", 1, 1, 1)]

    def test_failures_are_not_cached(self, make_failing_connector: Factory) -> None:
        connector = make_failing_connector("people", results_cache={"max_size": 10, "ttl_seconds": 60})

        connector.resolve(ResolutionContext.for_request("jdoe"))
        connector.resolve(ResolutionContext.for_request("jdoe"))

        assert connector.fetch_count == 2

    def test_cache_key_depends_on_request(self, make_static: Factory) -> None:
        connector = make_static("people", {"mail": ["x"]})

        jdoe = connector.cache_key(ResolutionContext.for_request("jdoe", requester="rp1"))

        assert jdoe == connector.cache_key(ResolutionContext.for_request("jdoe", requester="rp1"))
        assert jdoe != connector.cache_key(ResolutionContext.for_request("jdoe", requester="rp2"))
        assert jdoe != connector.cache_key(ResolutionContext.for_request("asmith", requester="rp1"))

    def test_exported_attributes(self, context: ResolutionContext, make_static: Factory) -> None:
        connector = make_static("people", {"uid": ["jdoe"], "mail": ["jdoe@example.org"]}, export_attributes=["mail", "cn"])

        exported = connector.exported_attributes(connector.resolve(context))

        assert list(exported) == ["mail"]
