# tests/engine/test_loader.py
"""Tests for building a resolver from settings."""

from __future__ import annotations

from typing import Any

import pytest
from structlog.testing import capture_logs

from attresolver.contracts import ComponentInitializationError, ConfigurationError, PluginState
from attresolver.core.config import ResolverSettings
from attresolver.core.dag import GraphValidationError
from attresolver.engine.context import ResolutionContext
from attresolver.engine.loader import build_resolver
from attresolver.plugins.manager import PluginManager


@pytest.fixture(scope="module")
def manager() -> PluginManager:
    manager = PluginManager()
    manager.register_builtin_plugins()
    return manager


def _settings(definitions: list[dict[str, Any]], connectors: list[dict[str, Any]], **extra: Any) -> ResolverSettings:
    return ResolverSettings(attribute_definitions=definitions, data_connectors=connectors, **extra)


def _people(**options: Any) -> dict[str, Any]:
    return {"id": "people", "plugin": "static", "options": {"attributes": {"affiliation": ["staff"], "uid": ["jdoe"]}, **options}}


PEOPLE = _people()


class TestBuildResolver:
    """Instantiating, validating and initializing the configured graph."""

    def test_builds_initialized_resolver(self, manager: PluginManager) -> None:
        settings = _settings(
            [
                {
                    "id": "affiliation",
                    "plugin": "mapped",
                    "options": {
                        "dependencies": ["people.affiliation"],
                        "value_maps": [{"return_value": "member", "source_values": [{"value": "staff"}]}],
                    },
                },
                {"id": "uid", "plugin": "simple", "options": {"dependencies": ["people.uid"]}},
            ],
            [PEOPLE],
            requested=["affiliation"],
        )

        with capture_logs() as logs:
            resolver = build_resolver(settings, manager)

        assert all(plugin.state == PluginState.INITIALIZED for plugin in [*resolver.definitions.values(), *resolver.connectors.values()])
        attributes = resolver.resolve_attributes(ResolutionContext.for_request("jdoe"))
        assert {k: v.display_values() for k, v in attributes.items()} == {"affiliation": ["member"]}

        built = [log for log in logs if log["event"] == "resolver_built"]
        assert built[0]["resolution_order"] == ["people", "affiliation", "uid"]
        resolver.destroy()

    def test_strip_nulls_setting_is_applied(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "nickname", "plugin": "simple", "options": {"dependencies": ["people"]}}],
            [{"id": "people", "plugin": "static", "options": {"attributes": {"nickname": [None]}}}],
            strip_nulls=True,
        )

        resolver = build_resolver(settings, manager)

        assert resolver.resolve_attributes(ResolutionContext.for_request("jdoe")) == {}

    def test_unknown_plugin_name(self, manager: PluginManager) -> None:
        settings = _settings([{"id": "uid", "plugin": "nope", "options": {"dependencies": ["people"]}}], [PEOPLE])

        with pytest.raises(ConfigurationError, match="unknown plugin 'nope'.*Available"):
            build_resolver(settings, manager)

    def test_invalid_options(self, manager: PluginManager) -> None:
        from attresolver.plugins.config_base import PluginConfigError

        settings = _settings([{"id": "uid", "plugin": "simple", "options": {"dependencies": ["people"], "colour": "red"}}], [PEOPLE])

        with pytest.raises(PluginConfigError):
            build_resolver(settings, manager)

    def test_unknown_dependency(self, manager: PluginManager) -> None:
        settings = _settings([{"id": "uid", "plugin": "simple", "options": {"dependencies": ["peeple.uid"]}}], [PEOPLE])

        with pytest.raises(GraphValidationError, match="unknown plugin 'peeple'"):
            build_resolver(settings, manager)

    def test_static_cycle(self, manager: PluginManager) -> None:
        settings = _settings(
            [
                {"id": "a", "plugin": "simple", "options": {"dependencies": ["b"]}},
                {"id": "b", "plugin": "simple", "options": {"dependencies": ["a"]}},
            ],
            [],
        )

        with pytest.raises(GraphValidationError, match="cycle"):
            build_resolver(settings, manager)

    def test_incomplete_configuration_fails_initialize(self, manager: PluginManager) -> None:
        settings = _settings(
            [
                {"id": "uid", "plugin": "simple", "options": {"dependencies": ["people.uid"]}},
                {"id": "affiliation", "plugin": "mapped", "options": {"dependencies": ["people.affiliation"]}},
            ],
            [PEOPLE],
        )

        with pytest.raises(ComponentInitializationError, match="value map"):
            build_resolver(settings, manager)

    def test_default_retry_policy_is_injected(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "mail", "plugin": "simple", "options": {"dependencies": ["api"]}}],
            [
                {"id": "api", "plugin": "http", "options": {"url_template": "https://api.example.org/{{ request.principal }}"}},
                {
                    "id": "api2",
                    "plugin": "http",
                    "options": {"url_template": "https://api2.example.org/", "retry": {"max_attempts": 1}},
                },
            ],
            retry={"max_attempts": 7},
        )

        resolver = build_resolver(settings, manager)
        try:
            assert resolver.get_plugin("api").config.retry.max_attempts == 7  # type: ignore[attr-defined]
            assert resolver.get_plugin("api2").config.retry.max_attempts == 1  # type: ignore[attr-defined]
        finally:
            resolver.destroy()


class TestValidateFailover:
    """Static checks on failover wiring."""

    def test_unknown_failover_target(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "uid", "plugin": "simple", "options": {"dependencies": ["people"]}}],
            [_people(failover_connector_id="backup")],
        )

        with pytest.raises(GraphValidationError, match="unknown failover connector 'backup'"):
            build_resolver(settings, manager)

    def test_failover_loop(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "uid", "plugin": "simple", "options": {"dependencies": ["a"]}}],
            [
                {"id": "a", "plugin": "static", "options": {"failover_connector_id": "b"}},
                {"id": "b", "plugin": "static", "options": {"failover_connector_id": "a"}},
            ],
        )

        with pytest.raises(GraphValidationError, match="Failover loop: a -> b -> a"):
            build_resolver(settings, manager)

    def test_failover_target_depending_on_failed_connector(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "uid", "plugin": "simple", "options": {"dependencies": ["people.uid"], "propagate_errors": False}}],
            [
                {
                    "id": "people",
                    "plugin": "static",
                    "options": {"no_result_is_error": True, "failover_connector_id": "backup", "propagate_errors": False},
                },
                {
                    "id": "backup",
                    "plugin": "static",
                    "options": {"dependencies": ["people"], "tolerate_failed_dependencies": True},
                },
            ],
        )

        with pytest.raises(GraphValidationError, match="contains a cycle"):
            build_resolver(settings, manager)

    def test_failover_target_reaching_back_through_definition(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "uid", "plugin": "simple", "options": {"dependencies": ["people.uid"]}}],
            [
                _people(failover_connector_id="backup"),
                {"id": "backup", "plugin": "static", "options": {"dependencies": ["uid"]}},
            ],
        )

        with pytest.raises(GraphValidationError, match="contains a cycle"):
            build_resolver(settings, manager)

    def test_independent_failover_target_accepted(self, manager: PluginManager) -> None:
        settings = _settings(
            [{"id": "uid", "plugin": "simple", "options": {"dependencies": ["people.uid"]}}],
            [
                _people(failover_connector_id="backup"),
                {"id": "backup", "plugin": "static", "options": {"attributes": {"uid": ["jdoe"]}}},
            ],
        )

        resolver = build_resolver(settings, manager)
        resolver.destroy()
