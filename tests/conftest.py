# tests/conftest.py
"""Shared test fixtures and helpers.

Test plugins:
- CountingConnector: static attributes plus an invocation counter
- FailingConnector: always fails with a ResolutionError (or a plugin bug)
- CountingDefinition: simple definition with an invocation counter

Factories (fixtures) build plugins straight through the lifecycle
(construct -> configure -> initialize) so tests don't repeat it:
- make_static, make_simple, make_mapped, make_counting_connector,
  make_failing_connector, make_counting_definition

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from attresolver.contracts import AttributeValue, IdPAttribute, ResolutionError
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseDataConnector
from attresolver.plugins.connectors.static import StaticConnector
from attresolver.plugins.definitions.mapped import MappedDefinition
from attresolver.plugins.definitions.simple import SimpleDefinition

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Test plugins
# =============================================================================


class CountingConnector(StaticConnector):
    """Static connector that counts how often it reaches its source."""

    name = "counting_static"

    def __init__(self, plugin_id: str, **kwargs: Any) -> None:
        super().__init__(plugin_id, **kwargs)
        self.fetch_count = 0

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        self.fetch_count += 1
        return super().fetch(context)


class FailingConnector(BaseDataConnector):
    """Connector whose source is always down."""

    name = "failing"

    def __init__(self, plugin_id: str, *, bug: bool = False, **kwargs: Any) -> None:
        super().__init__(plugin_id, **kwargs)
        self.bug = bug
        self.fetch_count = 0

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        self.fetch_count += 1
        if self.bug:
            raise RuntimeError("connector bug")
        raise ResolutionError("source unavailable")


class CountingDefinition(SimpleDefinition):
    """Simple definition that counts its invocations."""

    name = "counting_simple"

    def __init__(self, plugin_id: str) -> None:
        super().__init__(plugin_id)
        self.resolve_count = 0

    def resolve_values(self, context: ResolutionContext) -> list[AttributeValue]:
        self.resolve_count += 1
        return super().resolve_values(context)


def _ready[P: Any](plugin: P, options: dict[str, Any]) -> P:
    plugin.configure(options)
    plugin.initialize()
    return plugin


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def context() -> ResolutionContext:
    """A fresh context for principal 'jdoe' at a test relying party."""
    return ResolutionContext.for_request(
        "jdoe",
        requester="https://sp.example.org/shibboleth",
        issuer="https://idp.example.org/idp/shibboleth",
    )


@pytest.fixture
def make_static() -> Callable[..., StaticConnector]:
    def factory(plugin_id: str, attributes: dict[str, list[Any]], **options: Any) -> StaticConnector:
        return _ready(StaticConnector(plugin_id), {"attributes": attributes, **options})

    return factory


@pytest.fixture
def make_counting_connector() -> Callable[..., CountingConnector]:
    def factory(plugin_id: str, attributes: dict[str, list[Any]], **options: Any) -> CountingConnector:
        return _ready(CountingConnector(plugin_id), {"attributes": attributes, **options})

    return factory


@pytest.fixture
def make_failing_connector() -> Callable[..., FailingConnector]:
    def factory(plugin_id: str, *, bug: bool = False, clock: Callable[[], float] | None = None, **options: Any) -> FailingConnector:
        kwargs: dict[str, Any] = {"bug": bug}
        if clock is not None:
            kwargs["clock"] = clock
        return _ready(FailingConnector(plugin_id, **kwargs), options)

    return factory


@pytest.fixture
def make_simple() -> Callable[..., SimpleDefinition]:
    def factory(plugin_id: str, dependencies: list[Any], **options: Any) -> SimpleDefinition:
        return _ready(SimpleDefinition(plugin_id), {"dependencies": dependencies, **options})

    return factory


@pytest.fixture
def make_counting_definition() -> Callable[..., CountingDefinition]:
    def factory(plugin_id: str, dependencies: list[Any], **options: Any) -> CountingDefinition:
        return _ready(CountingDefinition(plugin_id), {"dependencies": dependencies, **options})

    return factory


@pytest.fixture
def make_mapped() -> Callable[..., MappedDefinition]:
    def factory(plugin_id: str, dependencies: list[Any], value_maps: list[dict[str, Any]], **options: Any) -> MappedDefinition:
        return _ready(MappedDefinition(plugin_id), {"dependencies": dependencies, "value_maps": value_maps, **options})

    return factory
