# tests/plugins/connectors/test_http_connector.py
"""Tests for the HTTP connector against an in-process mock transport."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from structlog.testing import capture_logs

from attresolver.contracts import ComponentInitializationError, ResolutionError, ResolutionStatus
from attresolver.engine.context import ResolutionContext
from attresolver.engine.resolver import AttributeResolver
from attresolver.plugins.connectors.http import HTTPConnector, map_response_body

Factory = Callable[..., Any]

URL_TEMPLATE = "https://directory.example.org/people/{{ request.principal | urlencode }}"
FAST_RETRY = {"max_attempts": 2, "initial_delay_seconds": 0.001, "max_delay_seconds": 0.001}


class Directory:
    """Mock transport handler that records requests."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses[min(len(self.requests), len(self._responses)) - 1]
        if isinstance(response, Exception):
            raise response
        # A fresh copy per call; the client consumes and closes what it receives
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


def _connector(directory: Directory, plugin_id: str = "api", **options: Any) -> HTTPConnector:
    connector = HTTPConnector(plugin_id, transport=httpx.MockTransport(directory))
    connector.configure({"url_template": URL_TEMPLATE, "retry": FAST_RETRY, **options})
    connector.initialize()
    return connector


def _error(result: Any) -> ResolutionError:
    assert result.is_failed
    assert isinstance(result.error, ResolutionError)
    return result.error


class TestResponseMapping:
    """JSON body to attributes."""

    def test_lists_and_scalars(self) -> None:
        attributes = map_response_body({"mail": ["a@example.org", "b@example.org"], "displayName": "John Doe", "age": 42})

        assert {name: attr.display_values() for name, attr in attributes.items()} == {
            "mail": ["a@example.org", "b@example.org"],
            "displayName": ["John Doe"],
            "age": ["42"],
        }

    @pytest.mark.parametrize("body", [["a", "b"], "jdoe", 42, None])
    def test_non_object_rejected(self, body: Any) -> None:
        with pytest.raises(ResolutionError, match="expected a JSON object"):
            map_response_body(body)

    def test_non_finite_rejected(self) -> None:
        with pytest.raises(ResolutionError, match="non-finite"):
            map_response_body({"score": [1.0, float("nan")]})


class TestHTTPConnector:
    """Requests, status handling and retries."""

    def test_fetch(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(200, json={"mail": ["jdoe@example.org"], "department": "Physics"}))
        connector = _connector(directory)

        result = connector.resolve(context)

        assert result.status == ResolutionStatus.RESOLVED
        assert result.attributes["department"].display_values() == ["Physics"]
        assert str(directory.requests[0].url) == "https://directory.example.org/people/jdoe"
        assert directory.requests[0].method == "GET"

    def test_principal_is_url_encoded(self) -> None:
        directory = Directory(httpx.Response(200, json={}))
        context = ResolutionContext.for_request("j doe")

        _connector(directory).resolve(context)

        assert directory.requests[0].url.raw_path == b"/people/j%20doe"

    def test_headers_sent(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(200, json={"uid": "jdoe"}))

        _connector(directory, headers={"Authorization": "Bearer token"}).resolve(context)

        assert directory.requests[0].headers["Authorization"] == "Bearer token"

    def test_not_found_is_empty(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(404))

        assert _connector(directory).resolve(context).status == ResolutionStatus.EMPTY

    def test_server_error_retried_then_fails(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(503))

        with capture_logs() as logs:
            error = _error(_connector(directory).resolve(context))

        assert len(directory.requests) == 2
        assert "failed after 2 attempts" in str(error)
        retries = [log for log in logs if log["event"] == "connector_retry"]
        assert [(log["connector_id"], log["attempt"]) for log in retries] == [("api", 1)]

    def test_server_error_then_success(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(500), httpx.Response(200, json={"uid": "jdoe"}))

        result = _connector(directory).resolve(context)

        assert result.attributes["uid"].display_values() == ["jdoe"]
        assert len(directory.requests) == 2

    def test_transport_error_retried(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.ConnectError("connection refused"))

        error = _error(_connector(directory).resolve(context))

        assert len(directory.requests) == 2
        assert "connection refused" in str(error)

    def test_client_error_not_retried(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(403))

        error = _error(_connector(directory).resolve(context))

        assert len(directory.requests) == 1
        assert "403" in str(error)

    def test_invalid_json(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(200, text="<html>oops</html>"))

        assert "invalid JSON" in str(_error(_connector(directory).resolve(context)))

    def test_list_body_fails(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(200, json=[{"uid": "jdoe"}]))

        assert "expected a JSON object" in str(_error(_connector(directory).resolve(context)))

    def test_url_from_dependency(self, context: ResolutionContext, make_static: Factory) -> None:
        people = make_static("people", {"uid": ["jd42"]})
        directory = Directory(httpx.Response(200, json={"mail": "jdoe@example.org"}))
        connector = _connector(directory, dependencies=["people.uid"], url_template="https://directory.example.org/uid/{{ uid[0] }}")

        AttributeResolver([], [people, connector]).resolve(context, ["api"])

        assert str(directory.requests[0].url) == "https://directory.example.org/uid/jd42"
        assert context.resolved_connectors["api"].has_values

    def test_unrenderable_url_fails_without_request(self, context: ResolutionContext) -> None:
        directory = Directory(httpx.Response(200, json={}))
        connector = _connector(directory, url_template="https://directory.example.org/{{ missing }}")

        assert "url_template could not be rendered" in str(_error(connector.resolve(context)))
        assert directory.requests == []

    def test_invalid_template_rejected_at_initialize(self) -> None:
        connector = HTTPConnector("api", transport=httpx.MockTransport(Directory(httpx.Response(200))))
        connector.configure({"url_template": "https://x/{{ request.principal "})

        with pytest.raises(ComponentInitializationError, match="invalid url_template"):
            connector.initialize()

    def test_results_cache_spans_requests(self) -> None:
        directory = Directory(httpx.Response(200, json={"uid": "jdoe"}))
        connector = _connector(directory, results_cache={"ttl_seconds": 60})

        first = connector.resolve(ResolutionContext.for_request("jdoe", requester="https://sp.example.org"))
        second = connector.resolve(ResolutionContext.for_request("jdoe", requester="https://sp.example.org"))
        other = connector.resolve(ResolutionContext.for_request("asmith", requester="https://sp.example.org"))

        assert first == second
        assert other.has_values
        assert len(directory.requests) == 2
