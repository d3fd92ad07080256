"""HTTP data connector.

Issues a GET to a URL rendered from a jinja2 template and maps the JSON
object in the response body to attributes: each top-level key becomes an
attribute, a list becomes its values and a scalar becomes a single value.

Example configuration:
    - id: directory_api
      plugin: http
      options:
        url_template: "https://directory.example.org/people/{{ request.principal | urlencode }}"
        headers:
          Authorization: "Bearer ${DIRECTORY_TOKEN}"
        timeout_seconds: 5
        retry:
          max_attempts: 3

HTTP 404 means "no such principal" and yields no results; other error
statuses fail the connector. Transport errors, 429 and 5xx responses are
retried.
"""

import json
import math
from typing import Any

import httpx
from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment
from pydantic import Field

from attresolver.contracts import ComponentInitializationError, IdPAttribute, ResolutionError
from attresolver.core.logging import get_logger
from attresolver.core.retry import RetriesExhausted, call_with_retry
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseDataConnector
from attresolver.plugins.config_base import ExternalConnectorConfig
from attresolver.plugins.dependency_support import get_all_attribute_values

logger = get_logger(__name__)

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class HTTPConfig(ExternalConnectorConfig):
    """Configuration for the HTTP connector."""

    url_template: str = Field(min_length=1, description="jinja2 template producing the request URL")
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = Field(default=10.0, gt=0)


def _contains_non_finite(obj: Any) -> bool:
    """Recursively check a parsed JSON value for NaN or Infinity."""
    if isinstance(obj, float):
        return math.isnan(obj) or math.isinf(obj)
    if isinstance(obj, dict):
        return any(_contains_non_finite(v) for v in obj.values())
    if isinstance(obj, list):
        return any(_contains_non_finite(v) for v in obj)
    return False


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code in _RETRYABLE_STATUS


def map_response_body(body: Any) -> dict[str, IdPAttribute]:
    """Map a decoded JSON body to attributes.

    Raises:
        ResolutionError: If the body is not a JSON object or holds non-finite numbers
    """
    if not isinstance(body, dict):
        raise ResolutionError(f"expected a JSON object in the response body, got {type(body).__name__}")
    if _contains_non_finite(body):
        raise ResolutionError("response body contains non-finite values (NaN or Infinity)")
    return {str(name): IdPAttribute.of(str(name), value if isinstance(value, list) else [value]) for name, value in body.items()}


class HTTPConnector(BaseDataConnector):
    """Fetch attributes from a JSON web service.

    Config options:
        url_template: Required. jinja2 template; `request` and every
            dependency attribute (as a list of strings) are in scope
        headers: Extra request headers
        timeout_seconds: Request timeout (default: 10)
        retry: Retry policy (max_attempts, initial_delay_seconds, ...)
    """

    name = "http"
    plugin_version = "1.0.0"
    config_class = HTTPConfig

    def __init__(self, plugin_id: str, *, transport: httpx.BaseTransport | None = None, **kwargs: Any) -> None:
        super().__init__(plugin_id, **kwargs)
        self._transport = transport
        self._env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)
        self._url_template: Any = None
        self._client: httpx.Client | None = None

    @property
    def config(self) -> HTTPConfig:
        config = super().config
        assert isinstance(config, HTTPConfig)
        return config

    def _on_initialize(self) -> None:
        super()._on_initialize()
        try:
            self._url_template = self._env.from_string(self.config.url_template)
        except TemplateError as e:
            raise ComponentInitializationError(f"HTTP connector '{self.id}' has an invalid url_template: {e}") from e
        # httpx.Client is thread-safe; its pool is shared by concurrent requests
        self._client = httpx.Client(
            timeout=self.config.timeout_seconds,
            headers=self.config.headers,
            follow_redirects=False,
            transport=self._transport,
        )

    def _on_destroy(self) -> None:
        super()._on_destroy()
        if self._client is not None:
            self._client.close()
            self._client = None

    def build_url(self, context: ResolutionContext) -> str:
        """Render the request URL for one request.

        Raises:
            ResolutionError: If the template cannot be rendered
        """
        variables = {
            name: [value.display() for value in values]
            for name, values in get_all_attribute_values(context, self.dependencies).items()
        }
        try:
            return str(self._url_template.render(request=context.request_namespace(), **variables))
        except TemplateError as e:
            raise ResolutionError(f"url_template could not be rendered: {e}") from e

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        assert self._client is not None
        client = self._client
        url = self.build_url(context)

        def get() -> httpx.Response:
            response = client.get(url)
            if response.status_code != httpx.codes.NOT_FOUND:
                response.raise_for_status()
            return response

        try:
            response = call_with_retry(get, self.config.retry, is_retryable=_is_retryable, connector_id=self.id)
        except RetriesExhausted as e:
            raise ResolutionError(f"GET {url} failed after {e.attempts} attempts: {e.last_error}") from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"GET {url} failed: {e}") from e
        logger.debug("http_response", connector_id=self.id, url=url, status_code=response.status_code)

        if response.status_code == httpx.codes.NOT_FOUND:
            return {}

        try:
            body = json.loads(response.text)
        except json.JSONDecodeError as e:
            raise ResolutionError(f"GET {url} returned invalid JSON: {e}") from e
        return map_response_body(body)
