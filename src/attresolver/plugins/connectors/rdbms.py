"""Relational database data connector.

Runs a SQL query through SQLAlchemy and maps the result rows to
attributes: every column becomes an attribute, and each row contributes
one value to every column.

The query text is rendered from a jinja2 template (so it can vary with the
request), but request data is never interpolated into SQL: the principal,
requester, issuer and each single-valued dependency attribute are passed
as bound parameters.

Example configuration:
    - id: people_db
      plugin: rdbms
      options:
        url: "postgresql+psycopg://idp:${DB_PASSWORD}@db/people"
        query_template: "SELECT mail, department FROM people WHERE uid = :principal"
        multiple_results_is_error: false
"""

from collections.abc import Collection
from typing import Any

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment
from pydantic import Field
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from attresolver.contracts import ComponentInitializationError, IdPAttribute, MultipleResultError, ResolutionError
from attresolver.core.logging import get_logger
from attresolver.core.retry import RetriesExhausted, call_with_retry
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseDataConnector
from attresolver.plugins.config_base import ExternalConnectorConfig
from attresolver.plugins.dependency_support import get_all_attribute_values

logger = get_logger(__name__)


class RDBMSConfig(ExternalConnectorConfig):
    """Configuration for the relational database connector."""

    url: str = Field(min_length=1, description="SQLAlchemy database URL")
    query_template: str = Field(min_length=1, description="jinja2 template producing the SQL text")
    multiple_results_is_error: bool = Field(default=False, description="Fail when the query returns more than one row")
    pool_size: int | None = Field(default=None, gt=0, description="Connection pool size (driver default when unset)")


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, OperationalError):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def rows_to_attributes(columns: list[str], rows: list[tuple[Any, ...]]) -> dict[str, IdPAttribute]:
    """Column-major view of result rows: column name -> one value per row."""
    return {column: IdPAttribute.of(column, [row[index] for row in rows]) for index, column in enumerate(columns)}


class RDBMSConnector(BaseDataConnector):
    """Fetch attributes with a SQL query.

    Config options:
        url: Required. SQLAlchemy database URL
        query_template: Required. jinja2 template producing SQL with bound
            parameters (:principal, :requester, :issuer, :<attribute>)
        multiple_results_is_error: Fail on more than one row (default: False)
        pool_size: Connection pool size
        retry: Retry policy for transient database errors
    """

    name = "rdbms"
    plugin_version = "1.0.0"
    config_class = RDBMSConfig

    def __init__(self, plugin_id: str, **kwargs: Any) -> None:
        super().__init__(plugin_id, **kwargs)
        self._env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)
        self._query_template: Any = None
        self._engine: Engine | None = None

    @property
    def config(self) -> RDBMSConfig:
        config = super().config
        assert isinstance(config, RDBMSConfig)
        return config

    def _on_initialize(self) -> None:
        super()._on_initialize()
        try:
            self._query_template = self._env.from_string(self.config.query_template)
        except TemplateError as e:
            raise ComponentInitializationError(f"RDBMS connector '{self.id}' has an invalid query_template: {e}") from e

        engine_options: dict[str, Any] = {"pool_pre_ping": True}
        if self.config.pool_size is not None:
            engine_options["pool_size"] = self.config.pool_size
        try:
            self._engine = create_engine(self.config.url, **engine_options)
        except (SQLAlchemyError, ValueError, TypeError) as e:
            raise ComponentInitializationError(f"RDBMS connector '{self.id}' could not create a database engine: {e}") from e

    def _on_destroy(self) -> None:
        super()._on_destroy()
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def query_parameters(self, context: ResolutionContext, bound: Collection[str] | None = None) -> dict[str, Any]:
        """Parameter values for the query, limited to the names in bound when given.

        A dependency attribute binds its only value, or None when it has none.

        Raises:
            ResolutionError: If a bound dependency attribute has more than one value
        """
        parameters: dict[str, Any] = {}
        for name, values in get_all_attribute_values(context, self.dependencies).items():
            if bound is not None and name not in bound:
                continue
            if len(values) > 1:
                raise ResolutionError(f"parameter :{name} has {len(values)} values; only single-valued attributes can be bound")
            parameters[name] = values[0].display() if values else None
        request = {"principal": context.principal, "requester": context.requester, "issuer": context.issuer}
        parameters.update((name, value) for name, value in request.items() if bound is None or name in bound)
        return parameters

    def build_query(self, context: ResolutionContext) -> str:
        """Render the SQL text for one request.

        Raises:
            ResolutionError: If the template cannot be rendered
        """
        try:
            return str(self._query_template.render(request=context.request_namespace()))
        except TemplateError as e:
            raise ResolutionError(f"query_template could not be rendered: {e}") from e

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        assert self._engine is not None
        engine = self._engine
        statement = text(self.build_query(context))
        parameters = self.query_parameters(context, bound=statement.compile().params)

        def run_query() -> tuple[list[str], list[tuple[Any, ...]]]:
            with engine.connect() as connection:
                result = connection.execute(statement, parameters)
                return list(result.keys()), [tuple(row) for row in result.fetchall()]

        try:
            columns, rows = call_with_retry(run_query, self.config.retry, is_retryable=_is_retryable, connector_id=self.id)
        except RetriesExhausted as e:
            raise ResolutionError(f"query failed after {e.attempts} attempts: {e.last_error}") from e
        except SQLAlchemyError as e:
            raise ResolutionError(f"query failed: {e}") from e
        logger.debug("rdbms_query", connector_id=self.id, bound_parameters=sorted(parameters), rows=len(rows))

        if not rows:
            return {}
        if len(rows) > 1 and self.config.multiple_results_is_error:
            raise MultipleResultError(f"query returned {len(rows)} rows; at most one was expected")
        return rows_to_attributes(columns, rows)
