# src/attresolver/core/logging.py
"""Logging setup for attresolver.

Engine and plugin modules log structured events through get_logger().
httpx and SQLAlchemy log through the stdlib; their records are routed
through the same processor chain, so one resolution produces one uniform
stream on stderr (stdout carries the CLI's resolved attributes).

Events logged while a request is being resolved carry that request's
context_id and resolver_id: the resolver binds them with request_scope()
and merge_contextvars adds them to every event, including the retry and
cache events of data connectors that never see the context themselves.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

# One line per connection checkout or statement; held at WARNING unless
# the root level is stricter.
_CONNECTOR_LIBRARY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "sqlalchemy.engine", "sqlalchemy.pool")


def _renderer(json_output: bool, stream: IO[str]) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging to one handler.

    Args:
        json_output: One JSON object per line instead of console output
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
        stream: Destination; stderr when not given
    """
    stream = stream if stream is not None else sys.stderr
    root_level = logging.getLevelNamesMapping()[level.upper()]

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    render_chain: list[Any] = [ProcessorFormatter.remove_processors_meta]
    if json_output:
        render_chain.append(structlog.processors.format_exc_info)
    render_chain.append(_renderer(json_output, stream))

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # The CLI reconfigures on every invocation
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ProcessorFormatter(processors=render_chain, foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    for name in _CONNECTOR_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))


@contextmanager
def request_scope(context_id: str, resolver_id: str) -> Iterator[None]:
    """Bind a request's identifiers to every event logged inside the block.

    Nested scopes for the same request are harmless; on exit the previous
    bindings are restored.
    """
    with structlog.contextvars.bound_contextvars(context_id=context_id, resolver_id=resolver_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
