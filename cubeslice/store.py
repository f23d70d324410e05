"""
Data stores: execution of compiled queries.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .errors import ArgumentError, ExecutionError, QueryCancelled
from .logging import get_logger
from .query.render import SQLRenderer
from .query.spec import QuerySpec

__all__ = [
    "DEFAULT_FETCH_SIZE",
    "DataStore",
    "SQLStore",
]

DEFAULT_FETCH_SIZE = 1000


class DataStore(ABC):
    """Abstract data store. A store executes a compiled `QuerySpec` and
    returns the rows as dictionaries keyed by the projection aliases.

    Failures are raised as `ExecutionError`. A store never retries a
    failed statement.
    """

    @abstractmethod
    def execute(
        self,
        spec: QuerySpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[dict[str, Any]]:
        """Execute `spec`. `timeout` is a number of seconds after which the
        statement is abandoned, `cancel` is an event set by the caller to
        abandon it. Both raise `QueryCancelled`."""

    def close(self):
        """Release resources held by the store."""


class SQLStore(DataStore):
    """SQL data store backed by a SQLAlchemy engine.

    `url_or_engine` is a database URL or an existing engine. With
    `render_literals` the statements are sent as literal SQL text rendered
    by the engine dialect, otherwise with bound parameters. Rows are
    fetched in batches of `fetch_size`. Cancellation and the timeout are
    checked before the statement is executed and between batches.
    """

    def __init__(
        self,
        url_or_engine,
        render_literals: bool = False,
        fetch_size: int = DEFAULT_FETCH_SIZE,
        echo: bool = False,
    ):
        if not url_or_engine:
            raise ArgumentError("SQL store requires a database URL or an engine")

        if isinstance(url_or_engine, sa.engine.Engine):
            self.engine = url_or_engine
            self._owns_engine = False
        else:
            self.engine = sa.create_engine(url_or_engine, echo=echo)
            self._owns_engine = True

        if fetch_size is None or int(fetch_size) <= 0:
            raise ArgumentError("fetch_size must be positive")

        self.render_literals = render_literals
        self.fetch_size = int(fetch_size)
        self.renderer = SQLRenderer(self.engine.dialect)
        self.logger = get_logger()

    def statement_text(self, spec: QuerySpec) -> str:
        """SQL text of `spec` as it is sent to the database."""
        return self.renderer.to_text(spec, literal=self.render_literals)

    def execute(
        self,
        spec: QuerySpec,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[dict[str, Any]]:
        text = self.statement_text(spec)
        self.logger.debug(f"SQL({spec.label or 'query'}): {text}")

        deadline = None if timeout is None else time.monotonic() + timeout
        self._check_cancelled(text, deadline, cancel)

        rows = []
        try:
            with self.engine.connect() as connection:
                if self.render_literals:
                    result = connection.exec_driver_sql(text)
                else:
                    result = connection.execute(self.renderer.select(spec))

                while True:
                    self._check_cancelled(text, deadline, cancel)
                    batch = result.fetchmany(self.fetch_size)
                    if not batch:
                        break
                    rows.extend(dict(row._mapping) for row in batch)

        except SQLAlchemyError as e:
            raise ExecutionError(
                f"Execution of {spec.label or 'query'} failed: {e}",
                statement=text,
                cause=e,
            ) from e

        return rows

    def _check_cancelled(self, text, deadline, cancel):
        if cancel is not None and cancel.is_set():
            raise QueryCancelled("Query was cancelled", statement=text)
        if deadline is not None and time.monotonic() >= deadline:
            raise QueryCancelled("Query timeout expired", statement=text)

    def close(self):
        if self._owns_engine:
            self.engine.dispose()

    def __repr__(self):
        return f"<SQLStore {self.engine.url!r}>"
