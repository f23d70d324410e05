"""
Rendering of `QuerySpec` objects into SQLAlchemy statements.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.sql.elements import quoted_name

from ..errors import QueryError
from .spec import Between, Equals, IsNotNull, OrderDirection, QuerySpec

__all__ = ["SQLRenderer", "DERIVED_ALIAS"]

DERIVED_ALIAS = "s"


class SQLRenderer:
    """Renders query specifications as SQLAlchemy `Select` statements.
    Values are passed as bound parameters. `to_text()` produces literal SQL
    text for backends that need it, with values quoted by the dialect.
    All identifiers are quoted."""

    def __init__(self, dialect=None):
        self.dialect = dialect

    def select(self, spec: QuerySpec) -> sa.Select:
        """Return a `Select` statement for `spec`."""
        if spec.is_derived:
            source = self.select(spec.source).subquery(DERIVED_ALIAS)
        else:
            source = sa.table(quoted_name(spec.source, True))

        def column(name):
            if spec.is_derived:
                try:
                    return source.c[name]
                except KeyError:
                    raise QueryError(
                        f"Derived query has no column '{name}'"
                    ) from None
            return sa.column(quoted_name(name, True))

        if spec.projections:
            selection = []
            for projection in spec.projections:
                if projection.function:
                    function = getattr(sa.func, projection.function)
                    if projection.column is None:
                        expr = function(sa.literal_column("1"))
                    else:
                        expr = function(column(projection.column))
                else:
                    expr = column(projection.column)
                selection.append(expr.label(quoted_name(projection.alias, True)))
            statement = sa.select(*selection).select_from(source)
        elif spec.is_derived:
            statement = sa.select(source)
        else:
            statement = sa.select(sa.literal_column("*")).select_from(source)

        conditions = []
        for predicate in spec.predicates:
            col = column(predicate.column)
            if isinstance(predicate, Equals):
                conditions.append(col == predicate.value)
            elif isinstance(predicate, Between):
                conditions.append(col.between(predicate.low, predicate.high))
            elif isinstance(predicate, IsNotNull):
                conditions.append(col.is_not(None))
            else:
                raise QueryError(f"Unknown predicate type {type(predicate)}")

        if conditions:
            statement = statement.where(sa.and_(*conditions))

        if spec.group_by:
            statement = statement.group_by(*[column(name) for name in spec.group_by])

        if spec.order_by:
            order = []
            for item in spec.order_by:
                col = column(item.column)
                if item.direction == OrderDirection.DESC:
                    order.append(col.desc())
                else:
                    order.append(col.asc())
            statement = statement.order_by(*order)

        if spec.limit is not None:
            statement = statement.limit(spec.limit)
        if spec.offset is not None:
            statement = statement.offset(spec.offset)

        return statement

    def to_text(self, spec: QuerySpec, literal: bool = True) -> str:
        """Return SQL text of `spec`. With `literal` the values are rendered
        inline, otherwise as parameter placeholders."""
        statement = self.select(spec)
        compile_kwargs = {"literal_binds": True} if literal else {}
        return str(statement.compile(dialect=self.dialect, compile_kwargs=compile_kwargs))
