"""
Structured, renderer-independent representation of a compiled query.

Column names in a `QuerySpec` are physical column names of the source.
Aliases are the keys of the result rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TypeAlias

__all__ = [
    "OrderDirection",
    "Projection",
    "Equals",
    "Between",
    "IsNotNull",
    "Predicate",
    "OrderBy",
    "QuerySpec",
]


class OrderDirection(str, Enum):
    """Order directions."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class Projection:
    """A selected expression. `function` is one of the SQL aggregate
    functions ``sum``, ``count``, ``avg``, ``min`` and ``max``, or ``None``
    for a plain column. A ``count`` without a column counts rows."""

    column: str | None
    alias: str
    function: str | None = None

    @property
    def is_aggregate(self) -> bool:
        return self.function is not None


@dataclass(frozen=True, slots=True)
class Equals:
    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class Between:
    """Inclusive range condition."""

    column: str
    low: Any
    high: Any


@dataclass(frozen=True, slots=True)
class IsNotNull:
    column: str


Predicate: TypeAlias = Equals | Between | IsNotNull


@dataclass(frozen=True, slots=True)
class OrderBy:
    column: str
    direction: OrderDirection = OrderDirection.ASC


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """Immutable query description.

    `source` is either a table (or view) name or another `QuerySpec` used
    as a derived table. An empty `projections` tuple selects all columns of
    the source. Predicates are conjoined.
    """

    source: str | QuerySpec
    projections: tuple[Projection, ...] = ()
    predicates: tuple[Predicate, ...] = ()
    group_by: tuple[str, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = None
    offset: int | None = None
    label: str = field(default="", compare=False)

    @property
    def is_derived(self) -> bool:
        return isinstance(self.source, QuerySpec)

    @property
    def aliases(self) -> list[str]:
        """Result column names."""
        if not self.projections and self.is_derived:
            return self.source.aliases
        return [p.alias for p in self.projections]

    def with_label(self, label: str) -> QuerySpec:
        return replace(self, label=label)
