"""
Pydantic models for query options.

Options are validated once, before a query is compiled. Inconsistent
options are reported as `QueryError`, unknown or mistyped options as
`ArgumentError`.
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import ArgumentError, QueryError, UnknownOperatorError, UnsupportedOperation
from ..metadata import Dimension, Level
from .spec import OrderDirection

__all__ = [
    "AGGREGATION_OPERATORS",
    "LIMIT_KINDS",
    "QueryOptions",
    "AggregateOptions",
    "parse_direction",
]

# Aggregation operator -> SQL aggregate function
AGGREGATION_OPERATORS = {
    "sum": "sum",
    "count": "count",
    "average": "avg",
    "min": "min",
    "max": "max",
}

LIMIT_KINDS = ("rank", "top_10", "percent", "value")

_ORDER_DIRECTIONS = {
    "asc": OrderDirection.ASC,
    "ascending": OrderDirection.ASC,
    "desc": OrderDirection.DESC,
    "descending": OrderDirection.DESC,
}

_LIMIT_SORTS = {
    "asc": OrderDirection.ASC,
    "ascending": OrderDirection.ASC,
    "bottom": OrderDirection.ASC,
    "desc": OrderDirection.DESC,
    "descending": OrderDirection.DESC,
    "top": OrderDirection.DESC,
}


def parse_direction(value: Any, kind: str = "order direction") -> OrderDirection:
    """Normalize an order direction. ``None`` means ascending."""
    if value is None:
        return OrderDirection.ASC
    if isinstance(value, OrderDirection):
        return value

    table = _LIMIT_SORTS if kind == "limit sort" else _ORDER_DIRECTIONS
    try:
        return table[str(value).lower()]
    except KeyError:
        raise QueryError(f"Unknown {kind} '{value}'") from None


class QueryOptions(BaseModel):
    """Ordering and pagination options shared by all queries."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    order_by: str | None = Field(None, description="Field to order by")
    order_direction: str | None = Field(
        None, description="asc, ascending, desc or descending"
    )
    page: int | None = Field(None, description="Page number (0-based)")
    page_size: int | None = Field(None, description="Page size")

    @field_validator("order_direction", mode="before")
    @classmethod
    def validate_order_direction(cls, v):
        if v is not None:
            parse_direction(v)
            if isinstance(v, OrderDirection):
                return v.value
        return v

    @model_validator(mode="after")
    def validate_pagination(self):
        if self.page is not None and self.page < 0:
            raise QueryError("Page must not be negative")
        if self.page_size is not None and self.page_size <= 0:
            raise QueryError("Page size must be positive")
        if self.page is not None and self.page_size is None:
            raise QueryError("page_size is required when page is specified")
        return self

    @property
    def direction(self) -> OrderDirection:
        return parse_direction(self.order_direction)

    @property
    def offset(self) -> int | None:
        if self.page is None:
            return None
        return self.page * self.page_size

    @property
    def limit_rows(self) -> int | None:
        """Row cap implied by pagination."""
        if self.page is None:
            return None
        return self.page_size

    @classmethod
    def from_options(cls, options=None, **kwargs):
        """Create options from `None`, a dictionary, an options object or
        keyword arguments. Mistyped and unknown options are reported as
        `ArgumentError`."""
        if isinstance(options, cls) and not kwargs:
            return options

        if options is None:
            data = {}
        elif isinstance(options, BaseModel):
            data = options.model_dump(exclude_unset=True)
        elif isinstance(options, dict):
            data = dict(options)
        else:
            raise ArgumentError(f"Invalid query options type: {type(options)}")
        data.update(kwargs)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ArgumentError(f"Invalid query options: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AggregateOptions(QueryOptions):
    """Options of an aggregation: the aggregation operators, the drill-down
    and the Top-N limit."""

    row_dimension: str | None = Field(
        None, description="Dimension to drill down by"
    )
    row_levels: list[str] | None = Field(
        None, description="Levels of the row dimension to group by"
    )
    aggregations: list[str] | None = Field(
        None,
        validation_alias=AliasChoices("aggregations", "operators"),
        description="Aggregation operators, sum if not specified",
    )
    limit: str | None = Field(None, description="rank, top_10, percent or value")
    limit_value: int | None = None
    limit_sort: str | None = Field(
        None, description="ascending, asc, bottom, descending, desc or top"
    )
    limit_aggregation: str | None = Field(
        None, description="Aggregation the limit is applied to, sum by default"
    )

    @field_validator("row_dimension", mode="before")
    @classmethod
    def dimension_name(cls, v):
        if isinstance(v, Dimension):
            return v.name
        return v

    @field_validator("row_levels", mode="before")
    @classmethod
    def level_names(cls, v):
        if v is None:
            return v
        if isinstance(v, (str, Level)):
            v = [v]
        return [level.name if isinstance(level, Level) else level for level in v]

    @field_validator("aggregations", mode="before")
    @classmethod
    def validate_aggregations(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = [v]
        for op in v:
            if op not in AGGREGATION_OPERATORS:
                raise UnknownOperatorError(f"Unknown aggregation operator '{op}'")
        return list(v)

    @field_validator("limit", mode="before")
    @classmethod
    def validate_limit(cls, v):
        if v is None:
            return v
        v = str(v)
        if v in ("percent", "value"):
            raise UnsupportedOperation(f"Limit by {v} is not supported")
        if v not in LIMIT_KINDS:
            raise QueryError(f"Unknown limit type '{v}'")
        return v

    @field_validator("limit_sort", mode="before")
    @classmethod
    def validate_limit_sort(cls, v):
        if v is not None:
            parse_direction(v, "limit sort")
            if isinstance(v, OrderDirection):
                return v.value
        return v

    @model_validator(mode="after")
    def validate_drill_down_and_limit(self):
        if self.row_levels and not self.row_dimension:
            raise QueryError("row_levels require row_dimension")

        if self.limit:
            if not self.is_drill_down:
                raise QueryError("Limit requires a drill-down (row_levels)")
            if self.limit == "rank" and self.limit_value is None:
                raise QueryError("Limit value for aggregation rank limit not provided")
            if self.limit_value is not None and self.limit_value < 0:
                raise QueryError("Limit value must not be negative")
            if self.limit_aggregation_name not in self.operators:
                raise QueryError(
                    f"Invalid aggregation '{self.limit_aggregation_name}' to limit, "
                    f"it is not one of the selected aggregations {self.operators}"
                )

        return self

    @property
    def operators(self) -> list[str]:
        if self.aggregations is None:
            return ["sum"]
        return list(self.aggregations)

    @property
    def is_drill_down(self) -> bool:
        return bool(self.row_levels)

    @property
    def has_limit(self) -> bool:
        return bool(self.limit)

    @property
    def limit_aggregation_name(self) -> str:
        return self.limit_aggregation or "sum"

    @property
    def limit_rank(self) -> int | None:
        """Number of rows kept by the limit."""
        if self.limit == "top_10":
            return 10
        return self.limit_value

    @property
    def limit_direction(self) -> OrderDirection:
        if self.limit == "top_10":
            return OrderDirection.DESC
        return parse_direction(self.limit_sort, "limit sort")
