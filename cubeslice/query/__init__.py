"""
Query module: cuts, query options, the query compiler and the aggregation
browser.
"""

from .browser import (
    AggregationBrowser,
    AggregationResult,
    ComputedField,
    Facts,
    Slice,
    SummaryCache,
    TableRow,
)
from .compiler import RECORD_COUNT, QueryCompiler, aggregated_field_name
from .cuts import (
    WILDCARD,
    Cut,
    PointCut,
    RangeCut,
    SetCut,
    cut_from_dict,
    normalize_path,
    point_cut,
    range_cut,
    set_cut,
)
from .options import AGGREGATION_OPERATORS, AggregateOptions, QueryOptions
from .render import SQLRenderer
from .spec import (
    Between,
    Equals,
    IsNotNull,
    OrderBy,
    OrderDirection,
    Projection,
    QuerySpec,
)

__all__ = [
    "WILDCARD",
    "Cut",
    "PointCut",
    "RangeCut",
    "SetCut",
    "point_cut",
    "range_cut",
    "set_cut",
    "cut_from_dict",
    "normalize_path",
    "AGGREGATION_OPERATORS",
    "QueryOptions",
    "AggregateOptions",
    "RECORD_COUNT",
    "aggregated_field_name",
    "QueryCompiler",
    "QuerySpec",
    "Projection",
    "Equals",
    "Between",
    "IsNotNull",
    "OrderBy",
    "OrderDirection",
    "SQLRenderer",
    "AggregationBrowser",
    "AggregationResult",
    "ComputedField",
    "Facts",
    "Slice",
    "SummaryCache",
    "TableRow",
]
