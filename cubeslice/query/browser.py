"""
Aggregation browser and slices.

A `Slice` is a cube restricted by a list of cuts. The `AggregationBrowser`
compiles queries for a slice, executes them in a data store and assembles
the results.
"""

from __future__ import annotations

import threading
from collections import namedtuple
from collections.abc import Callable, Iterator
from typing import Any

from ..common import IgnoringDictionary, to_number
from ..errors import (
    ArgumentError,
    ConfigurationError,
    CubesError,
    ExecutionError,
    NotFoundError,
)
from ..logging import get_logger
from ..metadata import Cube, Dimension, Hierarchy
from .compiler import RECORD_COUNT, QueryCompiler, aggregated_field_name
from .cuts import WILDCARD, Cut, PointCut, point_cut, range_cut, set_cut
from .options import AggregateOptions, QueryOptions
from .render import SQLRenderer
from .spec import QuerySpec

__all__ = [
    "AggregationBrowser",
    "Slice",
    "SummaryCache",
    "AggregationResult",
    "Facts",
    "TableRow",
    "ComputedField",
]

# Function computing a value from a result row
ComputedField = Callable[[dict[str, Any]], Any]

TableRow = namedtuple("TableRow", ["key", "label", "path", "is_base", "record"])


class SummaryCache:
    """Summaries of a slice keyed by (cut fingerprint, measure, operators)."""

    def __init__(self):
        self._items: dict[tuple, dict[str, Any]] = {}

    def get(self, key: tuple) -> dict[str, Any] | None:
        return self._items.get(key)

    def set(self, key: tuple, summary: dict[str, Any]) -> None:
        self._items[key] = summary

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: tuple) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


class AggregationBrowser:
    """Browses aggregated data of a cube.

    `store` is a `DataStore` executing compiled queries. Options:

    * `view_name` - name of the fact table or view to query, default is the
      cube's fact table and then the cube name
    * `debug` - log statements at INFO level
    * `timeout` - default statement timeout in seconds
    """

    def __init__(self, cube: Cube, store=None, **options):
        if not cube:
            raise ArgumentError("No cube given for aggregation browser")

        self.cube = cube
        self.store = store
        self.view_name = options.get("view_name")
        self.debug = bool(options.get("debug", False))
        self.timeout = options.get("timeout")

        self.compiler = QueryCompiler(cube, self.view_name)
        self.renderer = SQLRenderer()
        self.logger = get_logger()

    def full_cube(self) -> Slice:
        """Return a slice of the whole cube."""
        return Slice(self)

    def aggregate(
        self,
        cube_slice: Slice,
        measure: str,
        options: AggregateOptions | dict[str, Any] | None = None,
        computed_fields: dict[str, ComputedField] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> AggregationResult:
        """Aggregate `measure` in `cube_slice`.

        The summary of the whole slice is computed once per measure and set
        of operators and kept in the slice. With a drill-down the grouped
        rows are fetched as well; `computed_fields` is a mapping of field
        names to functions that are called with every drill row. With a
        limit the result carries the remainder: the part of the summary not
        covered by the returned rows.
        """
        options = AggregateOptions.from_options(options)
        measure_name = self.cube.measure(measure).name
        operators = options.operators
        computed_fields = self._computed_fields(computed_fields)

        key = (cube_slice.fingerprint(), measure_name, tuple(operators))
        summary = cube_slice.summaries.get(key)
        if summary is None:
            spec = self.compiler.summary_spec(cube_slice.cuts, measure_name, options)
            rows = self._execute(spec, timeout, cancel)
            summary = self._summary(rows[0] if rows else {}, measure_name, operators)
            cube_slice.summaries.set(key, summary)

        result = AggregationResult(
            cube=self.cube,
            measure=measure_name,
            summary=dict(summary),
            options=options,
            cuts=cube_slice.cuts,
        )

        spec = self.compiler.drill_spec(cube_slice.cuts, measure_name, options)
        if spec is not None:
            rows = self._execute(spec, timeout, cancel)
            fields = [aggregated_field_name(measure_name, op) for op in operators]
            fields.append(RECORD_COUNT)

            for row in rows:
                for field in fields:
                    if field in row:
                        row[field] = to_number(row[field])
                for name, function in computed_fields.items():
                    row[name] = function(row)

            result.rows = rows

            if options.has_limit:
                result.remainder = self._remainder(summary, rows, measure_name, operators)

        return result

    def _computed_fields(self, computed_fields) -> dict[str, ComputedField]:
        if not computed_fields:
            return {}
        if not isinstance(computed_fields, dict):
            raise ArgumentError(
                "Computed fields should be a dictionary of field names and functions"
            )
        for name, function in computed_fields.items():
            if not callable(function):
                raise ArgumentError(f"Computed field '{name}' is not callable")
        return computed_fields

    def _summary(
        self, row: dict[str, Any], measure: str, operators: list[str]
    ) -> dict[str, Any]:
        summary = {}
        for op in operators:
            summary[op] = to_number(row.get(aggregated_field_name(measure, op)))
        summary[RECORD_COUNT] = to_number(row.get(RECORD_COUNT))
        return summary

    def _remainder(
        self,
        summary: dict[str, Any],
        rows: list[dict[str, Any]],
        measure: str,
        operators: list[str],
    ) -> dict[str, Any]:
        """Difference between the summary and the totals of `rows`."""
        remainder = {}
        if "sum" in operators:
            field = aggregated_field_name(measure, "sum")
            total = sum(row.get(field) or 0 for row in rows)
            remainder["sum"] = (summary.get("sum") or 0) - total

        total = sum(row.get(RECORD_COUNT) or 0 for row in rows)
        remainder[RECORD_COUNT] = (summary.get(RECORD_COUNT) or 0) - total
        return remainder

    def facts(
        self,
        cube_slice: Slice,
        options: QueryOptions | dict[str, Any] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Facts:
        """Return facts of the slice, ordered and paginated by `options`."""
        spec = self.compiler.facts_spec(cube_slice.cuts, options)
        rows = self._execute(spec, timeout, cancel)
        return Facts(rows, spec.aliases)

    def fact(
        self,
        key: Any,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Return the fact with the fact key `key`. Raises `NotFoundError`
        when there is no such fact."""
        spec = self.compiler.fact_spec(key)
        rows = self._execute(spec, timeout, cancel)
        if not rows:
            raise NotFoundError(
                f"Cube '{self.cube.name}' has no fact with key {key!r}", str(key)
            )
        return rows[0]

    def dimension_values_at_path(
        self,
        cube_slice: Slice,
        dimension: str | Dimension,
        path,
        options: QueryOptions | dict[str, Any] | None = None,
        hierarchy: str | Hierarchy | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[dict[str, Any]]:
        """Return values of the level following `path` in `dimension`
        within the slice."""
        spec = self.compiler.dimension_values_spec(
            dimension, path, cube_slice.cuts, options, hierarchy
        )
        return self._execute(spec, timeout, cancel)

    def dimension_detail_at_path(
        self,
        cube_slice: Slice,
        dimension: str | Dimension,
        path,
        hierarchy: str | Hierarchy | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Return attributes of all levels of the dimension member at
        `path`. Raises `NotFoundError` when the slice has no such member."""
        spec = self.compiler.dimension_detail_spec(
            dimension, path, cube_slice.cuts, hierarchy
        )
        rows = self._execute(spec, timeout, cancel)
        if not rows:
            raise NotFoundError(
                f"No member at path {list(path)} of dimension '{dimension}'",
                str(dimension),
            )
        return rows[0]

    def _execute(self, spec: QuerySpec, timeout, cancel) -> list[dict[str, Any]]:
        if self.store is None:
            raise ConfigurationError(
                f"No data store configured for browser of cube '{self.cube.name}'"
            )

        if self.debug:
            self.logger.info(
                f"SQL({spec.label}): {self.renderer.to_text(spec, literal=False)}"
            )

        if timeout is None:
            timeout = self.timeout

        try:
            return self.store.execute(spec, timeout=timeout, cancel=cancel)
        except CubesError:
            raise
        except Exception as e:
            raise ExecutionError(
                f"Execution of {spec.label or 'query'} failed: {e}",
                statement=self.renderer.to_text(spec, literal=False),
                cause=e,
            ) from e


class Slice:
    """A cube restricted by an ordered list of cuts.

    `cut_by()` and the other ``cut_by_*`` methods return a new slice and
    leave the receiver untouched. `add_cut()` and
    `remove_cuts_by_dimension()` change the slice in place and discard the
    cached summaries. A slice should be used by one request at a time.
    """

    def __init__(self, browser: AggregationBrowser, cuts: list[Cut] | None = None):
        self.browser = browser
        self.cube = browser.cube
        self.cuts: list[Cut] = []
        self.summaries = SummaryCache()

        for cut in cuts or []:
            self.cuts.append(self._validated_cut(cut))

    def _validated_cut(self, cut) -> Cut:
        if not isinstance(cut, Cut):
            raise ArgumentError(f"Cut expected, got {type(cut)}")
        return cut

    def dup(self) -> Slice:
        """Copy of the slice with the same cuts and no cached summaries."""
        return Slice(self.browser, self.cuts)

    def cut_by(self, cut: Cut) -> Slice:
        """Return a new slice with `cut` appended."""
        return Slice(self.browser, self.cuts + [self._validated_cut(cut)])

    def cut_by_point(
        self, dimension: str | Dimension, path, hierarchy: str | None = None
    ) -> Slice:
        return self.cut_by(point_cut(dimension, path, hierarchy))

    def cut_by_range(self, dimension: str | Dimension, from_key, to_key) -> Slice:
        return self.cut_by(range_cut(dimension, from_key, to_key))

    def cut_by_set(
        self, dimension: str | Dimension, paths, hierarchy: str | None = None
    ) -> Slice:
        return self.cut_by(set_cut(dimension, paths, hierarchy))

    def add_cut(self, cut: Cut) -> None:
        """Append `cut` to this slice."""
        self.cuts.append(self._validated_cut(cut))
        self.summaries.clear()

    def remove_cuts_by_dimension(self, dimension: str | Dimension) -> None:
        name = dimension.name if isinstance(dimension, Dimension) else dimension
        self.cuts = [cut for cut in self.cuts if cut.dimension != name]
        self.summaries.clear()

    def cuts_for_dimension(self, dimension: str | Dimension) -> list[Cut]:
        name = dimension.name if isinstance(dimension, Dimension) else dimension
        return [cut for cut in self.cuts if cut.dimension == name]

    def fingerprint(self) -> tuple:
        """Hashable description of the cuts of the slice."""
        return tuple(cut.fingerprint() for cut in self.cuts)

    def aggregate(
        self,
        measure: str,
        options=None,
        computed_fields: dict[str, ComputedField] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        **kwargs,
    ) -> AggregationResult:
        """Aggregate `measure`. Aggregation options can be passed as
        `options` or as keyword arguments."""
        options = AggregateOptions.from_options(options, **kwargs)
        return self.browser.aggregate(
            self, measure, options, computed_fields, timeout=timeout, cancel=cancel
        )

    def facts(self, options=None, timeout=None, cancel=None, **kwargs) -> Facts:
        options = QueryOptions.from_options(options, **kwargs)
        return self.browser.facts(self, options, timeout=timeout, cancel=cancel)

    def fact(self, key: Any, timeout=None, cancel=None) -> dict[str, Any]:
        return self.browser.fact(key, timeout=timeout, cancel=cancel)

    def dimension_values_at_path(
        self,
        dimension: str | Dimension,
        path,
        options=None,
        hierarchy: str | None = None,
        timeout=None,
        cancel=None,
        **kwargs,
    ) -> list[dict[str, Any]]:
        options = QueryOptions.from_options(options, **kwargs)
        return self.browser.dimension_values_at_path(
            self, dimension, path, options, hierarchy, timeout=timeout, cancel=cancel
        )

    def dimension_detail_at_path(
        self,
        dimension: str | Dimension,
        path,
        hierarchy: str | None = None,
        timeout=None,
        cancel=None,
    ) -> dict[str, Any]:
        return self.browser.dimension_detail_at_path(
            self, dimension, path, hierarchy, timeout=timeout, cancel=cancel
        )

    def to_dict(self) -> dict[str, Any]:
        return {"cube": self.cube.name, "cuts": [cut.to_dict() for cut in self.cuts]}

    def __len__(self) -> int:
        return len(self.cuts)

    def __repr__(self):
        cuts = "; ".join(str(cut) for cut in self.cuts)
        return f"<Slice(cube='{self.cube.name}', cuts='{cuts}')>"


class Facts:
    """List of fact records with the names of their fields."""

    def __init__(self, facts, attributes):
        self.facts = facts or []
        self.attributes = attributes or []

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.facts)

    def __len__(self) -> int:
        return len(self.facts)

    def __getitem__(self, index: int) -> dict[str, Any]:
        return self.facts[index]


class AggregationResult:
    """Result of an aggregation: the summary of the slice, the drill-down
    rows and, with a limit, the remainder.

    Summary and remainder are keyed by the aggregation operator names and
    ``record_count``. Rows are keyed by attribute references and aggregated
    field names such as ``amount_sum``.
    """

    def __init__(
        self,
        cube: Cube | None = None,
        measure: str | None = None,
        summary: dict[str, Any] | None = None,
        options: AggregateOptions | None = None,
        cuts: list[Cut] | None = None,
    ):
        self.cube = cube
        self.measure = measure
        self.summary = summary or {}
        self.options = options or AggregateOptions()
        self.cuts = list(cuts or [])
        self.rows: list[dict[str, Any]] = []
        self.remainder: dict[str, Any] = {}

    def to_dict(self) -> dict[str, Any]:
        d = IgnoringDictionary()

        d["measure"] = self.measure
        d["summary"] = self.summary
        d["remainder"] = self.remainder or None
        d.set("rows", list(self.rows))
        d["options"] = self.options.to_dict()
        d.set("cuts", [cut.to_dict() for cut in self.cuts])

        return d

    def table_rows(
        self, dimension: str | Dimension, hierarchy: str | Hierarchy | None = None
    ) -> Iterator[TableRow]:
        """Iterate over drill-down rows as `TableRow` tuples with the key and
        label of the deepest drilled level and the full path of the row."""
        if not self.cube:
            raise ArgumentError("Aggregation result is not bound to a cube")

        dimension = self.cube.dimension(dimension)
        hierarchy = dimension.hierarchy(hierarchy)

        if self.options.row_dimension != dimension.name or not self.options.row_levels:
            raise ArgumentError(
                f"Result is not drilled down by dimension '{dimension.name}'"
            )

        level = hierarchy.level(self.options.row_levels[-1])
        depth = hierarchy.level_index(level)
        is_base = depth == len(hierarchy) - 1

        cut_path = []
        for cut in self.cuts:
            if isinstance(cut, PointCut) and cut.dimension == dimension.name:
                cut_path = list(cut.path)

        key_ref = level.key_attribute.ref
        label_ref = level.label_attribute_object.ref

        for record in self.rows:
            path = []
            for i, path_level in enumerate(hierarchy.levels[: depth + 1]):
                ref = path_level.key_attribute.ref
                if ref in record:
                    path.append(record[ref])
                elif i < len(cut_path):
                    path.append(cut_path[i])
                else:
                    path.append(WILDCARD)

            yield TableRow(record.get(key_ref), record.get(label_ref), path, is_base, record)

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self):
        return (
            f"<AggregationResult(measure='{self.measure}', "
            f"summary={self.summary}, rows={len(self.rows)})>"
        )
