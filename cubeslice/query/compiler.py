"""
Query compiler: turns a cube, a list of cuts and query options into
`QuerySpec` objects.

Logical references (``dimension.attribute``, measure and detail names) are
translated to physical columns through the cube mappings. Result rows are
keyed by logical references and generated field names.
"""

from __future__ import annotations

from typing import Any

from ..errors import (
    ConfigurationError,
    HierarchyError,
    NoSuchAttributeError,
    QueryError,
    UnknownOperatorError,
    UnsupportedOperation,
)
from ..metadata import Attribute, Cube, Dimension, Hierarchy, Level
from .cuts import WILDCARD, Cut, PointCut, RangeCut, SetCut, normalize_path
from .options import AGGREGATION_OPERATORS, AggregateOptions, QueryOptions
from .spec import (
    Between,
    Equals,
    IsNotNull,
    OrderBy,
    Predicate,
    Projection,
    QuerySpec,
)

__all__ = [
    "RECORD_COUNT",
    "aggregated_field_name",
    "QueryCompiler",
]

RECORD_COUNT = "record_count"


def aggregated_field_name(measure: str, operator: str) -> str:
    """Name of the result field of `measure` aggregated by `operator`, for
    example ``amount_sum``."""
    if operator not in AGGREGATION_OPERATORS:
        raise UnknownOperatorError(f"Unknown aggregation operator '{operator}'")
    return f"{measure}_{operator}"


class QueryCompiler:
    """Compiles queries over the denormalized fact source of a cube.

    `source` overrides the name of the fact table or view, which defaults
    to the cube's `fact_table` and then to the cube name.
    """

    def __init__(self, cube: Cube, source: str | None = None):
        self.cube = cube
        self.source = source or cube.fact_table or cube.name

    # Columns

    def column(self, ref: str) -> str:
        """Physical column for a logical reference."""
        return self.cube.column_name(ref)

    def attribute_projection(self, attribute: Attribute) -> Projection:
        return Projection(column=self.column(attribute.ref), alias=attribute.ref)

    # Cuts

    def cut_predicates(self, cut: Cut) -> list[Predicate]:
        """Predicates restricting the fact source to `cut`."""
        if isinstance(cut, PointCut):
            dimension, hierarchy = cut.resolve(self.cube)
            return self.path_predicates(dimension, hierarchy, cut.path)

        elif isinstance(cut, RangeCut):
            dimension = self.cube.dimension(cut.dimension)
            if not dimension.key_field:
                raise ConfigurationError(
                    f"Dimension '{dimension.name}' has no key field "
                    f"(required for range cuts)"
                )
            column = self.column(f"{dimension.name}.{dimension.key_field}")
            return [Between(column, cut.from_key, cut.to_key)]

        elif isinstance(cut, SetCut):
            raise UnsupportedOperation(
                f"Set cuts are not supported (dimension '{cut.dimension}')"
            )

        else:
            raise QueryError(f"Unknown cut type {type(cut)}")

    def predicates(self, cuts: list[Cut] | None) -> tuple[Predicate, ...]:
        """Predicates of all `cuts`, to be conjoined."""
        result = []
        for cut in cuts or []:
            result.extend(self.cut_predicates(cut))
        return tuple(result)

    def path_predicates(
        self, dimension: Dimension, hierarchy: Hierarchy, path
    ) -> list[Predicate]:
        """Equality predicates on level keys for every concrete element of
        `path`. Raises `HierarchyError` for a path longer than the
        hierarchy."""
        levels = hierarchy.levels_for_path(path)
        result = []
        for level, value in zip(levels, path):
            if value is WILDCARD:
                continue
            result.append(Equals(self.column(level.key_attribute.ref), value))
        return result

    # Ordering and pagination

    def order_column(self, name: str, generated: list[str]) -> str:
        """Column to order by: a generated field as is, any other name is a
        cube attribute reference."""
        if name in generated:
            return name
        try:
            attribute = self.cube.attribute(name)
        except NoSuchAttributeError as e:
            raise QueryError(
                f"Unknown field '{name}' to order by in cube '{self.cube.name}'"
            ) from e
        return self.column(attribute.ref)

    def ordering(
        self,
        options: QueryOptions,
        generated: list[str] | None = None,
        default: list[str] | None = None,
    ) -> tuple[OrderBy, ...]:
        if options.order_by:
            column = self.order_column(options.order_by, generated or [])
            return (OrderBy(column, options.direction),)
        return tuple(OrderBy(column, options.direction) for column in default or [])

    # Aggregations

    def aggregate_projections(
        self, measure: str, operators: list[str]
    ) -> list[Projection]:
        """One projection per operator plus the record count."""
        measure_obj = self.cube.measure(measure)
        column = self.column(measure_obj.ref)

        projections = []
        for op in operators:
            projections.append(
                Projection(
                    column=column,
                    alias=aggregated_field_name(measure_obj.name, op),
                    function=AGGREGATION_OPERATORS[op],
                )
            )
        projections.append(Projection(column=None, alias=RECORD_COUNT, function="count"))
        return projections

    def row_attributes(self, options: AggregateOptions) -> list[Attribute]:
        """Attributes of all drill-down levels in level order."""
        if not options.is_drill_down:
            return []
        dimension = self.cube.dimension(options.row_dimension)
        attributes = []
        for name in options.row_levels:
            attributes.extend(dimension.level(name).attributes)
        return attributes

    def summary_spec(
        self, cuts: list[Cut], measure: str, options: AggregateOptions | None = None
    ) -> QuerySpec:
        """Ungrouped aggregation of the whole slice."""
        options = AggregateOptions.from_options(options)
        return QuerySpec(
            source=self.source,
            projections=tuple(self.aggregate_projections(measure, options.operators)),
            predicates=self.predicates(cuts),
            label="summary",
        )

    def drill_spec(
        self, cuts: list[Cut], measure: str, options: AggregateOptions
    ) -> QuerySpec | None:
        """Aggregation grouped by the row levels, ordered and paginated. When
        a limit is requested the grouped query becomes the source of a query
        keeping only the top (or bottom) ranked rows. Returns ``None`` when
        no drill-down is requested."""
        options = AggregateOptions.from_options(options)
        if not options.is_drill_down:
            return None

        aggregates = self.aggregate_projections(measure, options.operators)
        generated = [p.alias for p in aggregates]
        row_projections = [self.attribute_projection(a) for a in self.row_attributes(options)]
        group_columns = tuple(p.column for p in row_projections)

        spec = QuerySpec(
            source=self.source,
            projections=tuple(aggregates + row_projections),
            predicates=self.predicates(cuts),
            group_by=group_columns,
            order_by=self.ordering(options, generated, list(group_columns)),
            limit=options.limit_rows,
            offset=options.offset,
            label="drill",
        )

        if options.has_limit:
            spec = self.rank_limit(spec, measure, options)

        return spec

    def rank_limit(
        self, spec: QuerySpec, measure: str, options: AggregateOptions
    ) -> QuerySpec:
        field = aggregated_field_name(
            self.cube.measure(measure).name, options.limit_aggregation_name
        )
        return QuerySpec(
            source=spec,
            order_by=(OrderBy(field, options.limit_direction),),
            limit=options.limit_rank,
            label="drill",
        )

    # Facts

    def facts_spec(
        self, cuts: list[Cut], options: QueryOptions | None = None
    ) -> QuerySpec:
        """Filtered, ordered and paginated fact records: the fact key and
        all fact attributes."""
        options = QueryOptions.from_options(options)
        projections = [Projection(column=self.cube.key_field, alias=self.cube.key_field)]
        projections += [self.attribute_projection(a) for a in self.cube.all_fact_attributes]

        return QuerySpec(
            source=self.source,
            projections=tuple(projections),
            predicates=self.predicates(cuts),
            order_by=self.ordering(options),
            limit=options.limit_rows,
            offset=options.offset,
            label="facts",
        )

    def fact_spec(self, key: Any) -> QuerySpec:
        """Single fact record with the fact key `key`."""
        projections = [Projection(column=self.cube.key_field, alias=self.cube.key_field)]
        projections += [self.attribute_projection(a) for a in self.cube.all_fact_attributes]

        return QuerySpec(
            source=self.source,
            projections=tuple(projections),
            predicates=(Equals(self.cube.key_field, key),),
            limit=1,
            label="fact",
        )

    # Dimension values

    def dimension_values_spec(
        self,
        dimension: str | Dimension,
        path,
        cuts: list[Cut] | None = None,
        options: QueryOptions | None = None,
        hierarchy: str | Hierarchy | None = None,
    ) -> QuerySpec:
        """Distinct values of the level following `path`, within the slice
        and the path. Levels of wildcard positions are selected as well."""
        options = QueryOptions.from_options(options)
        dimension = self.cube.dimension(dimension)
        hierarchy = dimension.hierarchy(hierarchy)
        path = list(normalize_path(path))

        next_level = hierarchy.next_level(path)
        if next_level is None:
            raise HierarchyError(
                f"Path {path} is a base path of hierarchy '{hierarchy.name}' "
                f"of dimension '{dimension.name}', there are no more levels"
            )

        predicates = list(self.predicates(cuts))
        predicates += self.path_predicates(dimension, hierarchy, path)
        next_key = self.column(next_level.key_attribute.ref)
        predicates.append(IsNotNull(next_key))

        open_positions = [i for i, value in enumerate(path) if value is WILDCARD]
        first = open_positions[0] if open_positions else len(path)
        levels: list[Level] = hierarchy.levels[first : len(path) + 1]

        projections = []
        for level in levels:
            projections += [self.attribute_projection(a) for a in level.attributes]
        group_columns = tuple(p.column for p in projections)

        return QuerySpec(
            source=self.source,
            projections=tuple(projections),
            predicates=tuple(predicates),
            group_by=group_columns,
            order_by=self.ordering(options, default=[next_key]),
            limit=options.limit_rows,
            offset=options.offset,
            label="dimension_values",
        )

    def dimension_detail_spec(
        self,
        dimension: str | Dimension,
        path,
        cuts: list[Cut] | None = None,
        hierarchy: str | Hierarchy | None = None,
    ) -> QuerySpec:
        """Attributes of all levels of the hierarchy at `path`, one row."""
        dimension = self.cube.dimension(dimension)
        hierarchy = dimension.hierarchy(hierarchy)
        path = list(normalize_path(path))

        predicates = list(self.predicates(cuts))
        predicates += self.path_predicates(dimension, hierarchy, path)

        projections = [self.attribute_projection(a) for a in hierarchy.all_attributes]

        return QuerySpec(
            source=self.source,
            projections=tuple(projections),
            predicates=tuple(predicates),
            limit=1,
            label="dimension_detail",
        )
