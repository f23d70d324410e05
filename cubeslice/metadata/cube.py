"""
Cube definition: measures, detail attributes, physical mappings and the
dimensions the cube can be sliced by.
"""

from __future__ import annotations

import difflib
from typing import Any

from pydantic import (
    AliasChoices,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
    model_validator,
)

from ..errors import (
    ArgumentError,
    ModelError,
    NoSuchAttributeError,
    NoSuchDimensionError,
)
from .attributes import Attribute, Measure, attribute_list
from .base import MetadataObject
from .dimension import Dimension

__all__ = ["Cube"]


def _suggestion(name: str, available: list[str]) -> str:
    matches = difflib.get_close_matches(name, available, n=1)
    if matches:
        return f" Did you mean '{matches[0]}'?"
    return ""


class Cube(MetadataObject):
    """
    Cube definition representing a logical data structure for
    multidimensional analysis.

    A cube defines:
    - which dimensions can be used for slicing and drilling
    - what measures can be aggregated
    - which detail attributes facts carry
    - how logical attribute references map to physical columns

    Dimensions are shared with the owning model, which the cube knows by
    name only. A cube that does not belong to a model accepts `Dimension`
    objects directly.
    """

    measures: list[Measure] = Field(
        default_factory=list, description="Numerical measures that can be aggregated"
    )

    details: list[Attribute] = Field(
        default_factory=list,
        validation_alias=AliasChoices("details", "attributes"),
        description="Detail attributes of the facts",
    )

    mappings: dict[str, str] = Field(
        default_factory=dict,
        description="Logical attribute reference to physical column name",
    )

    fact_table: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fact_table", "fact"),
        description="Name of the denormalized fact table or view",
    )

    joins: list[dict[str, Any]] | None = Field(
        default=None, description="Backend-specific join specifications"
    )

    key_field: str = Field(
        default="id",
        validation_alias=AliasChoices("key_field", "key"),
        description="Fact key column",
    )

    dimension_links: list[str | Dimension] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dimensions", "dimension_links"),
        exclude=True,
        description="Dimensions given at construction time",
    )

    _dimensions: dict[str, Dimension] = PrivateAttr(default_factory=dict)
    _model_name: str | None = PrivateAttr(default=None)
    _registry: dict[str, Dimension] | None = PrivateAttr(default=None)

    @field_validator("measures", mode="before")
    @classmethod
    def validate_measures(cls, v: Any) -> list[Measure]:
        """Convert various measure inputs to Measure objects"""
        try:
            return attribute_list(v, Measure)
        except ValueError as e:
            raise ModelError(str(e)) from e

    @field_validator("details", mode="before")
    @classmethod
    def validate_details(cls, v: Any) -> list[Attribute]:
        """Convert various detail inputs to Attribute objects"""
        try:
            return attribute_list(v, Attribute)
        except ValueError as e:
            raise ModelError(str(e)) from e

    @field_validator("mappings", mode="before")
    @classmethod
    def validate_mappings(cls, v: Any) -> dict[str, str]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ModelError(f"Cube mappings should be a dictionary, got {type(v)}")
        return v

    @model_validator(mode="after")
    def validate_cube(self) -> Cube:
        """Check name uniqueness of measures and details and link the
        dimensions given at construction."""
        if not self.name:
            raise ModelError("Cube name is required")

        measure_names = [m.name for m in self.measures]
        if len(measure_names) != len(set(measure_names)):
            raise ModelError(f"Cube '{self.name}' has duplicate measure names")

        detail_names = {d.name for d in self.details}
        conflicts = detail_names & set(measure_names)
        if conflicts:
            raise ModelError(
                f"Detail attributes have conflicting names with measures: "
                f"{sorted(conflicts)} in cube '{self.name}'"
            )

        for dimension in self.dimension_links:
            self.add_dimension(dimension)

        return self

    def attach(self, model_name: str, registry: dict[str, Dimension]) -> None:
        """Bind the cube to the model `model_name`. `registry` is the
        model's dimension mapping; only dimensions registered there can be
        added to the cube afterwards."""
        self._model_name = model_name
        self._registry = registry

    @property
    def model_name(self) -> str | None:
        return self._model_name

    @property
    def dimensions(self) -> list[Dimension]:
        return list(self._dimensions.values())

    @computed_field
    @property
    def dimension_names(self) -> list[str]:
        """Names of all dimensions in order"""
        return list(self._dimensions.keys())

    @property
    def measure_names(self) -> list[str]:
        return [m.name for m in self.measures]

    # Dimension management

    def add_dimension(self, dimension: str | Dimension) -> Dimension:
        """Add a dimension to the cube. When the cube belongs to a model the
        dimension must be registered on that model, otherwise
        `NoSuchDimensionError` is raised. A standalone cube accepts
        `Dimension` objects only."""
        if isinstance(dimension, Dimension):
            name = dimension.name
        elif isinstance(dimension, str):
            name = dimension
        else:
            raise ArgumentError(f"Invalid dimension type: {type(dimension)}")

        if self._registry is not None:
            try:
                registered = self._registry[name]
            except KeyError:
                raise NoSuchDimensionError(
                    f"There is no dimension '{name}' for cube '{self.name}' "
                    f"in model '{self._model_name}'",
                    name,
                ) from None
            if isinstance(dimension, Dimension) and registered is not dimension:
                raise NoSuchDimensionError(
                    f"Dimension '{name}' is not the one registered in model "
                    f"'{self._model_name}'",
                    name,
                )
            dimension = registered
        elif isinstance(dimension, str):
            raise NoSuchDimensionError(
                f"Can not resolve dimension '{name}': cube '{self.name}' is "
                f"not attached to a model",
                name,
            )

        if name in self._dimensions:
            raise ModelError(
                f"Dimension '{name}' already exists in cube '{self.name}'"
            )

        self._dimensions[name] = dimension
        return dimension

    def remove_dimension(self, name: str | Dimension) -> None:
        if isinstance(name, Dimension):
            name = name.name
        if name not in self._dimensions:
            raise NoSuchDimensionError(
                f"Dimension '{name}' not found in cube '{self.name}'", name
            )
        del self._dimensions[name]

    def has_dimension(self, name: str) -> bool:
        return name in self._dimensions

    # Lookups

    def dimension(self, name: str | Dimension) -> Dimension:
        """
        Get dimension by name or object.

        Raises:
            NoSuchDimensionError: If dimension not found
        """
        if isinstance(name, Dimension):
            name = name.name
        if not name:
            raise NoSuchDimensionError(
                f"Requested dimension should not be none (cube '{self.name}')"
            )

        try:
            return self._dimensions[name]
        except KeyError:
            available = list(self._dimensions.keys())
            raise NoSuchDimensionError(
                f"Cube '{self.name}' has no dimension '{name}'."
                f"{_suggestion(name, available)} "
                f"Available dimensions: {', '.join(available) if available else 'none'}",
                name,
            ) from None

    def measure(self, name: str | Measure) -> Measure:
        """
        Get measure by name.

        Raises:
            NoSuchAttributeError: If measure not found
        """
        if isinstance(name, Measure):
            name = name.name
        for measure in self.measures:
            if measure.name == name:
                return measure

        available = self.measure_names
        raise NoSuchAttributeError(
            f"Cube '{self.name}' has no measure '{name}'."
            f"{_suggestion(str(name), available)} "
            f"Available measures: {', '.join(available) if available else 'none'}",
            name,
        )

    def detail(self, name: str) -> Attribute:
        for detail in self.details:
            if detail.name == name:
                return detail
        raise NoSuchAttributeError(
            f"Cube '{self.name}' has no detail attribute '{name}'", name
        )

    def attribute(self, ref: str) -> Attribute:
        """
        Get any attribute by reference: a measure or detail name, or a
        ``dimension.attribute`` reference.

        Raises:
            NoSuchAttributeError: If attribute not found
        """
        for attr in self.measures + self.details:
            if attr.name == ref:
                return attr

        if "." in ref:
            dim_name, attr_name = ref.split(".", 1)
            if dim_name in self._dimensions:
                return self._dimensions[dim_name].attribute(attr_name)

        raise NoSuchAttributeError(f"Cube '{self.name}' has no attribute '{ref}'", ref)

    @property
    def all_fact_attributes(self) -> list[Attribute]:
        """Attributes of a fact: dimension attributes, details and
        measures."""
        result = []
        for dimension in self.dimensions:
            result.extend(dimension.attributes)
        result.extend(self.details)
        result.extend(self.measures)
        return result

    def column_name(self, ref: str) -> str:
        """Physical column name for the logical reference `ref`. Unmapped
        references are their own column names."""
        return self.mappings.get(ref, ref)

    def to_dict(self, **options: Any) -> dict[str, Any]:
        """
        Convert cube to dictionary representation.

        Options:
            - with_mappings: Include physical properties (default True)
            - expand_dimensions: Include full dimension definitions
        """
        result = self.model_dump(exclude_none=True, exclude={"dimension_links"})

        if "fact_table" in result:
            result["fact"] = result.pop("fact_table")

        if options.get("expand_dimensions", False):
            result["dimensions"] = [dim.to_dict() for dim in self.dimensions]
        else:
            result["dimensions"] = self.dimension_names
        result.pop("dimension_names", None)

        if not options.get("with_mappings", True):
            for key in ["mappings", "fact", "joins"]:
                result.pop(key, None)

        return result

    def __repr__(self):
        return f"<Cube(name='{self.name}', dimensions={self.dimension_names})>"
