"""
Cuts: predicates that restrict a cube to a slice.

A cut refers to its dimension by name and is resolved against the cube it
is applied to only when a query is compiled.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ArgumentError
from ..metadata import Cube, Dimension, Hierarchy

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
]


class _Wildcard:
    """Path element matching any value of its level."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "WILDCARD"

    def __str__(self):
        return "*"

    def __reduce__(self):
        return (_Wildcard, ())


WILDCARD = _Wildcard()


def _path_element(value: Any) -> Any:
    if value is WILDCARD or value == "*":
        return WILDCARD
    return value


def normalize_path(value: Any) -> tuple:
    """Return `value` as a path tuple with ``"*"`` elements replaced by
    `WILDCARD`."""
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise ArgumentError(f"Path should be a sequence of values, got {value!r}")
    return tuple(_path_element(item) for item in value)


def _describe_path(path: tuple) -> list:
    return ["*" if item is WILDCARD else item for item in path]


class Cut(BaseModel):
    """Abstract base class of cuts."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    cut_type: ClassVar[str] = ""

    dimension: str = Field(..., description="Name of the dimension this cut applies to")
    hierarchy: str | None = Field(
        None,
        examples=["fiscal_year"],
        description="Hierarchy name within the dimension, default if not set",
    )

    @field_validator("dimension", mode="before")
    @classmethod
    def dimension_name(cls, v):
        """Accept a dimension object and keep its name."""
        if isinstance(v, Dimension):
            return v.name
        if not v:
            raise ArgumentError("Cut requires a dimension")
        return v

    @field_validator("hierarchy", mode="before")
    @classmethod
    def hierarchy_name(cls, v):
        if isinstance(v, Hierarchy):
            return v.name
        return v

    def resolve(self, cube: Cube) -> tuple[Dimension, Hierarchy]:
        """Return the dimension and hierarchy of the cut in `cube`. Raises
        `NoSuchDimensionError` or `NoSuchHierarchyError` when the cube does
        not know them."""
        dimension = cube.dimension(self.dimension)
        hierarchy = dimension.hierarchy(self.hierarchy)
        return dimension, hierarchy

    def fingerprint(self) -> tuple:
        """Hashable description of the cut."""
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "type": self.cut_type,
            "dimension": self.dimension,
            "hierarchy": self.hierarchy,
        }


class PointCut(Cut):
    """Cut by a point in a dimension hierarchy. Each path element is the
    key value of the corresponding level or `WILDCARD`."""

    cut_type: ClassVar[str] = "point"
    path: tuple[Any, ...] = Field(
        default=(),
        examples=[[2023, 4]],
        description="Level key values, WILDCARD for an unconstrained level",
    )

    @field_validator("path", mode="before")
    @classmethod
    def validate_path(cls, v):
        return normalize_path(v)

    def level_depth(self) -> int:
        """Returns the depth of the path."""
        return len(self.path)

    def fingerprint(self) -> tuple:
        return ("point", self.dimension, self.hierarchy, tuple(_describe_path(self.path)))

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["path"] = _describe_path(self.path)
        return d

    def __str__(self) -> str:
        path = ",".join(str(item) for item in self.path)
        return f"{self.dimension}:{path}"


class RangeCut(Cut):
    """Cut by an inclusive range of the dimension key field. Meant for
    ordered dimensions, such as date."""

    cut_type: ClassVar[str] = "range"
    from_key: Any = Field(None, description="Lower bound, inclusive")
    to_key: Any = Field(None, description="Upper bound, inclusive")

    def fingerprint(self) -> tuple:
        return ("range", self.dimension, self.hierarchy, self.from_key, self.to_key)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["from"] = self.from_key
        d["to"] = self.to_key
        return d

    def __str__(self) -> str:
        return f"{self.dimension}:{self.from_key}-{self.to_key}"


class SetCut(Cut):
    """Cut by a set of points. Declared for completeness, queries can not
    be compiled with it."""

    cut_type: ClassVar[str] = "set"
    paths: tuple[tuple[Any, ...], ...] = Field(
        default=(), description="List of paths for the set cut"
    )

    @field_validator("paths", mode="before")
    @classmethod
    def validate_paths(cls, v):
        if v is None:
            return ()
        return tuple(normalize_path(path) for path in v)

    def level_depth(self) -> int:
        if not self.paths:
            return 0
        return max(len(path) for path in self.paths)

    def fingerprint(self) -> tuple:
        return (
            "set",
            self.dimension,
            self.hierarchy,
            tuple(tuple(_describe_path(path)) for path in self.paths),
        )

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["paths"] = [_describe_path(path) for path in self.paths]
        return d

    def __str__(self) -> str:
        paths = ";".join(",".join(str(item) for item in path) for path in self.paths)
        return f"{self.dimension}:{paths}"


def point_cut(dimension: str | Dimension, path, hierarchy: str | None = None) -> PointCut:
    """Create a cut by a point within dimension."""
    return PointCut(dimension=dimension, path=path, hierarchy=hierarchy)


def range_cut(dimension: str | Dimension, from_key, to_key) -> RangeCut:
    """Create a cut within a range defined by keys."""
    return RangeCut(dimension=dimension, from_key=from_key, to_key=to_key)


def set_cut(dimension: str | Dimension, paths, hierarchy: str | None = None) -> SetCut:
    """Create a cut by a set of paths."""
    return SetCut(dimension=dimension, paths=paths, hierarchy=hierarchy)


def cut_from_dict(desc: dict[str, Any]) -> Cut:
    """Create a cut from its dictionary representation (see `Cut.to_dict`)."""
    cut_type = desc.get("type", "point")
    dimension = desc.get("dimension")
    hierarchy = desc.get("hierarchy")

    if cut_type == "point":
        return point_cut(dimension, desc.get("path", []), hierarchy)
    elif cut_type == "range":
        return range_cut(dimension, desc.get("from"), desc.get("to"))
    elif cut_type == "set":
        return set_cut(dimension, desc.get("paths", []), hierarchy)
    else:
        raise ArgumentError(f"Unknown cut type '{cut_type}'")
