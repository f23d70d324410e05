"""Logical model: the registry of dimensions and cubes, and loading of
model descriptions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, PrivateAttr, field_validator, model_validator

from ..errors import ArgumentError, ModelError, NoSuchCubeError, NoSuchDimensionError
from ..logging import get_logger
from .base import MetadataObject, named_objects
from .cube import Cube
from .dimension import Dimension

__all__ = [
    "Model",
    "create_model",
    "load_model",
    "model_from_dict",
]


class Model(MetadataObject):
    """Logical model: owns dimensions (unique by name) and the cubes that
    use them.

    The model is built once from a description. `add_dimension` and
    `remove_dimension` are meant for rare administrative changes and are not
    safe to call while the model is being queried.
    """

    dimension_descs: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dimensions", "dimension_descs"),
        exclude=True,
    )
    cube_descs: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cubes", "cube_descs"),
        exclude=True,
    )

    _dimensions: dict[str, Dimension] = PrivateAttr(default_factory=dict)
    _cubes: dict[str, Cube] = PrivateAttr(default_factory=dict)

    @field_validator("dimension_descs", mode="before")
    @classmethod
    def normalize_dimensions(cls, v):
        return named_objects(v, "dimension")

    @field_validator("cube_descs", mode="before")
    @classmethod
    def normalize_cubes(cls, v):
        return named_objects(v, "cube")

    @model_validator(mode="after")
    def build_objects(self):
        """Create dimensions first, then cubes referring to them."""
        for desc in self.dimension_descs:
            self.add_dimension(desc)

        for desc in self.cube_descs:
            if isinstance(desc, str):
                self.create_cube(desc)
            elif isinstance(desc, dict):
                info = dict(desc)
                name = info.pop("name", None)
                if not name:
                    raise ModelError("Cube description has no name")
                self.create_cube(name, info)
            else:
                raise ModelError(f"Invalid cube description type: {type(desc)}")

        return self

    # Dimensions

    @property
    def dimensions(self) -> list[Dimension]:
        return list(self._dimensions.values())

    def add_dimension(self, dimension: Dimension | dict[str, Any]) -> Dimension:
        """Register a dimension in the model. Dimension names are unique,
        adding a second dimension with the same name is a `ModelError`."""
        if not isinstance(dimension, Dimension):
            if not isinstance(dimension, (dict, str)):
                raise ArgumentError(f"Invalid dimension type: {type(dimension)}")
            dimension = Dimension.from_metadata(dimension)

        if dimension.name in self._dimensions:
            raise ModelError(
                f"Dimension '{dimension.name}' already exists in model '{self.name}'"
            )

        self._dimensions[dimension.name] = dimension
        return dimension

    def remove_dimension(self, dimension: Dimension | str) -> None:
        """Remove a dimension from the model. A dimension still used by a
        cube can not be removed."""
        name = dimension.name if isinstance(dimension, Dimension) else dimension
        if name not in self._dimensions:
            raise NoSuchDimensionError(
                f"Model '{self.name}' has no dimension '{name}'", name
            )

        users = [cube.name for cube in self._cubes.values() if cube.has_dimension(name)]
        if users:
            raise ModelError(
                f"Dimension '{name}' is used by cubes {users} and can not be removed"
            )

        del self._dimensions[name]

    def dimension(self, name: str) -> Dimension:
        """Get dimension by name"""
        try:
            return self._dimensions[name]
        except KeyError:
            raise NoSuchDimensionError(
                f"Model '{self.name}' has no dimension '{name}'", name
            ) from None

    # Cubes

    @property
    def cubes(self) -> list[Cube]:
        return list(self._cubes.values())

    @property
    def cube_names(self) -> list[str]:
        return list(self._cubes.keys())

    def create_cube(self, name: str, info: dict[str, Any] | None = None) -> Cube:
        """Create a cube from description `info` and add the model
        dimensions it names."""
        if name in self._cubes:
            raise ModelError(f"Cube '{name}' already exists in model '{self.name}'")

        info = dict(info or {})
        dimension_names = info.pop("dimensions", None) or []

        cube = Cube.from_metadata(info, name=name)
        cube.attach(self.name, self._dimensions)

        for dim_name in dimension_names:
            cube.add_dimension(dim_name)

        self._cubes[name] = cube
        return cube

    def cube(self, name: str) -> Cube:
        """Get a cube with name `name`."""
        try:
            return self._cubes[name]
        except KeyError:
            raise NoSuchCubeError(
                f"Model '{self.name}' has no cube '{name}'", name
            ) from None

    def to_dict(self, **options: Any) -> dict[str, Any]:
        result = super().to_dict()
        result["dimensions"] = [dim.to_dict() for dim in self.dimensions]
        result["cubes"] = [cube.to_dict(**options) for cube in self.cubes]
        return result

    def __repr__(self):
        return f"<Model(name='{self.name}', cubes={self.cube_names})>"


def create_model(source: Model | dict[str, Any] | str | Path) -> Model:
    """Create a model from `source`: a model object (returned as is), a
    description dictionary or a path to a JSON description file."""
    if isinstance(source, Model):
        return source
    elif isinstance(source, dict):
        return model_from_dict(source)
    return load_model(source)


def load_model(resource) -> Model:
    """Load logical model from a JSON description. `resource` can be a
    local file path or a file-like object."""
    logger = get_logger()

    if isinstance(resource, (str, Path)):
        logger.debug(f"loading model from {resource}")
        try:
            with open(resource, encoding="utf-8") as handle:
                desc = json.load(handle)
        except OSError as e:
            raise ModelError(f"Can not read model description '{resource}': {e}") from e
        except json.JSONDecodeError as e:
            raise ModelError(f"Malformed model description '{resource}': {e}") from e
    else:
        try:
            desc = json.load(resource)
        except json.JSONDecodeError as e:
            raise ModelError(f"Malformed model description: {e}") from e

    return model_from_dict(desc)


def model_from_dict(desc: dict[str, Any]) -> Model:
    """Create a model from description dictionary"""
    if not isinstance(desc, dict):
        raise ModelError(
            f"Model description should be a dictionary, got {type(desc).__name__}"
        )
    return Model.from_metadata(desc)
