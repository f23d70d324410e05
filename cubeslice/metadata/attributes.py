"""
Pydantic-based attribute classes: dimension attributes, fact details and
measures.
"""

from pydantic import PrivateAttr, computed_field

from .base import MetadataObject


class AttributeBase(MetadataObject):
    """Base of named columns: dimension attributes, details and measures."""

    @computed_field
    @property
    def ref(self) -> str:
        """The unique, fully-qualified reference for the attribute."""
        return self.name

    def __str__(self) -> str:
        return str(self.ref)

    def __hash__(self) -> int:
        return hash(self.ref)


class Attribute(AttributeBase):
    """Dimension attribute object. Also used as fact detail.

    An attribute owned by a dimension refers to its owner by name, which
    makes its reference ``dimension.attribute``.
    """

    _dimension_name: str | None = PrivateAttr(default=None)

    @computed_field
    @property
    def ref(self) -> str:
        if self._dimension_name:
            return f"{self._dimension_name}.{self.name}"
        return self.name

    @property
    def dimension_name(self) -> str | None:
        return self._dimension_name

    def attach(self, dimension_name: str) -> None:
        """Bind the attribute to the dimension named `dimension_name`."""
        self._dimension_name = dimension_name


class Measure(AttributeBase):
    """Cube measure attribute: a numerical fact column that can be
    aggregated."""


def attribute_list(value, kind=Attribute) -> list:
    """Convert a list of names, dictionaries or attribute objects into
    attribute objects of class `kind`."""
    if not value:
        return []

    result = []
    for attr in value:
        if isinstance(attr, kind):
            result.append(attr)
        elif isinstance(attr, str):
            result.append(kind(name=attr))
        elif isinstance(attr, dict):
            result.append(kind.model_validate(attr))
        else:
            raise ValueError(
                f"{kind.__name__} must be a string, dict or {kind.__name__} object, "
                f"got {type(attr)}"
            )
    return result
