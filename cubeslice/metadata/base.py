"""
Pydantic base class for cubeslice metadata models.

Every model object (cube, dimension, hierarchy, level, attribute) shares a
name, an optional label and description and a free-form `info` dictionary.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..common import to_label
from ..errors import ArgumentError, CubesError, ModelError


class MetadataObject(BaseModel):
    """
    Base class for all model objects.

    Uses Pydantic for validation and serialization. Model objects are built
    once from a description and treated as read-only afterwards.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="allow",
        use_enum_values=True,
        arbitrary_types_allowed=True,
        frozen=False,
        populate_by_name=True,
    )

    name: str | None = Field(None, description="Unique identifier")
    label: str | None = Field(None, description="Human-readable label")
    description: str | None = Field(None, description="Detailed description")
    info: dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """Validate that name is a non-empty string when provided."""
        if v is not None and (not isinstance(v, str) or not v.strip()):
            raise ValueError("name must be a non-empty string")
        return v

    @field_validator("info", mode="before")
    @classmethod
    def validate_info(cls, v: Any) -> dict[str, Any]:
        """Ensure info is always a dictionary."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("info must be a dictionary")
        return v

    def get_label(self) -> str:
        """Get display label, using name as fallback."""
        if self.label:
            return self.label
        if self.name:
            return to_label(self.name)
        return f"<{self.__class__.__name__}>"

    @classmethod
    def from_metadata(cls, metadata, **extra):
        """
        Create instance from metadata.

        Args:
            metadata: String name or dictionary metadata
            **extra: Values overriding the metadata

        Raises:
            ArgumentError: If metadata type is invalid
            ModelError: If object creation fails
        """
        if isinstance(metadata, str):
            return cls(name=metadata, **extra)
        elif isinstance(metadata, dict):
            data = dict(metadata)
            data.update(extra)
            try:
                return cls(**data)
            except CubesError:
                raise
            except Exception as e:
                raise ModelError(f"Failed to create {cls.__name__}: {e}") from e
        else:
            raise ArgumentError(f"Invalid metadata type: {type(metadata)}")

    def __str__(self) -> str:
        return self.name or f"<{self.__class__.__name__}>"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    def to_dict(
        self, create_label: bool | None = None, **options: Any
    ) -> dict[str, Any]:
        """
        Convert to dictionary representation using Pydantic's model_dump.

        Args:
            create_label: If True, generate label from name if not set.
            **options: Additional options passed to Pydantic's model_dump.
        """
        result = self.model_dump(exclude_none=True, **options)

        if create_label and self.name and "label" not in result:
            result["label"] = self.get_label()

        return result

    def __hash__(self) -> int:
        """Hash based on name for use in sets/dicts."""
        return hash(self.name) if self.name else id(self)


def named_objects(value: Any, kind: str) -> list:
    """Normalize a collection of object descriptions into a list. Accepts a
    list (of names, dicts or objects) or a mapping name -> description, as
    used by model description documents."""
    if not value:
        return []
    if isinstance(value, dict):
        result = []
        for name, desc in value.items():
            if desc is None:
                desc = {}
            if isinstance(desc, dict):
                result.append({"name": name, **desc})
            else:
                raise ModelError(
                    f"Description of {kind} '{name}' should be a dictionary, "
                    f"got {type(desc).__name__}"
                )
        return result
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ModelError(f"{kind.capitalize()}s must be a list or a mapping, got {type(value)}")
