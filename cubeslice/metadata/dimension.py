"""
Pydantic-based dimension classes: levels, hierarchies and dimensions.

Owned objects refer to their owner by name. Levels, hierarchies and
attributes know the name of their dimension, which is enough to build
attribute references and error messages without cyclic object graphs.
"""

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
    ConfigurationError,
    HierarchyError,
    ModelError,
    NoSuchAttributeError,
    NoSuchHierarchyError,
    NoSuchLevelError,
)
from .attributes import Attribute, attribute_list
from .base import MetadataObject, named_objects


class Level(MetadataObject):
    """Represents a hierarchy level, containing attributes that define it.

    If no attributes are declared the level gets a single attribute named
    after the level. The key defaults to the first attribute, the label
    attribute to the second one if there is one, otherwise to the key.
    """

    attributes: list[Attribute] = Field(default_factory=list, min_length=1)
    key: str | None = None
    label_attribute: str | None = None
    order_attribute: str | None = None

    _dimension_name: str | None = PrivateAttr(default=None)

    @field_validator("attributes", mode="before")
    @classmethod
    def convert_string_attributes(cls, v, info):
        """Convert string attributes to Attribute objects."""
        if not v:
            name = info.data.get("name")
            return [Attribute(name=name)] if name else []

        return attribute_list(v)

    @model_validator(mode="after")
    def ensure_attributes_exist(self):
        """Ensure attributes exist, creating default from name if needed."""
        if not self.attributes and self.name:
            self.attributes = [Attribute(name=self.name)]
        elif not self.attributes:
            raise ModelError("Level must have at least one attribute or a name")
        return self

    @model_validator(mode="after")
    def set_attribute_defaults(self):
        """Set default key and label_attribute after validation."""
        if not self.key:
            self.key = self.attributes[0].name

        if not self.label_attribute:
            if len(self.attributes) > 1:
                self.label_attribute = self.attributes[1].name
            else:
                self.label_attribute = self.key

        return self

    @model_validator(mode="after")
    def validate_attributes_exist(self):
        """Validate that key and label attributes exist in the attributes list."""
        attr_names = [attr.name for attr in self.attributes]

        if len(attr_names) != len(set(attr_names)):
            raise ModelError(f"Level '{self.name}' has duplicate attribute names")

        for kind, value in (
            ("Key", self.key),
            ("Label", self.label_attribute),
            ("Order", self.order_attribute),
        ):
            if value and value not in attr_names:
                raise ModelError(
                    f"{kind} attribute '{value}' not found in level "
                    f"'{self.name}' attributes"
                )

        return self

    @property
    def dimension_name(self) -> str | None:
        return self._dimension_name

    def attach(self, dimension_name: str) -> None:
        """Bind the level and its attributes to the dimension named
        `dimension_name`."""
        self._dimension_name = dimension_name
        for attr in self.attributes:
            attr.attach(dimension_name)

    def attribute(self, name: str) -> Attribute:
        """Get attribute by name."""
        for attr in self.attributes:
            if attr.name == name:
                return attr
        raise NoSuchAttributeError(
            f"Attribute '{name}' not found in level '{self.name}'", name
        )

    @property
    def key_attribute(self) -> Attribute:
        """Get the key attribute object."""
        return self.attribute(self.key)

    @property
    def label_attribute_object(self) -> Attribute:
        return self.attribute(self.label_attribute)

    @property
    def has_details(self) -> bool:
        """Returns True when level has more than one attribute."""
        return len(self.attributes) > 1

    def __hash__(self):
        return hash((self._dimension_name, self.name))

    def __repr__(self):
        return f"<Level(name='{self.name}', attributes={len(self.attributes)})>"


class Hierarchy(MetadataObject):
    """Defines an ordered arrangement of levels within a dimension.

    Levels may be given by name. Names are resolved against the owning
    dimension when the hierarchy is attached to it.
    """

    levels: list[Level] = Field(default_factory=list)

    _dimension_name: str | None = PrivateAttr(default=None)

    @field_validator("levels", mode="before")
    @classmethod
    def convert_string_levels(cls, v):
        """Convert string levels to Level objects."""
        if not v:
            return []

        result = []
        for level in v:
            if isinstance(level, str):
                result.append(Level(name=level))
            elif isinstance(level, Level):
                result.append(level)
            elif isinstance(level, dict):
                result.append(Level.model_validate(level))
            else:
                raise ModelError(
                    f"Levels must be strings, dicts, or Level objects, got {type(level)}"
                )
        return result

    @model_validator(mode="after")
    def validate_hierarchy(self):
        """Validate hierarchy structure."""
        if not self.levels:
            raise ModelError(f"Hierarchy '{self.name}' must have at least one level")

        names = [level.name for level in self.levels]
        if len(names) != len(set(names)):
            raise ModelError(f"Hierarchy '{self.name}' has duplicate level names")

        return self

    def attach(self, dimension: "Dimension") -> None:
        """Resolve level names against `dimension` and bind the hierarchy to
        it. Raises `ModelError` when a level is not defined in the
        dimension."""
        resolved = []
        for level in self.levels:
            try:
                resolved.append(dimension.level(level.name))
            except NoSuchLevelError as e:
                raise ModelError(
                    f"Hierarchy '{self.name}' references level '{level.name}' "
                    f"which is not defined in dimension '{dimension.name}'"
                ) from e
        self.levels = resolved
        self._dimension_name = dimension.name

    @property
    def dimension_name(self) -> str | None:
        return self._dimension_name

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, item: int | str) -> Level:
        if isinstance(item, int):
            try:
                return self.levels[item]
            except IndexError as err:
                raise HierarchyError(
                    f"Hierarchy '{self.name}' has only {len(self.levels)} levels, "
                    f"asking for level at index {item}"
                ) from err
        return self.level(item)

    def __contains__(self, item: str | Level) -> bool:
        if isinstance(item, Level):
            return item in self.levels
        elif isinstance(item, str):
            return any(level.name == item for level in self.levels)
        return False

    @computed_field
    @property
    def level_names(self) -> list[str]:
        """Get list of level names in hierarchy order."""
        return [level.name for level in self.levels]

    def level(self, obj: str | Level) -> Level:
        """Get level by name or as Level object."""
        name = obj.name if isinstance(obj, Level) else obj
        for level in self.levels:
            if level.name == name:
                return level
        raise NoSuchLevelError(f"No level '{name}' in hierarchy '{self.name}'", name)

    def level_index(self, level: str | Level) -> int:
        """Get order index of level. Can be used for ordering and comparing
        levels within hierarchy."""
        name = level.name if isinstance(level, Level) else level
        for i, lv in enumerate(self.levels):
            if lv.name == name:
                return i
        raise NoSuchLevelError(f"No level '{name}' in hierarchy '{self.name}'", name)

    def levels_for_depth(self, depth: int, drill_down: bool = False) -> list[Level]:
        """Returns levels for given `depth`. With `drill_down` one more level
        is included, unless the depth already reaches the last level. If
        `depth` is longer than hierarchy levels, `HierarchyError` is
        raised."""
        if depth < 0:
            raise ArgumentError("Depth cannot be negative.")

        if depth > len(self.levels):
            raise HierarchyError(
                f"Depth {depth} is longer than hierarchy levels {self.level_names} "
                f"of hierarchy '{self.name}'"
            )

        if drill_down:
            depth = min(depth + 1, len(self.levels))

        return self.levels[0:depth]

    def levels_for_path(self, path: list, drill_down: bool = False) -> list[Level]:
        """Returns levels for given path. If path is longer than hierarchy
        levels, `HierarchyError` exception is raised"""
        return self.levels_for_depth(len(path or []), drill_down)

    def path_is_base(self, path: list) -> bool:
        """Returns True if path is base path for the hierarchy. Base path is a
        path where there are no more levels to be added - no drill down
        possible."""
        return path is not None and len(path) == len(self.levels)

    def next_level(self, path: list) -> Level | None:
        """Returns the level right after the `path` prefix, ``None`` when the
        path is a base path."""
        depth = len(path or [])
        if depth > len(self.levels):
            raise HierarchyError(
                f"Path {list(path)} is longer than hierarchy levels "
                f"{self.level_names} of hierarchy '{self.name}'"
            )
        if depth == len(self.levels):
            return None
        return self.levels[depth]

    def rollup(self, path: list, level: str | Level | None = None) -> list:
        """Rolls-up the path to the `level`. If `level` is ``None`` then path
        is rolled-up only one level.

        If `level` is deeper than last level of `path` the `HierarchyError`
        exception is raised. If `level` is the same as `path` level, nothing
        happens."""
        if level:
            target_index = self.level_index(level)
            if target_index + 1 > len(path):
                raise HierarchyError(
                    f"Can not roll-up: level '{level}' is deeper than deepest "
                    f"element of path {path}"
                )
            return path[0 : target_index + 1]
        else:
            if not path:
                return []
            return path[0 : len(path) - 1]

    @property
    def key_attributes(self) -> list[Attribute]:
        """Return key attributes for all levels in hierarchy order."""
        return [level.key_attribute for level in self.levels]

    @property
    def all_attributes(self) -> list[Attribute]:
        attributes = []
        for level in self.levels:
            attributes.extend(level.attributes)
        return attributes

    def keys(self, depth: int | None = None) -> list[str]:
        """Return references of keys for all levels in the hierarchy to
        `depth`. If `depth` is `None` then all levels are returned."""
        levels = self.levels[0:depth] if depth is not None else self.levels
        return [level.key_attribute.ref for level in levels]

    def __hash__(self):
        return hash((self._dimension_name, self.name))


class Dimension(MetadataObject):
    """Represents a cube dimension: an ordered list of levels and the
    hierarchies arranging them."""

    levels: list[Level] = Field(default_factory=list)
    hierarchies: list[Hierarchy] = Field(default_factory=list)
    default_hierarchy_name: str | None = Field(
        None,
        validation_alias=AliasChoices("default_hierarchy_name", "default_hierarchy"),
    )
    key_field: str | None = Field(
        None, description="Physical key column used by range cuts"
    )

    _flat_hierarchy: Hierarchy | None = PrivateAttr(default=None)

    @field_validator("levels", mode="before")
    @classmethod
    def convert_levels_input(cls, v):
        """Convert level inputs to Level objects."""
        result = []
        for level in named_objects(v, "level"):
            if isinstance(level, str):
                result.append(Level(name=level))
            elif isinstance(level, Level):
                result.append(level)
            elif isinstance(level, dict):
                result.append(Level.model_validate(level))
            else:
                raise ModelError(
                    f"Levels must be strings, dicts, or Level objects, got {type(level)}"
                )
        return result

    @field_validator("hierarchies", mode="before")
    @classmethod
    def convert_hierarchies_input(cls, v):
        """Convert hierarchy inputs to Hierarchy objects."""
        result = []
        for hierarchy in named_objects(v, "hierarchy"):
            if isinstance(hierarchy, Hierarchy):
                result.append(hierarchy)
            elif isinstance(hierarchy, dict):
                result.append(Hierarchy.model_validate(hierarchy))
            else:
                raise ModelError(
                    f"Hierarchies must be dicts or Hierarchy objects, got {type(hierarchy)}"
                )
        return result

    @model_validator(mode="after")
    def validate_dimension(self):
        """Validate dimension structure, bind levels and resolve
        hierarchies."""
        if not self.name:
            raise ModelError("Dimension name is required")

        level_names = [level.name for level in self.levels]
        if len(level_names) != len(set(level_names)):
            raise ModelError(f"Dimension '{self.name}' has duplicate level names")

        hierarchy_names = [h.name for h in self.hierarchies]
        if len(hierarchy_names) != len(set(hierarchy_names)):
            raise ModelError(f"Dimension '{self.name}' has duplicate hierarchy names")

        for level in self.levels:
            level.attach(self.name)

        for hierarchy in self.hierarchies:
            hierarchy.attach(self)

        return self

    @property
    def is_flat(self) -> bool:
        """Returns True if the dimension has only one level."""
        return len(self.levels) == 1

    def level(self, obj: str | Level) -> Level:
        """Get level by name."""
        name = obj.name if isinstance(obj, Level) else obj
        for level in self.levels:
            if level.name == name:
                return level
        raise NoSuchLevelError(f"No level '{name}' in dimension '{self.name}'", name)

    def hierarchy(self, name: str | Hierarchy | None = None) -> Hierarchy:
        """Gets a hierarchy by name or the default hierarchy if `name` is
        ``None``."""
        if name is None:
            return self.default_hierarchy()
        if isinstance(name, Hierarchy):
            name = name.name

        for h in self.hierarchies:
            if h.name == name:
                return h
        raise NoSuchHierarchyError(
            f"Hierarchy '{name}' not found in dimension '{self.name}'", name
        )

    def default_hierarchy(self) -> Hierarchy:
        """Returns the default hierarchy: the explicitly named one, the only
        one, or (for a dimension without hierarchies) a hierarchy made of its
        only level. Raises `ConfigurationError` when none of these apply."""
        if self.default_hierarchy_name:
            for h in self.hierarchies:
                if h.name == self.default_hierarchy_name:
                    return h

        if len(self.hierarchies) == 1:
            return self.hierarchies[0]

        if self.hierarchies:
            raise ConfigurationError(
                f"No default hierarchy specified in dimension '{self.name}' "
                f"and there is more ({len(self.hierarchies)}) than one hierarchy "
                f"defined"
            )

        if len(self.levels) == 1:
            if self._flat_hierarchy is None:
                level = self.levels[0]
                hierarchy = Hierarchy(name=level.name, levels=[level])
                hierarchy.attach(self)
                self._flat_hierarchy = hierarchy
            return self._flat_hierarchy

        if self.levels:
            raise ConfigurationError(
                f"There are no hierarchies in dimension '{self.name}' "
                f"and there are more than one level"
            )
        raise ConfigurationError(
            f"There are no hierarchies in dimension '{self.name}' "
            f"and there are no levels to make hierarchy from"
        )

    def all_attributes(self, hierarchy: str | Hierarchy | None = None) -> list[Attribute]:
        """Return attributes of all levels of `hierarchy` (the default
        hierarchy if not specified) in hierarchy order."""
        return self.hierarchy(hierarchy).all_attributes

    def attribute(self, name: str, by_ref: bool = False) -> Attribute:
        """Get dimension attribute by name or reference."""
        for level in self.levels:
            for attr in level.attributes:
                if (attr.ref if by_ref else attr.name) == name:
                    return attr
        raise NoSuchAttributeError(
            f"Unknown attribute '{name}' in dimension '{self.name}'", name
        )

    @computed_field
    @property
    def level_names(self) -> list[str]:
        """Get list of level names in declaration order."""
        return [level.name for level in self.levels]

    @property
    def attributes(self) -> list[Attribute]:
        """Return all dimension attributes regardless of hierarchy."""
        attrs = []
        for level in self.levels:
            attrs.extend(level.attributes)
        return attrs

    @property
    def key_attributes(self) -> list[Attribute]:
        """Return all dimension key attributes, regardless of hierarchy."""
        return [level.key_attribute for level in self.levels]

    def __eq__(self, other):
        if not isinstance(other, Dimension):
            return False
        return (
            self.name == other.name
            and self.label == other.label
            and self.description == other.description
            and self.default_hierarchy_name == other.default_hierarchy_name
            and self.key_field == other.key_field
            and self.level_names == other.level_names
            and [h.level_names for h in self.hierarchies]
            == [h.level_names for h in other.hierarchies]
        )

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return (
            f"<Dimension(name='{self.name}', levels={len(self.levels)}, "
            f"hierarchies={len(self.hierarchies)})>"
        )
