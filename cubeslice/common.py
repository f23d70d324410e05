"""Small utilities shared across the package."""

from collections import OrderedDict
from typing import Any

__all__ = [
    "IgnoringDictionary",
    "to_label",
    "to_number",
    "interpret_config_value",
]


class IgnoringDictionary(OrderedDict):
    """Simple dictionary extension that will ignore any keys of which values
    are empty (None)"""

    def __setitem__(self, key, value):
        if value is not None:
            super().__setitem__(key, value)

    def set(self, key, value):
        """Sets `value` for `key` even if value is null."""
        super().__setitem__(key, value)

    def __repr__(self):
        items = [f"{key!r}: {value!r}" for key, value in self.items()]
        return "{%s}" % ", ".join(items)


def to_label(name: str, capitalize: bool = True) -> str:
    """Converts `name` into label by replacing underscores by spaces. If
    `capitalize` is ``True`` (default) then the first letter of the label is
    capitalized."""
    label = name.replace("_", " ")
    if capitalize:
        label = label.capitalize()
    return label


def to_number(value: Any) -> Any:
    """Coerce an aggregated value returned by a backend into a number. Some
    drivers (SQLite through some adapters) return sums as strings."""
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def interpret_config_value(value: Any) -> Any:
    if value is None:
        return value
    if isinstance(value, str):
        if value.lower() in ("yes", "true", "on"):
            return True
        elif value.lower() in ("no", "false", "off"):
            return False
    return value
