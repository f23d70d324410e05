"""
Dimensional model: pydantic-based metadata classes.

Model objects are validated when they are created from a description and
are treated as read-only afterwards.
"""

from .attributes import Attribute, AttributeBase, Measure
from .base import MetadataObject
from .cube import Cube
from .dimension import Dimension, Hierarchy, Level
from .model import Model, create_model, load_model, model_from_dict

__all__ = [
    "MetadataObject",
    "AttributeBase",
    "Attribute",
    "Measure",
    "Level",
    "Hierarchy",
    "Dimension",
    "Cube",
    "Model",
    "create_model",
    "load_model",
    "model_from_dict",
]
