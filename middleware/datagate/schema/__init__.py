"""
Schema and cast engine for Datagate.

This package provides:
- expand_shape: shorthand expansion and validation of shapes
- create_cast: compile a shape into a bidirectional cast
- access_for_action: resolve the access scheme for an action type
- Schema / SchemaRegistry: compiled schemas by id
"""

from .access import access_for_action
from .cast import ShapeCast, create_cast
from .expand import expand_shape
from .registry import (
    DuplicateRegistrationError,
    RegistryFrozenError,
    SchemaRegistry,
    create_registry,
)
from .schema import Schema, SchemaDef

__all__ = [
    "access_for_action",
    "create_cast",
    "create_registry",
    "expand_shape",
    "DuplicateRegistrationError",
    "RegistryFrozenError",
    "Schema",
    "SchemaDef",
    "SchemaRegistry",
    "ShapeCast",
]
