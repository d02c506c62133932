"""
Shape expansion for schema definitions.

A shape may be written in shorthand, with a type name in place of a field
definition:

    {"title": "string", "author": "user", "meta": {"views": "integer"}}

expand_shape() turns every shorthand into a field definition
({"$type": "string"}), keeps nested shapes as nested dicts, validates the
reserved fields and adds an 'id' field when the shape has none.

Invariants:
    - 'id' is always a string field
    - 'createdAt' and 'updatedAt' are date fields when declared
    - All violations are reported together in one SchemaError
"""

from __future__ import annotations

from typing import Any

from ..errors import SchemaError

_RESERVED_TYPES = {
    "id": "string",
    "createdAt": "date",
    "updatedAt": "date",
}


def is_field_definition(value: Any) -> bool:
    """Check whether a shape entry is a field definition rather than a nested shape."""
    return isinstance(value, dict) and "$type" in value


def _expand_value(value: Any) -> Any:
    if isinstance(value, str):
        return {"$type": value}
    if is_field_definition(value):
        return dict(value)
    if isinstance(value, dict):
        return {key: _expand_value(entry) for key, entry in value.items()}
    # Anything else is an invalid definition, kept so cast can skip it
    return value


def _reserved_field_errors(shape: dict[str, Any]) -> list[str]:
    errors = []
    for key, expected in _RESERVED_TYPES.items():
        if key not in shape:
            continue
        definition = shape[key]
        if not is_field_definition(definition) or definition.get("$type") != expected:
            article = "an" if expected[0] in "aeiou" else "a"
            errors.append(f"'{key}' must be {article} {expected}")
    return errors


def expand_shape(definition: dict[str, Any] | None, schema_id: str | None = None) -> dict[str, Any]:
    """Expand a shape definition.

    Args:
        definition: Shape definition, possibly in shorthand
        schema_id: Schema id, used for error context

    Returns:
        The expanded shape, always including an 'id' field

    Raises:
        SchemaError: If 'id', 'createdAt' or 'updatedAt' have the wrong type

    Example:
        >>> expand_shape({"title": "string"})
        {'title': {'$type': 'string'}, 'id': {'$type': 'string'}}
    """
    shape = {key: _expand_value(value) for key, value in (definition or {}).items()}

    errors = _reserved_field_errors(shape)
    if errors:
        raise SchemaError(". ".join(errors), schema_id=schema_id)

    if "id" not in shape:
        shape["id"] = {"$type": "string"}
    return shape
