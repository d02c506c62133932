"""
Cast compilation for schema shapes.

create_cast() compiles an expanded shape into a ShapeCast, a callable that
coerces raw data to typed items going forward and back to plain data in
reverse:

    cast = create_cast(shape, "entry", registry)
    cast({"id": 12345, "age": "42"})
    # {"id": "12345", "age": 42, "$type": "entry"}
    cast({"id": "12345", "$type": "entry", "age": 42}, is_rev=True)
    # {"id": "12345", "age": 42}

Field rules:
    - 'name[]' keys and 'type[]' types always yield lists
    - Scalars fields unwrap single item lists and drop longer ones
    - 'const' fields yield their value forward and are left out in reverse
    - Missing values fall back to 'default' unless no_defaults is set
    - Values that cannot be cast are left out

Invariants:
    - Casting never raises on bad data
    - Forward casts always carry $type; reverse casts never do
    - An item already tagged with this $type keeps its id, even when missing
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from ..utils import MISSING, ensure_array, random_id
from .cast_fns import Caster, get_caster
from .expand import is_field_definition

logger = logging.getLogger(__name__)

FieldCast = Callable[[Any, bool, bool], Any]

_FLAGS = ("isNew", "isDeleted")
_DATE_FIELDS = ("createdAt", "updatedAt")


def _unwrap_value(value: Any) -> Any:
    if isinstance(value, dict) and "$value" in value:
        return value["$value"]
    return value


def _cast_values(caster: Caster, value: Any, expects_array: bool, passthrough: bool, is_rev: bool) -> Any:
    if expects_array:
        if value is None:
            return None
        results = (caster(entry, is_rev) for entry in ensure_array(value))
        return [result for result in results if result is not MISSING]
    if passthrough:
        return value
    if isinstance(value, list):
        if len(value) != 1:
            return MISSING
        value = value[0]
    return caster(value, is_rev)


def _create_field_cast(
    key: str,
    definition: Any,
    schemas: Mapping[str, Any],
    generate_id: bool,
) -> tuple[str, FieldCast] | None:
    """Create the cast function for one shape entry.

    Returns:
        (field name, cast function), or None for an invalid definition
    """
    expects_array = key.endswith("[]")
    name = key[:-2] if expects_array else key

    if is_field_definition(definition):
        type_name = definition.get("$type")
        if not isinstance(type_name, str):
            logger.debug("Skipping field with invalid $type", extra={"field": name})
            return None
        if type_name.endswith("[]"):
            expects_array = True
            type_name = type_name[:-2]
        caster = get_caster(type_name, schemas)
        passthrough = type_name == "unknown"
    elif isinstance(definition, dict):
        nested = ShapeCast(definition, None, schemas, generate_id)
        definition = {}
        caster = nested.cast_item
        passthrough = False
    else:
        logger.debug("Skipping field with invalid definition", extra={"field": name})
        return None

    has_const = "const" in definition
    has_default = "default" in definition

    def cast_field(value: Any, is_rev: bool, no_defaults: bool) -> Any:
        if has_const:
            return MISSING if is_rev else definition["const"]
        value = _unwrap_value(value)
        if value is MISSING:
            return definition["default"] if has_default and not no_defaults else MISSING
        return _cast_values(caster, value, expects_array, passthrough, is_rev)

    return name, cast_field


class ShapeCast:
    """Compiled cast for one shape.

    Args:
        shape: Expanded shape
        type_name: Schema id, or None for a nested shape
        schemas: Registry of schemas by id, used for relationships
        generate_id: Generate ids for items without one
    """

    def __init__(
        self,
        shape: dict[str, Any],
        type_name: str | None,
        schemas: Mapping[str, Any],
        generate_id: bool = False,
    ) -> None:
        self.type_name = type_name
        self.generate_id = generate_id
        self._defaults = {
            (key[:-2] if key.endswith("[]") else key): definition
            for key, definition in shape.items()
            if is_field_definition(definition)
            and ("default" in definition or "const" in definition)
        }
        self._has_id = "id" in shape
        self._has_dates = any(key in shape for key in _DATE_FIELDS)
        self._fields: list[tuple[str, FieldCast]] = []
        for key, definition in shape.items():
            field_cast = _create_field_cast(key, definition, schemas, generate_id)
            if field_cast is not None:
                self._fields.append(field_cast)

    def __call__(self, data: Any, is_rev: bool = False, no_defaults: bool = False) -> Any:
        """Cast one item or a list of items.

        Args:
            data: Item or list of items
            is_rev: Cast back to plain data
            no_defaults: Do not fill in defaults, dates or generated ids

        Returns:
            The cast item, a list of cast items, or None for non-object data
        """
        if isinstance(data, list):
            results = (self.cast_item(item, is_rev, no_defaults) for item in data if item is not None)
            return [result for result in results if result is not MISSING]
        result = self.cast_item(data, is_rev, no_defaults)
        return None if result is MISSING else result

    def cast_item(self, data: Any, is_rev: bool = False, no_defaults: bool = False) -> Any:
        """Cast a single item. Returns MISSING for non-object data."""
        if not isinstance(data, dict):
            return MISSING
        if self.type_name and not is_rev and data.get("$type") == self.type_name:
            return self._complete_typed(data, no_defaults)

        item = self._complete(data, no_defaults)
        result: dict[str, Any] = {}
        for name, field_cast in self._fields:
            value = field_cast(item.get(name, MISSING), is_rev, no_defaults)
            if value is not MISSING:
                result[name] = value
        if self.type_name and not is_rev:
            result["$type"] = self.type_name
        for flag in _FLAGS:
            if data.get(flag) is True:
                result[flag] = True
        return result

    def _complete(self, data: dict[str, Any], no_defaults: bool) -> dict[str, Any]:
        item = dict(data)
        if self._has_id and item.get("id") is None:
            item["id"] = random_id() if self.generate_id and not no_defaults else None
        if self._has_dates and not no_defaults:
            self._complete_dates(item)
        return item

    def _complete_typed(self, data: dict[str, Any], no_defaults: bool) -> dict[str, Any]:
        item = dict(data)
        if no_defaults:
            return item
        if self._has_dates:
            self._complete_dates(item)
        for name, definition in self._defaults.items():
            if name not in item:
                item[name] = definition["const"] if "const" in definition else definition["default"]
        return item

    @staticmethod
    def _complete_dates(item: dict[str, Any]) -> None:
        created_at = item.get("createdAt")
        updated_at = item.get("updatedAt")
        if created_at is None:
            created_at = updated_at if updated_at is not None else datetime.now(timezone.utc)
            item["createdAt"] = created_at
        if updated_at is None:
            item["updatedAt"] = created_at


def create_cast(
    shape: dict[str, Any],
    type_name: str | None,
    schemas: Mapping[str, Any],
    generate_id: bool = False,
) -> ShapeCast:
    """Compile a cast for an expanded shape.

    Args:
        shape: Expanded shape, see expand_shape()
        type_name: Schema id to tag items with
        schemas: Registry of schemas by id, for relationship casts
        generate_id: Generate ids for items without one

    Returns:
        ShapeCast callable as cast(data, is_rev=False, no_defaults=False)
    """
    return ShapeCast(shape, type_name, schemas, generate_id)
