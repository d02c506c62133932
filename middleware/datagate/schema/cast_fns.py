"""
Value casters for schema fields.

Each caster takes a raw value and returns the coerced value, or MISSING when
the value cannot be coerced. None is kept as None by every primitive caster,
so an explicit null survives casting.

Primitive types:
    string, integer, number/float, boolean, date, object, unknown

Any other type name is a relationship to another schema, handled by
create_reference_caster().

Invariants:
    - Casters never raise on bad input
    - Lists are never accepted where a scalar is expected
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from ..utils import MISSING, is_reference, is_typed_data

Caster = Callable[[Any, bool], Any]

_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _date_to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_date(value: datetime) -> str:
    """Format a datetime as ISO 8601, using 'Z' for UTC."""
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def cast_string(value: Any, is_rev: bool = False) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return _format_number(value) if math.isfinite(value) else MISSING
    if isinstance(value, datetime):
        return format_date(value)
    return MISSING


def cast_number(value: Any, is_rev: bool = False) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return 1 if value else 0
    if _is_number(value):
        return value if math.isfinite(value) else MISSING
    if isinstance(value, datetime):
        return _date_to_ms(value)
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return MISSING
        number = float(match.group(0))
        return number if math.isfinite(number) else MISSING
    return MISSING


def cast_integer(value: Any, is_rev: bool = False) -> Any:
    number = cast_number(value)
    if number is None or number is MISSING or isinstance(number, int):
        return number
    # Round half up
    return int(math.floor(number + 0.5))


def cast_boolean(value: Any, is_rev: bool = False) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 if not (isinstance(value, float) and math.isnan(value)) else MISSING
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1"):
            return True
        if normalized in ("false", "0"):
            return False
    return MISSING


def _parse_date_string(value: str) -> Any:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return MISSING


def cast_date(value: Any, is_rev: bool = False) -> Any:
    if value is None or isinstance(value, datetime):
        return value
    if _is_number(value):
        if not math.isfinite(value):
            return MISSING
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return MISSING
    if isinstance(value, str):
        return _parse_date_string(value)
    return MISSING


def cast_object(value: Any, is_rev: bool = False) -> Any:
    if value is None or isinstance(value, dict):
        return value
    if isinstance(value, str):
        # JSON text is accepted when it holds an object
        try:
            parsed = json.loads(value)
        except ValueError:
            return MISSING
        return parsed if isinstance(parsed, dict) else MISSING
    return MISSING


def cast_unknown(value: Any, is_rev: bool = False) -> Any:
    return value


PRIMITIVE_CASTERS: dict[str, Caster] = {
    "string": cast_string,
    "integer": cast_integer,
    "number": cast_number,
    "float": cast_number,
    "boolean": cast_boolean,
    "date": cast_date,
    "object": cast_object,
    "unknown": cast_unknown,
}


_REFERENCE_KEYS = {"id", "$ref", "isNew", "isDeleted"}


def _has_more_props(value: Any) -> bool:
    return isinstance(value, dict) and any(key not in _REFERENCE_KEYS for key in value)


def _extract_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id", MISSING)
    if isinstance(value, datetime):
        return _date_to_ms(value)
    return value


def _extract_flags(value: Any) -> dict[str, bool]:
    if not isinstance(value, dict):
        return {}
    return {key: True for key in ("isNew", "isDeleted") if value.get(key) is True}


def create_reference_caster(type_name: str, schemas: Mapping[str, Any]) -> Caster:
    """Create a caster for a relationship to another schema.

    A value is cast to a reference {id, $ref} unless it carries more than
    reference props, in which case it is cast as an item of the related
    schema (looked up when the value is cast, so schemas may refer to each
    other).

    Args:
        type_name: Id of the related schema
        schemas: Registry of schemas by id

    Returns:
        Caster function taking (value, is_rev)
    """

    def cast_reference(value: Any, is_rev: bool = False) -> Any:
        if is_reference(value) and value["$ref"] != type_name:
            return MISSING

        if is_typed_data(value) or _has_more_props(value):
            if isinstance(value.get("$type"), str) and value["$type"] != type_name:
                return MISSING
            schema = schemas.get(type_name)
            if schema is None:
                return value
            result = schema.cast(value, is_rev)
            return MISSING if result is None else result

        item_id = _extract_id(value)
        if isinstance(item_id, str) or (_is_number(item_id) and not math.isnan(item_id)):
            reference: dict[str, Any] = {"id": item_id if isinstance(item_id, str) else _format_number(item_id)}
            if not is_rev:
                reference["$ref"] = type_name
            reference.update(_extract_flags(value))
            return reference
        if item_id is None:
            return None
        return MISSING

    return cast_reference


def get_caster(type_name: str, schemas: Mapping[str, Any]) -> Caster:
    """Get the caster for a type name, primitive or relationship."""
    return PRIMITIVE_CASTERS.get(type_name) or create_reference_caster(type_name, schemas)
