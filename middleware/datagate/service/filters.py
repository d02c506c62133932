"""
Endpoint filters.

A filter is a dotted path into the action dict and a JSON-schema-like
rule the value at that path must satisfy:

    {
        "payload.data.draft": {"const": False},
        "meta.ident.id": {"type": "string"},
        "payload.data": {"required": ["title"]},
    }

Supported keywords: const, enum, type, required, properties, not. The
boolean rules True and False require the path to be present or absent.

Invariants:
    - An absent value fails every keyword except 'not'
    - Filters are compiled once, when the endpoint is built
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import DefinitionError
from ..utils import MISSING, PathSegment, get_path, parse_path

_VALUE_KEYWORDS = ("const", "enum", "type", "required", "properties")


def _is_type(value: Any, type_name: str) -> bool:
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "object":
        return isinstance(value, dict)
    if type_name == "array":
        return isinstance(value, list)
    if type_name == "null":
        return value is None
    return False


def validate(value: Any, rule: Any) -> bool:
    """Validate a value against a filter rule.

    Args:
        value: Value found at the filter path, MISSING when absent
        rule: Filter rule

    Returns:
        True if the value satisfies the rule
    """
    if rule is True:
        return value is not MISSING
    if rule is False:
        return value is MISSING
    if not isinstance(rule, dict):
        return False

    if "not" in rule and validate(value, rule["not"]):
        return False
    if value is MISSING:
        return not any(keyword in rule for keyword in _VALUE_KEYWORDS)

    if "const" in rule and value != rule["const"]:
        return False
    if "enum" in rule and value not in rule["enum"]:
        return False
    if "type" in rule:
        types = rule["type"] if isinstance(rule["type"], list) else [rule["type"]]
        if not any(_is_type(value, type_name) for type_name in types):
            return False
    if "required" in rule:
        if not isinstance(value, dict) or any(key not in value for key in rule["required"]):
            return False
    if "properties" in rule:
        if not isinstance(value, dict):
            return False
        for key, sub_rule in rule["properties"].items():
            if key in value and not validate(value[key], sub_rule):
                return False
    return True


@dataclass(frozen=True)
class Filter:
    """One compiled filter."""

    path: str
    segments: tuple[PathSegment, ...]
    rule: Any

    def __call__(self, action: dict[str, Any]) -> bool:
        return validate(get_path(action, self.segments), self.rule)


def compile_filters(filters: dict[str, Any] | None) -> tuple[Filter, ...]:
    """Compile filter definitions.

    Raises:
        DefinitionError: If a filter path is malformed
    """
    compiled = []
    for path, rule in (filters or {}).items():
        try:
            segments = parse_path(path)
        except ValueError as e:
            raise DefinitionError(f"Invalid filter path: {e}")
        compiled.append(Filter(path=path, segments=segments, rule=rule))
    return tuple(compiled)
