"""
Schema definitions for typed data.

A Schema declares one data type:
- shape: the fields of the type, see expand_shape()
- access: who may act on items of the type, see access_for_action()
- service: the service items of this type are fetched from by default

Schemas are built once at setup and are immutable afterwards.

Example:
    >>> schema = Schema.from_dict({
    ...     "id": "article",
    ...     "shape": {"title": "string", "author": "user"},
    ...     "access": "auth",
    ... })
    >>> schema.plural
    'articles'
    >>> schema.access
    {'allow': 'auth'}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..errors import SchemaError
from ..utils import MISSING
from .access import access_for_action, normalize_access
from .cast import create_cast
from .expand import expand_shape


@dataclass(frozen=True)
class SchemaDef:
    """Schema definition as given in configuration.

    Attributes:
        id: Type id
        plural: Plural form of the id, defaults to id + 's'
        service: Default service for the type
        shape: Shape definition, shorthand allowed
        access: Access definition; MISSING when not declared
        internal: Internal types are not exposed to outside callers
        generate_id: Generate ids for new items, None to use the default
    """

    id: str
    plural: str | None = None
    service: str | None = None
    shape: dict[str, Any] = field(default_factory=dict)
    access: Any = MISSING
    internal: bool = False
    generate_id: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaDef:
        """Create from a configuration dict with camelCase keys."""
        schema_id = data.get("id")
        if not isinstance(schema_id, str) or not schema_id:
            raise SchemaError("Schema definition must have a string 'id'")
        return cls(
            id=schema_id,
            plural=data.get("plural"),
            service=data.get("service"),
            shape=dict(data.get("shape") or {}),
            access=data.get("access", MISSING),
            internal=bool(data.get("internal", False)),
            generate_id=data.get("generateId"),
        )


class Schema:
    """A compiled schema.

    Args:
        definition: Schema definition
        schemas: Registry the schema belongs to, used for relationship casts
        generate_id: Default for definitions that do not set generate_id

    Raises:
        SchemaError: If the shape is invalid
    """

    def __init__(
        self,
        definition: SchemaDef,
        schemas: Mapping[str, Schema] | None = None,
        generate_id: bool = False,
    ) -> None:
        self.id = definition.id
        self.plural = definition.plural or f"{definition.id}s"
        self.service = definition.service
        self.shape = expand_shape(definition.shape, schema_id=definition.id)
        self.access = normalize_access(definition.access)
        self.internal = definition.internal
        self.generate_id = (
            definition.generate_id if definition.generate_id is not None else generate_id
        )
        self._cast = create_cast(
            self.shape, self.id, schemas if schemas is not None else {}, self.generate_id
        )

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        schemas: Mapping[str, Schema] | None = None,
        generate_id: bool = False,
    ) -> Schema:
        return cls(SchemaDef.from_dict(data), schemas, generate_id)

    def access_for_action(self, action_type: str | None = None) -> dict[str, Any]:
        """Resolve this schema's access scheme for an action type."""
        return access_for_action(self.access, action_type)

    def cast(self, data: Any, is_rev: bool = False, no_defaults: bool = False) -> Any:
        """Cast an item or a list of items to or from this type."""
        return self._cast(data, is_rev, no_defaults)

    def __repr__(self) -> str:
        return f"Schema(id={self.id!r}, service={self.service!r})"
