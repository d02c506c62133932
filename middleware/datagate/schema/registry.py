"""
Schema registry for Datagate.

The SchemaRegistry holds every schema of an integration by id. It is the
lookup used for relationship casts and for access resolution, and is
passed to schemas as they are built so they can refer to each other.

Invariants:
    - Registry is mutable during setup, frozen before actions are handled
    - Schema ids are unique
    - Fingerprint changes when any schema definition changes

How to change safely:
    - Register all schemas before calling freeze()
    - Never modify registered schemas after freeze
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Iterator, Mapping

from ..errors import DefinitionError
from ..utils import MISSING
from .schema import Schema, SchemaDef

logger = logging.getLogger(__name__)


class RegistryFrozenError(DefinitionError):
    """Raised when attempting to modify a frozen registry."""


class DuplicateRegistrationError(DefinitionError):
    """Raised when attempting to register a duplicate schema id."""


class SchemaRegistry(Mapping[str, Schema]):
    """Registry of schemas by id.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Args:
        generate_id: Default generate_id for schemas that do not set it

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.register({"id": "user", "shape": {"name": "string"}})
        >>> registry.freeze()
        >>> registry["user"].plural
        'users'
    """

    def __init__(self, generate_id: bool = False) -> None:
        self._schemas: dict[str, Schema] = {}
        self._definitions: dict[str, SchemaDef] = {}
        self._generate_id = generate_id
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Fingerprint of all schema definitions (available after freeze)."""
        return self._fingerprint

    def register(self, definition: SchemaDef | dict[str, Any]) -> Schema:
        """Build and register a schema.

        Args:
            definition: Schema definition or configuration dict

        Returns:
            The registered schema

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the id is already registered
            SchemaError: If the shape is invalid
        """
        if isinstance(definition, dict):
            definition = SchemaDef.from_dict(definition)

        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register schema '{definition.id}': registry is frozen",
                    definition.id,
                )
            if definition.id in self._schemas:
                raise DuplicateRegistrationError(
                    f"Schema '{definition.id}' is already registered", definition.id
                )

            schema = Schema(definition, self, self._generate_id)
            self._schemas[definition.id] = schema
            self._definitions[definition.id] = definition
            logger.debug(f"Registered schema: {definition.id}")
            return schema

    def freeze(self) -> str:
        """Freeze the registry and compute its fingerprint.

        Returns:
            The fingerprint
        """
        with self._lock:
            if not self._frozen:
                self._fingerprint = self._compute_fingerprint()
                self._frozen = True
                logger.info(
                    "Schema registry frozen",
                    extra={"schemas": len(self._schemas), "fingerprint": self._fingerprint},
                )
            return self._fingerprint or ""

    def _compute_fingerprint(self) -> str:
        canonical = [
            {
                "id": definition.id,
                "plural": definition.plural,
                "service": definition.service,
                "shape": definition.shape,
                "access": None if definition.access is MISSING else definition.access,
                "accessDeclared": definition.access is not MISSING,
                "internal": definition.internal,
                "generateId": definition.generate_id,
            }
            for definition in sorted(self._definitions.values(), key=lambda d: d.id)
        ]
        encoded = json.dumps(canonical, sort_keys=True, default=str).encode("utf-8")
        return f"sha256:{hashlib.sha256(encoded).hexdigest()}"

    def __getitem__(self, schema_id: str) -> Schema:
        return self._schemas[schema_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"SchemaRegistry(schemas={list(self._schemas)}, frozen={self._frozen})"


def create_registry(
    definitions: list[SchemaDef | dict[str, Any]],
    generate_id: bool = False,
) -> SchemaRegistry:
    """Build and freeze a registry from a list of schema definitions."""
    registry = SchemaRegistry(generate_id=generate_id)
    for definition in definitions:
        registry.register(definition)
    registry.freeze()
    return registry
