"""
Named pipeline registry.

Mappings refer to reusable pipelines by name with {"$apply": name}. The
registry resolves those names when a mapping is compiled, so compiled
mappings hold direct references and never look names up while running.

Two kinds of pipelines are registered:
- Mutation definitions, compiled from the mapping DSL on first use
- Transformers given as objects, e.g. the cast_<type> pipelines that cast
  to and from a schema

Invariants:
    - A name resolves to the same object every time
    - Unknown names and cycles raise MappingError at compile time
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..errors import MappingError
from .nodes import MappingState, Transformer

logger = logging.getLogger(__name__)


class CastTransformer:
    """Pipeline casting to a schema forward and from it in reverse."""

    def __init__(self, schema: Any) -> None:
        self.schema = schema

    def fwd(self, value: Any, state: MappingState) -> Any:
        return self.schema.cast(value, False, state.no_defaults)

    def rev(self, value: Any, state: MappingState) -> Any:
        return self.schema.cast(value, True)

    def __repr__(self) -> str:
        return f"CastTransformer({self.schema.id!r})"


class PipelineRegistry:
    """Registry of named pipelines.

    Args:
        definitions: Mutation definitions by name, in the mapping DSL
        transformers: Ready made transformers by name

    Example:
        >>> registry = PipelineRegistry({"user": {"id": "key", "name": "title"}})
        >>> registry.resolve("user")
        Object(...)
    """

    def __init__(
        self,
        definitions: Mapping[str, Any] | None = None,
        transformers: Mapping[str, Transformer] | None = None,
    ) -> None:
        self._definitions = dict(definitions or {})
        self._resolved: dict[str, Transformer] = dict(transformers or {})
        self._compiling: set[str] = set()

    def add(self, name: str, transformer: Transformer) -> None:
        """Register a ready made transformer."""
        if name in self._resolved or name in self._definitions:
            raise MappingError(f"Pipeline '{name}' is already registered", pipeline=name)
        self._resolved[name] = transformer

    def add_schema_casts(self, schemas: Mapping[str, Any]) -> None:
        """Register a cast_<id> pipeline for every schema."""
        for schema_id, schema in schemas.items():
            self.add(f"cast_{schema_id}", CastTransformer(schema))

    def __contains__(self, name: object) -> bool:
        return name in self._resolved or name in self._definitions

    def resolve(self, name: str) -> Transformer:
        """Resolve a pipeline by name, compiling its definition on first use.

        Raises:
            MappingError: If the name is unknown or the pipeline applies itself
        """
        if name in self._resolved:
            return self._resolved[name]
        if name not in self._definitions:
            raise MappingError(f"Unknown pipeline '{name}'", pipeline=name)
        if name in self._compiling:
            raise MappingError(f"Pipeline '{name}' applies itself", pipeline=name)

        from .compile import compile_mapping

        self._compiling.add(name)
        try:
            compiled = compile_mapping(self._definitions[name], self)
        finally:
            self._compiling.discard(name)
        self._resolved[name] = compiled
        logger.debug(f"Compiled pipeline: {name}")
        return compiled
