"""
Error types for Datagate.

Only setup-time problems are raised as exceptions:
- DatagateError: Base exception
- SchemaError: Invalid schema shape
- DefinitionError: Invalid service, endpoint or registry definition
- MappingError: Invalid mapping definition or unresolvable pipeline

Invariants:
    - All errors inherit from DatagateError
    - Nothing in this module is raised while an action is being handled;
      runtime failures are returned as responses with an error status
"""

from __future__ import annotations

from typing import Any


class DatagateError(Exception):
    """Base exception for all Datagate errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DATAGATE_ERROR"
        self.details = details or {}


class SchemaError(DatagateError):
    """Schema shape failed validation.

    Raised when:
    - 'id' is not a string field
    - 'createdAt' or 'updatedAt' is not a date field
    """

    def __init__(self, message: str, schema_id: str | None = None) -> None:
        super().__init__(message, code="SCHEMA_ERROR", details={"schema_id": schema_id})
        self.schema_id = schema_id


class DefinitionError(DatagateError):
    """A service, endpoint or registry definition is invalid."""

    def __init__(self, message: str, definition_id: str | None = None) -> None:
        super().__init__(
            message, code="DEFINITION_ERROR", details={"definition_id": definition_id}
        )
        self.definition_id = definition_id


class MappingError(DatagateError):
    """A mapping definition cannot be compiled."""

    def __init__(self, message: str, pipeline: str | None = None) -> None:
        super().__init__(message, code="MAPPING_ERROR", details={"pipeline": pipeline})
        self.pipeline = pipeline
