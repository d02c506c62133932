"""
Integration setup and action dispatch.

An Integration ties schemas, services, adapters and authenticators
together and routes actions to the right service:

    integration = Integration(
        schemas=[{"id": "entry", "service": "entries", "shape": {"title": "string"}}],
        services=[{"id": "entries", "adapter": "memory", "endpoints": [{}]}],
        adapters={"memory": InMemoryAdapter()},
    )
    response = await integration.dispatch({
        "type": "GET",
        "payload": {"type": "entry", "id": "ent1"},
        "meta": {"ident": {"id": "johnf"}},
    })

Routing:
    1. payload.service, when given
    2. otherwise the service of the schema for payload.type

Invariants:
    - All definitions are validated and compiled in the constructor
    - dispatch() never raises; failures are error responses

How to change safely:
    - Keep routing decisions here; services only see actions meant for them
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import json_log_formatter

from .config import Settings
from .errors import DefinitionError
from .mapping import PipelineRegistry
from .schema import SchemaDef, create_registry
from .service import Adapter, Authenticator, Exchange, Service, ServiceDef
from .types import Action, Request, Response, Status, create_error_response
from .utils import ensure_array

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Datagate settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class Integration:
    """Datagate entry point.

    Args:
        schemas: Schema definitions
        services: Service definitions
        adapters: Adapters by id
        authenticators: Authenticators by id
        mutations: Named mutation pipelines for $apply
        settings: Settings; read from the environment when omitted

    Raises:
        DefinitionError: If settings or definitions are invalid
        SchemaError: If a schema shape is invalid
        MappingError: If a mapping cannot be compiled
    """

    def __init__(
        self,
        schemas: list[SchemaDef | dict[str, Any]],
        services: list[ServiceDef | dict[str, Any]],
        adapters: Mapping[str, Adapter],
        authenticators: Mapping[str, Authenticator] | None = None,
        mutations: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        problems = self.settings.validate_settings()
        if problems:
            raise DefinitionError("Invalid settings: " + "; ".join(problems))

        self.schemas = create_registry(schemas, generate_id=self.settings.generate_ids)
        self.pipelines = PipelineRegistry(mutations)
        self.pipelines.add_schema_casts(self.schemas)

        self.services: dict[str, Service] = {}
        for definition in services:
            if isinstance(definition, dict):
                definition = ServiceDef.from_dict(definition)
            if definition.id in self.services:
                raise DefinitionError(f"Service '{definition.id}' is defined twice", definition.id)
            self.services[definition.id] = Service(
                definition,
                schemas=self.schemas,
                adapters=adapters,
                authenticators=authenticators,
                pipelines=self.pipelines,
                known_actions=self.settings.known_actions,
                auth_retries=self.settings.auth_retries,
            )

        for schema in self.schemas.values():
            if schema.service is not None and schema.service not in self.services:
                raise DefinitionError(
                    f"Schema '{schema.id}' references unknown service '{schema.service}'", schema.id
                )

        logger.info(
            "Integration created",
            extra={
                "schemas": list(self.schemas),
                "services": list(self.services),
                "fingerprint": self.schemas.fingerprint,
            },
        )

    def service_for(self, action: Action) -> Service | None:
        """Find the service an action is routed to."""
        service_id = action.payload.service
        if service_id is None:
            types = ensure_array(action.payload.type)
            schema = self.schemas.get(types[0]) if types else None
            service_id = schema.service if schema is not None else None
        return self.services.get(service_id) if service_id is not None else None

    async def run(self, action: Action | dict[str, Any]) -> Exchange:
        """Route an action and run it through its service's pipeline.

        Returns:
            The final exchange; its response is always set
        """
        if isinstance(action, dict):
            try:
                action = Action.from_dict(action)
            except (KeyError, TypeError, ValueError) as e:
                return Exchange(
                    request=Request(action=str(action.get("type"))),
                    response=create_error_response(f"Invalid action: {e}", "dispatch"),
                )

        if action.type not in self.settings.known_actions:
            return Exchange(
                request=Request(action=action.type, ident=action.ident),
                response=Response(status=Status.NOACTION, error=f"Unknown action '{action.type}'"),
            )

        service = self.service_for(action)
        if service is None:
            target = action.payload.service or action.payload.type
            return Exchange(
                request=Request(action=action.type, ident=action.ident),
                response=create_error_response(f"No service exists for '{target}'", "dispatch"),
            )

        logger.debug(
            "Dispatching action",
            extra={"action": action.type, "type": action.payload.type, "service": service.id},
        )
        return await service.run(action)

    async def dispatch(self, action: Action | dict[str, Any]) -> Response:
        """Dispatch an action and return its response."""
        exchange = await self.run(action)
        return exchange.response
