"""
Services.

A Service sends actions to one external service through an adapter:

    service = Service(
        ServiceDef.from_dict({
            "id": "entries",
            "adapter": "memory",
            "auth": {"authenticator": "token", "options": {"token": "s3cr3t"}},
            "mappings": {"entry": ["items[]", {"$iterate": True, "id": "key"}]},
            "endpoints": [{"match": {"action": "GET"}}],
        }),
        schemas=registry,
        adapters={"memory": InMemoryAdapter()},
        authenticators={"token": TokenAuthenticator()},
    )
    response = await service.send(action)

Everything named by id in the definition (adapters, authenticator, auth
scheme, $apply pipelines) is resolved here, once.

Invariants:
    - Endpoints are sorted by specificity when the service is built
    - send() never raises; every failure is an error response
    - The connection and authentication caches belong to the service

How to change safely:
    - Keep definition ids resolved at construction
    - Pipeline changes belong in stages.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..config import DEFAULT_ACTIONS
from ..errors import DefinitionError
from ..mapping import IDENTITY, MappingState, Node, PipelineRegistry, compile_mapping
from ..types import Action, Authentication, Request, Response, create_error_response
from ..utils import MISSING, ensure_array
from .cache import Slot
from .endpoint import Endpoint, EndpointDef, exchange_root
from .match import match_endpoint, sort_endpoints
from .protocols import Adapter, AuthScheme, Authenticator, Connection
from .stages import Exchange, run_stages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthDef:
    """Authentication part of a service definition."""

    authenticator: str
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> AuthDef | None:
        if value is None:
            return None
        if isinstance(value, str):
            return cls(authenticator=value)
        if isinstance(value, dict) and isinstance(value.get("authenticator"), str):
            return cls(authenticator=value["authenticator"], options=dict(value.get("options") or {}))
        raise DefinitionError(f"Invalid auth definition: {value!r}")


@dataclass(frozen=True)
class ServiceDef:
    """Service definition as given in configuration.

    Attributes:
        id: Service id
        adapter: Id of the service's adapter
        adapters: Ids of extra adapters applied to every endpoint
        auth: Authenticator and its options
        options: Options shared by all endpoints
        mutation: Mutation run on every endpoint, before its own
        mappings: Type id -> mapping definition or pipeline name
        endpoints: Endpoint definitions
    """

    id: str
    adapter: str
    adapters: tuple[str, ...] = ()
    auth: AuthDef | None = None
    options: dict[str, Any] = field(default_factory=dict)
    mutation: Any = None
    mappings: dict[str, Any] = field(default_factory=dict)
    endpoints: tuple[EndpointDef, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceDef:
        service_id = data.get("id")
        if not isinstance(service_id, str) or not service_id:
            raise DefinitionError("Service definition must have a string 'id'")
        adapter = data.get("adapter")
        if not isinstance(adapter, str):
            raise DefinitionError(f"Service '{service_id}' must name an adapter", service_id)
        return cls(
            id=service_id,
            adapter=adapter,
            adapters=tuple(data.get("adapters") or ()),
            auth=AuthDef.from_value(data.get("auth")),
            options=dict(data.get("options") or {}),
            mutation=data.get("mutation"),
            mappings=dict(data.get("mappings") or {}),
            endpoints=tuple(EndpointDef.from_dict(endpoint) for endpoint in data.get("endpoints") or ()),
        )


def _resolve_adapter(adapter_id: str, adapters: Mapping[str, Adapter], service_id: str) -> Adapter:
    adapter = adapters.get(adapter_id)
    if adapter is None:
        raise DefinitionError(f"Service '{service_id}' references unknown adapter '{adapter_id}'", service_id)
    if not isinstance(adapter, Adapter):
        raise DefinitionError(f"'{adapter_id}' is not an adapter", service_id)
    return adapter


class Service:
    """A configured external service.

    Args:
        definition: Service definition
        schemas: Schema registry
        adapters: Adapters by id
        authenticators: Authenticators by id
        pipelines: Named pipelines for $apply in mappings and mutations
        known_actions: Action verbs the service handles
        auth_retries: Retries on authenticator timeout

    Raises:
        DefinitionError: If an adapter or authenticator cannot be resolved
        MappingError: If a mapping or mutation cannot be compiled
    """

    def __init__(
        self,
        definition: ServiceDef,
        schemas: Mapping[str, Any],
        adapters: Mapping[str, Adapter],
        authenticators: Mapping[str, Authenticator] | None = None,
        pipelines: PipelineRegistry | None = None,
        known_actions: tuple[str, ...] | list[str] = tuple(DEFAULT_ACTIONS),
        auth_retries: int = 1,
    ) -> None:
        self.id = definition.id
        self.schemas = schemas
        self.known_actions = frozenset(known_actions)
        self.auth_retries = auth_retries

        self.adapter = _resolve_adapter(definition.adapter, adapters, self.id)
        service_adapters = [self.adapter] + [
            _resolve_adapter(adapter_id, adapters, self.id) for adapter_id in definition.adapters
        ]

        self.authenticator: Authenticator | None = None
        self.auth_options: dict[str, Any] = {}
        self.auth_scheme: AuthScheme | None = None
        if definition.auth is not None:
            self._resolve_auth(definition.auth, authenticators or {})

        self.mappings: dict[str, Node] = {
            type_name: compile_mapping(
                {"$apply": mapping} if isinstance(mapping, str) else mapping, pipelines
            )
            for type_name, mapping in definition.mappings.items()
        }

        self.endpoints: list[Endpoint] = sort_endpoints(
            Endpoint(
                endpoint,
                self.id,
                service_adapters + [_resolve_adapter(a, adapters, self.id) for a in endpoint.adapters],
                service_options=definition.options,
                service_mutation=definition.mutation,
                pipelines=pipelines,
            )
            for endpoint in definition.endpoints
        )

        self.connection_cache: Slot[Connection] = Slot()
        self.authentication_cache: Slot[Authentication] = Slot()
        logger.debug(
            "Service created",
            extra={"service": self.id, "endpoints": len(self.endpoints), "types": list(self.mappings)},
        )

    def _resolve_auth(self, auth: AuthDef, authenticators: Mapping[str, Authenticator]) -> None:
        authenticator = authenticators.get(auth.authenticator)
        if authenticator is None:
            raise DefinitionError(
                f"Service '{self.id}' references unknown authenticator '{auth.authenticator}'", self.id
            )
        if not isinstance(authenticator, Authenticator):
            raise DefinitionError(f"'{auth.authenticator}' is not an authenticator", self.id)
        self.authenticator = authenticator
        self.auth_options = auth.options

        scheme_name = self.adapter.authentication
        if scheme_name:
            scheme = getattr(authenticator, scheme_name, None)
            if not callable(scheme):
                raise DefinitionError(
                    f"Authenticator '{auth.authenticator}' has no auth scheme '{scheme_name}'", self.id
                )
            self.auth_scheme = scheme

    @property
    def require_auth(self) -> bool:
        """Whether requests to this service carry authentication."""
        return self.authenticator is not None

    def endpoint_for(self, action: Action) -> Endpoint | None:
        """Select the most specific endpoint matching an action."""
        return match_endpoint(self.endpoints, action)

    def create_request(self, action: Action, endpoint: Endpoint | None) -> Request:
        params = {
            key: value
            for key, value in action.payload.to_dict().items()
            if key not in ("data", "service", "endpoint")
        }
        return Request(
            action=action.type,
            params=params,
            data=action.payload.data,
            endpoint=dict(endpoint.options) if endpoint else {},
            ident=action.ident,
            meta=dict(action.meta),
        )

    def map_to_service(self, data: Any, request: Request) -> Any:
        """Map internal items to the service shape, one group per type.

        Items are cast in reverse before their type's mapping runs in
        reverse. Types without a mapping are passed through as cast.
        """
        if data is None:
            return None
        groups: dict[Any, list[Any]] = {}
        for item in ensure_array(data):
            type_name = item.get("$type") if isinstance(item, dict) else None
            groups.setdefault(type_name, []).append(item)

        state = MappingState(root=exchange_root(request))
        mapped_groups = []
        for type_name, items in groups.items():
            schema = self.schemas.get(type_name) if isinstance(type_name, str) else None
            plain = schema.cast(items, is_rev=True) if schema is not None else items
            value = plain if isinstance(data, list) else plain[0] if plain else MISSING
            mapped = self.mappings.get(type_name, IDENTITY).rev(value, state)
            if mapped is not MISSING:
                mapped_groups.append(mapped)

        if not mapped_groups:
            return [] if isinstance(data, list) else None
        if len(mapped_groups) == 1:
            return mapped_groups[0]
        results: list[Any] = []
        for mapped in mapped_groups:
            results.extend(ensure_array(mapped))
        return results

    def map_from_service(self, data: Any, request: Request, response: Response | None = None) -> Any:
        """Map service data to internal items.

        The requested type decides the mapping; with no type requested, every
        type with a mapping is tried and the results are joined.
        """
        type_param = request.params.get("type")
        no_defaults = bool(request.params.get("onlyMappedValues"))
        state = MappingState(root=exchange_root(request, response), no_defaults=no_defaults)

        results: list[Any] = []
        for type_name in ensure_array(type_param) or list(self.mappings):
            schema = self.schemas.get(type_name)
            if schema is None:
                continue
            mapped = self.mappings.get(type_name, IDENTITY).fwd(data, state)
            if mapped is MISSING:
                continue
            cast = schema.cast(mapped, False, no_defaults)
            if isinstance(type_param, str):
                return cast
            results.extend(ensure_array(cast))
        return results

    async def run(self, action: Action) -> Exchange:
        """Run an action through the send pipeline.

        Returns:
            The final exchange, including the request as sent and the
            authorized request data
        """
        endpoint = self.endpoint_for(action)
        exchange = Exchange(request=self.create_request(action, endpoint), endpoint=endpoint)
        try:
            exchange = await run_stages(self, exchange)
        except Exception as e:
            logger.exception("Pipeline failed", extra={"service": self.id, "action": action.type})
            exchange.response = create_error_response(
                f"Error in service '{self.id}': {e}", f"service:{self.id}"
            )
        if exchange.response is None:
            exchange.response = create_error_response(
                f"Service '{self.id}' gave no response", f"service:{self.id}"
            )
        return exchange

    async def send(self, action: Action) -> Response:
        """Send an action and return its response."""
        exchange = await self.run(action)
        logger.debug(
            "Action handled",
            extra={
                "service": self.id,
                "endpoint": exchange.endpoint.id if exchange.endpoint else None,
                "action": action.type,
                "status": exchange.response.status.value,
            },
        )
        return exchange.response

    def __repr__(self) -> str:
        return f"Service(id={self.id!r}, endpoints={len(self.endpoints)})"
