"""
Endpoints of a service.

An Endpoint is one configured route to a service operation:
- match: which actions it handles, see match.py
- options: service options merged with endpoint options, prepared by the
  service's adapter
- mutation: a mapping over the whole request/response, run in reverse on
  the way to the service and forward on the way back
- adapters: the chain that serializes requests (last adapter first) and
  normalizes responses (first adapter first)

Definition:
    {
        "id": "getEntry",
        "match": {"type": "entry", "scope": "member", "action": "GET"},
        "options": {"uri": "/entries/{id}"},
        "mutation": {"data": "data.item"},
    }

Endpoints are built once, when their service is built, and never change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from ..errors import DefinitionError
from ..mapping import MappingState, Node, PipelineRegistry, compile_mapping
from ..types import Action, Request, Response
from ..utils import MISSING
from .match import MatchObject, is_match
from .protocols import Adapter


@dataclass(frozen=True)
class EndpointDef:
    """Endpoint definition as given in configuration.

    Attributes:
        id: Endpoint id; actions may pin an endpoint by id
        match: Match criteria
        options: Endpoint options, merged over the service options
        mutation: Mapping definition for the request/response
        adapters: Ids of extra adapters for this endpoint only
    """

    id: str | None = None
    match: MatchObject = field(default_factory=MatchObject)
    options: dict[str, Any] = field(default_factory=dict)
    mutation: Any = None
    adapters: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EndpointDef:
        if not isinstance(data, dict):
            raise DefinitionError(f"Endpoint definition must be a dict, got {type(data).__name__}")
        return cls(
            id=data.get("id"),
            match=MatchObject.from_dict(data.get("match")),
            options=dict(data.get("options") or {}),
            mutation=data.get("mutation"),
            adapters=tuple(data.get("adapters") or ()),
        )


def exchange_root(request: Request, response: Response | None = None) -> dict[str, Any]:
    """Build the value that root paths (^) read from during mapping."""
    root = request.to_mapping()
    if response is not None:
        root["response"] = response.to_mapping()
    return root


class Endpoint:
    """A compiled endpoint.

    Args:
        definition: Endpoint definition
        service_id: Id of the owning service
        adapters: Adapter chain; the first one is the service's own adapter
        service_options: Options of the owning service
        service_mutation: Mutation of the owning service, run before the
            endpoint's own mutation
        pipelines: Registry for $apply in mutations
    """

    def __init__(
        self,
        definition: EndpointDef,
        service_id: str,
        adapters: Sequence[Adapter],
        service_options: dict[str, Any] | None = None,
        service_mutation: Any = None,
        pipelines: PipelineRegistry | None = None,
    ) -> None:
        self.id = definition.id
        self.match = definition.match
        self.service_id = service_id
        self._adapters = tuple(adapters)

        options = {**(service_options or {}), **definition.options}
        self.options = self._adapters[0].prepare_options(options, service_id) if self._adapters else options

        steps = [step for step in (service_mutation, definition.mutation) if step is not None]
        self._mutation: Node | None = (
            compile_mapping(steps, pipelines, modify=True) if steps else None
        )

    def is_match(self, action: Action) -> bool:
        return is_match(self.match, self.id, action)

    def map_request(self, request: Request) -> Request:
        """Run the mutation in reverse over a request."""
        if self._mutation is None:
            return request
        mapping = request.to_mapping()
        mapped = self._mutation.rev(mapping, MappingState(root=mapping))
        return request if mapped is MISSING else request.with_mapping(mapped)

    def map_response(self, response: Response, request: Request) -> Response:
        """Run the mutation forward over a response."""
        if self._mutation is None:
            return response
        state = MappingState(root=exchange_root(request, response))
        mapped = self._mutation.fwd(response.to_mapping(), state)
        return response if mapped is MISSING else response.with_mapping(mapped)

    async def serialize(self, request: Request) -> Request:
        """Serialize a request through the adapter chain, last adapter first."""
        for adapter in reversed(self._adapters):
            request = await adapter.serialize(request)
        return request

    async def normalize(self, response: Response, request: Request) -> Response:
        """Normalize a response through the adapter chain, first adapter first."""
        for adapter in self._adapters:
            response = await adapter.normalize(response, request)
        return response

    async def mutate_request(self, request: Request) -> Request:
        """Map a request to the service shape and serialize it."""
        return await self.serialize(self.map_request(request))

    async def mutate_response(self, response: Response, request: Request) -> Response:
        """Normalize a response and map it from the service shape."""
        return self.map_response(await self.normalize(response, request), request)

    def __repr__(self) -> str:
        return f"Endpoint(id={self.id!r}, service={self.service_id!r}, match={self.match!r})"
