"""
The send pipeline.

Every action sent to a service runs through these stages, in order, over
one Exchange:

    1. guard_action               unknown verb -> noaction, no endpoint -> error
    2. cast_request_data          cast outgoing items to their schemas
    3. authorize_request_stage    request and item level access
    4. snapshot_request_data      keep the authorized data for callers
    5. map_request_to_service     type mappings, endpoint mutation, serialize
    6. authenticate               cached or fresh authentication
    7. connect                    cached or fresh connection
    8. send_request               adapter.send and normalize
    9. map_response_from_service  endpoint mutation, type mappings, cast
   10. authorize_response_stage   item level access over the mapped data

Stages 1-8 shape the request and do nothing once a response is set.
Stages 9-10 shape the response and always run.

Invariants:
    - No stage raises; failures become error responses
    - Neither the authenticator nor the adapter is called for a refused request
    - Stages run one after the other; each may suspend on I/O
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ..access import authorize_items, authorize_request, authorize_response
from ..types import (
    Access,
    AccessStatus,
    Authentication,
    AuthStatus,
    Request,
    Response,
    Status,
    create_error_response,
)
from ..utils import ensure_array
from .protocols import Connection

if TYPE_CHECKING:
    from .endpoint import Endpoint
    from .service import Service

logger = logging.getLogger(__name__)


@dataclass
class Exchange:
    """Per-action state passed through the pipeline.

    Attributes:
        request: The request being sent
        endpoint: The endpoint selected for the action
        response: Set by the first stage that produces a response
        authentication: Authentication used for the request
        connection: Connection used for the request
        authorized_request_data: Request data after authorization, before it
            was mapped to the service shape
    """

    request: Request
    endpoint: Endpoint | None = None
    response: Response | None = None
    authentication: Authentication | None = None
    connection: Connection | None = None
    authorized_request_data: Any = None


Stage = Callable[["Service", Exchange], Awaitable[Exchange]]


def _log_extra(service: Service, exchange: Exchange, **extra: Any) -> dict[str, Any]:
    return {
        "service": service.id,
        "endpoint": exchange.endpoint.id if exchange.endpoint else None,
        "action": exchange.request.action,
        **extra,
    }


async def guard_action(service: Service, exchange: Exchange) -> Exchange:
    """Stop unknown verbs and actions without an endpoint."""
    if exchange.response is not None:
        return exchange
    request = exchange.request
    if request.action not in service.known_actions:
        exchange.response = Response(
            status=Status.NOACTION,
            error=f"Unknown action '{request.action}'",
            origin=f"service:{service.id}",
        )
    elif exchange.endpoint is None:
        exchange.response = create_error_response(
            f"No endpoint matching request to service '{service.id}'.",
            origin=f"service:{service.id}",
        )
    return exchange


def _cast_items(data: Any, schemas: Any, default_type: Any) -> Any:
    items = ensure_array(data)
    results = []
    for item in items:
        if not isinstance(item, dict):
            continue
        type_name = item.get("$type") or (default_type if isinstance(default_type, str) else None)
        if type_name is None:
            results.append(item)
            continue
        schema = schemas.get(type_name)
        if schema is None:
            logger.debug("Dropping item of unknown type", extra={"type": type_name})
            continue
        cast = schema.cast(item)
        if cast is not None:
            results.append(cast)
    if isinstance(data, list):
        return results
    return results[0] if results else None


async def cast_request_data(service: Service, exchange: Exchange) -> Exchange:
    """Cast outgoing data; items of unregistered types are dropped."""
    if exchange.response is not None or exchange.request.data is None:
        return exchange
    request = exchange.request
    exchange.request = replace(
        request, data=_cast_items(request.data, service.schemas, request.params.get("type"))
    )
    return exchange


async def authorize_request_stage(service: Service, exchange: Exchange) -> Exchange:
    """Authorize the request, then every outgoing item by its own $type.

    A refusal is enforced before authenticating.
    """
    if exchange.response is not None:
        return exchange
    request = exchange.request
    access = authorize_request(request, service.schemas, service.require_auth)
    data = request.data
    if data is not None:
        result = authorize_items(data, access, service.schemas, request.action, service.require_auth)
        if result is not None:
            data, access = result.data, result.access
    exchange.request = replace(request, access=access, data=data)
    logger.debug("Request authorized", extra=_log_extra(service, exchange, access=access.status.value))
    return exchange


async def snapshot_request_data(service: Service, exchange: Exchange) -> Exchange:
    if exchange.response is None:
        exchange.authorized_request_data = copy.deepcopy(exchange.request.data)
    return exchange


async def map_request_to_service(service: Service, exchange: Exchange) -> Exchange:
    """Map request data to the service shape and serialize the request."""
    if exchange.response is not None or exchange.endpoint is None:
        return exchange
    try:
        request = exchange.request
        request = replace(request, data=service.map_to_service(request.data, request))
        exchange.request = await exchange.endpoint.mutate_request(request)
    except Exception as e:
        logger.error("Mapping request failed", extra=_log_extra(service, exchange), exc_info=True)
        exchange.response = create_error_response(
            f"Could not map request to service '{service.id}': {e}", origin=f"service:{service.id}"
        )
    return exchange


async def _call_authenticator(service: Service) -> Authentication:
    attempts = service.auth_retries + 1
    authentication = Authentication(status=AuthStatus.TIMEOUT.value, error="No attempt made")
    for attempt in range(attempts):
        try:
            authentication = await service.authenticator.authenticate(service.auth_options)
        except Exception as e:
            logger.warning(
                "Authenticator raised", extra={"service": service.id, "error": str(e)}
            )
            return Authentication(status=AuthStatus.ERROR.value, error=str(e))
        if authentication.status != AuthStatus.TIMEOUT:
            break
        logger.warning(
            "Authentication timed out", extra={"service": service.id, "attempt": attempt + 1}
        )
    return authentication


def _auth_failure(service: Service, exchange: Exchange, authentication: Authentication) -> Response:
    if authentication.status == AuthStatus.REFUSED:
        status, error = Status.NOACCESS, "Authentication was refused"
    elif authentication.status in (AuthStatus.ERROR, AuthStatus.TIMEOUT):
        status, error = Status.AUTHERROR, f"Could not authenticate: {authentication.error}"
    else:
        status = Status.AUTHERROR
        error = "Could not authenticate - unknown status from authenticator"
    access = Access(status=AccessStatus.REFUSED, ident=exchange.request.ident, scheme="service")
    return Response(status=status, error=error, access=access, origin=f"service:{service.id}")


def _refuse_unauthorized(service: Service, exchange: Exchange) -> bool:
    """Set a noaccess response when the request was refused."""
    request = exchange.request
    if request.access is not None and not request.access.is_refused:
        return False
    types = ", ".join(map(str, ensure_array(request.params.get("type"))))
    exchange.response = Response(
        status=Status.NOACCESS,
        error=f"Access refused for {request.action} on '{types}'",
        access=request.access,
        origin=f"service:{service.id}",
    )
    return True


async def authenticate(service: Service, exchange: Exchange) -> Exchange:
    """Authenticate, reusing the cached authentication while it is valid.

    Refused requests stop here, before the authenticator or the adapter is
    called.
    """
    if exchange.response is not None or _refuse_unauthorized(service, exchange):
        return exchange
    if service.authenticator is None:
        return exchange

    authentication = service.authentication_cache.get()
    if authentication is None or not service.authenticator.is_authenticated(authentication):
        authentication = await _call_authenticator(service)
        service.authentication_cache.set(authentication)
    exchange.authentication = authentication

    if not authentication.is_granted:
        logger.warning(
            "Authentication failed",
            extra=_log_extra(service, exchange, status=authentication.status, error=authentication.error),
        )
        exchange.response = _auth_failure(service, exchange, authentication)
        return exchange

    if service.auth_scheme is not None:
        try:
            auth = service.auth_scheme(authentication)
        except Exception as e:
            exchange.response = create_error_response(
                f"Could not authenticate: {e}", f"service:{service.id}", Status.AUTHERROR
            )
            return exchange
        exchange.request = replace(exchange.request, auth=auth)
    return exchange


async def connect(service: Service, exchange: Exchange) -> Exchange:
    """Connect, reusing the cached connection when the adapter returns it unchanged."""
    if exchange.response is not None or exchange.endpoint is None:
        return exchange

    cached = service.connection_cache.get()
    try:
        connection = await service.adapter.connect(
            exchange.endpoint.options, exchange.request.auth, cached
        )
    except Exception as e:
        connection = {"status": Status.ERROR.value, "error": str(e)}

    if cached is not None and connection is cached:
        exchange.connection = cached
        return exchange

    status = connection.get("status") if isinstance(connection, dict) else None
    if status == Status.OK:
        service.connection_cache.set(connection)
        exchange.connection = connection
    elif status == Status.NOACTION:
        service.connection_cache.clear()
        exchange.connection = None
    else:
        service.connection_cache.clear()
        error = connection.get("error") if isinstance(connection, dict) else None
        logger.warning("Connection failed", extra=_log_extra(service, exchange, error=error))
        exchange.response = create_error_response(
            f"Could not connect to service '{service.id}': {error}", f"service:{service.id}"
        )
    return exchange


async def send_request(service: Service, exchange: Exchange) -> Exchange:
    """Send the request through the adapter, unless access was refused."""
    if exchange.response is not None:
        return exchange
    request = exchange.request
    if exchange.endpoint is None:
        exchange.response = create_error_response(
            f"No endpoint matching request to service '{service.id}'.", f"service:{service.id}"
        )
        return exchange
    if _refuse_unauthorized(service, exchange):
        return exchange

    try:
        response = await service.adapter.send(request)
        exchange.response = await exchange.endpoint.normalize(response, request)
    except Exception as e:
        logger.error("Send failed", extra=_log_extra(service, exchange), exc_info=True)
        exchange.response = create_error_response(
            f"Error while sending to service '{service.id}': {e}", f"service:{service.id}"
        )
    return exchange


async def map_response_from_service(service: Service, exchange: Exchange) -> Exchange:
    """Map ok responses to internal items, unless unmapped data was asked for."""
    response = exchange.response
    request = exchange.request
    if response is None or not response.is_ok or exchange.endpoint is None:
        return exchange
    if request.params.get("unmapped"):
        return exchange
    try:
        response = exchange.endpoint.map_response(response, request)
        if response.is_ok and response.data is not None:
            response = replace(response, data=service.map_from_service(response.data, request, response))
        exchange.response = response
    except Exception as e:
        logger.error("Mapping response failed", extra=_log_extra(service, exchange), exc_info=True)
        exchange.response = create_error_response(
            f"Could not map response from service '{service.id}': {e}", f"service:{service.id}"
        )
    return exchange


async def authorize_response_stage(service: Service, exchange: Exchange) -> Exchange:
    if exchange.response is None:
        return exchange
    exchange.response = authorize_response(
        exchange.response, exchange.request, service.schemas, service.require_auth
    )
    return exchange


SEND_STAGES: tuple[Stage, ...] = (
    guard_action,
    cast_request_data,
    authorize_request_stage,
    snapshot_request_data,
    map_request_to_service,
    authenticate,
    connect,
    send_request,
    map_response_from_service,
    authorize_response_stage,
)


async def run_stages(service: Service, exchange: Exchange, stages: tuple[Stage, ...] = SEND_STAGES) -> Exchange:
    """Run an exchange through the stages, in order."""
    for stage in stages:
        exchange = await stage(service, exchange)
    return exchange
