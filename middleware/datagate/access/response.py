"""
Response authorization.

authorize_response() runs item-level authorization over mapped response
data. Unmapped responses skip item authorization; only root may see them.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from ..types import Access, AccessStatus, Request, Response, Status
from .items import authorize_items


def authorize_response(
    response: Response,
    request: Request,
    schemas: Mapping[str, Any],
    require_auth: bool = False,
) -> Response:
    """Authorize the data of a response.

    Args:
        response: Mapped response
        request: The request the response answers
        schemas: Schema registry
        require_auth: The service authenticates its requests

    Returns:
        The response with unauthorized items removed and access set. Status is
        downgraded to noaccess when no item survives.
    """
    if not response.is_ok:
        return response

    ident = request.ident
    if request.params.get("unmapped"):
        if ident is not None and ident.root:
            return replace(
                response,
                access=Access(status=AccessStatus.GRANTED, ident=ident, scheme="unmapped"),
            )
        return replace(
            response,
            status=Status.NOACCESS,
            data=[],
            error="Only root may receive unmapped data",
            access=Access(status=AccessStatus.REFUSED, ident=ident, scheme="unmapped"),
        )

    result = authorize_items(response.data, request.access, schemas, request.action, require_auth)
    if result is None:
        return replace(response, access=response.access or request.access)

    if result.access.is_refused:
        return replace(
            response,
            status=Status.NOACCESS,
            data=[] if isinstance(response.data, list) else None,
            error="No items in the response were authorized",
            access=result.access,
        )
    return replace(response, data=result.data, access=result.access)
