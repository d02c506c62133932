"""
Request-level authorization.

authorize_request() makes the decision for a whole request before any item
is looked at. A refusal is recorded on the request and enforced when the
request is about to be sent.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..types import Access, AccessStatus, Request
from ..utils import ensure_array
from .scheme import is_granted

logger = logging.getLogger(__name__)


def authorize_request(
    request: Request,
    schemas: Mapping[str, Any],
    require_auth: bool = False,
) -> Access:
    """Authorize a request against the access schemes of its types.

    Args:
        request: Request to authorize
        schemas: Schema registry
        require_auth: The service authenticates its requests

    Returns:
        Access decision. Root idents are granted with scheme 'root'; requests
        without a type are granted with no scheme; a type without a schema is
        refused.
    """
    ident = request.ident
    if ident is not None and ident.root:
        return Access(status=AccessStatus.GRANTED, ident=ident, scheme="root")

    types = ensure_array(request.params.get("type"))
    if not types:
        return Access(status=AccessStatus.GRANTED, ident=ident, scheme=None)

    schemes: dict[str, Any] = {}
    for type_name in types:
        schema = schemas.get(type_name)
        if schema is None:
            logger.debug("Request refused, no schema", extra={"type": type_name, "action": request.action})
            return Access(status=AccessStatus.REFUSED, ident=ident, scheme=None)
        scheme = schema.access_for_action(request.action)
        schemes[type_name] = scheme
        if not is_granted(scheme, ident, require_auth):
            logger.debug(
                "Request refused",
                extra={"type": type_name, "action": request.action, "scheme": scheme},
            )
            return Access(status=AccessStatus.REFUSED, ident=ident, scheme=scheme)

    scheme = schemes[types[0]] if len(types) == 1 else schemes
    return Access(status=AccessStatus.GRANTED, ident=ident, scheme=scheme)
