"""
Item-level authorization.

authorize_items() filters items by the access scheme of each item's type
and reports how much of the input survived:
- granted: every item passed
- partially: some items passed
- refused: no item passed

Invariants:
    - A refused access or empty input gives None, i.e. nothing to report
    - The result has the same form as the input: a list for a list, an
      item (or None) for a single item
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..types import Access, AccessStatus, Ident
from ..utils import ensure_array
from .scheme import is_granted


@dataclass(frozen=True)
class AuthorizedItems:
    """Items that passed authorization, with the resulting access."""

    data: Any
    access: Access


def authorize_item(
    item: Any,
    ident: Ident | None,
    schemas: Mapping[str, Any],
    action: str | None,
    require_auth: bool = False,
) -> bool:
    """Authorize one item by the access scheme of its $type.

    Only root may act on raw items, i.e. items without a $type or of a type
    with no schema.
    """
    if ident is not None and ident.root:
        return True
    if not isinstance(item, dict):
        return False
    type_name = item.get("$type")
    schema = schemas.get(type_name) if isinstance(type_name, str) else None
    if schema is None:
        return False
    return is_granted(schema.access_for_action(action), ident, require_auth, item=item)


def authorize_items(
    data: Any,
    access: Access | None,
    schemas: Mapping[str, Any],
    action: str | None,
    require_auth: bool = False,
) -> AuthorizedItems | None:
    """Filter data to the items the access ident may see.

    Args:
        data: Item or list of items
        access: Request-level access decision
        schemas: Schema registry
        action: Action verb, for action specific schemes
        require_auth: The service authenticates its requests

    Returns:
        Authorized items with an access of scheme 'data', or None when access
        was already refused or there were no items
    """
    if access is None or access.is_refused:
        return None
    items = ensure_array(data)
    if not items:
        return None

    ident = access.ident
    authorized = [
        item for item in items if authorize_item(item, ident, schemas, action, require_auth)
    ]
    if len(authorized) == len(items):
        status = AccessStatus.GRANTED
    elif authorized:
        status = AccessStatus.PARTIALLY
    else:
        status = AccessStatus.REFUSED

    if isinstance(data, list):
        result: Any = authorized
    else:
        result = authorized[0] if authorized else None
    return AuthorizedItems(data=result, access=Access(status=status, ident=ident, scheme="data"))
