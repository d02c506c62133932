"""
Access scheme decisions.

is_granted() decides whether an ident satisfies one resolved access scheme
(see schema.access.access_for_action). It is used at two levels:
- Request level, before the item data is known
- Item level, once per item, where roleFromField/identFromField are
  checked against the item's own fields

Decision order:
    1. 'allow': all grants, auth grants an ident with an id, none refuses
    2. roleFromField/identFromField: request level grants any ident,
       item level compares the item field to the ident
    3. role/ident: grants on membership
    4. Empty scheme: grants unless auth is required and there is no ident

Invariants:
    - Pure functions; no I/O and no logging
    - Root identities are handled by callers, before a scheme is evaluated
"""

from __future__ import annotations

from typing import Any

from ..types import Ident
from ..utils import MISSING, ensure_array, get_path


def has_identity(ident: Ident | None) -> bool:
    return ident is not None and ident.id is not None


def _matches_field(item: Any, path: str, candidates: tuple[str, ...] | list[str]) -> bool:
    value = get_path(item, path)
    return any(entry in candidates for entry in ensure_array(value))


def _is_granted_by_fields(scheme: dict[str, Any], ident: Ident | None, item: Any) -> bool:
    if not has_identity(ident):
        return False
    if item is MISSING:
        return True
    role_field = scheme.get("roleFromField")
    ident_field = scheme.get("identFromField")
    if role_field and _matches_field(item, role_field, ident.roles):
        return True
    if ident_field and _matches_field(item, ident_field, [ident.id]):
        return True
    return False


def is_granted(
    scheme: dict[str, Any],
    ident: Ident | None,
    require_auth: bool = False,
    item: Any = MISSING,
) -> bool:
    """Decide whether an ident is granted by an access scheme.

    Args:
        scheme: Resolved access scheme
        ident: Identity to check, None for an anonymous request
        require_auth: The service authenticates its requests
        item: Item to check field based rules against; MISSING at request level

    Returns:
        True if access is granted
    """
    allow = scheme.get("allow")
    if allow is not None:
        if allow == "all":
            return True
        if allow == "auth":
            return has_identity(ident)
        return False

    if scheme.get("roleFromField") or scheme.get("identFromField"):
        return _is_granted_by_fields(scheme, ident, item)

    roles = scheme.get("role") or []
    idents = scheme.get("ident") or []
    if roles or idents:
        if not has_identity(ident):
            return False
        return any(role in ident.roles for role in roles) or ident.id in idents

    return not require_auth or has_identity(ident)
