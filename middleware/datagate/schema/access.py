"""
Access scheme resolution for schemas.

A schema declares who may act on its items:

    access = {
        "allow": "auth",
        "actions": {"SET": {"role": "admin"}, "DELETE": "none"},
    }

access_for_action() resolves the scheme that applies to one action type.
An entry in 'actions' is keyed by the action type prefix (the text before
the first '_'), and replaces the whole scheme when it applies.

Invariants:
    - An undeclared access (MISSING) gives {}, i.e. no restriction
    - An explicit None gives {"allow": "none"}
    - 'allow' is always one of all, auth or none when present
    - 'role' and 'ident' are always lists when present
    - The returned scheme never includes 'actions'
"""

from __future__ import annotations

from typing import Any

from ..utils import MISSING, ensure_array

ALLOW_VALUES = ("all", "auth", "none")


def action_prefix(action_type: str | None) -> str | None:
    """Get the part of an action type before the first '_'."""
    if not action_type:
        return None
    return action_type.split("_", 1)[0]


def normalize_access(access: Any) -> Any:
    """Normalize an access definition given as a string into a dict.

    MISSING and None are returned as is.
    """
    if isinstance(access, str):
        return {"allow": access}
    return access


def _normalize_scheme(access: dict[str, Any]) -> dict[str, Any]:
    scheme: dict[str, Any] = {}
    allow = access.get("allow")
    if allow is not None:
        scheme["allow"] = allow if allow in ALLOW_VALUES else "none"
    for key in ("role", "ident"):
        if access.get(key) is not None:
            scheme[key] = ensure_array(access[key])
    for key in ("roleFromField", "identFromField"):
        if access.get(key) is not None:
            scheme[key] = access[key]
    return scheme


def access_for_action(access: Any = MISSING, action_type: str | None = None) -> dict[str, Any]:
    """Resolve the access scheme for an action type.

    Args:
        access: Access definition (dict, string, None or MISSING)
        action_type: Action type, e.g. 'GET' or 'SET_META'

    Returns:
        Normalized access scheme

    Example:
        >>> access_for_action({"allow": "all", "actions": {"SET": "auth"}}, "SET")
        {'allow': 'auth'}
    """
    if access is MISSING:
        return {}
    if access is None:
        return {"allow": "none"}

    access = normalize_access(access)
    if not isinstance(access, dict):
        return {"allow": "none"}

    actions = access.get("actions")
    prefix = action_prefix(action_type)
    if isinstance(actions, dict) and prefix is not None and prefix in actions:
        return access_for_action(actions[prefix])

    return _normalize_scheme(access)
