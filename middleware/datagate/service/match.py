"""
Endpoint matching and specificity ranking.

Every endpoint of a service has a MatchObject. An action matches an
endpoint when all of these hold:

    id       the action pins no endpoint, or pins this one
    type     absent, or shares a type with the action
    scope    absent, or equals the action's scope (member, members, collection)
    action   absent, or includes the action verb
    params   every required param (True) has a value on the action
    filters  every filter accepts the action

Endpoints are sorted most specific first, once, and the first match wins:

    1. has type              6. has scope
    2. scalar type           7. scalar scope
    3. more required params  8. has action
    4. more optional params  9. scalar action
    5. more filters         10. has id

Invariants:
    - The sort is stable; re-sorting a sorted list changes nothing
    - A catch-all endpoint ({}) sorts after every narrower endpoint
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence, TypeVar

from ..errors import DefinitionError
from ..types import Action
from ..utils import ensure_array
from .filters import Filter, compile_filters

SCOPES = ("collection", "member", "members")


@dataclass(frozen=True)
class MatchObject:
    """Match criteria of an endpoint.

    Attributes:
        action: Action verb or list of verbs
        type: Type id or list of type ids
        scope: Scope or list of scopes
        params: Param name -> True for required, False for optional
        filters: Compiled filters
    """

    action: str | tuple[str, ...] | None = None
    type: str | tuple[str, ...] | None = None
    scope: str | tuple[str, ...] | None = None
    params: dict[str, bool] = field(default_factory=dict)
    filters: tuple[Filter, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MatchObject:
        data = data or {}
        scope = data.get("scope")
        if scope == "all":
            scope = None
        unknown = [entry for entry in ensure_array(scope) if entry not in SCOPES]
        if unknown:
            raise DefinitionError(f"Unknown endpoint scope: {', '.join(map(str, unknown))}")
        return cls(
            action=_freeze(data.get("action")),
            type=_freeze(data.get("type")),
            scope=_freeze(scope),
            params={key: bool(value) for key, value in (data.get("params") or {}).items()},
            filters=compile_filters(data.get("filters")),
        )


def _freeze(value: Any) -> Any:
    return tuple(value) if isinstance(value, list) else value


def _includes(criterion: Any, values: Iterable[Any]) -> bool:
    allowed = criterion if isinstance(criterion, tuple) else (criterion,)
    return any(value in allowed for value in values)


def scope_of(action: Action) -> str:
    """Get the scope an action requests, from its id param."""
    item_id = action.payload.id
    if isinstance(item_id, list):
        return "members"
    if item_id:
        return "member"
    return "collection"


def is_match(match: MatchObject, endpoint_id: str | None, action: Action) -> bool:
    """Check whether an action matches an endpoint.

    Args:
        match: Match criteria of the endpoint
        endpoint_id: Id of the endpoint, if any
        action: Action to match

    Returns:
        True if every criterion holds
    """
    payload = action.payload
    if payload.endpoint is not None and payload.endpoint != endpoint_id:
        return False
    if match.type is not None and not _includes(match.type, ensure_array(payload.type)):
        return False
    if match.scope is not None and not _includes(match.scope, [scope_of(action)]):
        return False
    if match.action is not None and not _includes(match.action, [action.type]):
        return False
    for key, required in match.params.items():
        if required and payload.get(key) is None:
            return False
    if match.filters:
        action_dict = action.to_dict()
        if not all(check(action_dict) for check in match.filters):
            return False
    return True


def specificity_key(match: MatchObject, endpoint_id: str | None) -> tuple:
    """Sort key ordering endpoints most specific first."""
    required = sum(1 for value in match.params.values() if value)
    optional = len(match.params) - required
    return (
        match.type is None,
        isinstance(match.type, tuple),
        -required,
        -optional,
        -len(match.filters),
        match.scope is None,
        isinstance(match.scope, tuple),
        match.action is None,
        isinstance(match.action, tuple),
        endpoint_id is None,
    )


class Matchable(Protocol):
    id: str | None
    match: MatchObject

    def is_match(self, action: Action) -> bool:
        ...


E = TypeVar("E", bound=Matchable)


def compare_endpoints(a: Matchable, b: Matchable) -> int:
    """Compare two endpoints by specificity.

    Returns:
        Negative if a is more specific, positive if b is, 0 if equal
    """
    key_a = specificity_key(a.match, a.id)
    key_b = specificity_key(b.match, b.id)
    return (key_a > key_b) - (key_a < key_b)


def sort_endpoints(endpoints: Iterable[E]) -> list[E]:
    """Sort endpoints most specific first. Stable for equal specificity."""
    return sorted(endpoints, key=lambda endpoint: specificity_key(endpoint.match, endpoint.id))


def match_endpoint(endpoints: Sequence[E], action: Action) -> E | None:
    """Select the first matching endpoint from a sorted list."""
    for endpoint in endpoints:
        if endpoint.is_match(action):
            return endpoint
    return None
