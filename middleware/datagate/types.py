"""
Core value types for Datagate.

This module defines the data passed through the send pipeline:
- Status / AccessStatus / AuthStatus vocabularies
- Ident: the identity issuing an action
- Action and Payload: what comes in at dispatch
- Request and Response: what flows through a service pipeline
- Access: an authorization decision attached to requests and responses
- Authentication: what an authenticator returns

Invariants:
    - Response.status is always a Status member
    - Access.status is always an AccessStatus member
    - to_dict() output omits unset optional keys

How to change safely:
    - New statuses are additive; never rename existing values
    - Keep from_dict() tolerant of unknown keys
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Status(str, Enum):
    """Response status vocabulary."""

    OK = "ok"
    QUEUED = "queued"
    NOACTION = "noaction"
    NOTFOUND = "notfound"
    NOACCESS = "noaccess"
    AUTHERROR = "autherror"
    TIMEOUT = "timeout"
    ERROR = "error"


class AccessStatus(str, Enum):
    """Outcome of an authorization decision."""

    GRANTED = "granted"
    PARTIALLY = "partially"
    REFUSED = "refused"


class AuthStatus(str, Enum):
    """Outcome of an authenticator call."""

    GRANTED = "granted"
    REFUSED = "refused"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Ident:
    """Identity issuing an action.

    Attributes:
        id: Identity id, None for an anonymous ident
        roles: Roles held by the identity
        root: Root identities bypass all access checks
        tokens: External tokens the identity is known by
    """

    id: str | None = None
    roles: tuple[str, ...] = ()
    root: bool = False
    tokens: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Ident | None:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise TypeError(f"ident must be an object, got {type(data).__name__}")
        return cls(
            id=data.get("id"),
            roles=tuple(data.get("roles") or ()),
            root=bool(data.get("root", False)),
            tokens=tuple(data.get("tokens") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id}
        if self.roles:
            result["roles"] = list(self.roles)
        if self.root:
            result["root"] = True
        if self.tokens:
            result["tokens"] = list(self.tokens)
        return result


_PAYLOAD_FIELDS = ("type", "id", "data", "service", "endpoint")


@dataclass
class Payload:
    """Action payload.

    Anything beyond the named fields is kept in params, e.g. `unmapped`,
    `onlyMappedValues` or service specific query params.
    """

    type: str | list[str] | None = None
    id: str | list[str] | None = None
    data: Any = None
    service: str | None = None
    endpoint: str | None = None
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Payload:
        data = dict(data or {})
        params = dict(data.pop("params", None) or {})
        known = {key: data.pop(key) for key in _PAYLOAD_FIELDS if key in data}
        params.update(data)
        return cls(**known, params=params)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a named field or a param by key."""
        if key in _PAYLOAD_FIELDS:
            value = getattr(self, key)
            return default if value is None else value
        return self.params.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a single dict, omitting unset fields."""
        result = {key: getattr(self, key) for key in _PAYLOAD_FIELDS if getattr(self, key) is not None}
        result.update(self.params)
        return result


@dataclass
class Action:
    """An action dispatched to Datagate.

    Attributes:
        type: Action verb, e.g. GET, SET, DELETE or REQUEST
        payload: Action payload
        ident: Identity issuing the action, if any
        meta: Other meta values
    """

    type: str
    payload: Payload = field(default_factory=Payload)
    ident: Ident | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        """Create from a plain action dict `{type, payload, meta: {ident}}`."""
        meta = dict(data.get("meta") or {})
        ident = meta.pop("ident", None)
        return cls(
            type=data["type"],
            payload=Payload.from_dict(data.get("payload")),
            ident=ident if isinstance(ident, Ident) or ident is None else Ident.from_dict(ident),
            meta=meta,
        )

    def to_dict(self) -> dict[str, Any]:
        meta = dict(self.meta)
        if self.ident is not None:
            meta["ident"] = self.ident.to_dict()
        return {"type": self.type, "payload": self.payload.to_dict(), "meta": meta}


@dataclass(frozen=True)
class Access:
    """An authorization decision.

    Attributes:
        status: Decision outcome
        ident: Identity the decision was made for
        scheme: The access scheme evaluated, or a label such as 'root',
            'data', 'service' or 'unmapped'
    """

    status: AccessStatus
    ident: Ident | None = None
    scheme: Any = None

    @property
    def is_refused(self) -> bool:
        return self.status == AccessStatus.REFUSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "ident": self.ident.to_dict() if self.ident else None,
            "scheme": self.scheme,
        }


@dataclass
class Request:
    """A request flowing through a service pipeline.

    Attributes:
        action: Action verb
        params: Payload params, including type and id
        data: Request data, cast and later mapped to the service shape
        endpoint: Prepared endpoint options
        ident: Identity issuing the request
        access: Request-level authorization decision
        auth: Transport auth payload derived from the authentication
        meta: Action meta values
    """

    action: str
    params: dict[str, Any] = field(default_factory=dict)
    data: Any = None
    endpoint: dict[str, Any] = field(default_factory=dict)
    ident: Ident | None = None
    access: Access | None = None
    auth: Any = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_mapping(self) -> dict[str, Any]:
        """Plain dict that request mutations operate on."""
        ident = self.ident
        return {
            "action": self.action,
            "params": dict(self.params),
            "data": self.data,
            "options": dict(self.endpoint),
            "ident": ident.to_dict() if ident else None,
            "meta": dict(self.meta),
        }

    def with_mapping(self, mapped: Any) -> Request:
        """Return a copy with data, params and options taken from a mutated mapping."""
        if not isinstance(mapped, dict):
            return replace(self, data=mapped)
        return replace(
            self,
            data=mapped.get("data"),
            params=mapped.get("params", self.params) or {},
            endpoint=mapped.get("options", self.endpoint) or {},
        )


@dataclass
class Response:
    """Outcome of an action.

    Attributes:
        status: Response status
        data: Response data
        error: Error message for non-ok statuses
        access: Authorization decision for the data
        paging: Paging info returned by the service
        params: Params returned by the service
        origin: Where an error originated
    """

    status: Status
    data: Any = None
    error: str | None = None
    access: Access | None = None
    paging: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    origin: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Response:
        return cls(
            status=Status(data["status"]),
            data=data.get("data"),
            error=data.get("error"),
            paging=data.get("paging"),
            params=data.get("params"),
            origin=data.get("origin"),
        )

    def to_mapping(self) -> dict[str, Any]:
        """Plain dict that response mutations operate on."""
        return {
            "status": self.status.value,
            "data": self.data,
            "error": self.error,
            "paging": self.paging,
            "params": self.params,
        }

    def with_mapping(self, mapped: Any) -> Response:
        if not isinstance(mapped, dict):
            return replace(self, data=mapped)
        status = mapped.get("status", self.status)
        return replace(
            self,
            status=Status(status) if status is not None else self.status,
            data=mapped.get("data"),
            error=mapped.get("error", self.error),
            paging=mapped.get("paging", self.paging),
            params=mapped.get("params", self.params),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the action boundary shape, omitting unset keys."""
        result: dict[str, Any] = {"status": self.status.value}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.access is not None:
            result["access"] = self.access.to_dict()
        if self.paging is not None:
            result["paging"] = self.paging
        if self.params is not None:
            result["params"] = self.params
        if self.origin is not None:
            result["origin"] = self.origin
        return result


@dataclass(frozen=True)
class Authentication:
    """Result of an authenticator call.

    Attributes:
        status: One of AuthStatus, kept as a plain string so unknown
            statuses from third-party authenticators survive
        error: Error message for failed authentications
        payload: Tokens or other values the authenticator issued
    """

    status: str
    error: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_granted(self) -> bool:
        return self.status == AuthStatus.GRANTED


def create_error_response(
    error: str,
    origin: str | None = None,
    status: Status = Status.ERROR,
) -> Response:
    """Create a response carrying an error.

    Args:
        error: Error message
        origin: Where the error originated, e.g. 'service:entries'
        status: Response status, 'error' by default

    Returns:
        Response with the given status and error
    """
    return Response(status=status, error=error, origin=origin)
