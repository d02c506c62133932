"""
Adapter and Authenticator protocols.

Services reach the outside world only through these two interfaces:
- Adapter: prepares options, connects, sends requests and translates
  between the pipeline's Request/Response and a service's wire format
- Authenticator: obtains and validates an authentication, and derives
  transport auth from it with a scheme method named by the adapter

Scheme methods:
    An adapter declares `authentication = "as_http_headers"`; the service's
    authenticator must then have a method `as_http_headers(authentication)`.
    The method is looked up once, when the service is built.

Invariants:
    - Adapters and authenticators may raise; the pipeline turns exceptions
      into error responses
    - A connection is an opaque dict with at least a 'status' key

How to change safely:
    - New protocol methods must be additive
    - Keep adapter hooks async; transport I/O may happen in any of them
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Callable, Protocol, runtime_checkable

from ..types import Authentication, Request, Response

Connection = dict[str, Any]
AuthScheme = Callable[[Authentication], Any]


@runtime_checkable
class Adapter(Protocol):
    """Protocol for service adapters.

    Attributes:
        authentication: Name of the authenticator method that turns an
            authentication into transport auth, or None

    Example:
        >>> adapter = InMemoryAdapter()
        >>> connection = await adapter.connect(options, None, None)
        >>> response = await adapter.send(request)
    """

    authentication: str | None

    @abstractmethod
    def prepare_options(self, options: dict[str, Any], service_id: str) -> dict[str, Any]:
        """Prepare endpoint options. Called once per endpoint at setup."""
        ...

    @abstractmethod
    async def connect(
        self,
        options: dict[str, Any],
        auth: Any,
        connection: Connection | None,
    ) -> Connection:
        """Connect, or return the given connection if it is still usable.

        Args:
            options: Prepared endpoint options
            auth: Transport auth for the request, if any
            connection: The cached connection, if any

        Returns:
            Connection dict with status 'ok', 'noaction' or an error status
        """
        ...

    @abstractmethod
    async def send(self, request: Request) -> Response:
        """Send a serialized request and return the raw response."""
        ...

    @abstractmethod
    async def normalize(self, response: Response, request: Request) -> Response:
        """Translate a raw response into plain data."""
        ...

    @abstractmethod
    async def serialize(self, request: Request) -> Request:
        """Translate a request's plain data into the wire format."""
        ...


@runtime_checkable
class Authenticator(Protocol):
    """Protocol for authenticators."""

    @abstractmethod
    async def authenticate(self, options: dict[str, Any]) -> Authentication:
        """Authenticate with the given options.

        Returns:
            Authentication with status granted, refused, error or timeout
        """
        ...

    @abstractmethod
    def is_authenticated(self, authentication: Authentication | None) -> bool:
        """Check whether an earlier authentication is still valid."""
        ...
