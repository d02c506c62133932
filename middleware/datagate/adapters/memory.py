"""
In-memory adapter for testing and development.

This adapter keeps raw records in memory, grouped by collection. It is NOT
a wire adapter; it exists so services can be exercised without a network.

Features:
- GET a collection, one member (id) or several members (id list)
- SET (upsert) one record or a list of records
- DELETE by data or by id param
- Call counters and a log of sent requests for assertions

Endpoint options:
    collection  Collection to use; defaults to the service id
    idKey       Key holding the record id; defaults to 'id'

Example:
    >>> adapter = InMemoryAdapter()
    >>> adapter.seed("entries", [{"id": "ent1", "title": "Entry 1"}])
    >>> response = await adapter.send(request)
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from typing import Any

from ..service.protocols import Connection
from ..types import Request, Response, Status, create_error_response
from ..utils import ensure_array

logger = logging.getLogger(__name__)


class InMemoryAdapter:
    """In-memory Adapter implementation.

    Thread-safety:
        Uses asyncio.Lock for concurrent access within a single event loop.
        NOT safe for multi-threaded access.

    Args:
        authentication: Name of the authenticator scheme to derive auth with
        refuse_connect: Make connect() fail, for testing connection errors
    """

    def __init__(self, authentication: str | None = None, refuse_connect: bool = False) -> None:
        self.authentication = authentication
        self.refuse_connect = refuse_connect
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self.connect_count = 0
        self.send_count = 0
        self.sent: list[Request] = []

    def prepare_options(self, options: dict[str, Any], service_id: str) -> dict[str, Any]:
        return {"collection": service_id, "idKey": "id", **options}

    async def connect(
        self,
        options: dict[str, Any],
        auth: Any,
        connection: Connection | None,
    ) -> Connection:
        if connection is not None and connection.get("status") == Status.OK:
            return connection
        self.connect_count += 1
        if self.refuse_connect:
            return {"status": Status.ERROR.value, "error": "Connection refused"}
        return {"status": Status.OK.value, "connectedAt": time.time(), "auth": auth}

    async def serialize(self, request: Request) -> Request:
        return request

    async def normalize(self, response: Response, request: Request) -> Response:
        return response

    async def send(self, request: Request) -> Response:
        """Handle a request against the in-memory collections."""
        self.send_count += 1
        self.sent.append(request)
        collection = request.endpoint.get("collection")
        id_key = request.endpoint.get("idKey", "id")
        if not collection:
            return create_error_response("No collection in endpoint options", "adapter:memory")

        async with self._lock:
            records = self._collections.setdefault(collection, {})
            if request.action == "GET":
                return self._get(records, request.params.get("id"))
            if request.action == "SET":
                return self._set(records, request.data, id_key)
            if request.action == "DELETE":
                return self._delete(records, request.data, request.params.get("id"), id_key)

        return Response(status=Status.NOACTION, error=f"Unsupported action '{request.action}'")

    def _get(self, records: dict[str, dict[str, Any]], item_id: Any) -> Response:
        if item_id is None:
            return Response(status=Status.OK, data=copy.deepcopy(list(records.values())))
        if isinstance(item_id, list):
            found = [copy.deepcopy(records[key]) for key in item_id if key in records]
            return Response(status=Status.OK, data=found)
        if item_id not in records:
            return Response(status=Status.NOTFOUND, error=f"Could not find '{item_id}'")
        return Response(status=Status.OK, data=copy.deepcopy(records[item_id]))

    def _set(self, records: dict[str, dict[str, Any]], data: Any, id_key: str) -> Response:
        stored = []
        for record in ensure_array(data):
            if not isinstance(record, dict) or record.get(id_key) is None:
                logger.debug("Skipping record without id", extra={"id_key": id_key})
                continue
            records[str(record[id_key])] = copy.deepcopy(record)
            stored.append(copy.deepcopy(record))
        return Response(status=Status.OK, data=stored)

    def _delete(self, records: dict[str, dict[str, Any]], data: Any, item_id: Any, id_key: str) -> Response:
        ids = [record.get(id_key) for record in ensure_array(data) if isinstance(record, dict)]
        ids.extend(ensure_array(item_id))
        deleted = [str(key) for key in ids if key is not None and records.pop(str(key), None) is not None]
        return Response(status=Status.OK, params={"deleted": deleted})

    def seed(self, collection: str, records: list[dict[str, Any]], id_key: str = "id") -> None:
        """Add raw records to a collection (for testing)."""
        target = self._collections.setdefault(collection, {})
        for record in records:
            target[str(record[id_key])] = copy.deepcopy(record)

    def records(self, collection: str) -> list[dict[str, Any]]:
        """Get a copy of the raw records in a collection (for testing)."""
        return copy.deepcopy(list(self._collections.get(collection, {}).values()))

    def clear(self) -> None:
        """Remove all records and reset counters (for testing)."""
        self._collections.clear()
        self.connect_count = 0
        self.send_count = 0
        self.sent.clear()
