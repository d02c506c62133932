"""
Integration tests for Integration dispatch with the in-memory adapter.

Tests cover:
- Routing by payload service and by schema service
- GET, SET and DELETE through mappings, casts and access checks
- Dispatch errors for unknown actions, types and invalid actions
- Definition errors at setup
"""

import pytest

from middleware.datagate.adapters import InMemoryAdapter
from middleware.datagate.config import Settings
from middleware.datagate.errors import DefinitionError
from middleware.datagate.instance import Integration
from middleware.datagate.types import AccessStatus, Status

SCHEMAS = [
    {"id": "user", "service": "users", "shape": {"name": "string"}, "access": "all"},
    {
        "id": "article",
        "service": "articles",
        "shape": {"title": "string", "author": "user"},
        "access": {"allow": "auth", "actions": {"DELETE": {"role": "admin"}}},
    },
]

SERVICES = [
    {
        "id": "articles",
        "adapter": "memory",
        "options": {"collection": "articles", "idKey": "key"},
        "mappings": {"article": "article_raw"},
        "endpoints": [{"id": "articles"}],
    },
    {
        "id": "users",
        "adapter": "memory",
        "mappings": {"user": {"$iterate": True, "id": "id", "name": "fullName"}},
        "endpoints": [{"match": {"action": "GET"}}],
    },
]

MUTATIONS = {
    "article_raw": {"$iterate": True, "id": "key", "title": "headline", "author": "writer"},
}

JOHNF = {"id": "johnf", "roles": ["editor"]}
ADMIN = {"id": "admin1", "roles": ["admin"]}


class TestDispatch:
    """Integration tests for dispatching actions."""

    @pytest.fixture
    def adapter(self):
        adapter = InMemoryAdapter()
        adapter.seed("articles", [{"key": "art1", "headline": "First", "writer": "johnf"}], id_key="key")
        adapter.seed("users", [{"id": "johnf", "fullName": "John F."}])
        return adapter

    @pytest.fixture
    def integration(self, adapter):
        return Integration(
            schemas=SCHEMAS,
            services=SERVICES,
            adapters={"memory": adapter},
            mutations=MUTATIONS,
            settings=Settings(),
        )

    @pytest.mark.asyncio
    async def test_get_member(self, integration):
        """A member is fetched, mapped and cast."""
        response = await integration.dispatch(
            {"type": "GET", "payload": {"type": "article", "id": "art1"}, "meta": {"ident": JOHNF}}
        )

        assert response.status == Status.OK
        assert response.data == {
            "$type": "article",
            "id": "art1",
            "title": "First",
            "author": {"id": "johnf", "$ref": "user"},
        }
        assert response.access.status == AccessStatus.GRANTED

    @pytest.mark.asyncio
    async def test_get_collection(self, integration, adapter):
        """A collection is fetched as a list."""
        adapter.seed("articles", [{"key": "art2", "headline": "Second"}], id_key="key")

        response = await integration.dispatch(
            {"type": "GET", "payload": {"type": "article"}, "meta": {"ident": JOHNF}}
        )

        assert response.status == Status.OK
        assert [item["id"] for item in response.data] == ["art1", "art2"]

    @pytest.mark.asyncio
    async def test_get_not_found(self, integration):
        """An unknown id gives notfound."""
        response = await integration.dispatch(
            {"type": "GET", "payload": {"type": "article", "id": "art404"}, "meta": {"ident": JOHNF}}
        )
        assert response.status == Status.NOTFOUND

    @pytest.mark.asyncio
    async def test_get_requires_identity(self, integration, adapter):
        """Anonymous requests are refused and never sent."""
        response = await integration.dispatch({"type": "GET", "payload": {"type": "article", "id": "art1"}})

        assert response.status == Status.NOACCESS
        assert adapter.send_count == 0

    @pytest.mark.asyncio
    async def test_set(self, integration, adapter):
        """SET maps the item to the service shape and returns it cast."""
        response = await integration.dispatch(
            {
                "type": "SET",
                "payload": {"type": "article", "data": {"id": "art2", "title": "Second", "author": "lucyk"}},
                "meta": {"ident": JOHNF},
            }
        )

        assert response.status == Status.OK
        assert response.data == [
            {"$type": "article", "id": "art2", "title": "Second", "author": {"id": "lucyk", "$ref": "user"}}
        ]
        assert {"key": "art2", "headline": "Second", "writer": {"id": "lucyk"}} in adapter.records("articles")

    @pytest.mark.asyncio
    async def test_delete_requires_admin(self, integration, adapter):
        """DELETE is refused for non-admins."""
        response = await integration.dispatch(
            {"type": "DELETE", "payload": {"type": "article", "id": "art1"}, "meta": {"ident": JOHNF}}
        )

        assert response.status == Status.NOACCESS
        assert len(adapter.records("articles")) == 1

    @pytest.mark.asyncio
    async def test_delete(self, integration, adapter):
        """DELETE removes the item for admins."""
        response = await integration.dispatch(
            {"type": "DELETE", "payload": {"type": "article", "id": "art1"}, "meta": {"ident": ADMIN}}
        )

        assert response.status == Status.OK
        assert response.params == {"deleted": ["art1"]}
        assert adapter.records("articles") == []

    @pytest.mark.asyncio
    async def test_route_by_schema_service(self, integration):
        """Types are routed to their schema's service."""
        response = await integration.dispatch({"type": "GET", "payload": {"type": "user", "id": "johnf"}})

        assert response.status == Status.OK
        assert response.data == {"$type": "user", "id": "johnf", "name": "John F."}

    @pytest.mark.asyncio
    async def test_route_by_payload_service(self, integration):
        """payload.service overrides the schema's service."""
        response = await integration.dispatch(
            {"type": "GET", "payload": {"type": "user", "id": "johnf", "service": "articles"}}
        )

        assert response.status == Status.NOTFOUND

    @pytest.mark.asyncio
    async def test_no_endpoint(self, integration, adapter):
        """Actions without a matching endpoint give an error."""
        response = await integration.dispatch(
            {"type": "SET", "payload": {"type": "user", "data": {"id": "lucyk"}}}
        )

        assert response.status == Status.ERROR
        assert response.error == "No endpoint matching request to service 'users'."
        assert adapter.send_count == 0

    @pytest.mark.asyncio
    async def test_unknown_action(self, integration):
        """Unknown verbs give noaction."""
        response = await integration.dispatch({"type": "SYNC", "payload": {"type": "article"}})
        assert response.status == Status.NOACTION

    @pytest.mark.asyncio
    async def test_no_service(self, integration):
        """Types without a service give an error."""
        response = await integration.dispatch({"type": "GET", "payload": {"type": "comment"}})

        assert response.status == Status.ERROR
        assert response.error == "No service exists for 'comment'"
        assert response.origin == "dispatch"

    @pytest.mark.asyncio
    async def test_invalid_action(self, integration):
        """Malformed actions give an error."""
        response = await integration.dispatch({"payload": {"type": "article"}})

        assert response.status == Status.ERROR
        assert response.error.startswith("Invalid action")

    @pytest.mark.asyncio
    async def test_invalid_ident(self, integration, adapter):
        """An ident that is not an object gives an error response."""
        response = await integration.dispatch(
            {"type": "GET", "payload": {"type": "article"}, "meta": {"ident": "johnf"}}
        )

        assert response.status == Status.ERROR
        assert response.error == "Invalid action: ident must be an object, got str"
        assert response.origin == "dispatch"
        assert adapter.send_count == 0

    @pytest.mark.asyncio
    async def test_run_returns_exchange(self, integration):
        """run() exposes the request as sent."""
        exchange = await integration.run(
            {"type": "GET", "payload": {"type": "article", "id": "art1"}, "meta": {"ident": JOHNF}}
        )

        assert exchange.endpoint.id == "articles"
        assert exchange.request.endpoint == {"collection": "articles", "idKey": "key"}
        assert exchange.connection["status"] == "ok"


class TestSetup:
    """Tests for definition errors at setup."""

    def test_duplicate_service(self):
        """Service ids are unique."""
        with pytest.raises(DefinitionError):
            Integration(
                schemas=[],
                services=[{"id": "users", "adapter": "memory"}, {"id": "users", "adapter": "memory"}],
                adapters={"memory": InMemoryAdapter()},
                settings=Settings(),
            )

    def test_unknown_schema_service(self):
        """Schemas must reference defined services."""
        with pytest.raises(DefinitionError):
            Integration(
                schemas=[{"id": "user", "service": "users"}],
                services=[],
                adapters={},
                settings=Settings(),
            )

    def test_unknown_adapter(self):
        """Services must reference known adapters."""
        with pytest.raises(DefinitionError):
            Integration(
                schemas=[],
                services=[{"id": "users", "adapter": "http"}],
                adapters={"memory": InMemoryAdapter()},
                settings=Settings(),
            )

    def test_unknown_authenticator(self):
        """Services must reference known authenticators."""
        with pytest.raises(DefinitionError):
            Integration(
                schemas=[],
                services=[{"id": "users", "adapter": "memory", "auth": "token"}],
                adapters={"memory": InMemoryAdapter()},
                settings=Settings(),
            )

    def test_invalid_settings(self):
        """Invalid settings are rejected."""
        with pytest.raises(DefinitionError):
            Integration(
                schemas=[],
                services=[],
                adapters={},
                settings=Settings(log_format="xml"),
            )

    def test_generate_ids_setting(self):
        """generate_ids is the default for schemas."""
        integration = Integration(
            schemas=[{"id": "user"}],
            services=[],
            adapters={},
            settings=Settings(generate_ids=True),
        )
        assert integration.schemas["user"].generate_id is True
