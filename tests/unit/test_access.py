"""
Unit tests for access evaluation.

Tests cover:
- is_granted() decision order
- Request-level authorization
- Item-level authorization and partial grants
- Response authorization, including unmapped data
"""

import pytest

from middleware.datagate.access import (
    authorize_items,
    authorize_request,
    authorize_response,
    is_granted,
)
from middleware.datagate.schema import create_registry
from middleware.datagate.types import (
    Access,
    AccessStatus,
    Ident,
    Request,
    Response,
    Status,
)

JOHNF = Ident(id="johnf", roles=("editor",))
ADMIN = Ident(id="admin1", roles=("admin",))
ROOT = Ident(id="root", root=True)
ANONYMOUS = Ident()


@pytest.fixture
def schemas():
    """Registry with different access schemes."""
    return create_registry(
        [
            {"id": "open", "shape": {"title": "string"}},
            {"id": "closed", "shape": {"title": "string"}, "access": None},
            {
                "id": "entry",
                "shape": {"title": "string"},
                "access": {"allow": "auth", "actions": {"SET": {"role": "admin"}}},
            },
            {
                "id": "account",
                "shape": {"name": "string", "owner": "string"},
                "access": {"identFromField": "owner"},
            },
        ]
    )


def granted(ident, scheme):
    return Access(status=AccessStatus.GRANTED, ident=ident, scheme=scheme)


class TestIsGranted:
    """Tests for single scheme decisions."""

    def test_allow_values(self):
        """allow: all grants everyone, auth needs an id, none refuses."""
        assert is_granted({"allow": "all"}, None)
        assert is_granted({"allow": "auth"}, JOHNF)
        assert not is_granted({"allow": "auth"}, ANONYMOUS)
        assert not is_granted({"allow": "auth"}, None)
        assert not is_granted({"allow": "none"}, ADMIN)

    def test_roles_and_idents(self):
        """role and ident grant on membership."""
        assert is_granted({"role": ["admin"]}, ADMIN)
        assert not is_granted({"role": ["admin"]}, JOHNF)
        assert is_granted({"ident": ["johnf"]}, JOHNF)
        assert is_granted({"role": ["admin"], "ident": ["johnf"]}, JOHNF)
        assert not is_granted({"ident": ["johnf"]}, None)

    def test_from_field_at_request_level(self):
        """Field rules grant any identity before items are known."""
        assert is_granted({"identFromField": "owner"}, JOHNF)
        assert not is_granted({"identFromField": "owner"}, ANONYMOUS)

    def test_from_field_at_item_level(self):
        """Field rules compare item fields to the ident."""
        scheme = {"identFromField": "owner"}
        assert is_granted(scheme, JOHNF, item={"owner": "johnf"})
        assert not is_granted(scheme, JOHNF, item={"owner": "lucyk"})

    def test_role_from_field(self):
        """roleFromField matches any role of the ident, lists included."""
        scheme = {"roleFromField": "groups"}
        assert is_granted(scheme, JOHNF, item={"groups": ["viewer", "editor"]})
        assert not is_granted(scheme, JOHNF, item={"groups": "viewer"})

    def test_empty_scheme(self):
        """An empty scheme grants unless auth is required without an identity."""
        assert is_granted({}, None)
        assert is_granted({}, JOHNF, require_auth=True)
        assert not is_granted({}, None, require_auth=True)
        assert not is_granted({}, ANONYMOUS, require_auth=True)


class TestAuthorizeRequest:
    """Tests for request-level authorization."""

    def test_root_granted(self, schemas):
        """Root is always granted."""
        request = Request(action="GET", params={"type": "closed"}, ident=ROOT)
        assert authorize_request(request, schemas) == granted(ROOT, "root")

    def test_no_type_granted(self, schemas):
        """Requests without a type are granted with no scheme."""
        request = Request(action="GET", ident=JOHNF)
        assert authorize_request(request, schemas) == granted(JOHNF, None)

    def test_granted_with_scheme(self, schemas):
        """The resolved scheme is recorded on the access."""
        request = Request(action="GET", params={"type": "entry"}, ident=JOHNF)
        assert authorize_request(request, schemas) == granted(JOHNF, {"allow": "auth"})

    def test_action_scheme_refuses(self, schemas):
        """An action specific scheme can refuse."""
        request = Request(action="SET", params={"type": "entry"}, ident=JOHNF)
        access = authorize_request(request, schemas)
        assert access.status == AccessStatus.REFUSED
        assert access.scheme == {"role": ["admin"]}

    def test_closed_refuses(self, schemas):
        """Null access refuses even identified requests."""
        request = Request(action="GET", params={"type": "closed"}, ident=ADMIN)
        assert authorize_request(request, schemas).is_refused

    def test_several_types(self, schemas):
        """All types must grant; the schemes are recorded by type."""
        request = Request(action="GET", params={"type": ["open", "entry"]}, ident=JOHNF)
        assert authorize_request(request, schemas).scheme == {"open": {}, "entry": {"allow": "auth"}}

        request = Request(action="GET", params={"type": ["open", "closed"]}, ident=JOHNF)
        assert authorize_request(request, schemas).is_refused

    def test_unknown_type_refused(self, schemas):
        """A type without a schema is refused, even with an identity."""
        request = Request(action="GET", params={"type": "unknown"}, ident=JOHNF)
        access = authorize_request(request, schemas)
        assert access.status == AccessStatus.REFUSED
        assert access.scheme is None

        request = Request(action="GET", params={"type": ["open", "unknown"]}, ident=JOHNF)
        assert authorize_request(request, schemas).is_refused

    def test_unknown_type_granted_for_root(self, schemas):
        """Root may still ask for types without a schema."""
        request = Request(action="GET", params={"type": "unknown"}, ident=ROOT)
        assert authorize_request(request, schemas) == granted(ROOT, "root")

    def test_require_auth(self, schemas):
        """An open type still needs an identity when the service authenticates."""
        request = Request(action="GET", params={"type": "open"})
        assert authorize_request(request, schemas, require_auth=True).is_refused


class TestAuthorizeItems:
    """Tests for item-level authorization."""

    def test_all_granted(self, schemas):
        """All items pass."""
        data = [{"$type": "entry", "id": "ent1"}, {"$type": "entry", "id": "ent2"}]
        result = authorize_items(data, granted(JOHNF, {}), schemas, "GET")

        assert result.data == data
        assert result.access == granted(JOHNF, "data")

    def test_partially(self, schemas):
        """Some items pass."""
        data = [
            {"$type": "account", "id": "acc1", "owner": "johnf"},
            {"$type": "account", "id": "acc2", "owner": "lucyk"},
        ]
        result = authorize_items(data, granted(JOHNF, {}), schemas, "GET")

        assert result.data == [data[0]]
        assert result.access.status == AccessStatus.PARTIALLY

    def test_refused(self, schemas):
        """No item passes."""
        data = [{"$type": "closed", "id": "c1"}]
        result = authorize_items(data, granted(JOHNF, {}), schemas, "GET")

        assert result.data == []
        assert result.access.status == AccessStatus.REFUSED

    def test_single_item_form_kept(self, schemas):
        """A single item gives an item or None."""
        access = granted(JOHNF, {})
        assert authorize_items({"$type": "open", "id": "o1"}, access, schemas, "GET").data == {
            "$type": "open",
            "id": "o1",
        }
        assert authorize_items({"$type": "closed", "id": "c1"}, access, schemas, "GET").data is None

    def test_non_objects_refused(self, schemas):
        """Non-object items never pass."""
        result = authorize_items(["ent1"], granted(JOHNF, {}), schemas, "GET")
        assert result.access.status == AccessStatus.REFUSED

    def test_untyped_items_refused(self, schemas):
        """Raw items without $type are refused for regular idents."""
        data = [{"id": "raw1", "title": "Raw"}, {"$type": "open", "id": "o1"}]
        result = authorize_items(data, granted(JOHNF, None), schemas, "SET")

        assert result.data == [{"$type": "open", "id": "o1"}]
        assert result.access.status == AccessStatus.PARTIALLY

    def test_items_without_schema_refused(self, schemas):
        """Items of a type with no schema are refused for regular idents."""
        result = authorize_items([{"$type": "unknown", "id": "u1"}], granted(JOHNF, None), schemas, "SET")
        assert result.access.status == AccessStatus.REFUSED
        assert result.data == []

    def test_root_may_send_raw_items(self, schemas):
        """Root passes untyped items."""
        data = [{"id": "raw1"}, {"$type": "unknown", "id": "u1"}]
        result = authorize_items(data, granted(ROOT, "root"), schemas, "SET")
        assert result.data == data
        assert result.access.status == AccessStatus.GRANTED

    def test_root_sees_all(self, schemas):
        """Root passes every item."""
        data = [{"$type": "closed", "id": "c1"}]
        assert authorize_items(data, granted(ROOT, "root"), schemas, "GET").data == data

    def test_nothing_to_report(self, schemas):
        """Refused access and empty data give None."""
        refused = Access(status=AccessStatus.REFUSED, ident=JOHNF)
        assert authorize_items([{"$type": "open"}], refused, schemas, "GET") is None
        assert authorize_items([], granted(JOHNF, {}), schemas, "GET") is None
        assert authorize_items(None, granted(JOHNF, {}), schemas, "GET") is None


class TestAuthorizeResponse:
    """Tests for response authorization."""

    def test_non_ok_untouched(self, schemas):
        """Error responses pass through."""
        response = Response(status=Status.NOTFOUND, error="Not found")
        request = Request(action="GET", params={"type": "entry"}, ident=JOHNF)
        assert authorize_response(response, request, schemas) is response

    def test_filters_items(self, schemas):
        """Unauthorized items are removed."""
        data = [
            {"$type": "account", "id": "acc1", "owner": "johnf"},
            {"$type": "account", "id": "acc2", "owner": "lucyk"},
        ]
        request = Request(
            action="GET", params={"type": "account"}, ident=JOHNF, access=granted(JOHNF, {})
        )

        result = authorize_response(Response(status=Status.OK, data=data), request, schemas)

        assert result.status == Status.OK
        assert result.data == [data[0]]
        assert result.access.status == AccessStatus.PARTIALLY

    def test_all_refused(self, schemas):
        """No authorized items gives noaccess with empty data."""
        data = [{"$type": "account", "id": "acc2", "owner": "lucyk"}]
        request = Request(
            action="GET", params={"type": "account"}, ident=JOHNF, access=granted(JOHNF, {})
        )

        result = authorize_response(Response(status=Status.OK, data=data), request, schemas)

        assert result.status == Status.NOACCESS
        assert result.data == []
        assert result.error == "No items in the response were authorized"

    def test_single_item_refused(self, schemas):
        """A refused single item gives None data."""
        data = {"$type": "account", "id": "acc2", "owner": "lucyk"}
        request = Request(
            action="GET", params={"type": "account"}, ident=JOHNF, access=granted(JOHNF, {})
        )
        result = authorize_response(Response(status=Status.OK, data=data), request, schemas)
        assert result.status == Status.NOACCESS
        assert result.data is None

    def test_untyped_response_items_refused(self, schemas):
        """Raw response items are removed for regular idents."""
        data = [{"id": "raw1"}]
        request = Request(action="GET", ident=JOHNF, access=granted(JOHNF, None))

        result = authorize_response(Response(status=Status.OK, data=data), request, schemas)

        assert result.status == Status.NOACCESS
        assert result.data == []

    def test_no_data_keeps_request_access(self, schemas):
        """Without data, the request access is used."""
        access = granted(JOHNF, {"allow": "auth"})
        request = Request(action="GET", params={"type": "entry"}, ident=JOHNF, access=access)
        result = authorize_response(Response(status=Status.OK, data=[]), request, schemas)
        assert result.status == Status.OK
        assert result.access == access

    def test_unmapped_for_root(self, schemas):
        """Root may receive unmapped data as is."""
        data = {"raw": [1, 2, 3]}
        request = Request(action="GET", params={"unmapped": True}, ident=ROOT)

        result = authorize_response(Response(status=Status.OK, data=data), request, schemas)

        assert result.data == data
        assert result.access == granted(ROOT, "unmapped")

    def test_unmapped_refused(self, schemas):
        """Others may not receive unmapped data."""
        request = Request(action="GET", params={"unmapped": True}, ident=JOHNF)

        result = authorize_response(Response(status=Status.OK, data={"raw": 1}), request, schemas)

        assert result.status == Status.NOACCESS
        assert result.data == []
        assert result.error == "Only root may receive unmapped data"
        assert result.access.is_refused
