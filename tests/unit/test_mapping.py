"""
Unit tests for the mapping DSL.

Tests cover:
- Paths, including root paths and the identity path
- Objects, iteration and pipelines in both directions
- $value, $default, $modify and $apply
- Pipeline registry resolution and errors
"""

import pytest

from middleware.datagate.errors import MappingError
from middleware.datagate.mapping import (
    IDENTITY,
    MappingState,
    PipelineRegistry,
    compile_mapping,
)
from middleware.datagate.schema import create_registry
from middleware.datagate.utils import MISSING

STATE = MappingState()


class TestPaths:
    """Tests for path mappings."""

    def test_forward(self):
        """A path reads nested values."""
        mapping = compile_mapping("data.items")
        assert mapping.fwd({"data": {"items": [1, 2]}}, STATE) == [1, 2]

    def test_forward_missing(self):
        """An unresolved path gives MISSING."""
        assert compile_mapping("data.items").fwd({"data": {}}, STATE) is MISSING

    def test_array_path(self):
        """items[] always gives a list."""
        assert compile_mapping("items[]").fwd({"items": {"id": "a"}}, STATE) == [{"id": "a"}]

    def test_index_path(self):
        """items[0] gives the first element."""
        assert compile_mapping("items[0].id").fwd({"items": [{"id": "a"}, {"id": "b"}]}, STATE) == "a"

    def test_maps_over_lists(self):
        """Keys read through a list give a list."""
        assert compile_mapping("items.id").fwd({"items": [{"id": "a"}, {"id": "b"}]}, STATE) == ["a", "b"]

    def test_reverse(self):
        """A path writes the value in reverse."""
        assert compile_mapping("data.items").rev([1], STATE) == {"data": {"items": [1]}}

    def test_identity(self):
        """'.' is the identity in both directions."""
        mapping = compile_mapping(".")
        assert mapping.fwd({"a": 1}, STATE) == {"a": 1}
        assert mapping.rev({"a": 1}, STATE) == {"a": 1}
        assert IDENTITY.fwd([1], STATE) == [1]

    def test_root_path(self):
        """'^' reads from the root and gives nothing in reverse."""
        mapping = compile_mapping("^params.id")
        state = MappingState(root={"params": {"id": "ent1"}})

        assert mapping.fwd({"other": True}, state) == "ent1"
        assert mapping.rev("ent1", state) is MISSING

    def test_invalid_path(self):
        """A malformed path raises MappingError."""
        with pytest.raises(MappingError):
            compile_mapping("items[x]")


class TestObjects:
    """Tests for object mappings."""

    def test_forward_and_reverse(self):
        """Object keys are target paths, values are source mappings."""
        mapping = compile_mapping({"id": "key", "title": "header.text", "meta.views": "count"})
        raw = {"key": "ent1", "header": {"text": "Entry 1"}, "count": 3}

        item = mapping.fwd(raw, STATE)

        assert item == {"id": "ent1", "title": "Entry 1", "meta": {"views": 3}}
        assert mapping.rev(item, STATE) == raw

    def test_missing_values_left_out(self):
        """Unresolved fields are not written."""
        mapping = compile_mapping({"id": "key", "title": "name"})
        assert mapping.fwd({"key": "ent1"}, STATE) == {"id": "ent1"}

    def test_none_gives_missing(self):
        """Objects give MISSING for no input."""
        mapping = compile_mapping({"id": "key"})
        assert mapping.fwd(None, STATE) is MISSING
        assert mapping.rev(MISSING, STATE) is MISSING

    def test_iterate(self):
        """$iterate runs the object over every item."""
        mapping = compile_mapping({"$iterate": True, "id": "key"})

        assert mapping.fwd([{"key": "a"}, {"key": "b"}], STATE) == [{"id": "a"}, {"id": "b"}]
        assert mapping.fwd({"key": "a"}, STATE) == {"id": "a"}
        assert mapping.rev([{"id": "a"}], STATE) == [{"key": "a"}]

    def test_modify(self):
        """$modify keeps unmapped keys."""
        mapping = compile_mapping({"$modify": True, "title": "name"})
        assert mapping.fwd({"id": "a", "name": "Entry"}, STATE) == {
            "id": "a",
            "name": "Entry",
            "title": "Entry",
        }

    def test_const(self):
        """$value gives a fixed value forward and nothing in reverse."""
        mapping = compile_mapping({"id": "key", "source": {"$value": "api"}})
        assert mapping.fwd({"key": "a"}, STATE) == {"id": "a", "source": "api"}
        assert mapping.rev({"id": "a", "source": "api"}, STATE) == {"key": "a"}

    def test_default(self):
        """$default fills in missing and null values."""
        mapping = compile_mapping({"title": {"$path": "name", "$default": "Untitled"}})
        assert mapping.fwd({}, STATE) == {"title": "Untitled"}
        assert mapping.fwd({"name": None}, STATE) == {"title": "Untitled"}
        assert mapping.fwd({"name": "Entry"}, STATE) == {"title": "Entry"}
        assert mapping.rev({"title": "Entry"}, STATE) == {"name": "Entry"}

    def test_invalid_definition(self):
        """Non-mapping values raise MappingError."""
        with pytest.raises(MappingError):
            compile_mapping(42)


class TestPipelines:
    """Tests for pipeline mappings."""

    def test_forward(self):
        """Steps run in order forward."""
        mapping = compile_mapping(["data.items[]", {"$iterate": True, "id": "key"}])
        assert mapping.fwd({"data": {"items": [{"key": "a"}]}}, STATE) == [{"id": "a"}]

    def test_reverse(self):
        """Steps run backwards in reverse."""
        mapping = compile_mapping(["data.items[]", {"$iterate": True, "id": "key"}])
        assert mapping.rev([{"id": "a"}], STATE) == {"data": {"items": [{"key": "a"}]}}

    def test_missing_stops(self):
        """A MISSING step result ends the pipeline."""
        mapping = compile_mapping(["data", {"id": "key"}])
        assert mapping.fwd({}, STATE) is MISSING


class TestPipelineRegistry:
    """Tests for named pipelines."""

    def test_apply_definition(self):
        """$apply resolves a named mutation definition."""
        registry = PipelineRegistry({"user": {"id": "key", "name": "title"}})
        mapping = compile_mapping({"author": ["author", {"$apply": "user"}]}, registry)
        raw = {"author": {"key": "johnf", "title": "John"}}

        item = mapping.fwd(raw, STATE)

        assert item == {"author": {"id": "johnf", "name": "John"}}
        assert mapping.rev(item, STATE) == raw

    def test_same_object_every_time(self):
        """A name resolves to one compiled pipeline."""
        registry = PipelineRegistry({"user": {"id": "key"}})
        assert registry.resolve("user") is registry.resolve("user")
        assert "user" in registry

    def test_unknown_name(self):
        """An unknown name raises at compile time."""
        with pytest.raises(MappingError) as exc_info:
            compile_mapping({"$apply": "unknown"}, PipelineRegistry())
        assert exc_info.value.pipeline == "unknown"

    def test_apply_without_registry(self):
        """$apply needs a registry."""
        with pytest.raises(MappingError):
            compile_mapping({"$apply": "user"})

    def test_cycle(self):
        """A pipeline applying itself raises."""
        registry = PipelineRegistry({"loop": ["data", {"$apply": "loop"}]})
        with pytest.raises(MappingError):
            registry.resolve("loop")

    def test_duplicate_name(self):
        """Names are unique."""
        registry = PipelineRegistry({"user": {"id": "key"}})
        with pytest.raises(MappingError):
            registry.add("user", IDENTITY)

    def test_schema_casts(self):
        """cast_<id> pipelines cast forward and back."""
        schemas = create_registry([{"id": "entry", "shape": {"title": "string", "views": "integer"}}])
        registry = PipelineRegistry()
        registry.add_schema_casts(schemas)
        mapping = compile_mapping(["items[]", {"$apply": "cast_entry"}], registry)

        items = mapping.fwd({"items": [{"id": "ent1", "views": "3"}]}, STATE)

        assert items == [{"id": "ent1", "views": 3, "$type": "entry"}]
        assert mapping.rev(items, STATE) == {"items": [{"id": "ent1", "views": 3}]}
