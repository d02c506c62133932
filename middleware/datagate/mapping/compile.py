"""
Mapping DSL compiler.

compile_mapping() turns a mapping definition into a tree of nodes once, at
setup. The definition language:

    "data.items[]"                 Path; '^' reads from the root, '.' is identity
    ["data.items[]", {...}]        Pipeline
    {"id": "key", "title": "name"} Object; keys are target paths
    {"$iterate": True, ...}        Object run over every item
    {"$modify": True, ...}         Object starting from a copy of the input
    {"$value": "entry"}            Const
    {"$apply": "cast_entry"}       Apply a named pipeline
    {"$path": "a", "$default": 1}  Default, '$path' is optional

Example:
    >>> mapping = compile_mapping(["items[]", {"$iterate": True, "id": "key"}])
    >>> mapping.fwd({"items": [{"key": "ent1"}]}, MappingState())
    [{'id': 'ent1'}]
"""

from __future__ import annotations

from typing import Any

from ..errors import MappingError
from ..utils import parse_path
from .nodes import (
    IDENTITY,
    Apply,
    Const,
    Default,
    Iterate,
    Node,
    Object,
    Path,
    Pipeline,
)
from .registry import PipelineRegistry


def _compile_path(path: str) -> Path:
    from_root = path.startswith("^")
    source = path[1:] if from_root else path
    try:
        segments = parse_path(source)
    except ValueError as e:
        raise MappingError(str(e))
    return Path(segments=segments, from_root=from_root, source=path)


def _compile_object(definition: dict[str, Any], registry: PipelineRegistry | None, modify: bool) -> Node:
    fields = []
    for key, value in definition.items():
        if key.startswith("$"):
            continue
        try:
            target = parse_path(key)
        except ValueError as e:
            raise MappingError(str(e))
        fields.append((target, compile_mapping(value, registry)))

    node: Node = Object(fields=tuple(fields), modify=bool(definition.get("$modify", modify)))
    if definition.get("$iterate"):
        node = Iterate(node)
    return node


def compile_mapping(
    definition: Any,
    registry: PipelineRegistry | None = None,
    modify: bool = False,
) -> Node:
    """Compile a mapping definition.

    Args:
        definition: Mapping definition, see module docs
        registry: Registry for resolving $apply names
        modify: Default $modify flag for a top level object

    Returns:
        Root node of the compiled mapping

    Raises:
        MappingError: If the definition is invalid or an $apply name is unknown
    """
    if isinstance(definition, Node):
        return definition
    if isinstance(definition, str):
        return _compile_path(definition)
    if isinstance(definition, list):
        if modify:
            steps = [compile_mapping(step, registry, modify=isinstance(step, dict)) for step in definition]
        else:
            steps = [compile_mapping(step, registry) for step in definition]
        return Pipeline(steps=tuple(steps))
    if isinstance(definition, dict):
        if "$value" in definition:
            return Const(definition["$value"])
        if "$apply" in definition:
            name = definition["$apply"]
            if not isinstance(name, str):
                raise MappingError("$apply must name a pipeline")
            if registry is None:
                raise MappingError(f"Cannot apply '{name}' without a pipeline registry", pipeline=name)
            return Apply(name=name, target=registry.resolve(name))
        if "$default" in definition:
            inner = _compile_path(definition["$path"]) if "$path" in definition else IDENTITY
            return Default(node=inner, default=definition["$default"])
        if "$path" in definition:
            return _compile_path(definition["$path"])
        return _compile_object(definition, registry, modify)
    raise MappingError(f"Invalid mapping definition: {definition!r}")
