"""
Mapping AST and evaluator.

Mappings move data between a service's wire shape and the internal shape.
Every node runs in two directions:
- fwd(): from the service shape to the internal shape
- rev(): from the internal shape back to the service shape

Nodes:
    Path      read a dotted path forward, write it in reverse
    Const     a fixed value forward, nothing in reverse
    Default   fall back to a value when the inner node gives nothing
    Apply     a named pipeline, resolved when the mapping is compiled
    Object    build a dict from target path -> node
    Iterate   run a node over every item of a list
    Pipeline  run nodes in order forward, backwards in reverse

Invariants:
    - MISSING means "nothing here"; it is never written to a target
    - Nodes are immutable and hold no per-call state
    - Paths from the root (^) are read-only and give nothing in reverse
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..utils import MISSING, PathSegment, get_path, merge_deep, set_path


@dataclass(frozen=True)
class MappingState:
    """Per-call context for a mapping run.

    Attributes:
        root: The value root paths (^) read from, e.g. the request mapping
        no_defaults: Passed to cast pipelines
    """

    root: Any = None
    no_defaults: bool = False


@runtime_checkable
class Transformer(Protocol):
    """Anything that can run in both mapping directions."""

    def fwd(self, value: Any, state: MappingState) -> Any:
        ...

    def rev(self, value: Any, state: MappingState) -> Any:
        ...


class Node(ABC):
    """Base class for mapping nodes."""

    @abstractmethod
    def fwd(self, value: Any, state: MappingState) -> Any:
        """Run from the service shape to the internal shape."""

    @abstractmethod
    def rev(self, value: Any, state: MappingState) -> Any:
        """Run from the internal shape to the service shape."""


@dataclass(frozen=True)
class Path(Node):
    segments: tuple[PathSegment, ...]
    from_root: bool = False
    source: str = ""

    def fwd(self, value: Any, state: MappingState) -> Any:
        return get_path(state.root if self.from_root else value, self.segments)

    def rev(self, value: Any, state: MappingState) -> Any:
        if self.from_root or value is MISSING:
            return MISSING
        if not self.segments:
            return value
        return set_path({}, self.segments, value)


@dataclass(frozen=True)
class Const(Node):
    value: Any

    def fwd(self, value: Any, state: MappingState) -> Any:
        return self.value

    def rev(self, value: Any, state: MappingState) -> Any:
        return MISSING


@dataclass(frozen=True)
class Default(Node):
    node: Node
    default: Any

    def fwd(self, value: Any, state: MappingState) -> Any:
        result = self.node.fwd(value, state)
        return self.default if result is MISSING or result is None else result

    def rev(self, value: Any, state: MappingState) -> Any:
        return self.node.rev(value, state)


@dataclass(frozen=True)
class Apply(Node):
    name: str
    target: Transformer

    def fwd(self, value: Any, state: MappingState) -> Any:
        return self.target.fwd(value, state)

    def rev(self, value: Any, state: MappingState) -> Any:
        return self.target.rev(value, state)


@dataclass(frozen=True)
class Object(Node):
    """Build a dict from (target path, node) fields.

    With modify set, the result starts as a copy of the input instead of
    an empty dict, so unmapped keys pass through.
    """

    fields: tuple[tuple[tuple[PathSegment, ...], Node], ...]
    modify: bool = False

    def _start(self, value: Any) -> dict[str, Any]:
        return dict(value) if self.modify and isinstance(value, dict) else {}

    def fwd(self, value: Any, state: MappingState) -> Any:
        if value is MISSING or value is None:
            return MISSING
        result: Any = self._start(value)
        for target, node in self.fields:
            mapped = node.fwd(value, state)
            if mapped is not MISSING:
                result = set_path(result, target, mapped)
        return result

    def rev(self, value: Any, state: MappingState) -> Any:
        if value is MISSING or value is None:
            return MISSING
        result: Any = self._start(value)
        for target, node in self.fields:
            part = get_path(value, target)
            if part is MISSING:
                continue
            mapped = node.rev(part, state)
            if mapped is not MISSING:
                result = merge_deep(result, mapped)
        return result


def _map_items(run, value: Any, state: MappingState) -> Any:
    if value is MISSING:
        return MISSING
    if isinstance(value, list):
        results = (run(item, state) for item in value)
        return [result for result in results if result is not MISSING]
    return run(value, state)


@dataclass(frozen=True)
class Iterate(Node):
    node: Node

    def fwd(self, value: Any, state: MappingState) -> Any:
        return _map_items(self.node.fwd, value, state)

    def rev(self, value: Any, state: MappingState) -> Any:
        return _map_items(self.node.rev, value, state)


@dataclass(frozen=True)
class Pipeline(Node):
    steps: tuple[Node, ...]

    def fwd(self, value: Any, state: MappingState) -> Any:
        for step in self.steps:
            if value is MISSING:
                break
            value = step.fwd(value, state)
        return value

    def rev(self, value: Any, state: MappingState) -> Any:
        for step in reversed(self.steps):
            if value is MISSING:
                break
            value = step.rev(value, state)
        return value


IDENTITY = Path(segments=(), source=".")
