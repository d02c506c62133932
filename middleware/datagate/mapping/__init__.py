"""
Mapping between service shapes and internal shapes.

This package provides:
- compile_mapping: compile the mapping DSL into nodes, once
- Node types (Path, Object, Apply, Const, Default, Iterate, Pipeline)
- PipelineRegistry: named pipelines for $apply
"""

from .compile import compile_mapping
from .nodes import (
    IDENTITY,
    Apply,
    Const,
    Default,
    Iterate,
    MappingState,
    Node,
    Object,
    Path,
    Pipeline,
    Transformer,
)
from .registry import CastTransformer, PipelineRegistry

__all__ = [
    "IDENTITY",
    "Apply",
    "CastTransformer",
    "compile_mapping",
    "Const",
    "Default",
    "Iterate",
    "MappingState",
    "Node",
    "Object",
    "Path",
    "Pipeline",
    "PipelineRegistry",
    "Transformer",
]
