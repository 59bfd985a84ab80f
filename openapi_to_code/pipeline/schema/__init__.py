"""
Schema resolution: raw schema mappings into named ``SchemaNode`` graphs.
"""

from __future__ import annotations

from .nodes import (
    ArrayKind,
    CompositionKind,
    ConditionalKind,
    ConstKind,
    EnumKind,
    NullKind,
    ObjectKind,
    PrimitiveKind,
    ReferenceKind,
    SchemaKind,
    SchemaNode,
    UnionKind,
    UnionVariant,
)
from .resolver import NameRegistry, SchemaResolver

__all__ = [
    "ArrayKind",
    "CompositionKind",
    "ConditionalKind",
    "ConstKind",
    "EnumKind",
    "NameRegistry",
    "NullKind",
    "ObjectKind",
    "PrimitiveKind",
    "ReferenceKind",
    "SchemaKind",
    "SchemaNode",
    "SchemaResolver",
    "UnionKind",
    "UnionVariant",
]
