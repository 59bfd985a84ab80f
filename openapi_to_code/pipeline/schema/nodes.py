"""
Resolved schema nodes.

A ``SchemaNode`` wraps exactly one kind from the closed ``SchemaKind`` union.
Code that dispatches over kinds matches every member and finishes with
``assert_never`` so that adding a kind is a type error until it is handled
everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PrimitiveKind:
    """Scalar keyed by (type, format).

    ``base_type`` is one of string, integer, number, boolean, object (free-form
    JSON object) or any (opaque JSON value).
    """

    base_type: str
    format: str | None = None


@dataclass
class ObjectKind:
    properties: dict[str, SchemaNode] = field(default_factory=dict)
    required: set[str] = field(default_factory=set)
    additional_properties: SchemaNode | None = None


@dataclass
class ArrayKind:
    element: SchemaNode


@dataclass
class EnumKind:
    raw_values: list[str] = field(default_factory=list)


@dataclass
class UnionVariant:
    """One alternative of a union.

    ``tag`` is the discriminator value selecting this variant.
    """

    name: str
    node: SchemaNode
    tag: str


@dataclass
class UnionKind:
    variants: list[UnionVariant] = field(default_factory=list)
    discriminator_field: str | None = None
    discriminator_mapping: dict[str, str] = field(default_factory=dict)
    exclusive: bool = True


@dataclass
class CompositionKind:
    merged: ObjectKind


@dataclass(frozen=True)
class ConditionalKind:
    """Approximated if/then/else: rendered as a Then/Else/Unknown placeholder."""

    has_then: bool = False
    has_else: bool = False


@dataclass(frozen=True)
class ReferenceKind:
    target_name: str


@dataclass(frozen=True)
class ConstKind:
    value: Any


@dataclass(frozen=True)
class NullKind:
    pass


SchemaKind = (
    PrimitiveKind
    | ObjectKind
    | ArrayKind
    | EnumKind
    | UnionKind
    | CompositionKind
    | ConditionalKind
    | ReferenceKind
    | ConstKind
    | NullKind
)

OPAQUE = PrimitiveKind("any")


@dataclass
class SchemaNode:
    """A resolved schema."""

    kind: SchemaKind
    name: str | None = None  # absent for anonymous inline schemas
    source_reference: str | None = None  # "$ref" this node was reached through
    nullable: bool = False
    description: str | None = None

    @property
    def is_opaque(self) -> bool:
        return isinstance(self.kind, PrimitiveKind) and self.kind.base_type in ("any", "object")
