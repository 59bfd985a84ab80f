"""
Type synthesizer.

Turns resolved schema nodes into language-neutral declarations. Named
inline schemas (objects, enums, unions and conditionals found inside other
schemas) are hoisted into declarations of their own and referenced by name.
Fields whose type leads back to the declaring type are wrapped in a lazy
reference.
"""

from __future__ import annotations

import logging
from typing import Any, assert_never

from ...utils import unique_name
from ..diagnostics import DiagnosticKind, Diagnostics
from ..schema.nodes import (
    ArrayKind,
    CompositionKind,
    ConditionalKind,
    ConstKind,
    EnumKind,
    NullKind,
    ObjectKind,
    PrimitiveKind,
    ReferenceKind,
    SchemaNode,
    UnionKind,
)
from ..schema.resolver import SchemaResolver
from .ir import (
    MAX_FIXED_ARITY,
    AliasDecl,
    ConditionalDecl,
    Declaration,
    EnumDecl,
    FieldDecl,
    PlaceholderDecl,
    RecordDecl,
    Requirement,
    TypeDecl,
    TypeRef,
    TypeRefKind,
    UnionCase,
    UnionDecl,
)

logger = logging.getLogger(__name__)

# String formats that become distinguishable string-backed alias types
FORMAT_ALIASES = {
    "date-time": "DateTime",
    "date": "Date",
    "time": "Time",
    "uuid": "Uuid",
    "uri": "Uri",
    "uri-reference": "UriReference",
    "email": "Email",
    "hostname": "Hostname",
    "ipv4": "IPv4",
    "ipv6": "IPv6",
    "byte": "Base64String",
    "binary": "BinaryString",
    "password": "Password",
}

_CODEC = {Requirement.DECODE, Requirement.ENCODE}


def const_type(value: Any) -> TypeRef:
    """Primitive type of a ``const`` value."""
    if isinstance(value, bool):
        return TypeRef.primitive("boolean")
    if isinstance(value, int):
        return TypeRef.primitive("integer")
    if isinstance(value, float):
        return TypeRef.primitive("number")
    if isinstance(value, str):
        return TypeRef.primitive("string")
    return TypeRef.json_value()


def placeholder(name: str, reason: str) -> PlaceholderDecl:
    """Declaration standing in for a schema that could not be synthesized."""
    return PlaceholderDecl(name=name, reason=reason, requirements=_CODEC | {Requirement.JSON_VALUE})


class TypeSynthesizer:
    """Synthesize declarations for the named nodes of one resolver."""

    def __init__(self, resolver: SchemaResolver, diagnostics: Diagnostics):
        self.resolver = resolver
        self.diagnostics = diagnostics
        self._declared: set[str] = set()
        self._constructors: set[str] = set()

    def synthesize(self, node: SchemaNode) -> list[Declaration]:
        """Declare a named node, followed by every declaration hoisted out of it.

        Nodes already declared (hoisted earlier under another schema) yield
        nothing, so each name is declared exactly once per run. When building
        fails, the node and everything hoisted out of it are released again.
        """
        if node.name is None:
            raise ValueError("only named schemas can be declared")
        if node.name in self._declared:
            return []
        declared, constructors = set(self._declared), set(self._constructors)
        self._declared.add(node.name)
        hoisted: list[Declaration] = []
        try:
            decl = self._declaration(node, hoisted)
        except Exception:
            self._declared, self._constructors = declared, constructors
            raise
        decl.requirements |= _CODEC
        return [decl] + hoisted

    def _declaration(self, node: SchemaNode, hoisted: list[Declaration]) -> Declaration:
        name = node.name or ""
        kind = node.kind
        match kind:
            case ObjectKind():
                return self._record(name, kind, node.description, hoisted)
            case CompositionKind():
                return self._record(name, kind.merged, node.description, hoisted)
            case EnumKind():
                return EnumDecl(name=name, description=node.description, values=list(kind.raw_values), requirements={Requirement.ENUM})
            case UnionKind():
                return self._union(name, kind, node.description, hoisted)
            case ConditionalKind():
                return ConditionalDecl(name=name, description=node.description, requirements={Requirement.JSON_VALUE})
            case ReferenceKind() | PrimitiveKind() | ArrayKind() | ConstKind() | NullKind():
                decl = AliasDecl(name=name, description=node.description)
                target = self._defer(self._shape(node, decl, hoisted), decl)
                decl.target = TypeRef.optional(target) if node.nullable else target
                return decl
            case _:
                assert_never(kind)

    def _record(self, name: str, kind: ObjectKind, description: str | None, hoisted: list[Declaration]) -> RecordDecl:
        decl = RecordDecl(name=name, description=description)
        for json_name, prop in kind.properties.items():
            type_ref = self._defer(self._type_ref(prop, decl, hoisted), decl)
            required = json_name in kind.required
            if not required or prop.nullable:
                type_ref = TypeRef.optional(type_ref)
            decl.fields.append(FieldDecl(json_name, type_ref, required, prop.description))
        if kind.additional_properties is not None:
            decl.additional = self._defer(self._type_ref(kind.additional_properties, decl, hoisted), decl)
            decl.requirements.add(Requirement.DICT)
        if decl.field_count > MAX_FIXED_ARITY:
            decl.requirements.add(Requirement.MANY_FIELDS)
        return decl

    def _union(self, name: str, kind: UnionKind, description: str | None, hoisted: list[Declaration]) -> UnionDecl:
        decl = UnionDecl(
            name=name,
            description=description,
            exclusive=kind.exclusive,
            discriminator_field=kind.discriminator_field or "type",
        )
        for variant in kind.variants:
            type_ref = self._type_ref(variant.node, decl, hoisted)
            constructor = unique_name(f"{variant.name}Constructor", self._constructors)
            decl.cases.append(UnionCase(variant.name, constructor, type_ref, variant.tag))
        # Without any object variant there is no field to dispatch on
        decl.discriminated = kind.exclusive and any(self._is_object_like(v.node) for v in kind.variants)
        if not decl.cases:
            self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, name, "union without variants")
        return decl

    def _is_object_like(self, node: SchemaNode) -> bool:
        if isinstance(node.kind, ReferenceKind):
            target = self.resolver.lookup(node.kind.target_name)
            if target is None or target is node:
                return False
            node = target
        return isinstance(node.kind, (ObjectKind, CompositionKind))

    def _type_ref(self, node: SchemaNode, decl: TypeDecl, hoisted: list[Declaration]) -> TypeRef:
        """Type of a child node, hoisting it first when it is a named inline schema."""
        if node.name is not None:
            hoisted.extend(self.synthesize(node))
            decl.references.add(node.name)
            type_ref = TypeRef.named(node.name)
        else:
            type_ref = self._shape(node, decl, hoisted)
        return TypeRef.optional(type_ref) if node.nullable else type_ref

    def _shape(self, node: SchemaNode, decl: TypeDecl, hoisted: list[Declaration]) -> TypeRef:
        """Type of a node's kind, ignoring its name."""
        kind = node.kind
        match kind:
            case ReferenceKind():
                decl.references.add(kind.target_name)
                return TypeRef.named(kind.target_name)
            case PrimitiveKind():
                return self._primitive(kind, decl)
            case ArrayKind():
                return TypeRef.list_of(self._type_ref(kind.element, decl, hoisted))
            case ConstKind():
                type_ref = const_type(kind.value)
                if type_ref.kind == TypeRefKind.JSON_VALUE:
                    decl.requirements.add(Requirement.JSON_VALUE)
                return type_ref
            case NullKind():
                return TypeRef.optional(TypeRef.unit())
            case ObjectKind() | CompositionKind() | EnumKind() | UnionKind() | ConditionalKind():
                # Anonymous structured schemas only occur when no name could be derived
                self.diagnostics.report(
                    DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT,
                    decl.name,
                    f"anonymous {type(kind).__name__} treated as an opaque JSON value",
                )
                decl.requirements.add(Requirement.JSON_VALUE)
                return TypeRef.json_value()
            case _:
                assert_never(kind)

    def _primitive(self, kind: PrimitiveKind, decl: TypeDecl) -> TypeRef:
        if kind.base_type in ("any", "object"):
            decl.requirements.add(Requirement.JSON_VALUE)
            return TypeRef.json_value()
        if kind.base_type == "string" and kind.format in FORMAT_ALIASES:
            alias = FORMAT_ALIASES[kind.format]
            decl.formats.add(alias)
            return TypeRef.format_alias(alias)
        return TypeRef.primitive(kind.base_type)

    def _defer(self, type_ref: TypeRef, decl: TypeDecl) -> TypeRef:
        """Wrap references that lead back to ``decl`` in a lazy reference."""
        match type_ref.kind:
            case TypeRefKind.NAMED:
                if type_ref.name == decl.name or self.resolver.reaches(type_ref.name, decl.name):
                    decl.requirements.add(Requirement.LAZY)
                    return TypeRef.lazy(type_ref)
                return type_ref
            case TypeRefKind.LIST | TypeRefKind.OPTIONAL | TypeRefKind.DICT:
                return TypeRef(type_ref.kind, type_ref.name, tuple(self._defer(arg, decl) for arg in type_ref.args))
            case TypeRefKind.LAZY | TypeRefKind.PRIMITIVE | TypeRefKind.FORMAT | TypeRefKind.JSON_VALUE | TypeRefKind.UNIT:
                return type_ref
            case _:
                assert_never(type_ref.kind)
