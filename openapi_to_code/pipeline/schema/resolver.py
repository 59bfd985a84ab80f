"""
Schema resolver.

Classifies raw JSON Schema mappings into ``SchemaNode`` kinds, hands out
unique type names, merges ``allOf`` compositions and answers reachability
and recursion questions over the named-schema graph.

Classification is an ordered dispatch, the first matching rule wins:
``$ref``, ``const``, ``type: null``, ``if``, ``oneOf``, ``anyOf``, ``allOf``,
string ``enum``, object, array, primitive.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, assert_never

from ...utils import to_type_name, unique_name
from ..diagnostics import DiagnosticKind, Diagnostics
from .nodes import (
    OPAQUE,
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
    UnionVariant,
)

logger = logging.getLogger(__name__)

REF_PREFIXES = ("#/components/schemas/", "#/definitions/")

PRIMITIVE_TYPES = {"string", "integer", "number", "boolean"}

# Suffix appended to the field name when an inline schema is hoisted
_HOIST_SUFFIX = {
    "object": "Object",
    "allOf": "Object",
    "enum": "Enum",
    "oneOf": "Union",
    "anyOf": "Union",
    "if": "Conditional",
}


def _unescape_pointer(part: str) -> str:
    return part.replace("~1", "/").replace("~0", "~")


class NameRegistry:
    """Hands out globally unique type names for one document."""

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def claim(self, candidate: str) -> str:
        return unique_name(to_type_name(candidate), self._taken)

    def reserve(self, names) -> None:
        """Mark names the target language already uses as taken."""
        self._taken.update(names)

    def __contains__(self, name: str) -> bool:
        return name in self._taken


class SchemaResolver:
    """Resolve the named schemas of one document.

    Every named node, whether a component schema or a hoisted inline schema,
    is registered in ``nodes``. References are never expanded: a
    self-referential schema yields a ``ReferenceKind`` marker.
    """

    def __init__(self, schemas: dict[str, Any], diagnostics: Diagnostics, names: NameRegistry | None = None, ref_prefix: str = "#/components/schemas/"):
        self.raw_schemas = schemas
        self.diagnostics = diagnostics
        self.names = names or NameRegistry()
        self.ref_prefix = ref_prefix
        # Claim component names first, in document order, so references resolve predictably
        self.names_by_key: dict[str, str] = {key: self.names.claim(key) for key in schemas}
        self._component_names = set(self.names_by_key.values())
        self.nodes: dict[str, SchemaNode] = {}
        self.owners: dict[str, str] = {}
        self._owner: str | None = None
        self._inline_cache: dict[int, tuple[Any, SchemaNode]] = {}
        self._edges: dict[str, list[str]] = {}
        self._reach: dict[str, set[str]] = {}

    # ------------------------------------------------------------------ names

    @property
    def component_names(self) -> list[str]:
        return list(self.names_by_key.values())

    def _ref_key(self, ref: str) -> str | None:
        for prefix in REF_PREFIXES:
            if ref.startswith(prefix):
                key = _unescape_pointer(ref[len(prefix) :])
                if key in self.raw_schemas:
                    return key
        return None

    def reference_name(self, ref: str) -> str | None:
        """Unique type name a ``$ref`` points to, or None if it does not resolve."""
        key = self._ref_key(ref)
        return self.names_by_key[key] if key is not None else None

    def lookup(self, name: str) -> SchemaNode | None:
        return self.nodes.get(name)

    def component_path(self, key: str) -> str:
        return f"{self.ref_prefix}{key}"

    # -------------------------------------------------------------- resolving

    def resolve_all(self) -> dict[str, SchemaNode]:
        """Resolve every component schema in document order."""
        for key in self.raw_schemas:
            self.resolve_component(key)
        logger.debug("Resolved %d component schemas, %d named nodes", len(self.names_by_key), len(self.nodes))
        return {name: self.nodes[name] for name in self.names_by_key.values()}

    def resolve_component(self, key: str) -> SchemaNode:
        name = self.names_by_key[key]
        if name in self.nodes:
            return self.nodes[name]
        previous, self._owner = self._owner, name
        try:
            return self.resolve(self.raw_schemas[key], name=name, path=self.component_path(key))
        finally:
            self._owner = previous

    def resolve(self, raw: Any, name: str | None = None, path: str = "#", hint: str | None = None) -> SchemaNode:
        """Classify one raw schema.

        Args:
            raw: The raw schema mapping
            name: Name of the node, when it is a named schema
            path: Location of the schema, used in diagnostics
            hint: Base for naming hoisted inline children

        Returns:
            The resolved node
        """
        if isinstance(raw, bool) or raw is None or (isinstance(raw, dict) and not raw):
            return self._register(SchemaNode(OPAQUE, name=name))
        if not isinstance(raw, dict):
            self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, path, f"schema is a {type(raw).__name__}, expected a mapping")
            return self._register(SchemaNode(OPAQUE, name=name))

        if name is None:
            cached = self._inline_cache.get(id(raw))
            if cached is not None:
                return cached[1]

        rule = self._classify(raw)
        schema_type, nullable = self._schema_type(raw, path)
        description = raw.get("description") or raw.get("title")

        if rule in ("oneOf", "anyOf"):
            collapsed = self._collapse_nullable_union(raw[rule], name, path, hint)
            if collapsed is not None:
                return collapsed

        if name is None and rule in _HOIST_SUFFIX:
            name = self.names.claim(f"{hint or 'Inline'}{_HOIST_SUFFIX[rule]}")
        base = name or hint or "Inline"

        match rule:
            case "ref":
                kind = self._reference_kind(raw["$ref"], path)
                return self._finish(raw, SchemaNode(kind, name, raw["$ref"], nullable, description))
            case "const":
                kind = ConstKind(raw["const"])
            case "null":
                kind = NullKind()
            case "if":
                kind = ConditionalKind(has_then="then" in raw, has_else="else" in raw)
            case "oneOf" | "anyOf":
                node = self._finish(raw, SchemaNode(UnionKind(exclusive=rule == "oneOf"), name, None, nullable, description))
                node.kind = self._union(raw, raw[rule], base, path, rule == "oneOf")
                return node
            case "allOf":
                kind = CompositionKind(self._merge(raw["allOf"], f"{path}/allOf", base, frozenset()))
            case "enum":
                kind, nullable = self._enum(raw["enum"], nullable)
            case "object":
                kind = self._object(raw, path, base)
            case "array":
                element = self.resolve(raw.get("items"), path=f"{path}/items", hint=f"{base}Item")
                kind = ArrayKind(element)
            case "primitive":
                kind = self._primitive(schema_type, raw.get("format"), path)
            case _:
                raise ValueError(f"unknown classification rule {rule}")

        return self._finish(raw, SchemaNode(kind, name, None, nullable, description))

    def _finish(self, raw: dict[str, Any], node: SchemaNode) -> SchemaNode:
        if node.name is not None:
            self._register(node)
            if node.name not in self._component_names:
                # Hoisted inline schema: reuse it wherever the same raw mapping appears
                self._inline_cache[id(raw)] = (raw, node)
        return node

    def _register(self, node: SchemaNode) -> SchemaNode:
        if node.name is not None:
            self.nodes[node.name] = node
            if self._owner is not None:
                self.owners.setdefault(node.name, self._owner)
        return node

    def _classify(self, raw: dict[str, Any]) -> str:
        schema_type = raw.get("type")
        if isinstance(schema_type, list):
            non_null = [t for t in schema_type if t != "null"]
            schema_type = non_null[0] if len(non_null) == 1 else ("null" if not non_null else None)
        if "$ref" in raw:
            return "ref"
        if "const" in raw:
            return "const"
        if schema_type == "null":
            return "null"
        if "if" in raw:
            return "if"
        for keyword in ("oneOf", "anyOf", "allOf"):
            if isinstance(raw.get(keyword), list) and raw[keyword]:
                return keyword
        enum = raw.get("enum")
        if isinstance(enum, list) and (schema_type == "string" or (schema_type is None and all(isinstance(v, str) or v is None for v in enum))):
            return "enum"
        has_fields = bool(raw.get("properties")) or raw.get("additionalProperties") not in (None, False)
        if (schema_type == "object" or schema_type is None) and has_fields:
            return "object"
        if schema_type == "array" or (schema_type is None and "items" in raw):
            return "array"
        return "primitive"

    def _schema_type(self, raw: dict[str, Any], path: str) -> tuple[str | None, bool]:
        """Return the effective type and whether the schema admits null."""
        nullable = bool(raw.get("nullable") or raw.get("x-nullable"))
        schema_type = raw.get("type")
        if not isinstance(schema_type, list):
            return schema_type, nullable
        non_null = [t for t in schema_type if t != "null"]
        nullable = nullable or len(non_null) < len(schema_type)
        if len(non_null) == 1:
            return non_null[0], nullable
        if not non_null:
            return "null", nullable
        self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, path, f"multi-type schema {schema_type} treated as an opaque JSON value")
        return "any", nullable

    def _reference_kind(self, ref: str, path: str) -> ReferenceKind | PrimitiveKind:
        target = self.reference_name(ref) if isinstance(ref, str) else None
        if target is None:
            self.diagnostics.report(DiagnosticKind.UNRESOLVED_REFERENCE, path, f"reference {ref!r} does not resolve, using an opaque JSON value")
            return OPAQUE
        return ReferenceKind(target)

    def _primitive(self, schema_type: str | None, schema_format: str | None, path: str) -> PrimitiveKind:
        if schema_type in PRIMITIVE_TYPES:
            return PrimitiveKind(schema_type, schema_format)
        if schema_type == "file":
            return PrimitiveKind("string", "binary")
        if schema_type == "object":
            return PrimitiveKind("object")
        if schema_type not in (None, "any"):
            self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, path, f"unknown type {schema_type!r} treated as an opaque JSON value")
        return OPAQUE

    def _enum(self, values: list[Any], nullable: bool) -> tuple[EnumKind | NullKind, bool]:
        raw_values: list[str] = []
        for value in values:
            if value is None:
                nullable = True
                continue
            text = value if isinstance(value, str) else str(value)
            if text not in raw_values:
                raw_values.append(text)
        if not raw_values:
            return NullKind(), nullable
        return EnumKind(raw_values), nullable

    def _object(self, raw: dict[str, Any], path: str, base: str) -> ObjectKind:
        properties = {}
        for prop_name, prop_raw in (raw.get("properties") or {}).items():
            properties[prop_name] = self.resolve(prop_raw, path=f"{path}/properties/{prop_name}", hint=to_type_name(prop_name, "Field"))
        required = {r for r in raw.get("required") or [] if isinstance(r, str)}
        additional = None
        extra = raw.get("additionalProperties")
        if extra is True or extra == {}:
            additional = SchemaNode(OPAQUE)
        elif isinstance(extra, dict):
            additional = self.resolve(extra, path=f"{path}/additionalProperties", hint=f"{base}Value")
        return ObjectKind(properties, required, additional)

    def _merge(self, parts: list[Any], path: str, base: str, seen: frozenset[str]) -> ObjectKind:
        """Merge allOf constituents into one object.

        Property collisions are resolved last-listed-wins.
        """
        merged = ObjectKind()
        for index, part in enumerate(parts):
            part_path = f"{path}/{index}"
            if not isinstance(part, dict):
                self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, part_path, "allOf constituent is not a mapping")
                continue
            if "$ref" in part:
                key = self._ref_key(part["$ref"])
                if key is None:
                    self.diagnostics.report(DiagnosticKind.UNRESOLVED_REFERENCE, part_path, f"reference {part['$ref']!r} does not resolve, constituent skipped")
                    continue
                if key in seen:
                    self.diagnostics.report(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT, part_path, f"cyclic allOf through {key!r} skipped")
                    continue
                self._merge_into(merged, self.raw_schemas[key], self.component_path(key), base, seen | {key})
            else:
                self._merge_into(merged, part, part_path, base, seen)
        return merged

    def _merge_into(self, merged: ObjectKind, raw: Any, path: str, base: str, seen: frozenset[str]) -> None:
        if not isinstance(raw, dict):
            return
        if isinstance(raw.get("allOf"), list):
            self._absorb(merged, self._merge(raw["allOf"], f"{path}/allOf", base, seen))
        if "$ref" in raw:
            self._absorb(merged, self._merge([{"$ref": raw["$ref"]}], path, base, seen))
        self._absorb(merged, self._object(raw, path, base))

    @staticmethod
    def _absorb(merged: ObjectKind, part: ObjectKind) -> None:
        # dict.update keeps the first position but the last value: last-listed wins
        merged.properties.update(part.properties)
        merged.required |= part.required
        if part.additional_properties is not None:
            merged.additional_properties = part.additional_properties

    def _collapse_nullable_union(self, variants: list[Any], name: str | None, path: str, hint: str | None) -> SchemaNode | None:
        """``anyOf: [X, {type: null}]`` is a nullable X rather than a union."""
        non_null = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
        if len(non_null) != 1 or len(non_null) == len(variants):
            return None
        node = self.resolve(non_null[0], name=name, path=path, hint=hint)
        node.nullable = True
        return node

    def _union(self, raw: dict[str, Any], variants: list[Any], parent: str, path: str, exclusive: bool) -> UnionKind:
        keyword = "oneOf" if exclusive else "anyOf"
        label = "Option" if exclusive else "Variant"
        discriminator = raw.get("discriminator")
        if isinstance(discriminator, dict):
            field_name = discriminator.get("propertyName")
            mapping = {str(k): str(v) for k, v in (discriminator.get("mapping") or {}).items()}
        else:
            field_name = discriminator if isinstance(discriminator, str) else None
            mapping = {}
        tag_field = field_name or "type"

        union = UnionKind(discriminator_field=field_name, discriminator_mapping=mapping, exclusive=exclusive)
        for index, variant in enumerate(variants):
            variant_path = f"{path}/{keyword}/{index}"
            ref = variant.get("$ref") if isinstance(variant, dict) else None
            target = self.reference_name(ref) if isinstance(ref, str) else None
            if target is not None:
                node = SchemaNode(ReferenceKind(target), source_reference=ref)
                variant_name = target
                variant_raw = self.raw_schemas[self._ref_key(ref)]
            else:
                if ref is not None:
                    self.diagnostics.report(DiagnosticKind.UNRESOLVED_REFERENCE, variant_path, f"reference {ref!r} does not resolve, using an opaque JSON value")
                    variant = {}
                variant_name = self.names.claim(f"{parent}{label}{index + 1}")
                node = self.resolve(variant, name=variant_name, path=variant_path)
                variant_raw = variant
            tag = self._variant_tag(variant_name, ref, variant_raw, tag_field, mapping)
            union.variants.append(UnionVariant(variant_name, node, tag))
        return union

    def _variant_tag(self, variant_name: str, ref: str | None, raw: Any, tag_field: str, mapping: dict[str, str]) -> str:
        """Discriminator value: declared mapping, then a single enum/const value, then the lower-cased name."""
        ref_key = ref.rsplit("/", 1)[-1] if ref else None
        for value, target in mapping.items():
            target_key = target.rsplit("/", 1)[-1]
            if target == ref or target_key == ref_key or target_key == variant_name:
                return value
        if isinstance(raw, dict):
            prop = (raw.get("properties") or {}).get(tag_field)
            if isinstance(prop, dict):
                if "const" in prop:
                    return str(prop["const"])
                enum = prop.get("enum")
                if isinstance(enum, list) and len(enum) == 1:
                    return str(enum[0])
        return variant_name.lower()

    def parameter_primitive(self, raw: Any) -> PrimitiveKind:
        """Primitive kind used to stringify a path or query parameter."""
        seen: set[str] = set()
        while isinstance(raw, dict) and isinstance(raw.get("$ref"), str):
            key = self._ref_key(raw["$ref"])
            if key is None or key in seen:
                return PrimitiveKind("string")
            seen.add(key)
            raw = self.raw_schemas[key]
        if not isinstance(raw, dict):
            return PrimitiveKind("string")
        schema_type, _ = self._schema_type(raw, "#")
        if schema_type in ("integer", "number", "boolean"):
            return PrimitiveKind(schema_type, raw.get("format"))
        return PrimitiveKind("string", raw.get("format"))

    # ------------------------------------------------------------------ graph

    def direct_references(self, name: str) -> list[str]:
        """Named schemas referenced directly by a named node, in field order."""
        if name not in self._edges:
            node = self.nodes.get(name)
            out: list[str] = []
            if node is not None:
                self._collect(node, out, root=True)
            self._edges[name] = list(dict.fromkeys(out))
        return self._edges[name]

    def _collect(self, node: SchemaNode, out: list[str], root: bool = False) -> None:
        if node.name is not None and not root:
            out.append(node.name)
            return
        kind = node.kind
        match kind:
            case ReferenceKind():
                out.append(kind.target_name)
            case ObjectKind():
                self._collect_object(kind, out)
            case CompositionKind():
                self._collect_object(kind.merged, out)
            case ArrayKind():
                self._collect(kind.element, out)
            case UnionKind():
                for variant in kind.variants:
                    self._collect(variant.node, out)
            case PrimitiveKind() | EnumKind() | ConditionalKind() | ConstKind() | NullKind():
                pass
            case _:
                assert_never(kind)

    def _collect_object(self, kind: ObjectKind, out: list[str]) -> None:
        for prop in kind.properties.values():
            self._collect(prop, out)
        if kind.additional_properties is not None:
            self._collect(kind.additional_properties, out)

    def reachable_from(self, name: str) -> set[str]:
        """Every named schema transitively referenced from ``name`` (excluding itself unless cyclic)."""
        if name not in self._reach:
            found: set[str] = set()
            queue = deque(self.direct_references(name))
            while queue:
                current = queue.popleft()
                if current in found:
                    continue
                found.add(current)
                queue.extend(self.direct_references(current))
            self._reach[name] = found
        return self._reach[name]

    def reaches(self, source: str, target: str) -> bool:
        return target in self.reachable_from(source)

    def is_recursive(self, name: str) -> bool:
        """True when a transitive reference from ``name`` returns to it."""
        return self.reaches(name, name)

    def is_complex(self, name: str, property_threshold: int) -> bool:
        """Objects with many properties, unions and compositions count as complex."""
        node = self.nodes.get(name)
        if node is None:
            return False
        kind = node.kind
        if isinstance(kind, (UnionKind, CompositionKind)):
            return True
        return isinstance(kind, ObjectKind) and len(kind.properties) > property_threshold
