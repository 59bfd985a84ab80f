"""
Tests for schema classification, naming, allOf merging and the reference graph.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from openapi_to_code.document import load_spec
from openapi_to_code.pipeline.diagnostics import DiagnosticKind, Diagnostics
from openapi_to_code.pipeline.schema import (
    ArrayKind,
    CompositionKind,
    ConditionalKind,
    ConstKind,
    EnumKind,
    NameRegistry,
    NullKind,
    ObjectKind,
    PrimitiveKind,
    ReferenceKind,
    SchemaResolver,
    UnionKind,
)

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"


def ref(name: str) -> dict:
    return {"$ref": f"#/components/schemas/{name}"}


def resolve(schemas: dict) -> tuple[SchemaResolver, Diagnostics]:
    diagnostics = Diagnostics()
    resolver = SchemaResolver(schemas, diagnostics)
    resolver.resolve_all()
    return resolver, diagnostics


@pytest.fixture
def sample_resolver() -> SchemaResolver:
    document = load_spec(str(SAMPLE))
    resolver, _ = resolve(document.schemas)
    return resolver


class TestClassification:
    def test_components_keep_document_order(self, sample_resolver):
        assert sample_resolver.component_names == ["User", "Error", "TreeNode", "Pet", "Cat", "Dog", "Labels", "Unused"]

    def test_object_properties_and_required(self, sample_resolver):
        kind = sample_resolver.lookup("User").kind
        assert isinstance(kind, ObjectKind)
        assert list(kind.properties) == ["id", "name", "email", "createdAt", "role", "address", "tags"]
        assert kind.required == {"id", "name"}
        assert kind.properties["createdAt"].kind == PrimitiveKind("string", "date-time")
        assert isinstance(kind.properties["tags"].kind, ArrayKind)

    def test_inline_object_and_enum_are_hoisted_with_names(self, sample_resolver):
        user = sample_resolver.lookup("User").kind
        role = user.properties["role"]
        address = user.properties["address"]
        assert role.name == "RoleEnum"
        assert isinstance(role.kind, EnumKind)
        assert role.kind.raw_values == ["admin", "member", "guest"]
        assert address.name == "AddressObject"
        assert sample_resolver.owners["AddressObject"] == "User"

    def test_self_reference_is_a_marker(self, sample_resolver):
        children = sample_resolver.lookup("TreeNode").kind.properties["children"]
        assert isinstance(children.kind, ArrayKind)
        assert children.kind.element.kind == ReferenceKind("TreeNode")

    def test_discriminated_union_uses_mapping_tags(self, sample_resolver):
        kind = sample_resolver.lookup("Pet").kind
        assert isinstance(kind, UnionKind)
        assert kind.exclusive
        assert kind.discriminator_field == "petType"
        assert [(v.name, v.tag) for v in kind.variants] == [("Cat", "cat"), ("Dog", "dog")]

    def test_open_map_without_properties(self, sample_resolver):
        kind = sample_resolver.lookup("Labels").kind
        assert isinstance(kind, ObjectKind)
        assert kind.properties == {}
        assert kind.additional_properties is not None

    def test_degenerate_kinds(self):
        resolver, _ = resolve(
            {
                "Fixed": {"const": "v1"},
                "Nothing": {"type": "null"},
                "Either": {"if": {"type": "string"}, "then": {"minLength": 1}},
                "Free": {"type": "object"},
            }
        )
        assert resolver.lookup("Fixed").kind == ConstKind("v1")
        assert resolver.lookup("Nothing").kind == NullKind()
        assert resolver.lookup("Either").kind == ConditionalKind(has_then=True, has_else=False)
        assert resolver.lookup("Free").is_opaque

    def test_nullable_any_of_collapses(self):
        resolver, _ = resolve(
            {
                "User": {"type": "object", "properties": {"id": {"type": "integer"}}},
                "Holder": {"type": "object", "properties": {"user": {"anyOf": [ref("User"), {"type": "null"}]}}},
            }
        )
        user = resolver.lookup("Holder").kind.properties["user"]
        assert user.kind == ReferenceKind("User")
        assert user.nullable

    def test_type_list_with_null(self):
        resolver, _ = resolve({"Name": {"type": ["string", "null"]}})
        node = resolver.lookup("Name")
        assert node.kind == PrimitiveKind("string")
        assert node.nullable

    def test_anonymous_union_variants_get_names(self):
        resolver, _ = resolve({"Value": {"anyOf": [{"type": "string"}, {"type": "object", "properties": {"a": {"type": "string"}}}]}})
        kind = resolver.lookup("Value").kind
        assert not kind.exclusive
        assert [v.name for v in kind.variants] == ["ValueVariant1", "ValueVariant2"]
        assert resolver.lookup("ValueVariant2") is not None


class TestNaming:
    def test_collisions_are_suffixed(self):
        resolver, _ = resolve({"user": {"type": "string"}, "User": {"type": "integer"}})
        assert resolver.names_by_key == {"user": "User", "User": "User2"}

    def test_reserved_names_are_avoided(self):
        names = NameRegistry()
        names.reserve({"Config"})
        resolver = SchemaResolver({"config": {"type": "string"}}, Diagnostics(), names)
        assert resolver.names_by_key["config"] == "Config2"

    def test_reference_name(self, sample_resolver):
        assert sample_resolver.reference_name("#/components/schemas/Cat") == "Cat"
        assert sample_resolver.reference_name("#/components/schemas/Missing") is None


class TestAllOf:
    def test_merges_every_constituent(self):
        resolver, _ = resolve(
            {
                "Base": {"type": "object", "required": ["id"], "properties": {"id": {"type": "integer"}, "kind": {"type": "string"}}},
                "Extra": {"type": "object", "properties": {"note": {"type": "string"}}},
                "Full": {"allOf": [ref("Base"), ref("Extra"), {"type": "object", "properties": {"extra": {"type": "boolean"}}}]},
            }
        )
        kind = resolver.lookup("Full").kind
        assert isinstance(kind, CompositionKind)
        assert set(kind.merged.properties) == {"id", "kind", "note", "extra"}
        assert kind.merged.required == {"id"}

    def test_last_listed_property_wins(self):
        resolver, _ = resolve(
            {
                "Base": {"type": "object", "properties": {"kind": {"type": "string"}}},
                "Full": {"allOf": [ref("Base"), {"type": "object", "properties": {"kind": {"type": "integer"}}}]},
            }
        )
        merged = resolver.lookup("Full").kind.merged
        assert merged.properties["kind"].kind == PrimitiveKind("integer")

    def test_cyclic_all_of_is_reported(self):
        resolver, diagnostics = resolve({"Loop": {"allOf": [ref("Loop")]}})
        assert isinstance(resolver.lookup("Loop").kind, CompositionKind)
        assert diagnostics.of_kind(DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT)


class TestDiagnostics:
    def test_unresolved_reference_degrades_to_opaque(self):
        resolver, diagnostics = resolve({"Holder": {"type": "object", "properties": {"x": ref("Nowhere")}}})
        assert resolver.lookup("Holder").kind.properties["x"].is_opaque
        found = diagnostics.of_kind(DiagnosticKind.UNRESOLVED_REFERENCE)
        assert len(found) == 1
        assert found[0].location == "#/components/schemas/Holder/properties/x"

    def test_non_mapping_schema(self):
        resolver, diagnostics = resolve({"Odd": [1, 2]})
        assert resolver.lookup("Odd").is_opaque
        assert len(diagnostics) == 1


class TestGraph:
    def test_recursion(self, sample_resolver):
        assert sample_resolver.is_recursive("TreeNode")
        assert not sample_resolver.is_recursive("User")

    def test_reachability(self, sample_resolver):
        assert sample_resolver.reachable_from("Pet") == {"Cat", "Dog"}
        assert sample_resolver.reachable_from("User") == {"RoleEnum", "AddressObject"}

    def test_mutual_recursion(self):
        resolver, _ = resolve(
            {
                "A": {"type": "object", "properties": {"b": ref("B")}},
                "B": {"type": "object", "properties": {"a": ref("A")}},
            }
        )
        assert resolver.reaches("A", "B")
        assert resolver.is_recursive("A")
        assert resolver.is_recursive("B")

    def test_complexity(self, sample_resolver):
        assert sample_resolver.is_complex("Pet", 10)
        assert not sample_resolver.is_complex("User", 10)
        assert sample_resolver.is_complex("User", 5)

    def test_parameter_primitive_follows_references(self):
        resolver, _ = resolve({"Id": {"type": "integer", "format": "int64"}})
        assert resolver.parameter_primitive(ref("Id")) == PrimitiveKind("integer", "int64")
        assert resolver.parameter_primitive(None) == PrimitiveKind("string")
