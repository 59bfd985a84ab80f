"""
Tests for the C# backend: records, codecs, requests, layout and the runtime file.
"""

from __future__ import annotations

import unittest
from pathlib import Path

from openapi_to_code.document import load_spec
from openapi_to_code.document.loader import DocumentBuilder
from openapi_to_code.document.model import ApiDocument
from openapi_to_code.pipeline import GeneratorConfig, PipelineGenerator, available_targets, get_backend
from openapi_to_code.pipeline.backends import CSharpBackend
from openapi_to_code.pipeline.backends.csharp_backend import brace_balance, csharp_string, xml_doc
from openapi_to_code.pipeline.synthesis import EnumDecl

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"
TIMESTAMP = "2024-01-01 00:00:00 UTC"


def generate(document: ApiDocument, **options):
    config = GeneratorConfig(target="csharp", generation_timestamp=TIMESTAMP, **options)
    return PipelineGenerator(document, config).generate()


def json_response(name: str) -> dict:
    schema = {"$ref": f"#/components/schemas/{name}"}
    return {"200": {"description": "ok", "content": {"application/json": {"schema": schema}}}}


def single_schema_document(name: str, schema: dict, parameters: list | None = None) -> ApiDocument:
    operation = {"operationId": f"get{name}", "responses": json_response(name)}
    if parameters:
        operation["parameters"] = parameters
    return DocumentBuilder(
        {
            "openapi": "3.0.0",
            "info": {"title": name},
            "components": {"schemas": {name: schema}},
            "paths": {f"/{name.lower()}/{{url}}" if parameters else f"/{name.lower()}": {"get": operation}},
        }
    ).build()


class TestSampleModule(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.units = generate(load_spec(str(SAMPLE)))
        cls.source = cls.units[0].source

    def test_units(self):
        self.assertEqual([u.qualified_name for u in self.units], ["GeneratedApi.Schemas", "GeneratedApi.Runtime"])
        self.assertEqual([u.relative_path for u in self.units], ["GeneratedApi/Schemas.cs", "GeneratedApi/Runtime.cs"])

    def test_header_and_usings(self):
        self.assertTrue(self.source.startswith("// <auto-generated>\n//   GeneratedApi.Schemas\n"))
        self.assertIn(TIMESTAMP, self.source)
        self.assertIn("// Diagnostics:\n", self.source)
        self.assertIn("PUT /labels: no operationId", self.source)
        for line in ["using System.Net.Http;", "using Newtonsoft.Json.Linq;", "using GeneratedApi.Runtime;", "namespace GeneratedApi.Schemas;"]:
            self.assertIn(line + "\n", self.source)

    def test_module_passes_structural_validation(self):
        self.assertFalse(self.source.startswith("// Structural validation failed"))
        self.assertEqual(brace_balance(self.source), 0)

    def test_record(self):
        self.assertIn("/// <summary>A registered user</summary>\npublic sealed record User\n{\n    public required long Id { get; init; }\n", self.source)
        self.assertIn("    public Email? Email { get; init; }\n", self.source)
        self.assertIn("    public RoleEnum? Role { get; init; }\n", self.source)
        self.assertIn("    public List<string>? Tags { get; init; }\n", self.source)
        self.assertIn("public sealed record DateTime(string Value);", self.source)

    def test_record_codec(self):
        self.assertIn('        Id = JsonCodec.Required(data, "id", JsonCodec.DecodeLong, "User"),\n', self.source)
        self.assertIn('        Tags = JsonCodec.Optional(data, "tags", JsonCodec.NullableRef(JsonCodec.ListOf(JsonCodec.DecodeString)), "User"),\n', self.source)
        self.assertIn('        Role = JsonCodec.Optional(data, "role", JsonCodec.NullableValue(Codec.DecodeRoleEnum), "User"),\n', self.source)
        # Nullable enums are unwrapped before encoding
        self.assertIn('if (value.Role is not null)\n        {\n            data["role"] = Codec.EncodeRoleEnum(value.Role.Value);', self.source)
        self.assertIn('data["tags"] = JsonCodec.EncodeList<string>(JsonCodec.EncodeString)(value.Tags);', self.source)

    def test_enum(self):
        self.assertIn("public enum RoleEnum\n{\n    Admin,\n    Member,\n    Guest,\n}", self.source)
        self.assertIn('"admin" => RoleEnum.Admin,', self.source)
        self.assertIn('RoleEnum.Guest => new JValue("guest"),', self.source)

    def test_discriminated_union(self):
        self.assertIn("public abstract record Pet;\n\npublic sealed record CatConstructor(Cat Value) : Pet;", self.source)
        self.assertIn('var tag = JsonCodec.Discriminator(data, "petType", "Pet");', self.source)
        self.assertIn('"dog" => new DogConstructor(Codec.DecodeDog(value)),', self.source)
        self.assertIn('_ => throw new UnknownDiscriminatorException("Pet", "petType", tag),', self.source)
        self.assertIn("DogConstructor inner => Codec.EncodeDog(inner.Value),", self.source)

    def test_recursive_record(self):
        self.assertIn("    public List<TreeNode>? Children { get; init; }\n", self.source)
        self.assertIn("JsonCodec.NullableRef(JsonCodec.ListOf(Codec.DecodeTreeNode))", self.source)

    def test_open_map(self):
        self.assertIn("public Dictionary<string, JToken> AdditionalProperties { get; init; } = new();", self.source)
        self.assertIn("AdditionalProperties = JsonCodec.Additional(data, Array.Empty<string>(), JsonCodec.DecodeAny),", self.source)

    def test_request(self):
        self.assertIn(
            "/// <summary>Fetch one user</summary>\n"
            "    public static async Task<Result<User, GetUserByIdError>> GetUserByIdAsync(\n"
            "        Config config,\n"
            "        long id,\n"
            "        bool? verbose = null,\n"
            "        HttpClient? client = null,\n"
            "        CancellationToken cancellationToken = default)",
            self.source,
        )
        self.assertIn('query.Add(("verbose", Transport.StringifyBool(verbose.Value)));', self.source)
        self.assertIn('var headers = new List<(string Name, string Value)> { ("X-API-Key", config.ApiKey) };', self.source)
        self.assertIn('new string[] { "users", Transport.Segment(Transport.StringifyLong(id)) }', self.source)
        self.assertIn('new HttpMethod("GET")', self.source)

    def test_error_type(self):
        self.assertIn(
            "// Error types for GetUserByIdAsync operation\n"
            "public abstract record GetUserByIdError;\n\n"
            "public sealed record GetUserByIdError404(string Value) : GetUserByIdError;\n\n"
            "public sealed record GetUserByIdErrorUnknown(string Value) : GetUserByIdError;",
            self.source,
        )
        self.assertIn("return new Result<User, GetUserByIdError>.Err(new GetUserByIdError404(text));", self.source)

    def test_body_and_bearer(self):
        self.assertIn('("Authorization", "Bearer " + config.BearerToken)', self.source)
        self.assertIn("Codec.EncodeUser(body)", self.source)
        self.assertIn("new CreateUserError400(Codec.DecodeError(JToken.Parse(text)))", self.source)

    def test_unit_success_and_list_payload(self):
        self.assertIn("Task<Result<Unit, HttpError>> PutLabelsAsync(", self.source)
        self.assertIn("return new Result<Unit, HttpError>.Ok(default);", self.source)
        self.assertIn("Task<Result<List<Pet>, HttpError>> ListPetsAsync(", self.source)
        self.assertIn("return new Result<List<Pet>, HttpError>.Err(new HttpError((int)response.StatusCode, text));", self.source)

    def test_configuration(self):
        self.assertIn('    public string BaseUrl { get; init; } = "https://api.sample.test/v1";\n', self.source)
        self.assertIn('    public string ApiKey { get; init; } = "your-api-key";\n', self.source)
        self.assertIn("public static readonly Config DefaultConfig = new();", self.source)

    def test_runtime_file(self):
        runtime = self.units[1].source
        self.assertIn("namespace GeneratedApi.Runtime;", runtime)
        self.assertIn("public abstract record Result<T, E>", runtime)
        self.assertIn("public static T OneOf<T>(", runtime)
        self.assertIn("public static class Transport", runtime)


class TestDeclarations:
    def test_recursive_alias_is_a_wrapper_record(self):
        document = single_schema_document("Forest", {"type": "array", "items": {"$ref": "#/components/schemas/Forest"}})
        source = generate(document)[0].source
        assert "public sealed record Forest(List<Forest> Value);" in source
        assert "new Forest(JsonCodec.ListOf(Codec.DecodeForest)(value));" in source
        assert "JsonCodec.EncodeList<Forest>(Codec.EncodeForest)(value.Value);" in source

    def test_untagged_union_tries_alternatives_in_order(self):
        schema = {"anyOf": [{"type": "string"}, {"type": "integer"}]}
        source = generate(single_schema_document("Scalar", schema))[0].source
        assert "public sealed record ScalarVariant1(string Value);" in source
        assert "public sealed record ScalarVariant2(long Value);" in source
        assert "JsonCodec.OneOf<Scalar>(" in source
        first = source.index("token => new ScalarVariant1Constructor(Codec.DecodeScalarVariant1(token))")
        second = source.index("token => new ScalarVariant2Constructor(Codec.DecodeScalarVariant2(token))")
        assert first < second

    def test_conditional(self):
        schema = {"if": {"type": "string"}, "then": {"type": "string"}, "else": {"type": "integer"}}
        source = generate(single_schema_document("Shape", schema))[0].source
        assert "public sealed record Shape(string Branch, JToken? Raw = null);" in source
        assert 'new Shape("unknown", value);' in source
        assert '? new JObject { ["type"] = value.Branch }' in source

    def test_enum_members_are_valid_identifiers(self):
        rendered = CSharpBackend().render_enum(EnumDecl(name="Odd", values=["a-b", "", "Odd"]))
        assert "    AB,\n    Value,\n    Odd2,\n" in rendered.type_text

    def test_empty_enum_becomes_placeholder(self):
        rendered = CSharpBackend().render_enum(EnumDecl(name="Empty"))
        assert rendered.type_text.startswith("// Empty could not be generated: enum without values")
        assert "public sealed record Empty(JToken Value);" in rendered.type_text


class TestRequestVariables:
    def test_parameter_names_are_escaped_and_distinct(self):
        parameters = [
            {"name": "url", "in": "path", "required": True, "schema": {"type": "string"}},
            {"name": "class", "in": "query", "schema": {"type": "string"}},
            {"name": "text", "in": "query", "schema": {"type": "integer"}},
        ]
        document = single_schema_document("Item", {"type": "object", "properties": {"id": {"type": "integer"}}}, parameters)
        source = generate(document)[0].source
        assert "        string url2,\n        string? @class = null,\n        long? text2 = null," in source
        assert 'query.Add(("class", @class));' in source
        assert 'query.Add(("text", Transport.StringifyLong(text2.Value)));' in source
        assert 'new string[] { "item", Transport.Segment(url2) }' in source


class TestSplitLayout:
    def document(self) -> ApiDocument:
        schemas = {f"Alpha{i}": {"type": "object", "properties": {"x": {"type": "string"}}} for i in range(60)}
        schemas["Beta"] = {"type": "object", "properties": {"alpha": {"$ref": "#/components/schemas/Alpha0"}}}
        paths = {f"/{name.lower()}": {"get": {"operationId": f"get{name}", "responses": json_response(name)}} for name in schemas}
        return DocumentBuilder({"openapi": "3.0.0", "info": {"title": "Big"}, "components": {"schemas": schemas}, "paths": paths}).build()

    def test_namespaces_and_cross_module_references(self):
        units = generate(self.document(), module_prefix="shop_api")
        assert [u.qualified_name for u in units] == ["ShopApi.Types.AL", "ShopApi.Types.BE", "ShopApi.Api", "ShopApi.Runtime"]
        beta = units[1].source
        assert "using ShopApi.Types.AL;\n" in beta
        assert "Alpha = JsonCodec.Optional(data, \"alpha\", JsonCodec.NullableRef(global::ShopApi.Types.AL.Codec.DecodeAlpha0), \"Beta\")," in beta
        api = units[2].source
        assert "partial class Codec" not in api
        assert "global::ShopApi.Types.AL.Codec.DecodeAlpha0(JToken.Parse(text))" in api
        assert units[3].relative_path == "ShopApi/Runtime.cs"


class TestBackend:
    def test_registered(self):
        assert "csharp" in available_targets()
        assert isinstance(get_backend("CSharp"), CSharpBackend)

    def test_module_names(self):
        backend = CSharpBackend()
        assert backend.module_name("my_api", "Types", "AB") == "MyApi.Types.AB"
        assert backend.module_name("", "Schemas") == "GeneratedApi.Schemas"

    def test_validation(self):
        backend = CSharpBackend()
        assert backend.validate_output("namespace A;\n\npublic sealed record B;\n").ok
        outcome = backend.validate_output("public static class C\n{\n")
        assert not outcome.ok
        assert outcome.problems == ("missing namespace declaration", "unbalanced braces (+1)")

    def test_braces_in_strings_and_comments_are_ignored(self):
        assert brace_balance('var s = "{ \\" {";\n// }\n') == 0

    def test_literals(self):
        assert csharp_string('say "hi"\n') == '"say \\"hi\\"\\n"'
        assert xml_doc("a < b & c") == "/// <summary>a &lt; b &amp; c</summary>\n"
        assert xml_doc(None) == ""
