"""
Tests for the Python backend.

The sample document is generated into a temporary package which is then
imported, so decoders, encoders and requests are exercised for real.
"""

from __future__ import annotations

import base64
import importlib
import json
import sys
from pathlib import Path

import httpx
import pytest

from openapi_to_code.document import load_spec
from openapi_to_code.document.loader import DocumentBuilder
from openapi_to_code.document.model import ApiDocument
from openapi_to_code.output import write_modules
from openapi_to_code.pipeline import GeneratorConfig, PipelineGenerator
from openapi_to_code.pipeline.backends import PythonBackend

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"
PACKAGE = "sample_client"

USER = {
    "id": 7,
    "name": "Ann",
    "createdAt": "2024-01-01T00:00:00Z",
    "role": "admin",
    "address": {"city": "Oslo"},
    "tags": ["a", "b"],
}


@pytest.fixture(scope="module")
def units():
    config = GeneratorConfig(target="python", module_prefix=PACKAGE, generation_timestamp="2024-01-01 00:00:00 UTC")
    return PipelineGenerator(load_spec(str(SAMPLE)), config).generate()


@pytest.fixture(scope="module")
def client_module(units, tmp_path_factory):
    root = tmp_path_factory.mktemp("generated")
    write_modules(root, units)
    sys.path.insert(0, str(root))
    importlib.invalidate_caches()
    try:
        yield importlib.import_module(f"{PACKAGE}.schemas")
    finally:
        sys.path.remove(str(root))
        for name in [m for m in sys.modules if m == PACKAGE or m.startswith(PACKAGE + ".")]:
            del sys.modules[name]


class TestLayout:
    def test_units(self, units):
        paths = [u.relative_path for u in units]
        assert paths == ["sample_client/schemas.py", "sample_client/__init__.py", "sample_client/runtime.py"]

    def test_module_is_valid_python(self, units):
        assert not units[0].source.startswith("# Structural validation failed")

    def test_module_names_are_snake_case(self):
        backend = PythonBackend()
        assert backend.module_name("MyApi", "Types", "AB") == "my_api.types.ab"
        assert backend.module_name("", "Types", "IF") == "api_client.types.if_"

    def test_signature(self, units):
        source = units[0].source
        assert "def get_user_by_id(\n    config: Config,\n    id: int,\n    *,\n    verbose: bool | None = None,\n" in source
        assert ") -> runtime.Ok[User] | runtime.Err[GetUserByIdError]:" in source
        assert "def put_labels(\n    config: Config,\n    body: Labels,\n" in source


class TestCodecs:
    def test_record_round_trip(self, client_module):
        user = client_module.decode_user(USER)
        assert user.role is client_module.RoleEnum.ADMIN
        assert user.address.city == "Oslo"
        assert user.address.street is None
        assert user.email is None
        assert client_module.encode_user(user) == USER

    def test_missing_required_field(self, client_module):
        with pytest.raises(client_module.runtime.MissingFieldError) as excinfo:
            client_module.decode_user({"name": "Ann"})
        assert excinfo.value.field_name == "id"

    def test_wrong_primitive(self, client_module):
        with pytest.raises(client_module.runtime.DecodeError):
            client_module.decode_user({"id": "seven", "name": "Ann"})

    def test_invalid_enum(self, client_module):
        with pytest.raises(client_module.runtime.DecodeError):
            client_module.decode_role_enum("owner")

    def test_discriminated_union(self, client_module):
        pet = client_module.decode_pet({"petType": "dog", "name": "Rex", "barks": True})
        assert isinstance(pet, client_module.DogConstructor)
        assert pet.value.barks is True
        assert client_module.encode_pet(pet) == {"petType": "dog", "name": "Rex", "barks": True}

    def test_unknown_discriminator(self, client_module):
        runtime = client_module.runtime
        with pytest.raises(runtime.UnknownDiscriminatorError):
            client_module.decode_pet({"petType": "bird", "name": "Tweety"})
        with pytest.raises(runtime.MissingFieldError):
            client_module.decode_pet({"name": "Tweety"})

    def test_recursive_record(self, client_module):
        tree = {"value": "root", "children": [{"value": "leaf", "children": []}]}
        node = client_module.decode_tree_node(tree)
        child = node.children[0]
        assert isinstance(child, client_module.runtime.Lazy)
        assert child.force().value == "leaf"
        assert client_module.encode_tree_node(node) == tree

    def test_recursive_child_is_validated_on_decode(self, client_module):
        with pytest.raises(client_module.runtime.MissingFieldError) as excinfo:
            client_module.decode_tree_node({"value": "root", "children": [{"children": []}]})
        assert excinfo.value.field_name == "value"

    def test_open_map(self, client_module):
        labels = client_module.decode_labels({"env": "prod", "replicas": 3})
        assert labels.additional_properties == {"env": "prod", "replicas": 3}
        assert client_module.encode_labels(labels) == {"env": "prod", "replicas": 3}


class TestRequests:
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/users/7":
            return httpx.Response(200, json=USER)
        if request.url.path == "/v1/users" and request.method == "POST":
            return httpx.Response(400, json={"message": "name taken"})
        if request.url.path == "/v1/labels":
            return httpx.Response(204)
        return httpx.Response(404, text="no such user")

    @pytest.fixture
    def client(self):
        self.requests = []
        with httpx.Client(transport=httpx.MockTransport(self.handler)) as client:
            yield client

    def test_success(self, client_module, client):
        result = client_module.get_user_by_id(client_module.default_config, 7, verbose=True, client=client)
        assert isinstance(result, client_module.runtime.Ok)
        assert result.value.name == "Ann"
        request = self.requests[0]
        assert request.method == "GET"
        assert request.url.params["verbose"] == "true"
        assert request.headers["X-API-Key"] == "your-api-key"

    def test_declared_error(self, client_module, client):
        result = client_module.get_user_by_id(client_module.default_config, 8, client=client)
        assert isinstance(result, client_module.runtime.Err)
        assert isinstance(result.error, client_module.GetUserByIdError404)
        assert result.error.value == "no such user"
        assert "verbose" not in self.requests[0].url.params

    def test_decoded_error_payload(self, client_module, client):
        user = client_module.decode_user(USER)
        result = client_module.create_user(client_module.default_config, user, client=client)
        assert isinstance(result.error, client_module.CreateUserError400)
        assert result.error.value.message == "name taken"
        request = self.requests[0]
        assert request.headers["Authorization"] == "Bearer your-bearer-token"
        assert json.loads(request.content) == USER

    def test_empty_success(self, client_module, client):
        labels = client_module.Labels(additional_properties={"env": "prod"})
        result = client_module.put_labels(client_module.default_config, labels, client=client)
        assert result == client_module.runtime.Ok(None)

    def test_custom_configuration(self, client_module, client):
        config = client_module.Config(base_url="https://other.test/v1", api_key="secret", custom_headers=(("X-Trace", "1"),))
        client_module.get_user_by_id(config, 7, client=client)
        request = self.requests[0]
        assert request.url.host == "other.test"
        assert request.headers["X-API-Key"] == "secret"
        assert request.headers["X-Trace"] == "1"

    def test_transport_failure(self, client_module):
        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(fail)) as client:
            result = client_module.get_user_by_id(client_module.default_config, 7, client=client)
        assert isinstance(result.error, client_module.GetUserByIdErrorUnknown)
        assert "refused" in result.error.value


def document_with(schemas: dict, paths: dict, **sections) -> ApiDocument:
    raw = {"openapi": "3.0.0", "info": {"title": "Generated"}, "components": {"schemas": schemas, **sections}, "paths": paths}
    return DocumentBuilder(raw).build()


def get_operation(operation_id: str, schema_name: str, **extra) -> dict:
    schema = {"$ref": f"#/components/schemas/{schema_name}"}
    responses = {"200": {"description": "ok", "content": {"application/json": {"schema": schema}}}}
    return {"get": {"operationId": operation_id, "responses": responses, **extra}}


@pytest.fixture
def generated(tmp_path):
    """Generate a document into its own package under tmp_path and import one module."""
    packages = []
    sys.path.insert(0, str(tmp_path))

    def load(document: ApiDocument, package: str, module: str = "schemas"):
        config = GeneratorConfig(target="python", module_prefix=package, generation_timestamp="2024-01-01 00:00:00 UTC")
        write_modules(tmp_path, PipelineGenerator(document, config).generate())
        packages.append(package)
        importlib.invalidate_caches()
        return importlib.import_module(f"{package}.{module}")

    try:
        yield load
    finally:
        sys.path.remove(str(tmp_path))
        for name in [m for m in sys.modules if any(m == p or m.startswith(p + ".") for p in packages)]:
            del sys.modules[name]


def recording_client(requests: list, payload: dict) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=payload)

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestUntaggedUnion:
    def test_first_matching_variant_wins(self, generated):
        schemas = {"Amount": {"anyOf": [{"type": "integer"}, {"type": "number"}]}}
        module = generated(document_with(schemas, {"/amount": get_operation("getAmount", "Amount")}), "amount_client")
        # 3 is both an integer and a number
        whole = module.decode_amount(3)
        assert isinstance(whole, module.AmountVariant1Constructor)
        assert whole.value == 3
        fraction = module.decode_amount(2.5)
        assert isinstance(fraction, module.AmountVariant2Constructor)
        assert module.encode_amount(fraction) == 2.5
        with pytest.raises(module.runtime.DecodeError, match="No Amount variant matched"):
            module.decode_amount("three")


class TestConditional:
    def test_decodes_to_unknown_and_encodes_branches(self, generated):
        schemas = {"Rule": {"if": {"type": "string"}, "then": {"minLength": 1}, "else": {"type": "integer"}}}
        module = generated(document_with(schemas, {"/rule": get_operation("getRule", "Rule")}), "rule_client")
        rule = module.decode_rule({"kind": "raw"})
        assert rule == module.Rule("unknown", {"kind": "raw"})
        assert module.encode_rule(rule) == {"kind": "raw"}
        assert module.encode_rule(module.Rule("then")) == {"type": "then"}
        assert module.encode_rule(module.Rule("else")) == {"type": "else"}


class TestAuthentication:
    SCHEMAS = {"Item": {"type": "object", "properties": {"id": {"type": "integer"}}}}

    def test_basic_auth_header(self, generated):
        security = {"securitySchemes": {"basicAuth": {"type": "http", "scheme": "basic"}}}
        paths = {"/item": get_operation("getItem", "Item", security=[{"basicAuth": []}])}
        module = generated(document_with(self.SCHEMAS, paths, **security), "basic_client")
        requests = []
        credentials = base64.b64encode(b"ann:secret").decode()
        with recording_client(requests, {"id": 1}) as client:
            result = module.get_item(module.Config(basic_auth=credentials), client=client)
            module.get_item(module.default_config, client=client)
        assert result.value == module.Item(id=1)
        assert requests[0].headers["Authorization"] == f"Basic {credentials}"
        assert requests[1].headers["Authorization"] == "Basic your-basic-auth"

    def test_api_key_header_defaults_to_x_api_key(self, generated):
        security = {"securitySchemes": {"key": {"type": "apiKey", "in": "header"}}}
        paths = {"/item": get_operation("getItem", "Item", security=[{"key": []}])}
        module = generated(document_with(self.SCHEMAS, paths, **security), "key_client")
        requests = []
        with recording_client(requests, {"id": 1}) as client:
            module.get_item(module.Config(api_key="k-1"), client=client)
        assert requests[0].headers["X-API-Key"] == "k-1"


class TestSplitPackage:
    def document(self) -> ApiDocument:
        schemas = {f"Alpha{i}": {"type": "object", "required": ["x"], "properties": {"x": {"type": "string"}}} for i in range(60)}
        schemas["Beta"] = {"type": "object", "properties": {"alpha": {"$ref": "#/components/schemas/Alpha0"}}}
        paths = {f"/{name.lower()}": get_operation(f"get{name}", name) for name in schemas}
        return document_with(schemas, paths)

    def test_cross_module_imports(self, generated):
        beta_module = generated(self.document(), "big_client", "types.be")
        alpha_module = importlib.import_module("big_client.types.al")
        beta = beta_module.decode_beta({"alpha": {"x": "first"}})
        assert isinstance(beta.alpha, alpha_module.Alpha0)
        assert beta_module.encode_beta(beta) == {"alpha": {"x": "first"}}

    def test_api_module_decodes_through_type_modules(self, generated):
        api = generated(self.document(), "big_client", "api")
        alpha_module = importlib.import_module("big_client.types.al")
        requests = []
        with recording_client(requests, {"x": "1"}) as client:
            result = api.get_alpha_0(api.Config(base_url="https://big.test"), client=client)
        assert isinstance(result.value, alpha_module.Alpha0)
        assert str(requests[0].url) == "https://big.test/alpha0"
        with pytest.raises(alpha_module.runtime.MissingFieldError):
            alpha_module.decode_alpha_0({})
