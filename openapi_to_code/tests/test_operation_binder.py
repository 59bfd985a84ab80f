"""
Tests for operation binding: names, parameters, responses, errors and authentication.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from openapi_to_code.document import load_spec
from openapi_to_code.document.model import ApiDocument, Operation, Response
from openapi_to_code.pipeline.binder import (
    HeaderStep,
    LiteralSegment,
    OperationBinder,
    ParameterSegment,
    client_configuration,
)
from openapi_to_code.pipeline.binder.binder import fallback_function_name, normalize_operation_id
from openapi_to_code.pipeline.diagnostics import DiagnosticKind, Diagnostics
from openapi_to_code.pipeline.schema import SchemaResolver
from openapi_to_code.pipeline.synthesis import Requirement, TypeRef

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"


def bind(document: ApiDocument):
    diagnostics = Diagnostics()
    resolver = SchemaResolver(document.schemas, diagnostics, ref_prefix=document.schema_ref_prefix)
    resolver.resolve_all()
    bindings = OperationBinder(document, resolver, diagnostics).bind_all()
    return {b.function_name: b for b in bindings}, diagnostics


@pytest.fixture
def sample():
    return load_spec(str(SAMPLE))


@pytest.fixture
def bound(sample):
    return bind(sample)


class TestNames:
    def test_operation_ids_are_normalized(self):
        assert normalize_operation_id("get-user_by.id") == "getuserbyid"
        assert normalize_operation_id(None) == ""

    def test_fallback_name(self):
        assert fallback_function_name("GET", "/users/{id}") == "get_users_id"
        assert fallback_function_name("put", "/labels") == "put_labels"

    def test_missing_operation_id_is_reported(self, bound):
        bindings, diagnostics = bound
        assert list(bindings) == ["getUserById", "createUser", "listPets", "getTree", "put_labels"]
        found = diagnostics.of_kind(DiagnosticKind.MISSING_OPERATION_FIELD)
        assert [d.location for d in found] == ["PUT /labels"]

    def test_fallback_names_are_stable(self, sample):
        first, _ = bind(sample)
        second, _ = bind(sample)
        assert list(first) == list(second)


class TestParameters:
    def test_path_template(self, bound):
        binding = bound[0]["getUserById"]
        assert binding.path_segments == (LiteralSegment("users"), ParameterSegment("id", "integer"))
        assert binding.http_method == "GET"

    def test_path_and_query_parameters(self, bound):
        binding = bound[0]["getUserById"]
        path_id = binding.path_parameters[0]
        verbose = binding.query_parameters[0]
        assert (path_id.name, path_id.required, path_id.type_ref) == ("id", True, TypeRef.primitive("integer"))
        assert (verbose.name, verbose.required, verbose.type_ref) == ("verbose", False, TypeRef.optional(TypeRef.primitive("boolean")))

    def test_undeclared_path_parameter(self):
        document = ApiDocument(
            spec_version="3.0.0",
            operations=[Operation("/items/{itemId}", "get", "getItem", responses={"204": Response("Empty")})],
        )
        bindings, diagnostics = bind(document)
        parameter = bindings["getItem"].path_parameters[0]
        assert parameter.stringifier == "string"
        assert "itemId" in diagnostics.of_kind(DiagnosticKind.MISSING_OPERATION_FIELD)[0].message


class TestResponses:
    def test_success_and_error_types(self, bound):
        binding = bound[0]["getUserById"]
        assert binding.success_type == TypeRef.named("User")
        error = binding.error_type
        assert error.name == "GetUserByIdError"
        assert [(c.status, c.constructor, c.payload) for c in error.cases] == [("404", "GetUserByIdError404", None)]
        assert error.unknown == "GetUserByIdErrorUnknown"
        assert error.operation == "getUserById"

    def test_error_payloads_are_decoded(self, bound):
        error = bound[0]["createUser"].error_type
        assert error.case_for("400").payload == TypeRef.named("Error")
        assert error.references == {"Error"}

    def test_created_is_canonical_without_ok(self, bound):
        assert bound[0]["createUser"].success_type == TypeRef.named("User")

    def test_list_payload(self, bound):
        binding = bound[0]["listPets"]
        assert binding.success_type == TypeRef.list_of(TypeRef.named("Pet"))
        assert binding.error_type is None
        assert binding.references == {"Pet"}

    def test_empty_success_is_unit(self, bound):
        binding = bound[0]["put_labels"]
        assert binding.success_type == TypeRef.unit()
        assert binding.request_body.type_ref == TypeRef.named("Labels")
        assert not binding.request_body.required

    def test_no_success_response(self):
        document = ApiDocument(spec_version="3.0.0", operations=[Operation("/x", "delete", "drop", responses={"500": Response("Boom")})])
        bindings, _ = bind(document)
        assert bindings["drop"].success_type == TypeRef.json_value()
        assert Requirement.JSON_VALUE in bindings["drop"].requirements


class TestBody:
    def test_body_needs_encoding(self, bound):
        binding = bound[0]["createUser"]
        assert binding.request_body.type_ref == TypeRef.named("User")
        assert binding.request_body.required
        assert Requirement.ENCODE in binding.requirements
        assert Requirement.ENCODE not in bound[0]["getUserById"].requirements


class TestSecurity:
    def test_header_steps(self, bound):
        bindings, _ = bound
        assert bindings["getUserById"].security == (HeaderStep("X-API-Key", "apiKey"),)
        assert bindings["createUser"].security == (HeaderStep("Authorization", "bearerToken", "Bearer "),)
        assert bindings["listPets"].security == ()

    def test_client_configuration(self, sample):
        config = client_configuration(sample, "http://localhost", {"X-Trace": "1"})
        assert config.base_url == "https://api.sample.test/v1"
        assert [c.name for c in config.credentials] == ["apiKey", "bearerToken"]
        assert config.custom_headers == (("X-Trace", "1"),)
        assert config.credential("basic") is None

    def test_default_base_url(self):
        config = client_configuration(ApiDocument(spec_version="3.0.0"), "http://localhost")
        assert config.base_url == "http://localhost"
        assert config.credentials == ()
