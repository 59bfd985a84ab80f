"""
Tests for loading API descriptions from files, text and URLs.
"""

import json
import unittest
from pathlib import Path

import httpx
import pytest

from openapi_to_code.document import load_spec
from openapi_to_code.document.loader import DocumentBuilder, parse_text
from openapi_to_code.errors import CatastrophicParseFailure

SAMPLE = Path(__file__).parent / "test_data" / "sample.yaml"

SWAGGER = {
    "swagger": "2.0",
    "info": {"title": "Legacy", "version": "1"},
    "host": "legacy.test",
    "basePath": "/api/",
    "schemes": ["http"],
    "securityDefinitions": {"basicAuth": {"type": "basic"}},
    "definitions": {"Item": {"type": "object", "properties": {"id": {"type": "integer"}}}},
    "paths": {
        "/items": {
            "post": {
                "operationId": "addItem",
                "parameters": [
                    {"name": "body", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Item"}},
                    {"name": "dryRun", "in": "query", "type": "boolean"},
                ],
                "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Item"}}},
            }
        }
    },
}


class TestLoadSample(unittest.TestCase):
    def setUp(self):
        self.document = load_spec(str(SAMPLE))

    def test_info(self):
        self.assertEqual(self.document.title, "Sample API")
        self.assertEqual(self.document.version, "1.2.0")
        self.assertEqual(self.document.schema_ref_prefix, "#/components/schemas/")
        self.assertIn("Version: 1.2.0", self.document.api_description)

    def test_servers_and_security(self):
        self.assertEqual(self.document.servers[0].url, "https://api.sample.test/v1")
        self.assertEqual(self.document.security_schemes["apiKeyAuth"].credential_kind, "apiKey")
        self.assertEqual(self.document.security_schemes["bearerAuth"].credential_kind, "bearer")

    def test_operations(self):
        locations = [op.location for op in self.document.operations]
        self.assertEqual(locations, ["GET /users/{id}", "POST /users", "GET /pets", "GET /trees/{treeId}", "PUT /labels"])
        get_user = self.document.operations[0]
        self.assertEqual(get_user.security, [{"apiKeyAuth": []}])
        self.assertIsNone(self.document.operations[2].security)


class TestSwagger(unittest.TestCase):
    def setUp(self):
        self.document = DocumentBuilder(SWAGGER).build()

    def test_definitions_and_host(self):
        self.assertEqual(self.document.schema_ref_prefix, "#/definitions/")
        self.assertIn("Item", self.document.schemas)
        self.assertEqual(self.document.servers[0].url, "http://legacy.test/api")

    def test_body_parameter_becomes_request_body(self):
        operation = self.document.operations[0]
        self.assertTrue(operation.request_body.required)
        self.assertEqual(operation.request_body.json_schema(), (True, {"$ref": "#/definitions/Item"}))
        self.assertEqual([p.name for p in operation.parameters], ["dryRun"])
        self.assertEqual(operation.parameters[0].schema, {"type": "boolean"})

    def test_response_schema(self):
        found, schema = self.document.operations[0].responses["200"].json_schema()
        self.assertTrue(found)
        self.assertEqual(schema, {"$ref": "#/definitions/Item"})

    def test_basic_auth(self):
        self.assertEqual(self.document.security_schemes["basicAuth"].credential_kind, "basic")


class TestParseFailures:
    def test_json_text(self):
        raw = parse_text(json.dumps({"openapi": "3.1.0", "paths": {}}), "api.json")
        assert raw["openapi"] == "3.1.0"

    @pytest.mark.parametrize(
        "text",
        ["", "openapi: [unclosed", "- just\n- a list\n", '{"info": {}}'],
    )
    def test_unusable_documents(self, text):
        with pytest.raises(CatastrophicParseFailure):
            parse_text(text, "broken.yaml")

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatastrophicParseFailure, match="file not found"):
            load_spec(str(tmp_path / "absent.yaml"))

    def test_paths_must_be_a_mapping(self):
        with pytest.raises(CatastrophicParseFailure):
            DocumentBuilder({"openapi": "3.0.0", "paths": ["nope"]}).build()

    @pytest.mark.parametrize(
        "raw, key",
        [
            ({"openapi": "3.0.0", "components": "nope"}, "components"),
            ({"openapi": "3.0.0", "components": {"securitySchemes": ["nope"]}}, "securitySchemes"),
            ({"openapi": "3.0.0", "components": {"schemas": 3}}, "schemas"),
            ({"swagger": "2.0", "definitions": ["nope"]}, "definitions"),
        ],
    )
    def test_sections_must_be_mappings(self, raw, key):
        with pytest.raises(CatastrophicParseFailure, match=f"'{key}' is not a mapping"):
            DocumentBuilder(raw).build()


class TestRemote:
    def test_download(self):
        text = SAMPLE.read_text()
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=text)

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            document = load_spec("https://specs.test/sample.yaml", client=client)
        assert document.title == "Sample API"
        assert seen[0].headers["User-Agent"].startswith("openapi_to_code/")

    def test_download_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        with httpx.Client(transport=transport) as client:
            with pytest.raises(CatastrophicParseFailure, match="download failed"):
                load_spec("https://specs.test/missing.json", client=client)
