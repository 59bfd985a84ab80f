"""
Load an API description from a local file or a URL.

Handles YAML and JSON, OpenAPI 3.x and Swagger 2.0. Anything that does not
yield a usable top-level document raises ``CatastrophicParseFailure``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import yaml

from .. import __version__
from ..errors import CatastrophicParseFailure
from .model import HTTP_METHODS, ApiDocument, Operation, Parameter, RequestBody, Response, SecurityScheme, Server

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30.0
USER_AGENT = f"openapi_to_code/{__version__}"


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def looks_like_yaml(source: str, text: str) -> bool:
    """YAML when the name says so, or when the content opens with a version key."""
    if source.lower().split("?")[0].endswith((".yaml", ".yml")):
        return True
    head = text.lstrip()
    return head.startswith(("openapi:", "swagger:", "---"))


def read_source(source: str, client: httpx.Client | None = None) -> str:
    """Return the raw text of a local file or a remote document."""
    if is_url(source):
        logger.debug("Downloading %s", source)
        owned = client is None
        http = client or httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
        try:
            response = http.get(source, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            raise CatastrophicParseFailure(source, f"download failed: {e}") from e
        finally:
            if owned:
                http.close()

    path = Path(source)
    if not path.is_file():
        raise CatastrophicParseFailure(source, "file not found")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CatastrophicParseFailure(source, str(e)) from e


def parse_text(text: str, source: str = "<string>") -> dict[str, Any]:
    """Parse YAML or JSON text into the raw document mapping."""
    if not text.strip():
        raise CatastrophicParseFailure(source, "document is empty")
    try:
        if looks_like_yaml(source, text):
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise CatastrophicParseFailure(source, str(e)) from e

    if not isinstance(raw, dict):
        raise CatastrophicParseFailure(source, "top-level value is not a mapping")
    if "openapi" not in raw and "swagger" not in raw:
        raise CatastrophicParseFailure(source, "missing 'openapi' or 'swagger' version field")
    return raw


def load_spec(source: str, client: httpx.Client | None = None) -> ApiDocument:
    """Load and parse an API description.

    Args:
        source: Local path or http(s) URL
        client: Optional httpx client used for remote documents

    Returns:
        The parsed document

    Raises:
        CatastrophicParseFailure: The document is unavailable or unusable
    """
    text = read_source(source, client)
    raw = parse_text(text, source)
    document = DocumentBuilder(raw, source).build()
    logger.debug("Loaded %s: %d schemas, %d operations", source, len(document.schemas), len(document.operations))
    return document


class DocumentBuilder:
    """Normalize a raw OpenAPI 3.x / Swagger 2.0 mapping into an ApiDocument."""

    def __init__(self, raw: dict[str, Any], source: str = "<string>"):
        self.raw = raw
        self.source = source
        self.is_swagger = "swagger" in raw

    def _mapping(self, parent: dict[str, Any], key: str) -> dict[str, Any]:
        value = parent.get(key) or {}
        if not isinstance(value, dict):
            raise CatastrophicParseFailure(self.source, f"'{key}' is not a mapping")
        return value

    def build(self) -> ApiDocument:
        info = self._mapping(self.raw, "info")
        paths = self._mapping(self.raw, "paths")
        if self.is_swagger:
            schemas = self._mapping(self.raw, "definitions")
            raw_schemes = self._mapping(self.raw, "securityDefinitions")
        else:
            components = self._mapping(self.raw, "components")
            schemas = self._mapping(components, "schemas")
            raw_schemes = self._mapping(components, "securitySchemes")

        return ApiDocument(
            title=str(info.get("title") or ""),
            version=str(info.get("version") or ""),
            description=str(info.get("description") or ""),
            spec_version=str(self.raw.get("openapi") or self.raw.get("swagger")),
            servers=self._servers(),
            schemas=dict(schemas),
            security_schemes={name: self._security_scheme(name, s) for name, s in raw_schemes.items() if isinstance(s, dict)},
            security=list(self.raw.get("security") or []),
            operations=self._operations(paths),
        )

    def _servers(self) -> list[Server]:
        if not self.is_swagger:
            return [Server(s["url"], s.get("description", "")) for s in self.raw.get("servers") or [] if isinstance(s, dict) and s.get("url")]
        host = self.raw.get("host")
        if not host:
            return []
        scheme = (self.raw.get("schemes") or ["https"])[0]
        base_path = (self.raw.get("basePath") or "").rstrip("/")
        return [Server(f"{scheme}://{host}{base_path}")]

    def _security_scheme(self, name: str, raw: dict[str, Any]) -> SecurityScheme:
        scheme_type = raw.get("type", "")
        scheme = raw.get("scheme", "")
        if scheme_type == "basic":
            # Swagger 2.0 spelling
            scheme_type, scheme = "http", "basic"
        return SecurityScheme(
            name=name,
            type=scheme_type,
            scheme=scheme,
            location=raw.get("in", ""),
            parameter_name=raw.get("name", ""),
        )

    def _resolve(self, node: Any) -> Any:
        """Follow a local ``$ref`` to a non-schema object (parameter, response, body)."""
        seen = set()
        while isinstance(node, dict) and "$ref" in node:
            ref = node["$ref"]
            if ref in seen or not isinstance(ref, str) or not ref.startswith("#/"):
                logger.warning("Cannot follow reference %r in %s", ref, self.source)
                return None
            seen.add(ref)
            target: Any = self.raw
            for part in ref[2:].split("/"):
                part = part.replace("~1", "/").replace("~0", "~")
                if not isinstance(target, dict) or part not in target:
                    logger.warning("Unresolved reference %s in %s", ref, self.source)
                    return None
                target = target[part]
            node = target
        return node

    def _operations(self, paths: dict[str, Any]) -> list[Operation]:
        operations = []
        for path, item in paths.items():
            item = self._resolve(item)
            if not isinstance(item, dict):
                continue
            shared = item.get("parameters") or []
            for method in HTTP_METHODS:
                raw_op = item.get(method)
                if isinstance(raw_op, dict):
                    operations.append(self._operation(path, method, raw_op, shared))
        return operations

    def _operation(self, path: str, method: str, raw: dict[str, Any], shared: list[Any]) -> Operation:
        parameters: dict[tuple[str, str], Parameter] = {}
        request_body = None
        for raw_param in list(shared) + list(raw.get("parameters") or []):
            param = self._resolve(raw_param)
            if not isinstance(param, dict) or "name" not in param:
                continue
            if param.get("in") == "body":
                request_body = RequestBody({"application/json": {"schema": param.get("schema")}}, bool(param.get("required")))
                continue
            schema = param.get("schema")
            if schema is None and self.is_swagger:
                schema = {k: v for k, v in param.items() if k in ("type", "format", "items", "enum")}
            # Operation-level parameters override path-level ones
            parameters[(param["name"], param.get("in", ""))] = Parameter(
                name=param["name"],
                location=param.get("in", ""),
                required=bool(param.get("required")) or param.get("in") == "path",
                schema=schema,
                description=param.get("description", ""),
            )

        raw_body = self._resolve(raw.get("requestBody"))
        if isinstance(raw_body, dict):
            request_body = RequestBody(raw_body.get("content") or {}, bool(raw_body.get("required")), raw_body.get("description", ""))

        responses = {}
        for status, raw_response in (raw.get("responses") or {}).items():
            response = self._resolve(raw_response)
            if not isinstance(response, dict):
                continue
            if self.is_swagger:
                content = {"application/json": {"schema": response["schema"]}} if "schema" in response else {}
            else:
                content = response.get("content") or {}
            responses[str(status)] = Response(response.get("description", ""), content)

        return Operation(
            path=path,
            method=method,
            operation_id=raw.get("operationId"),
            summary=raw.get("summary", "") or "",
            description=raw.get("description", "") or "",
            parameters=list(parameters.values()),
            request_body=request_body,
            responses=responses,
            security=raw.get("security"),
        )
