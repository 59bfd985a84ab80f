"""
Object model of a parsed API description.

Swagger 2.0 and OpenAPI 3.x documents are both normalized into these
dataclasses by the loader. Schemas stay raw mappings: classifying them is
the job of the schema resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

HTTP_METHODS = ("get", "post", "put", "delete", "patch")

_JSON_MEDIA_TYPE = "application/json"


def find_json_media(content: dict[str, Any]) -> tuple[bool, Any]:
    """Pick the JSON media type entry of a content map.

    ``application/json`` wins, then any ``*/*+json`` type.

    Returns:
        (found, schema) where schema may be None when the media type
        declares no schema
    """
    if not content:
        return False, None
    candidates = [_JSON_MEDIA_TYPE] + [m for m in content if m != _JSON_MEDIA_TYPE and m.split(";")[0].strip().endswith("+json")]
    for media_type in candidates:
        if media_type in content:
            media = content[media_type] or {}
            return True, media.get("schema") if isinstance(media, dict) else None
    return False, None


@dataclass
class Server:
    url: str
    description: str = ""


@dataclass
class SecurityScheme:
    """A named entry of ``components.securitySchemes``."""

    name: str
    type: str
    scheme: str = ""  # http scheme: bearer, basic, ...
    location: str = ""  # apiKey location: header, query, cookie
    parameter_name: str = ""  # apiKey header/query name

    @property
    def credential_kind(self) -> str | None:
        """Kind of credential this scheme needs in a header, if any."""
        if self.type == "apiKey" and self.location == "header":
            return "apiKey"
        if self.type == "http" and self.scheme.lower() == "bearer":
            return "bearer"
        if self.type == "http" and self.scheme.lower() == "basic":
            return "basic"
        return None


@dataclass
class Parameter:
    name: str
    location: str  # path, query, header, cookie
    required: bool = False
    schema: Any = None
    description: str = ""


@dataclass
class RequestBody:
    content: dict[str, Any] = field(default_factory=dict)
    required: bool = False
    description: str = ""

    def json_schema(self) -> tuple[bool, Any]:
        return find_json_media(self.content)


@dataclass
class Response:
    description: str = ""
    content: dict[str, Any] = field(default_factory=dict)

    def json_schema(self) -> tuple[bool, Any]:
        return find_json_media(self.content)


@dataclass
class Operation:
    """One HTTP method on one path."""

    path: str
    method: str
    operation_id: str | None = None
    summary: str = ""
    description: str = ""
    parameters: list[Parameter] = field(default_factory=list)
    request_body: RequestBody | None = None
    responses: dict[str, Response] = field(default_factory=dict)
    # None means "not declared", an empty list means "explicitly no security"
    security: list[dict[str, list[str]]] | None = None

    @property
    def location(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass
class ApiDocument:
    """A whole API description."""

    title: str = ""
    version: str = ""
    description: str = ""
    spec_version: str = ""
    servers: list[Server] = field(default_factory=list)
    schemas: dict[str, Any] = field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = field(default_factory=dict)
    security: list[dict[str, list[str]]] = field(default_factory=list)
    operations: list[Operation] = field(default_factory=list)

    @property
    def schema_ref_prefix(self) -> str:
        """JSON pointer prefix under which named schemas live."""
        return "#/definitions/" if self.spec_version.startswith("2") else "#/components/schemas/"

    @property
    def api_description(self) -> str:
        """Title, description and version joined for module documentation."""
        parts = [p for p in (self.title, self.description) if p]
        if self.version:
            parts.append(f"Version: {self.version}")
        return "\n\n".join(parts)
