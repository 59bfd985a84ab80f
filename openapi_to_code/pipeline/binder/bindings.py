"""
Operation bindings: one callable per (path, HTTP method).

Bindings are immutable once the binder has built them. Backends only read
them to render request functions and error types.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..schema.nodes import SchemaNode
from ..synthesis.ir import Requirement, TypeRef


@dataclass(frozen=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True)
class ParameterSegment:
    name: str
    stringifier: str  # integer, number, boolean or string


PathSegment = LiteralSegment | ParameterSegment


@dataclass(frozen=True)
class BoundParameter:
    name: str
    location: str  # path or query
    required: bool
    schema: SchemaNode
    type_ref: TypeRef
    stringifier: str
    description: str = ""


@dataclass(frozen=True)
class BoundBody:
    """JSON request body, passed as the ``body`` argument."""

    type_ref: TypeRef  # NAMED for a referenced schema, otherwise JSON_VALUE
    schema: SchemaNode | None = None
    required: bool = True


@dataclass(frozen=True)
class BoundResponse:
    status: str
    code: int
    # None when the response declares no JSON content
    payload: TypeRef | None = None
    schema: SchemaNode | None = None
    description: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.code <= 299

    @property
    def is_error(self) -> bool:
        return self.code >= 400


@dataclass(frozen=True)
class HeaderStep:
    """One authentication header built from a configuration credential."""

    header: str
    credential: str  # field of the client configuration holding the secret
    prefix: str = ""  # "Bearer ", "Basic " or nothing for API keys


@dataclass(frozen=True)
class ErrorCase:
    status: str
    constructor: str
    payload: TypeRef | None = None  # None: the raw response body as a string


@dataclass(frozen=True)
class ErrorTypeDecl:
    """``<FunctionName>Error``: one case per declared error status plus Unknown."""

    name: str
    cases: tuple[ErrorCase, ...]
    unknown: str
    references: frozenset[str] = frozenset()
    operation: str = ""  # function name of the owning operation

    def case_for(self, status: str) -> ErrorCase | None:
        return next((c for c in self.cases if c.status == status), None)


@dataclass(frozen=True)
class OperationBinding:
    function_name: str
    http_method: str
    path: str
    path_segments: tuple[PathSegment, ...]
    parameters: tuple[BoundParameter, ...]
    request_body: BoundBody | None
    responses: tuple[BoundResponse, ...]
    security: tuple[HeaderStep, ...]
    # Payload of the canonical success response, shared by every success branch
    success_type: TypeRef
    error_type: ErrorTypeDecl | None = None
    summary: str = ""
    requirements: frozenset[Requirement] = frozenset()
    # Named schemas used by the body and by every response
    references: frozenset[str] = frozenset()
    formats: frozenset[str] = frozenset()

    @property
    def path_parameters(self) -> list[BoundParameter]:
        return [p for p in self.parameters if p.location == "path"]

    @property
    def query_parameters(self) -> list[BoundParameter]:
        return [p for p in self.parameters if p.location == "query"]


@dataclass(frozen=True)
class UnboundOperation:
    """An operation that could not be bound; rendered as a diagnostic comment."""

    http_method: str
    path: str
    reason: str


@dataclass(frozen=True)
class CredentialField:
    name: str  # apiKey, bearerToken or basicAuth
    kind: str  # apiKey, bearer or basic
    default: str


@dataclass(frozen=True)
class ClientConfiguration:
    """Client settings shared by every operation of one document."""

    base_url: str
    credentials: tuple[CredentialField, ...] = ()
    custom_headers: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    timeout: float | None = None

    def credential(self, kind: str) -> CredentialField | None:
        return next((c for c in self.credentials if c.kind == kind), None)
