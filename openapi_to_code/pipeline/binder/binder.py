"""
Operation binder.

Builds one ``OperationBinding`` per (path, method): function name, path
template, parameters, JSON body, response classification, error type and
authentication headers. Problems are reported to the diagnostics sink and
the affected piece falls back to a default.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ...document.model import ApiDocument, Operation, Parameter
from ...utils import capitalize_first, strip_non_alphanumeric, unique_name
from ..diagnostics import DiagnosticKind, Diagnostics
from ..schema.nodes import ReferenceKind, SchemaNode
from ..schema.resolver import NameRegistry, SchemaResolver
from ..synthesis.ir import Requirement, TypeRef, TypeRefKind
from .bindings import (
    BoundBody,
    BoundParameter,
    BoundResponse,
    ClientConfiguration,
    CredentialField,
    ErrorCase,
    ErrorTypeDecl,
    HeaderStep,
    LiteralSegment,
    OperationBinding,
    ParameterSegment,
    PathSegment,
    UnboundOperation,
)

logger = logging.getLogger(__name__)

CREDENTIALS = {
    "apiKey": CredentialField("apiKey", "apiKey", "your-api-key"),
    "bearer": CredentialField("bearerToken", "bearer", "your-bearer-token"),
    "basic": CredentialField("basicAuth", "basic", "your-basic-auth"),
}

DEFAULT_API_KEY_HEADER = "X-API-Key"

STRINGIFIERS = ("integer", "number", "boolean")

_TEMPLATE_SEGMENT = re.compile(r"^\{([^{}]+)\}$")


def normalize_operation_id(operation_id: str | None) -> str:
    """Strip every non-alphanumeric character from an operationId."""
    if not operation_id:
        return ""
    return strip_non_alphanumeric(operation_id)


def fallback_function_name(method: str, path: str) -> str:
    """Deterministic name built from method and path: ``get_users_id`` for GET /users/{id}."""
    sanitized = path.replace("{", "").replace("}", "").replace("/", "_")
    return method.lower() + re.sub(r"[^a-zA-Z0-9_]", "_", sanitized)


def client_configuration(document: ApiDocument, default_base_url: str, custom_headers: dict[str, str] | None = None) -> ClientConfiguration:
    """Derive the client configuration: servers, credential kinds and headers."""
    base_url = document.servers[0].url if document.servers else default_base_url
    kinds: list[str] = []
    for scheme in document.security_schemes.values():
        kind = scheme.credential_kind
        if kind is not None and kind not in kinds:
            kinds.append(kind)
    return ClientConfiguration(
        base_url=base_url,
        credentials=tuple(CREDENTIALS[k] for k in kinds),
        custom_headers=tuple((custom_headers or {}).items()),
    )


def raw_references(schema: Any, resolver: SchemaResolver) -> set[str]:
    """Every resolvable schema name referenced anywhere inside a raw schema."""
    found: set[str] = set()
    stack = [schema]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            ref = current.get("$ref")
            if isinstance(ref, str):
                target = resolver.reference_name(ref)
                if target is not None:
                    found.add(target)
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)
    return found


class OperationBinder:
    """Bind every operation of one document."""

    def __init__(self, document: ApiDocument, resolver: SchemaResolver, diagnostics: Diagnostics, names: NameRegistry | None = None):
        self.document = document
        self.resolver = resolver
        self.diagnostics = diagnostics
        self.names = names or resolver.names
        self._function_names: set[str] = set()

    def bind_all(self) -> list[OperationBinding | UnboundOperation]:
        """Bind operations in document order.

        Each operation is isolated: a failure binding one becomes a diagnostic
        and an ``UnboundOperation``, and the rest are still bound.
        """
        bindings: list[OperationBinding | UnboundOperation] = []
        for operation in self.document.operations:
            try:
                bindings.append(self.bind(operation))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                diagnostic = self.diagnostics.report(DiagnosticKind.MISSING_OPERATION_FIELD, operation.location, f"operation could not be bound: {e}")
                bindings.append(UnboundOperation(operation.method, operation.path, diagnostic.message))
        logger.debug("Bound %d operations", len(bindings))
        return bindings

    def bind(self, operation: Operation) -> OperationBinding:
        location = operation.location
        function_name = self._function_name(operation)
        segments, path_parameters = self._path(operation)
        query_parameters = [self._parameter(p) for p in operation.parameters if p.location == "query"]
        for ignored in (p for p in operation.parameters if p.location not in ("path", "query")):
            logger.debug("%s: %s parameter %r is not bound", location, ignored.location, ignored.name)

        references: set[str] = set()
        requirements = {Requirement.HTTP, Requirement.TASK, Requirement.URL, Requirement.DECODE}

        body = None
        if operation.request_body is not None:
            found, schema = operation.request_body.json_schema()
            if found:
                type_ref, node = self._payload(schema, f"{location}/requestBody")
                body = BoundBody(type_ref, node, operation.request_body.required)
                references |= raw_references(schema, self.resolver)
                requirements.add(Requirement.ENCODE)

        responses = self._responses(operation, references)
        success_type = self._success_type(responses)
        error_type = self._error_type(function_name, responses)

        payloads = [success_type] + [r.payload for r in responses if r.payload is not None]
        if body is not None:
            payloads.append(body.type_ref)
        if any(t.kind == TypeRefKind.JSON_VALUE for p in payloads for t in p.walk()):
            requirements.add(Requirement.JSON_VALUE)

        return OperationBinding(
            function_name=function_name,
            http_method=operation.method.upper(),
            path=operation.path,
            path_segments=tuple(segments),
            parameters=tuple(path_parameters + query_parameters),
            request_body=body,
            responses=tuple(responses),
            security=tuple(self._security(operation)),
            success_type=success_type,
            error_type=error_type,
            summary=operation.summary or operation.description,
            requirements=frozenset(requirements),
            references=frozenset(references),
        )

    def _function_name(self, operation: Operation) -> str:
        name = normalize_operation_id(operation.operation_id)
        if not name:
            self.diagnostics.report(DiagnosticKind.MISSING_OPERATION_FIELD, operation.location, "no operationId, function name derived from method and path")
            name = fallback_function_name(operation.method, operation.path)
        if name[0].isdigit():
            name = "op" + name
        return unique_name(name, self._function_names)

    def _path(self, operation: Operation) -> tuple[list[PathSegment], list[BoundParameter]]:
        declared = {p.name: p for p in operation.parameters if p.location == "path"}
        segments: list[PathSegment] = []
        bound: dict[str, BoundParameter] = {}
        for part in operation.path.split("/"):
            if not part:
                continue
            match = _TEMPLATE_SEGMENT.match(part)
            if match is None:
                segments.append(LiteralSegment(part))
                continue
            name = match.group(1)
            if name not in bound:
                parameter = declared.get(name)
                if parameter is None:
                    self.diagnostics.report(
                        DiagnosticKind.MISSING_OPERATION_FIELD,
                        operation.location,
                        f"path parameter {name!r} is not declared, bound as a string",
                    )
                    parameter = Parameter(name, "path", True, {"type": "string"})
                bound[name] = self._parameter(parameter)
            segments.append(ParameterSegment(name, bound[name].stringifier))
        return segments, list(bound.values())

    def _parameter(self, parameter: Parameter) -> BoundParameter:
        primitive = self.resolver.parameter_primitive(parameter.schema)
        stringifier = primitive.base_type if primitive.base_type in STRINGIFIERS else "string"
        required = parameter.required or parameter.location == "path"
        type_ref = TypeRef.primitive(stringifier)
        return BoundParameter(
            name=parameter.name,
            location=parameter.location,
            required=required,
            schema=SchemaNode(primitive),
            type_ref=type_ref if required else TypeRef.optional(type_ref),
            stringifier=stringifier,
            description=parameter.description,
        )

    def _payload(self, schema: Any, location: str) -> tuple[TypeRef, SchemaNode | None]:
        """Referenced schema, list of a referenced schema, or opaque JSON."""
        if isinstance(schema, dict):
            items = schema.get("items")
            if schema.get("type") == "array" and isinstance(items, dict) and "$ref" in items:
                element, node = self._payload(items, f"{location}/items")
                if element.kind == TypeRefKind.NAMED:
                    return TypeRef.list_of(element), node
                return TypeRef.json_value(), None
            ref = schema.get("$ref")
            if isinstance(ref, str):
                target = self.resolver.reference_name(ref)
                if target is None:
                    self.diagnostics.report(DiagnosticKind.UNRESOLVED_REFERENCE, location, f"reference {ref!r} does not resolve, using an opaque JSON value")
                    return TypeRef.json_value(), None
                return TypeRef.named(target), SchemaNode(ReferenceKind(target), source_reference=ref)
        return TypeRef.json_value(), None

    def _responses(self, operation: Operation, references: set[str]) -> list[BoundResponse]:
        if not operation.responses:
            self.diagnostics.report(DiagnosticKind.MISSING_OPERATION_FIELD, operation.location, "no responses declared")
        responses = []
        for status, response in operation.responses.items():
            try:
                code = int(status)
            except ValueError:
                logger.debug("%s: response %r has no numeric status and is not dispatched", operation.location, status)
                continue
            found, schema = response.json_schema()
            payload, node = (None, None)
            if found:
                payload, node = self._payload(schema, f"{operation.location}/responses/{status}")
                references |= raw_references(schema, self.resolver)
            responses.append(BoundResponse(status, code, payload, node, response.description))
        return responses

    @staticmethod
    def canonical_success(responses: list[BoundResponse]) -> BoundResponse | None:
        """Prefer 200, then 201, then the first declared success response."""
        successes = [r for r in responses if r.is_success]
        for preferred in ("200", "201"):
            for response in successes:
                if response.status == preferred:
                    return response
        return successes[0] if successes else None

    def _success_type(self, responses: list[BoundResponse]) -> TypeRef:
        canonical = self.canonical_success(responses)
        if canonical is None:
            return TypeRef.json_value()
        if canonical.payload is None:
            return TypeRef.unit()
        return canonical.payload

    def _error_type(self, function_name: str, responses: list[BoundResponse]) -> ErrorTypeDecl | None:
        errors = [r for r in responses if r.is_error]
        if not errors:
            return None
        name = self.names.claim(capitalize_first(function_name) + "Error")
        cases = []
        references = set()
        for response in errors:
            payload = response.payload if response.payload is not None and response.payload.kind == TypeRefKind.NAMED else None
            if payload is not None:
                references.add(payload.name)
            cases.append(ErrorCase(response.status, f"{name}{response.status}", payload))
        return ErrorTypeDecl(name, tuple(cases), f"{name}Unknown", frozenset(references), function_name)

    def _security(self, operation: Operation) -> list[HeaderStep]:
        requirements = operation.security if operation.security is not None else self.document.security
        steps: list[HeaderStep] = []
        for requirement in requirements:
            if not isinstance(requirement, dict):
                continue
            for scheme_name in requirement:
                scheme = self.document.security_schemes.get(scheme_name)
                if scheme is None:
                    self.diagnostics.report(DiagnosticKind.MISSING_OPERATION_FIELD, operation.location, f"security scheme {scheme_name!r} is not declared")
                    continue
                match scheme.credential_kind:
                    case "apiKey":
                        step = HeaderStep(scheme.parameter_name or DEFAULT_API_KEY_HEADER, "apiKey")
                    case "bearer":
                        step = HeaderStep("Authorization", "bearerToken", "Bearer ")
                    case "basic":
                        step = HeaderStep("Authorization", "basicAuth", "Basic ")
                    case _:
                        continue
                if step not in steps:
                    steps.append(step)
        return steps
