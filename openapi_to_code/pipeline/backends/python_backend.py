"""
Python code generation backend.

Generates dataclasses, ``str`` enums and decode/encode functions, plus one
``httpx`` call per operation returning ``runtime.Ok`` / ``runtime.Err``.
Helpers shared by every generated module live in a generated ``runtime``
module.
"""

from __future__ import annotations

import ast
import keyword
import logging
import re
from typing import assert_never

import jinja2

from ...utils import escape_reserved, to_snake_case, unique_name
from ..assembler.units import ModulePlan, ModuleUnit, RenderedType
from ..binder.bindings import (
    BoundParameter,
    ClientConfiguration,
    ErrorTypeDecl,
    LiteralSegment,
    OperationBinding,
    ParameterSegment,
)
from ..synthesis.ir import (
    AliasDecl,
    ConditionalDecl,
    EnumDecl,
    FieldDecl,
    PlaceholderDecl,
    RecordDecl,
    Requirement,
    TypeRef,
    TypeRefKind,
    UnionDecl,
)
from .base import ModulePieces, NamingRules, TargetBackend, ValidationOutcome

logger = logging.getLogger(__name__)

INDENT = "    "

IDENTITY = "runtime.identity"

ADDITIONAL_FIELD = "additional_properties"

_MEMBER = re.compile(r"^[A-Z][A-Z0-9_]*$")


def _member_case(text: str) -> str:
    return to_snake_case(text).upper()


def docstring(text: str | None, level: int = 1) -> str:
    """Indented docstring block, or an empty string."""
    if not text:
        return ""
    cleaned = text.strip().replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    lines = cleaned.splitlines()
    prefix = INDENT * level
    if len(lines) == 1:
        return f'{prefix}"""{lines[0]}"""\n'
    body = "\n".join(prefix + line if line.strip() else "" for line in lines)
    return f'{prefix}"""\n{body}\n{prefix}"""\n'


def indent(text: str, levels: int = 1) -> str:
    prefix = INDENT * levels
    return "\n".join(prefix + line if line else line for line in text.splitlines())


class PythonBackend(TargetBackend):
    """Python code generation backend."""

    name = "python"
    file_extension = ".py"
    default_module_prefix = "api_client"
    TEMPLATE_LANG = "python"
    COMMENT_PREFIX = "#"

    IMPORT_FLAGS = {
        "needs_dict": Requirement.DICT,
        "needs_http": Requirement.HTTP,
        "needs_json_decode": Requirement.DECODE,
        "needs_json_encode": Requirement.ENCODE,
        "needs_enum": Requirement.ENUM,
        "needs_lazy": Requirement.LAZY,
    }

    PRIMITIVES = {
        "string": "str",
        "integer": "int",
        "number": "float",
        "boolean": "bool",
    }

    DECODERS = {
        "string": "runtime.decode_str",
        "integer": "runtime.decode_int",
        "number": "runtime.decode_float",
        "boolean": "runtime.decode_bool",
    }

    STRINGIFIERS = {
        "integer": "str",
        "number": "str",
        "boolean": "runtime.stringify_bool",
    }

    NAMING = NamingRules(
        reserved_words=frozenset(keyword.kwlist),
        field_case=to_snake_case,
        function_case=to_snake_case,
        member_case=_member_case,
        digit_prefix="f_",
        reserved_types=frozenset({"Config", "Any", "Enum", "NewType", "TypeAlias", "None", "True", "False"}),
    )

    CONFIG_TYPE = "Config"

    RUNTIME_TEMPLATE = "runtime.py.jinja2"

    FALLBACK_TEMPLATE = '''"""
{{ module_name }}: {{ api_description }}

Generated {{ generation_timestamp }} from the minimal fallback template.
"""

from __future__ import annotations

{% if needs_dict %}import dataclasses
{% endif %}from dataclasses import dataclass
{% if needs_enum %}from enum import Enum
{% endif %}from typing import Any, NewType, TypeAlias
{% if needs_http %}
import httpx
{% endif %}{% if needs_json_decode or needs_json_encode %}
from {{ package_name }} import runtime
{% endif %}{% if module_imports %}{{ module_imports }}
{% endif %}{% if needs_lazy %}# Recursive fields hold runtime.Lazy values
{% endif %}


{{ types }}


{{ decoders }}


{{ encoders }}


{{ requests }}
'''

    def __init__(self, template_path=None):
        super().__init__(template_path)
        self._snake_names: dict[str, str] = {}
        self._snake_taken: set[str] = set()
        self._operation_names: dict[str, str] = {}
        # Module-level names every generated module may define or import
        self._operation_taken: set[str] = {"default_config", "runtime", "httpx", "dataclass", "dataclasses"}
        self._foreign: dict[str, str] = {}
        self._aliases: dict[str, str] = {}

    # ----------------------------------------------------------------- naming

    def module_name(self, prefix: str, *parts: str) -> str:
        segments = (prefix or self.default_module_prefix).split(".") + list(parts)
        return ".".join(escape_reserved(to_snake_case(s) or "generated", self.NAMING.reserved_words) for s in segments)

    def snake(self, type_name: str) -> str:
        """Stable snake_case stem for a type's decode/encode functions."""
        if type_name not in self._snake_names:
            self._snake_names[type_name] = unique_name(to_snake_case(type_name) or "value", self._snake_taken)
        return self._snake_names[type_name]

    def operation_name(self, function_name: str) -> str:
        if function_name not in self._operation_names:
            self._operation_names[function_name] = unique_name(self.NAMING.function_name(function_name), self._operation_taken)
        return self._operation_names[function_name]

    def enter_module(self, context: ModulePlan) -> None:
        self._aliases = {}
        self._foreign = {}
        taken: set[str] = set()
        for module_import in context.imports:
            alias = unique_name("_".join(module_import.module.split(".")[-2:]), taken)
            self._aliases[module_import.module] = alias
            for name in module_import.names:
                self._foreign[name] = alias

    def qualify(self, type_name: str, symbol: str) -> str:
        alias = self._foreign.get(type_name)
        return f"{alias}.{symbol}" if alias else symbol

    def decoder_name(self, type_name: str) -> str:
        return self.qualify(type_name, f"decode_{self.snake(type_name)}")

    def encoder_name(self, type_name: str) -> str:
        return self.qualify(type_name, f"encode_{self.snake(type_name)}")

    # ----------------------------------------------------------- type tables

    def type_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.PRIMITIVES.get(type_ref.name, "str")
            case TypeRefKind.FORMAT:
                return type_ref.name
            case TypeRefKind.NAMED:
                return self.qualify(type_ref.name, type_ref.name)
            case TypeRefKind.LIST:
                return f"list[{self.type_expr(type_ref.inner)}]"
            case TypeRefKind.OPTIONAL:
                return f"{self.type_expr(type_ref.inner)} | None"
            case TypeRefKind.DICT:
                return f"dict[str, {self.type_expr(type_ref.inner)}]"
            case TypeRefKind.LAZY:
                return f"runtime.Lazy[{self.type_expr(type_ref.inner)}]"
            case TypeRefKind.JSON_VALUE:
                return "Any"
            case TypeRefKind.UNIT:
                return "None"
            case _:
                assert_never(type_ref.kind)

    def decoder_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.DECODERS.get(type_ref.name, "runtime.decode_str")
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return self.decoder_name(type_ref.name)
            case TypeRefKind.LIST:
                return f"runtime.list_of({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.OPTIONAL:
                return f"runtime.nullable({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.DICT:
                return f"runtime.dict_of({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.LAZY:
                return f"runtime.lazy({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.JSON_VALUE:
                return "runtime.decode_any"
            case TypeRefKind.UNIT:
                return "runtime.decode_unit"
            case _:
                assert_never(type_ref.kind)

    def encoder_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE | TypeRefKind.JSON_VALUE:
                return IDENTITY
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return self.encoder_name(type_ref.name)
            case TypeRefKind.LIST:
                inner = self.encoder_expr(type_ref.inner)
                return IDENTITY if inner == IDENTITY else f"runtime.encode_list({inner})"
            case TypeRefKind.OPTIONAL:
                inner = self.encoder_expr(type_ref.inner)
                return IDENTITY if inner == IDENTITY else f"runtime.encode_nullable({inner})"
            case TypeRefKind.DICT:
                inner = self.encoder_expr(type_ref.inner)
                return IDENTITY if inner == IDENTITY else f"runtime.encode_dict({inner})"
            case TypeRefKind.LAZY:
                return f"runtime.encode_lazy({self.encoder_expr(type_ref.inner)})"
            case TypeRefKind.UNIT:
                return "runtime.encode_unit"
            case _:
                assert_never(type_ref.kind)

    @staticmethod
    def apply(function: str, operand: str) -> str:
        return operand if function == IDENTITY else f"{function}({operand})"

    # ---------------------------------------------------------- declarations

    def render_format_alias(self, alias: str) -> RenderedType:
        stem = self.snake(alias)
        return RenderedType(
            name=alias,
            type_text=f'{alias} = NewType("{alias}", str)',
            decoder=f"def decode_{stem}(value: Any) -> {alias}:\n{INDENT}return {alias}(runtime.decode_str(value))",
            encoder=f"def encode_{stem}(value: {alias}) -> str:\n{INDENT}return value",
        )

    def record_fields(self, decl: RecordDecl) -> list[tuple[str, FieldDecl]]:
        taken = {ADDITIONAL_FIELD} if decl.additional is not None else set()
        identifiers = self.NAMING.unique_fields([f.json_name for f in decl.fields], taken)
        return [(identifiers[f.json_name], f) for f in decl.fields]

    def render_record(self, decl: RecordDecl) -> RenderedType:
        name = decl.name
        stem = self.snake(name)
        fields = self.record_fields(decl)

        # Fields without defaults must come first
        required_lines = [f"{ident}: {self.type_expr(f.type_ref)}" for ident, f in fields if f.required]
        optional_lines = [f"{ident}: {self.type_expr(f.type_ref)} = None" for ident, f in fields if not f.required]
        if decl.additional is not None:
            optional_lines.append(f"{ADDITIONAL_FIELD}: dict[str, {self.type_expr(decl.additional)}] = dataclasses.field(default_factory=dict)")
        members = required_lines + optional_lines
        doc = docstring(decl.description)
        body = doc + ("\n" if doc and members else "") + "\n".join(INDENT + m for m in members)
        if not body:
            body = f"{INDENT}pass"
        type_text = f"@dataclass\nclass {name}:\n{body.rstrip()}"

        arguments = []
        for ident, field in fields:
            if field.required:
                arguments.append(f"{ident}=runtime.required(data, {field.json_name!r}, {self.decoder_expr(field.type_ref)}, {name!r}),")
            else:
                inner = field.type_ref.inner if field.type_ref.kind == TypeRefKind.OPTIONAL else field.type_ref
                arguments.append(f"{ident}=runtime.optional(data, {field.json_name!r}, {self.decoder_expr(inner)}, {name!r}),")
        if decl.additional is not None:
            known = tuple(f.json_name for f in decl.fields)
            arguments.append(f"{ADDITIONAL_FIELD}=runtime.additional(data, {known!r}, {self.decoder_expr(decl.additional)}),")
        if arguments:
            construct = f"return {name}(\n" + indent("\n".join(arguments)) + "\n)"
        else:
            construct = f"return {name}()"
        decoder = f"def decode_{stem}(value: Any) -> {name}:\n{INDENT}data = runtime.expect_object(value, {name!r})\n{indent(construct)}"

        statements = ["data: dict[str, Any] = {}"]
        for ident, field in fields:
            key = repr(field.json_name)
            if field.required:
                statements.append(f"data[{key}] = {self.apply(self.encoder_expr(field.type_ref), 'value.' + ident)}")
            else:
                inner = field.type_ref.inner if field.type_ref.kind == TypeRefKind.OPTIONAL else field.type_ref
                statements.append(f"if value.{ident} is not None:\n{INDENT}data[{key}] = {self.apply(self.encoder_expr(inner), 'value.' + ident)}")
        if decl.additional is not None:
            statements.append(
                f"for key, item in value.{ADDITIONAL_FIELD}.items():\n{INDENT}data[key] = {self.apply(self.encoder_expr(decl.additional), 'item')}"
            )
        statements.append("return data")
        encoder = f"def encode_{stem}(value: {name}) -> dict[str, Any]:\n" + indent("\n".join(statements))
        return RenderedType(name, type_text, decoder, encoder)

    def enum_members(self, decl: EnumDecl) -> list[tuple[str, str]]:
        taken: set[str] = set()
        members = []
        for index, value in enumerate(decl.values):
            member = self.NAMING.member_name(str(value))
            if not _MEMBER.match(member):
                member = f"VALUE_{index + 1}"
            members.append((unique_name(member, taken), str(value)))
        return members

    def render_enum(self, decl: EnumDecl) -> RenderedType:
        if not decl.values:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="enum without values"))
        name = decl.name
        stem = self.snake(name)
        doc = docstring(decl.description)
        members = "\n".join(f"{INDENT}{member} = {raw!r}" for member, raw in self.enum_members(decl))
        type_text = f"class {name}(str, Enum):\n" + (doc + "\n" if doc else "") + members
        decoder = (
            f"def decode_{stem}(value: Any) -> {name}:\n"
            f"{INDENT}try:\n"
            f"{INDENT * 2}return {name}(value)\n"
            f"{INDENT}except (ValueError, TypeError):\n"
            f'{INDENT * 2}raise runtime.DecodeError(f"Invalid {name}: {{value!r}}") from None'
        )
        encoder = f"def encode_{stem}(value: {name}) -> str:\n{INDENT}return value.value"
        return RenderedType(name, type_text, decoder, encoder)

    def render_union(self, decl: UnionDecl) -> RenderedType:
        if not decl.cases:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="union without variants"))
        name = decl.name
        stem = self.snake(name)
        wrappers = [f"@dataclass\nclass {c.constructor}:\n{INDENT}value: {self.type_expr(c.type_ref)}" for c in decl.cases]
        alias = f'{name}: TypeAlias = "{" | ".join(c.constructor for c in decl.cases)}"'
        if decl.description:
            alias = self.comment(decl.description) + "\n" + alias
        type_text = "\n\n\n".join(wrappers + [alias])

        if decl.discriminated:
            field_name = decl.discriminator_field
            lines = [
                f"data = runtime.expect_object(value, {name!r})",
                f"tag = runtime.discriminator(data, {field_name!r}, {name!r})",
            ]
            seen: set[str] = set()
            for case in decl.cases:
                if case.tag in seen:
                    continue
                seen.add(case.tag)
                lines.append(f"if tag == {case.tag!r}:\n{INDENT}return {case.constructor}({self.decoder_expr(case.type_ref)}(value))")
            lines.append(f"raise runtime.UnknownDiscriminatorError({name!r}, {field_name!r}, tag)")
            body = "\n".join(lines)
        else:
            alternatives = "\n".join(f"({c.constructor}, {self.decoder_expr(c.type_ref)})," for c in decl.cases)
            body = f"return runtime.one_of(\n{INDENT}value,\n{INDENT}{name!r},\n{INDENT}(\n{indent(alternatives, 2)}\n{INDENT}),\n)"
        decoder = f"def decode_{stem}(value: Any) -> {name}:\n{indent(body)}"

        branches = [f"if isinstance(value, {c.constructor}):\n{INDENT}return {self.apply(self.encoder_expr(c.type_ref), 'value.value')}" for c in decl.cases]
        branches.append(f'raise TypeError(f"Not a {name}: {{value!r}}")')
        encoder = f"def encode_{stem}(value: {name}) -> Any:\n" + indent("\n".join(branches))
        return RenderedType(name, type_text, decoder, encoder)

    def render_conditional(self, decl: ConditionalDecl) -> RenderedType:
        name = decl.name
        stem = self.snake(name)
        doc = docstring(decl.description or "Outcome of an if/then/else schema; the predicate is not evaluated.")
        type_text = f'@dataclass\nclass {name}:\n{doc}\n{INDENT}branch: str  # "then", "else" or "unknown"\n{INDENT}raw: Any = None'
        decoder = f'def decode_{stem}(value: Any) -> {name}:\n{INDENT}return {name}("unknown", value)'
        encoder = (
            f"def encode_{stem}(value: {name}) -> Any:\n"
            f'{INDENT}if value.branch in ("then", "else"):\n'
            f'{INDENT * 2}return {{"type": value.branch}}\n'
            f"{INDENT}return value.raw"
        )
        return RenderedType(name, type_text, decoder, encoder)

    def render_alias(self, decl: AliasDecl) -> RenderedType:
        name = decl.name
        stem = self.snake(name)
        type_text = f'{name}: TypeAlias = "{self.type_expr(decl.target)}"'
        if decl.description:
            type_text = self.comment(decl.description) + "\n" + type_text
        return RenderedType(
            name=name,
            type_text=type_text,
            decoder=f"def decode_{stem}(value: Any) -> {name}:\n{INDENT}return {self.decoder_expr(decl.target)}(value)",
            encoder=f"def encode_{stem}(value: {name}) -> Any:\n{INDENT}return {self.apply(self.encoder_expr(decl.target), 'value')}",
        )

    def render_placeholder(self, decl: PlaceholderDecl) -> RenderedType:
        name = decl.name
        stem = self.snake(name)
        note = self.comment(f"{name} could not be generated: {decl.reason}")
        return RenderedType(
            name=name,
            type_text=f"{note}\n{name}: TypeAlias = Any",
            decoder=f"def decode_{stem}(value: Any) -> {name}:\n{INDENT}return value",
            encoder=f"def encode_{stem}(value: {name}) -> Any:\n{INDENT}return value",
        )

    # ------------------------------------------------------------ operations

    def render_error_type(self, error_type: ErrorTypeDecl) -> str:
        classes = []
        for case in error_type.cases:
            payload = self.type_expr(case.payload) if case.payload is not None else "str"
            classes.append(f"@dataclass\nclass {case.constructor}:\n{INDENT}value: {payload}")
        classes.append(f"@dataclass\nclass {error_type.unknown}:\n{INDENT}value: str")
        constructors = [c.constructor for c in error_type.cases] + [error_type.unknown]
        alias = f"# Error types for {self.operation_name(error_type.operation)} operation\n{error_type.name}: TypeAlias = \"{' | '.join(constructors)}\""
        return "\n\n\n".join(classes + [alias])

    def render_config(self, config: ClientConfiguration) -> tuple[str, str]:
        lines = [f"base_url: str = {config.base_url!r}"]
        lines += [f"{to_snake_case(c.name)}: str = {c.default!r}" for c in config.credentials]
        lines.append(f"custom_headers: tuple[tuple[str, str], ...] = {tuple(config.custom_headers)!r}")
        lines.append(f"timeout: float | None = {config.timeout!r}")
        members = "\n".join(INDENT + line for line in lines)
        config_type = f'@dataclass\nclass {self.CONFIG_TYPE}:\n{INDENT}"""Client configuration"""\n\n{members}'
        return config_type, f"default_config = {self.CONFIG_TYPE}()"

    def argument_names(self, binding: OperationBinding) -> dict[str, str]:
        taken = {"config", "client", "body", "query", "headers", "url", "response", "e", "runtime", "httpx"}
        return {p.name: unique_name(self.NAMING.field_name(p.name), taken) for p in binding.parameters}

    def _stringify(self, parameter: BoundParameter, variable: str) -> str:
        stringifier = self.STRINGIFIERS.get(parameter.stringifier)
        return f"{stringifier}({variable})" if stringifier else variable

    def render_request(self, binding: OperationBinding, context: ModulePlan) -> tuple[str, str]:
        function = self.operation_name(binding.function_name)
        arguments = self.argument_names(binding)
        error_type = binding.error_type

        positional = [f"config: {self.CONFIG_TYPE}"]
        keyword_only = []
        for parameter in binding.parameters:
            annotation = f"{arguments[parameter.name]}: {self.type_expr(parameter.type_ref)}"
            if parameter.required:
                positional.append(annotation)
            else:
                keyword_only.append(f"{annotation} = None")
        if binding.request_body is not None:
            positional.append(f"body: {self.type_expr(binding.request_body.type_ref)}")
        keyword_only.append("client: httpx.Client | None = None")

        failure = error_type.name if error_type is not None else "runtime.HttpError"
        returns = f"runtime.Ok[{self.type_expr(binding.success_type)}] | runtime.Err[{failure}]"
        parameters = ",\n".join(INDENT + p for p in positional + ["*"] + keyword_only)
        signature = f"def {function}(\n{parameters},\n) -> {returns}:"

        statements = []
        if binding.summary:
            statements.append(docstring(binding.summary, 0).rstrip())
        statements.append(self._query(binding, arguments))
        statements.append(self._headers(binding))
        statements.append(f"url = runtime.build_url(config.base_url, {self._segments(binding, arguments)})")
        body_argument = ""
        if binding.request_body is not None:
            body_argument = f", {self.apply(self.encoder_expr(binding.request_body.type_ref), 'body')}"
        transport = self._failure(error_type, "str(e)", "None")
        statements.append(
            f"try:\n"
            f"{INDENT}response = runtime.send(client, {binding.http_method!r}, url, query, headers{body_argument}, timeout=config.timeout)\n"
            f"except httpx.HTTPError as e:\n"
            f"{INDENT}return {transport}"
        )
        statements.append(self._dispatch(binding))
        return signature, indent("\n".join(statements))

    def _failure(self, error_type: ErrorTypeDecl | None, message: str, status: str) -> str:
        if error_type is not None:
            return f"runtime.Err({error_type.unknown}({message}))"
        return f"runtime.Err(runtime.HttpError({status}, {message}))"

    def _query(self, binding: OperationBinding, arguments: dict[str, str]) -> str:
        lines = ["query: list[tuple[str, str]] = []"]
        for parameter in binding.query_parameters:
            variable = arguments[parameter.name]
            append = f"query.append(({parameter.name!r}, {self._stringify(parameter, variable)}))"
            if parameter.required:
                lines.append(append)
            else:
                lines.append(f"if {variable} is not None:\n{INDENT}{append}")
        return "\n".join(lines)

    def _headers(self, binding: OperationBinding) -> str:
        steps = []
        for step in binding.security:
            value = f"config.{to_snake_case(step.credential)}"
            if step.prefix:
                value = f"{step.prefix!r} + {value}"
            steps.append(f"({step.header!r}, {value})")
        return f"headers: list[tuple[str, str]] = [{', '.join(steps)}]\nheaders.extend(config.custom_headers)"

    def _segments(self, binding: OperationBinding, arguments: dict[str, str]) -> str:
        by_name = {p.name: p for p in binding.parameters}
        segments = []
        for segment in binding.path_segments:
            match segment:
                case LiteralSegment():
                    segments.append(repr(segment.text))
                case ParameterSegment():
                    parameter = by_name[segment.name]
                    segments.append(f"runtime.segment({self._stringify(parameter, arguments[segment.name])})")
                case _:
                    assert_never(segment)
        return f"[{', '.join(segments)}]"

    def _dispatch(self, binding: OperationBinding) -> str:
        """Single match over every declared status: httpx has one response channel."""
        error_type = binding.error_type
        cases = []
        for response in binding.responses:
            if response.is_success:
                if binding.success_type.kind == TypeRefKind.UNIT:
                    outcome = "return runtime.Ok(None)"
                else:
                    decode = self.decoder_expr(binding.success_type)
                    outcome = (
                        f"try:\n{INDENT}return runtime.Ok({decode}(response.json()))\n"
                        f"except ValueError as e:\n{INDENT}return {self._failure(error_type, 'str(e)', 'response.status_code')}"
                    )
            elif response.is_error and error_type is not None:
                case = error_type.case_for(response.status)
                if case is None:
                    continue
                if case.payload is None:
                    outcome = f"return runtime.Err({case.constructor}(response.text))"
                else:
                    outcome = (
                        f"try:\n{INDENT}return runtime.Err({case.constructor}({self.decoder_expr(case.payload)}(response.json())))\n"
                        f"except ValueError:\n{INDENT}return runtime.Err({error_type.unknown}(response.text))"
                    )
            else:
                continue
            cases.append(f"case {response.code}:\n{indent(outcome)}")
        if error_type is not None:
            default = f'return runtime.Err({error_type.unknown}(f"Unexpected status {{response.status_code}}"))'
        else:
            default = "return runtime.Err(runtime.HttpError(response.status_code, response.text))"
        cases.append(f"case _:\n{indent(default)}")
        return "match response.status_code:\n" + indent("\n".join(cases))

    def render_imports(self, context: ModulePlan) -> str:
        self.enter_module(context)
        return "\n".join(f"import {module} as {alias}" for module, alias in self._aliases.items())

    # ---------------------------------------------------------------- module

    def template_variables(self, context: ModulePlan, pieces: ModulePieces | None = None) -> dict:
        variables = super().template_variables(context, pieces)
        variables["package_name"] = self.module_name(context.module_prefix)
        variables["api_description"] = variables["api_description"].replace("\\", "\\\\").replace('"""', "'''")
        variables["diagnostics"] = [" ".join(d.splitlines()) for d in variables["diagnostics"]]
        return variables

    def validate_output(self, source: str) -> ValidationOutcome:
        try:
            ast.parse(source)
        except SyntaxError as e:
            return ValidationOutcome(False, (f"line {e.lineno}: {e.msg}",))
        return ValidationOutcome(True)

    def support_units(self, prefix: str, plans: list[ModulePlan]) -> list[ModuleUnit]:
        """Package ``__init__`` modules and the shared ``runtime`` module."""
        package = self.module_name(prefix)
        timestamp = plans[0].generation_timestamp if plans else ""
        packages: set[str] = {package}
        for plan in plans:
            parts = plan.qualified_name.split(".")[:-1]
            packages.update(".".join(parts[: i + 1]) for i in range(len(parts)))
        units = [
            ModuleUnit(
                qualified_name=name,
                relative_path=name.replace(".", "/") + "/__init__.py",
                source=f'"""Generated by openapi_to_code on {timestamp}."""\n',
            )
            for name in sorted(packages)
        ]
        units.append(
            ModuleUnit(
                qualified_name=f"{package}.runtime",
                relative_path=self.relative_path(f"{package}.runtime"),
                source=self._render_runtime(package, timestamp),
            )
        )
        return units

    def _render_runtime(self, package: str, timestamp: str) -> str:
        try:
            template = self.jinja_env.get_template(self.RUNTIME_TEMPLATE)
        except jinja2.TemplateError as e:
            logger.error("Runtime template unavailable: %s", e)
            return self.comment(f"The runtime module could not be generated: {e}") + "\n"
        return template.render(package_name=package, generation_timestamp=timestamp)
