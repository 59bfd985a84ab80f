"""
C# code generation backend.

Generates sealed records, enums and abstract-record unions with static
``Codec`` decode/encode methods over ``Newtonsoft.Json.Linq`` tokens, plus
one ``async`` method per operation returning ``Result<T, E>``. Helpers shared
by every generated file live in a generated ``Runtime`` namespace.
"""

from __future__ import annotations

import logging
import re
from typing import assert_never

import jinja2

from ...utils import snake_to_pascal_case, to_camel_case, to_type_name, unique_name
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

CSHARP_KEYWORDS = frozenset(
    {
        "abstract", "as", "base", "bool", "break", "byte", "case", "catch", "char", "checked",
        "class", "const", "continue", "decimal", "default", "delegate", "do", "double", "else", "enum",
        "event", "explicit", "extern", "false", "finally", "fixed", "float", "for", "foreach", "goto",
        "if", "implicit", "in", "int", "interface", "internal", "is", "lock", "long", "namespace",
        "new", "null", "object", "operator", "out", "override", "params", "private", "protected", "public",
        "readonly", "ref", "return", "sbyte", "sealed", "short", "sizeof", "stackalloc", "static", "string",
        "struct", "switch", "this", "throw", "true", "try", "typeof", "uint", "ulong", "unchecked",
        "unsafe", "ushort", "using", "virtual", "void", "volatile", "while",
    }
)

INDENT = "    "

ADDITIONAL_FIELD = "AdditionalProperties"

# Parse and decode failures of one response body
BODY_FAILURE = "catch (Exception e) when (e is DecodeException or Newtonsoft.Json.JsonException)"

_MEMBER = re.compile(r"^[A-Z][A-Za-z0-9_]*$")


def csharp_string(value: str) -> str:
    """C# string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f'"{escaped}"'


def xml_doc(text: str | None) -> str:
    """``/// <summary>`` block, or an empty string."""
    if not text:
        return ""
    escaped = text.strip().replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    lines = escaped.splitlines()
    if len(lines) == 1:
        return f"/// <summary>{lines[0]}</summary>\n"
    body = "".join(f"/// {line}".rstrip() + "\n" for line in lines)
    return f"/// <summary>\n{body}/// </summary>\n"


def indent(text: str, levels: int = 1) -> str:
    prefix = INDENT * levels
    return "\n".join(prefix + line if line else line for line in text.splitlines())


def block(header: str, statements: list[str]) -> str:
    """``header { statements }`` in Allman style."""
    opening = f"{header}\n{{" if header else "{"
    body = indent("\n".join(statements))
    return f"{opening}\n{body}\n}}"


def brace_balance(source: str) -> int:
    """Open minus close braces outside string literals and line comments."""
    depth = 0
    in_string = False
    escaped = False
    for line in source.splitlines():
        position = 0
        while position < len(line):
            char = line[position]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif line.startswith("//", position):
                break
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            position += 1
        in_string = False
    return depth


def _parameter_case(text: str) -> str:
    name = to_camel_case(text) or "value"
    if name[0].isdigit():
        name = "p" + name
    return "@" + name if name in CSHARP_KEYWORDS else name


class CSharpBackend(TargetBackend):
    """C# code generation backend."""

    name = "csharp"
    file_extension = ".cs"
    default_module_prefix = "GeneratedApi"
    TEMPLATE_LANG = "csharp"
    COMMENT_PREFIX = "//"

    IMPORT_FLAGS = {
        "needs_http": Requirement.HTTP,
        "needs_json_decode": Requirement.DECODE,
        "needs_json_encode": Requirement.ENCODE,
    }

    PRIMITIVES = {
        "string": "string",
        "integer": "long",
        "number": "double",
        "boolean": "bool",
    }

    DECODERS = {
        "string": "JsonCodec.DecodeString",
        "integer": "JsonCodec.DecodeLong",
        "number": "JsonCodec.DecodeDouble",
        "boolean": "JsonCodec.DecodeBool",
    }

    ENCODERS = {
        "string": "JsonCodec.EncodeString",
        "integer": "JsonCodec.EncodeLong",
        "number": "JsonCodec.EncodeDouble",
        "boolean": "JsonCodec.EncodeBool",
    }

    STRINGIFIERS = {
        "integer": "Transport.StringifyLong",
        "number": "Transport.StringifyDouble",
        "boolean": "Transport.StringifyBool",
    }

    NAMING = NamingRules(
        reserved_words=CSHARP_KEYWORDS,
        field_case=snake_to_pascal_case,
        function_case=snake_to_pascal_case,
        member_case=snake_to_pascal_case,
        digit_prefix="N",
        reserved_types=frozenset(
            {
                "Config", "Codec", "Operations", "JsonCodec", "Transport", "Result", "HttpError", "Unit",
                "DecodeException", "RequiredFieldException", "UnknownDiscriminatorException", "Exception",
                "Task", "List", "Dictionary", "Func", "String", "Object", "Array", "TimeSpan",
                "HttpClient", "HttpMethod", "CancellationToken", "JToken", "JObject", "JArray", "JValue",
            }
        ),
    )

    CONFIG_TYPE = "Config"

    RUNTIME_TEMPLATE = "runtime.cs.jinja2"

    FALLBACK_TEMPLATE = """// {{ module_name }}: {{ api_description | replace("\\n", " ") }}
// Generated {{ generation_timestamp }} from the minimal fallback template.

#nullable enable

using System;
using System.Collections.Generic;
{% if needs_http %}using System.Net.Http;
using System.Threading;
using System.Threading.Tasks;
{% endif %}{% if needs_json_decode or needs_json_encode %}using Newtonsoft.Json.Linq;
{% endif %}using {{ runtime_namespace }};
{% if module_imports %}{{ module_imports }}
{% endif %}

namespace {{ module_name }};

{{ types }}

public static partial class Codec
{
{{ decoders }}

{{ encoders }}
}

public static class Operations
{
{{ requests }}
}
"""

    def __init__(self, template_path=None):
        super().__init__(template_path)
        self._operation_names: dict[str, str] = {}
        self._operation_taken: set[str] = {"DefaultConfig"}
        self._foreign: dict[str, str] = {}
        self._enums: set[str] = set()

    # ----------------------------------------------------------------- naming

    def module_name(self, prefix: str, *parts: str) -> str:
        segments = (prefix or self.default_module_prefix).split(".") + list(parts)
        return ".".join(to_type_name(s, "Generated") for s in segments)

    def operation_name(self, function_name: str) -> str:
        if function_name not in self._operation_names:
            self._operation_names[function_name] = unique_name(self.NAMING.function_name(function_name) + "Async", self._operation_taken)
        return self._operation_names[function_name]

    def enter_module(self, context: ModulePlan) -> None:
        self._foreign = {}
        self._enums = {d.name for d in context.declarations if isinstance(d, EnumDecl) and d.values}
        for module_import in context.imports:
            for decl in module_import.declarations:
                self._foreign[decl.name] = module_import.module
                if isinstance(decl, EnumDecl) and decl.values:
                    self._enums.add(decl.name)

    def codec_member(self, type_name: str, verb: str) -> str:
        module = self._foreign.get(type_name)
        owner = f"global::{module}.Codec" if module else "Codec"
        return f"{owner}.{verb}{type_name}"

    # ----------------------------------------------------------- type tables

    def is_value_type(self, type_ref: TypeRef) -> bool:
        """Whether the C# type is a struct, so ``T?`` means ``Nullable<T>``."""
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return type_ref.name in ("integer", "number", "boolean")
            case TypeRefKind.NAMED:
                return type_ref.name in self._enums
            case TypeRefKind.LAZY:
                return self.is_value_type(type_ref.inner)
            case TypeRefKind.UNIT:
                return True
            case TypeRefKind.FORMAT | TypeRefKind.LIST | TypeRefKind.OPTIONAL | TypeRefKind.DICT | TypeRefKind.JSON_VALUE:
                return False
            case _:
                assert_never(type_ref.kind)

    def type_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.PRIMITIVES.get(type_ref.name, "string")
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return type_ref.name
            case TypeRefKind.LIST:
                return f"List<{self.type_expr(type_ref.inner)}>"
            case TypeRefKind.OPTIONAL:
                return f"{self.type_expr(type_ref.inner)}?"
            case TypeRefKind.DICT:
                return f"Dictionary<string, {self.type_expr(type_ref.inner)}>"
            case TypeRefKind.LAZY:
                # Records are reference types, so recursion needs no wrapper
                return self.type_expr(type_ref.inner)
            case TypeRefKind.JSON_VALUE:
                return "JToken"
            case TypeRefKind.UNIT:
                return "Unit"
            case _:
                assert_never(type_ref.kind)

    def decoder_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.DECODERS.get(type_ref.name, "JsonCodec.DecodeString")
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return self.codec_member(type_ref.name, "Decode")
            case TypeRefKind.LIST:
                return f"JsonCodec.ListOf({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.OPTIONAL:
                wrapper = "NullableValue" if self.is_value_type(type_ref.inner) else "NullableRef"
                return f"JsonCodec.{wrapper}({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.DICT:
                return f"JsonCodec.DictOf({self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.LAZY:
                return self.decoder_expr(type_ref.inner)
            case TypeRefKind.JSON_VALUE:
                return "JsonCodec.DecodeAny"
            case TypeRefKind.UNIT:
                return "JsonCodec.DecodeUnit"
            case _:
                assert_never(type_ref.kind)

    def encoder_expr(self, type_ref: TypeRef) -> str:
        # Encoder type arguments cannot be inferred from method groups
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.ENCODERS.get(type_ref.name, "JsonCodec.EncodeString")
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return self.codec_member(type_ref.name, "Encode")
            case TypeRefKind.LIST:
                return f"JsonCodec.EncodeList<{self.type_expr(type_ref.inner)}>({self.encoder_expr(type_ref.inner)})"
            case TypeRefKind.OPTIONAL:
                wrapper = "EncodeNullableValue" if self.is_value_type(type_ref.inner) else "EncodeNullableRef"
                return f"JsonCodec.{wrapper}<{self.type_expr(type_ref.inner)}>({self.encoder_expr(type_ref.inner)})"
            case TypeRefKind.DICT:
                return f"JsonCodec.EncodeDict<{self.type_expr(type_ref.inner)}>({self.encoder_expr(type_ref.inner)})"
            case TypeRefKind.LAZY:
                return self.encoder_expr(type_ref.inner)
            case TypeRefKind.JSON_VALUE:
                return "JsonCodec.EncodeAny"
            case TypeRefKind.UNIT:
                return "JsonCodec.EncodeUnit"
            case _:
                assert_never(type_ref.kind)

    # ---------------------------------------------------------- declarations

    @staticmethod
    def _decoder_head(name: str) -> str:
        return f"public static {name} Decode{name}(JToken value)"

    @staticmethod
    def _encoder_head(name: str) -> str:
        return f"public static JToken Encode{name}({name} value)"

    def _wrapper(self, name: str, type_text: str, inner: TypeRef) -> RenderedType:
        """Single-value record around ``inner``; C# has no namespace-level type aliases."""
        return RenderedType(
            name=name,
            type_text=type_text,
            decoder=f"{self._decoder_head(name)} =>\n{INDENT}new {name}({self.decoder_expr(inner)}(value));",
            encoder=f"{self._encoder_head(name)} =>\n{INDENT}{self.encoder_expr(inner)}(value.Value);",
        )

    def render_format_alias(self, alias: str) -> RenderedType:
        return self._wrapper(alias, f"public sealed record {alias}(string Value);", TypeRef.primitive("string"))

    def record_fields(self, decl: RecordDecl) -> list[tuple[str, FieldDecl]]:
        # Members may not share the name of their enclosing type
        taken = {decl.name, "EqualityContract"}
        if decl.additional is not None:
            taken.add(ADDITIONAL_FIELD)
        identifiers = self.NAMING.unique_fields([f.json_name for f in decl.fields], taken)
        return [(identifiers[f.json_name], f) for f in decl.fields]

    def render_record(self, decl: RecordDecl) -> RenderedType:
        name = decl.name
        fields = self.record_fields(decl)

        members = []
        for ident, field in fields:
            modifier = "required " if field.required else ""
            members.append(f"{xml_doc(field.description)}public {modifier}{self.type_expr(field.type_ref)} {ident} {{ get; init; }}")
        if decl.additional is not None:
            members.append(f"public Dictionary<string, {self.type_expr(decl.additional)}> {ADDITIONAL_FIELD} {{ get; init; }} = new();")
        if members:
            type_text = block(f"public sealed record {name}", ["\n\n".join(members)])
        else:
            type_text = f"public sealed record {name};"

        assignments = []
        for ident, field in fields:
            call = "Required" if field.required else "Optional"
            assignments.append(f"{ident} = JsonCodec.{call}(data, {csharp_string(field.json_name)}, {self.decoder_expr(field.type_ref)}, {csharp_string(name)}),")
        if decl.additional is not None:
            known = ", ".join(csharp_string(f.json_name) for f in decl.fields)
            known_array = f"new[] {{ {known} }}" if known else "Array.Empty<string>()"
            assignments.append(f"{ADDITIONAL_FIELD} = JsonCodec.Additional(data, {known_array}, {self.decoder_expr(decl.additional)}),")
        if assignments:
            statements = [f"var data = JsonCodec.ExpectObject(value, {csharp_string(name)});", block(f"return new {name}", assignments) + ";"]
        else:
            statements = [f"JsonCodec.ExpectObject(value, {csharp_string(name)});", f"return new {name}();"]
        decoder = block(self._decoder_head(name), statements)

        statements = ["var data = new JObject();"]
        for ident, field in fields:
            key = csharp_string(field.json_name)
            if field.required:
                statements.append(f"data[{key}] = {self.encoder_expr(field.type_ref)}(value.{ident});")
                continue
            inner = field.type_ref.inner if field.type_ref.kind == TypeRefKind.OPTIONAL else field.type_ref
            operand = f"value.{ident}.Value" if self.is_value_type(inner) else f"value.{ident}"
            statements.append(block(f"if (value.{ident} is not null)", [f"data[{key}] = {self.encoder_expr(inner)}({operand});"]))
        if decl.additional is not None:
            statements.append(block(f"foreach (var (key, item) in value.{ADDITIONAL_FIELD})", [f"data[key] = {self.encoder_expr(decl.additional)}(item);"]))
        statements.append("return data;")
        encoder = block(self._encoder_head(name), statements)
        return RenderedType(name, xml_doc(decl.description) + type_text, decoder, encoder)

    def enum_members(self, decl: EnumDecl) -> list[tuple[str, str]]:
        taken: set[str] = {decl.name}
        members = []
        for index, value in enumerate(decl.values):
            member = self.NAMING.member_name(str(value))
            if not _MEMBER.match(member):
                member = f"Value{index + 1}"
            members.append((unique_name(member, taken), str(value)))
        return members

    def render_enum(self, decl: EnumDecl) -> RenderedType:
        if not decl.values:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="enum without values"))
        name = decl.name
        members = self.enum_members(decl)
        type_text = xml_doc(decl.description) + block(f"public enum {name}", [f"{member}," for member, _ in members])

        arms = [f"{csharp_string(raw)} => {name}.{member}," for member, raw in members]
        arms.append(f'var other => throw new DecodeException($"Invalid {name}: {{other}}"),')
        decoder = f"{self._decoder_head(name)} =>\n" + indent(block("JsonCodec.DecodeString(value) switch", arms) + ";")

        arms = [f"{name}.{member} => new JValue({csharp_string(raw)})," for member, raw in members]
        arms.append("_ => throw new ArgumentOutOfRangeException(nameof(value)),")
        encoder = f"{self._encoder_head(name)} =>\n" + indent(block("value switch", arms) + ";")
        return RenderedType(name, type_text, decoder, encoder)

    def render_union(self, decl: UnionDecl) -> RenderedType:
        if not decl.cases:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="union without variants"))
        name = decl.name
        wrappers = [f"public sealed record {c.constructor}({self.type_expr(c.type_ref)} Value) : {name};" for c in decl.cases]
        type_text = "\n\n".join([xml_doc(decl.description) + f"public abstract record {name};"] + wrappers)

        if decl.discriminated:
            field_name = csharp_string(decl.discriminator_field)
            seen: set[str] = set()
            arms = []
            for case in decl.cases:
                if case.tag in seen:
                    continue
                seen.add(case.tag)
                arms.append(f"{csharp_string(case.tag)} => new {case.constructor}({self.decoder_expr(case.type_ref)}(value)),")
            arms.append(f"_ => throw new UnknownDiscriminatorException({csharp_string(name)}, {field_name}, tag),")
            statements = [
                f"var data = JsonCodec.ExpectObject(value, {csharp_string(name)});",
                f"var tag = JsonCodec.Discriminator(data, {field_name}, {csharp_string(name)});",
                block(f"{name} result = tag switch", arms) + ";",
                "return result;",
            ]
            decoder = block(self._decoder_head(name), statements)
        else:
            arguments = ["value", csharp_string(name)]
            arguments += [f"token => new {c.constructor}({self.decoder_expr(c.type_ref)}(token))" for c in decl.cases]
            decoder = f"{self._decoder_head(name)} =>\n{INDENT}JsonCodec.OneOf<{name}>(\n" + indent(",\n".join(arguments), 2) + ");"

        arms = [f"{c.constructor} inner => {self.encoder_expr(c.type_ref)}(inner.Value)," for c in decl.cases]
        arms.append(f'_ => throw new ArgumentException($"Not a {name}: {{value}}"),')
        encoder = f"{self._encoder_head(name)} =>\n" + indent(block("value switch", arms) + ";")
        return RenderedType(name, type_text, decoder, encoder)

    def render_conditional(self, decl: ConditionalDecl) -> RenderedType:
        name = decl.name
        doc = xml_doc(decl.description or "Outcome of an if/then/else schema; the predicate is not evaluated.")
        type_text = f'// Branch is "then", "else" or "unknown"\n{doc}public sealed record {name}(string Branch, JToken? Raw = null);'
        decoder = f'{self._decoder_head(name)} =>\n{INDENT}new {name}("unknown", value);'
        encoder = (
            f"{self._encoder_head(name)} =>\n"
            f'{INDENT}value.Branch is "then" or "else"\n'
            f'{INDENT * 2}? new JObject {{ ["type"] = value.Branch }}\n'
            f"{INDENT * 2}: value.Raw ?? JValue.CreateNull();"
        )
        return RenderedType(name, type_text, decoder, encoder)

    def render_alias(self, decl: AliasDecl) -> RenderedType:
        name = decl.name
        type_text = xml_doc(decl.description) + f"public sealed record {name}({self.type_expr(decl.target)} Value);"
        return self._wrapper(name, type_text, decl.target)

    def render_placeholder(self, decl: PlaceholderDecl) -> RenderedType:
        name = decl.name
        note = self.comment(f"{name} could not be generated: {decl.reason}")
        return self._wrapper(name, f"{note}\n{xml_doc(decl.description)}public sealed record {name}(JToken Value);", TypeRef.json_value())

    # ------------------------------------------------------------ operations

    def render_error_type(self, error_type: ErrorTypeDecl) -> str:
        lines = [
            f"// Error types for {self.operation_name(error_type.operation)} operation",
            f"public abstract record {error_type.name};",
        ]
        for case in error_type.cases:
            payload = self.type_expr(case.payload) if case.payload is not None else "string"
            lines.append(f"\npublic sealed record {case.constructor}({payload} Value) : {error_type.name};")
        lines.append(f"\npublic sealed record {error_type.unknown}(string Value) : {error_type.name};")
        return "\n".join(lines)

    def render_config(self, config: ClientConfiguration) -> tuple[str, str]:
        members = [f"public string BaseUrl {{ get; init; }} = {csharp_string(config.base_url)};"]
        members += [f"public string {snake_to_pascal_case(c.name)} {{ get; init; }} = {csharp_string(c.default)};" for c in config.credentials]
        headers = ", ".join(f"({csharp_string(name)}, {csharp_string(value)})" for name, value in config.custom_headers)
        initial = f"new (string Name, string Value)[] {{ {headers} }}" if headers else "Array.Empty<(string Name, string Value)>()"
        members.append(f"public IReadOnlyList<(string Name, string Value)> CustomHeaders {{ get; init; }} = {initial};")
        timeout = f"TimeSpan.FromSeconds({config.timeout!r})" if config.timeout is not None else "null"
        members.append(f"public TimeSpan? Timeout {{ get; init; }} = {timeout};")
        config_type = "/// <summary>Client configuration</summary>\n" + block(f"public sealed record {self.CONFIG_TYPE}", ["\n\n".join(members)])
        return config_type, f"public static readonly {self.CONFIG_TYPE} DefaultConfig = new();"

    def argument_names(self, binding: OperationBinding) -> dict[str, str]:
        taken = {"config", "client", "cancellationToken", "body", "query", "headers", "url", "response", "text", "e"}
        return {p.name: unique_name(_parameter_case(p.name), taken) for p in binding.parameters}

    def _stringify(self, parameter: BoundParameter, variable: str) -> str:
        if parameter.type_ref.kind == TypeRefKind.OPTIONAL and self.is_value_type(parameter.type_ref.inner):
            variable = f"{variable}.Value"
        stringifier = self.STRINGIFIERS.get(parameter.stringifier)
        return f"{stringifier}({variable})" if stringifier else variable

    def render_request(self, binding: OperationBinding, context: ModulePlan) -> tuple[str, str]:
        function = self.operation_name(binding.function_name)
        arguments = self.argument_names(binding)
        error_type = binding.error_type

        required = [f"{self.CONFIG_TYPE} config"]
        optional = []
        for parameter in binding.parameters:
            declaration = f"{self.type_expr(parameter.type_ref)} {arguments[parameter.name]}"
            if parameter.required:
                required.append(declaration)
            else:
                optional.append(f"{declaration} = null")
        if binding.request_body is not None:
            required.append(f"{self.type_expr(binding.request_body.type_ref)} body")
        optional += ["HttpClient? client = null", "CancellationToken cancellationToken = default"]

        result = f"Result<{self.type_expr(binding.success_type)}, {error_type.name if error_type is not None else 'HttpError'}>"
        parameters = ",\n".join(INDENT + p for p in required + optional)
        signature = f"{xml_doc(binding.summary)}public static async Task<{result}> {function}(\n{parameters})"

        body = "null"
        if binding.request_body is not None:
            body = f"{self.encoder_expr(binding.request_body.type_ref)}(body)"
        statements = [
            *self._query(binding, arguments),
            *self._headers(binding),
            f"var url = Transport.BuildUrl(config.BaseUrl, {self._segments(binding, arguments)}, query);",
            "HttpResponseMessage response;",
            block("try", [f"response = await Transport.SendAsync(client, new HttpMethod({csharp_string(binding.http_method.upper())}), url, headers, {body}, config.Timeout, cancellationToken);"]),
            "catch (Exception e) when (e is HttpRequestException or TaskCanceledException)",
            block("", [f"return {self._failure(result, error_type, 'e.Message', 'null')};"]),
            "var text = await response.Content.ReadAsStringAsync(cancellationToken);",
            self._dispatch(binding, result),
        ]
        return signature, block("", statements)

    def _failure(self, result: str, error_type: ErrorTypeDecl | None, message: str, status: str) -> str:
        if error_type is not None:
            return f"new {result}.Err(new {error_type.unknown}({message}))"
        return f"new {result}.Err(new HttpError({status}, {message}))"

    def _query(self, binding: OperationBinding, arguments: dict[str, str]) -> list[str]:
        lines = ["var query = new List<(string Name, string Value)>();"]
        for parameter in binding.query_parameters:
            variable = arguments[parameter.name]
            add = f"query.Add(({csharp_string(parameter.name)}, {self._stringify(parameter, variable)}));"
            lines.append(add if parameter.required else block(f"if ({variable} is not null)", [add]))
        return lines

    def _headers(self, binding: OperationBinding) -> list[str]:
        steps = []
        for step in binding.security:
            value = f"config.{snake_to_pascal_case(step.credential)}"
            if step.prefix:
                value = f"{csharp_string(step.prefix)} + {value}"
            steps.append(f"({csharp_string(step.header)}, {value})")
        initial = f" {{ {', '.join(steps)} }}" if steps else "()"
        return [f"var headers = new List<(string Name, string Value)>{initial};", "headers.AddRange(config.CustomHeaders);"]

    def _segments(self, binding: OperationBinding, arguments: dict[str, str]) -> str:
        by_name = {p.name: p for p in binding.parameters}
        segments = []
        for segment in binding.path_segments:
            match segment:
                case LiteralSegment():
                    segments.append(csharp_string(segment.text))
                case ParameterSegment():
                    parameter = by_name[segment.name]
                    segments.append(f"Transport.Segment({self._stringify(parameter, arguments[segment.name])})")
                case _:
                    assert_never(segment)
        return f"new string[] {{ {', '.join(segments)} }}" if segments else "Array.Empty<string>()"

    def _dispatch(self, binding: OperationBinding, result: str) -> str:
        """One switch over every declared status; unlisted statuses fall to ``default``."""
        error_type = binding.error_type
        cases = []
        for response in binding.responses:
            if response.is_success:
                if binding.success_type.kind == TypeRefKind.UNIT:
                    outcome = [f"return new {result}.Ok(default);"]
                else:
                    decode = self.decoder_expr(binding.success_type)
                    outcome = [
                        block("try", [f"return new {result}.Ok({decode}(JToken.Parse(text)));"]),
                        BODY_FAILURE,
                        block("", [f"return {self._failure(result, error_type, 'e.Message', '(int)response.StatusCode')};"]),
                    ]
            elif response.is_error and error_type is not None:
                case = error_type.case_for(response.status)
                if case is None:
                    continue
                if case.payload is None:
                    outcome = [f"return new {result}.Err(new {case.constructor}(text));"]
                else:
                    outcome = [
                        block("try", [f"return new {result}.Err(new {case.constructor}({self.decoder_expr(case.payload)}(JToken.Parse(text))));"]),
                        BODY_FAILURE,
                        block("", [f"return new {result}.Err(new {error_type.unknown}(text));"]),
                    ]
            else:
                continue
            cases.append(f"case {response.code}:\n" + indent("\n".join(outcome)))
        if error_type is not None:
            default = f'return new {result}.Err(new {error_type.unknown}($"Unexpected status {{(int)response.StatusCode}}"));'
        else:
            default = f"return new {result}.Err(new HttpError((int)response.StatusCode, text));"
        cases.append(f"default:\n{INDENT}{default}")
        return block("switch ((int)response.StatusCode)", cases)

    def render_imports(self, context: ModulePlan) -> str:
        self.enter_module(context)
        return "\n".join(f"using {module_import.module};" for module_import in context.imports)

    # ---------------------------------------------------------------- module

    def runtime_namespace(self, prefix: str) -> str:
        return self.module_name(prefix, "Runtime")

    def template_variables(self, context: ModulePlan, pieces: ModulePieces | None = None) -> dict:
        variables = super().template_variables(context, pieces)
        variables["runtime_namespace"] = self.runtime_namespace(context.module_prefix)
        variables["diagnostics"] = [" ".join(d.splitlines()) for d in variables["diagnostics"]]
        return variables

    def validate_output(self, source: str) -> ValidationOutcome:
        problems = []
        if not any(line.startswith("namespace ") for line in source.splitlines()):
            problems.append("missing namespace declaration")
        depth = brace_balance(source)
        if depth:
            problems.append(f"unbalanced braces ({depth:+d})")
        return ValidationOutcome(not problems, tuple(problems))

    def support_units(self, prefix: str, plans: list[ModulePlan]) -> list[ModuleUnit]:
        """The shared ``Runtime`` file."""
        namespace = self.runtime_namespace(prefix)
        timestamp = plans[0].generation_timestamp if plans else ""
        try:
            template = self.jinja_env.get_template(self.RUNTIME_TEMPLATE)
        except jinja2.TemplateError as e:
            logger.error("Runtime template unavailable: %s", e)
            source = self.comment(f"The runtime file could not be generated: {e}") + "\n"
        else:
            source = template.render(namespace=namespace, package_name=self.module_name(prefix), generation_timestamp=timestamp)
        return [ModuleUnit(qualified_name=namespace, relative_path=self.relative_path(namespace), source=source)]
