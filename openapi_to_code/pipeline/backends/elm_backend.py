"""
Elm code generation backend.

Renders declarations as Elm type aliases and custom types with
``Json.Decode`` / ``Json.Encode`` routines, and operations as ``Http.task``
requests.
"""

from __future__ import annotations

import re
from typing import assert_never

from ...utils import snake_to_pascal_case, to_camel_case, unique_name
from ..assembler.units import ModulePlan, RenderedType
from ..binder.bindings import (
    BoundParameter,
    ClientConfiguration,
    ErrorTypeDecl,
    LiteralSegment,
    OperationBinding,
    ParameterSegment,
)
from ..synthesis.ir import (
    MAX_FIXED_ARITY,
    AliasDecl,
    ConditionalDecl,
    Declaration,
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

ELM_RESERVED = frozenset(
    {
        "if",
        "then",
        "else",
        "case",
        "of",
        "let",
        "in",
        "type",
        "module",
        "where",
        "import",
        "exposing",
        "as",
        "port",
        "alias",
        "infix",
    }
)

INDENT = "    "

ADDITIONAL_FIELD = "additionalProperties"

_CONSTRUCTOR = re.compile(r"^[A-Z][A-Za-z0-9_]*$")


def _lower_first(text: str) -> str:
    return text[:1].lower() + text[1:]


def elm_string(value: str) -> str:
    """Elm string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f'"{escaped}"'


def elm_comment_text(text: str) -> str:
    """Text safe to place inside an Elm block comment."""
    return text.replace("{-", "{ -").replace("-}", "- }")


def paren(expr: str) -> str:
    if " " in expr and not (expr.startswith("(") and expr.endswith(")")):
        return f"({expr})"
    return expr


def indent(text: str, levels: int = 1) -> str:
    prefix = INDENT * levels
    return "\n".join(prefix + line if line else line for line in text.splitlines())


class ElmBackend(TargetBackend):
    """Elm code generation backend."""

    name = "elm"
    file_extension = ".elm"
    default_module_prefix = "Api"
    TEMPLATE_LANG = "elm"
    COMMENT_PREFIX = "--"

    IMPORT_FLAGS = {
        "needs_dict": Requirement.DICT,
        "needs_http": Requirement.HTTP,
        "needs_json_decode": Requirement.DECODE,
        "needs_and_map": Requirement.MANY_FIELDS,
        "needs_json_encode": Requirement.ENCODE,
        "needs_task": Requirement.TASK,
        "needs_url": Requirement.URL,
    }

    PRIMITIVES = {
        "string": "String",
        "integer": "Int",
        "number": "Float",
        "boolean": "Bool",
    }

    DECODERS = {
        "string": "Decode.string",
        "integer": "Decode.int",
        "number": "Decode.float",
        "boolean": "Decode.bool",
    }

    ENCODERS = {
        "string": "Encode.string",
        "integer": "Encode.int",
        "number": "Encode.float",
        "boolean": "Encode.bool",
    }

    STRINGIFIERS = {
        "integer": "String.fromInt",
        "number": "String.fromFloat",
        "boolean": '(\\b -> if b then "true" else "false")',
    }

    NAMING = NamingRules(
        reserved_words=ELM_RESERVED,
        field_case=to_camel_case,
        function_case=_lower_first,
        member_case=snake_to_pascal_case,
        digit_prefix="f",
        reserved_types=frozenset({"Config", "Decoder", "Dict", "Task", "Value", "Maybe", "List", "String", "Int", "Float", "Bool"}),
    )

    CONFIG_TYPE = "Config"

    FALLBACK_TEMPLATE = """module {{ module_name }} exposing (..)

{- {{ api_description }}
   Generated {{ generation_timestamp }} from the minimal fallback template.
-}

{% if needs_dict %}import Dict exposing (Dict)
{% endif %}{% if needs_http %}import Http
{% endif %}{% if needs_json_decode %}import Json.Decode as Decode exposing (Decoder)
{% endif %}{% if needs_json_encode %}import Json.Encode as Encode
{% endif %}{% if needs_task %}import Task exposing (Task)
{% endif %}{% if needs_url %}import Url.Builder as Url
{% endif %}{% if needs_and_map %}

andMap : Decoder a -> Decoder (a -> b) -> Decoder b
andMap =
    Decode.map2 (|>)
{% endif %}{% if needs_dict %}

decodeAdditional : List String -> Decoder a -> Decoder (Dict String a)
decodeAdditional known valueDecoder =
    Decode.keyValuePairs Decode.value
        |> Decode.andThen
            (\\pairs ->
                List.foldr
                    (\\( key, raw ) acc ->
                        if List.member key known then
                            acc

                        else
                            case Decode.decodeValue valueDecoder raw of
                                Ok value ->
                                    Decode.map (Dict.insert key value) acc

                                Err err ->
                                    Decode.fail (Decode.errorToString err)
                    )
                    (Decode.succeed Dict.empty)
                    pairs
            )
{% endif %}


{{ types }}


{{ decoders }}


{{ encoders }}


{{ requests }}
"""

    def module_name(self, prefix: str, *parts: str) -> str:
        return ".".join([prefix or self.default_module_prefix, *parts])

    def validate_output(self, source: str) -> ValidationOutcome:
        problems = []
        lines = source.splitlines()
        if not any(line.startswith("module ") and "exposing" in line for line in lines):
            problems.append("missing module declaration")
        if source.count("{-") != source.count("-}"):
            problems.append("unbalanced block comments")
        for line in lines:
            if line.startswith("import ") and len(line.split()) < 2:
                problems.append(f"malformed import: {line}")
        return ValidationOutcome(not problems, tuple(problems))

    def template_variables(self, context: ModulePlan, pieces: ModulePieces | None = None) -> dict:
        variables = super().template_variables(context, pieces)
        variables["api_description"] = elm_comment_text(variables["api_description"])
        variables["diagnostics"] = [elm_comment_text(d) for d in variables["diagnostics"]]
        return variables

    # ----------------------------------------------------------- type tables

    def type_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.PRIMITIVES.get(type_ref.name, "String")
            case TypeRefKind.FORMAT | TypeRefKind.NAMED:
                return type_ref.name
            case TypeRefKind.LIST:
                return f"List {paren(self.type_expr(type_ref.inner))}"
            case TypeRefKind.OPTIONAL:
                return f"Maybe {paren(self.type_expr(type_ref.inner))}"
            case TypeRefKind.DICT:
                return f"Dict String {paren(self.type_expr(type_ref.inner))}"
            case TypeRefKind.LAZY:
                # Recursive records are boxed in a custom type, so the field keeps its plain type
                return self.type_expr(type_ref.inner)
            case TypeRefKind.JSON_VALUE:
                return "Decode.Value"
            case TypeRefKind.UNIT:
                return "()"
            case _:
                assert_never(type_ref.kind)

    def decoder_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.DECODERS.get(type_ref.name, "Decode.string")
            case TypeRefKind.FORMAT:
                return f"decode{type_ref.name}FromString"
            case TypeRefKind.NAMED:
                return f"decoder{type_ref.name}"
            case TypeRefKind.LIST:
                return f"Decode.list {paren(self.decoder_expr(type_ref.inner))}"
            case TypeRefKind.OPTIONAL:
                return f"Decode.nullable {paren(self.decoder_expr(type_ref.inner))}"
            case TypeRefKind.DICT:
                return f"Decode.dict {paren(self.decoder_expr(type_ref.inner))}"
            case TypeRefKind.LAZY:
                return f"Decode.lazy (\\_ -> {self.decoder_expr(type_ref.inner)})"
            case TypeRefKind.JSON_VALUE:
                return "Decode.value"
            case TypeRefKind.UNIT:
                return "Decode.succeed ()"
            case _:
                assert_never(type_ref.kind)

    def encoder_expr(self, type_ref: TypeRef) -> str:
        match type_ref.kind:
            case TypeRefKind.PRIMITIVE:
                return self.ENCODERS.get(type_ref.name, "Encode.string")
            case TypeRefKind.FORMAT:
                return f"encode{type_ref.name}ToString"
            case TypeRefKind.NAMED:
                return f"encode{type_ref.name}"
            case TypeRefKind.LIST:
                return f"Encode.list {paren(self.encoder_expr(type_ref.inner))}"
            case TypeRefKind.OPTIONAL:
                return f"(Maybe.map {paren(self.encoder_expr(type_ref.inner))} >> Maybe.withDefault Encode.null)"
            case TypeRefKind.DICT:
                return f"Encode.dict identity {paren(self.encoder_expr(type_ref.inner))}"
            case TypeRefKind.LAZY:
                return self.encoder_expr(type_ref.inner)
            case TypeRefKind.JSON_VALUE:
                return "identity"
            case TypeRefKind.UNIT:
                return "(\\_ -> Encode.null)"
            case _:
                assert_never(type_ref.kind)

    # ---------------------------------------------------------- declarations

    @staticmethod
    def doc(description: str | None) -> str:
        if not description:
            return ""
        return f"{{-| {elm_comment_text(description.strip())}\n-}}\n"

    @staticmethod
    def is_boxed(decl: Declaration) -> bool:
        """Records and aliases that refer back to themselves become single-constructor custom types."""
        return isinstance(decl, (RecordDecl, AliasDecl)) and Requirement.LAZY in decl.requirements

    @classmethod
    def exposes_constructors(cls, decl: Declaration) -> bool:
        return isinstance(decl, (EnumDecl, UnionDecl, ConditionalDecl)) or cls.is_boxed(decl)

    @staticmethod
    def _and_then(source: str, variable: str, switch: str) -> str:
        return "\n".join([source, f"{INDENT}|> Decode.andThen", f"{INDENT * 2}(\\{variable} ->", indent(switch, 3), f"{INDENT * 2})"])

    def _signatures(self, name: str) -> tuple[str, str]:
        return (
            f"decoder{name} : Decoder {name}\ndecoder{name} =\n",
            f"encode{name} : {name} -> Encode.Value\n",
        )

    def render_format_alias(self, alias: str) -> RenderedType:
        return RenderedType(
            name=alias,
            type_text=f"type alias {alias} =\n{INDENT}String",
            decoder=f"decode{alias}FromString : Decoder {alias}\ndecode{alias}FromString =\n{INDENT}Decode.string",
            encoder=f"encode{alias}ToString : {alias} -> Encode.Value\nencode{alias}ToString =\n{INDENT}Encode.string",
        )

    def record_fields(self, decl: RecordDecl) -> list[tuple[str, FieldDecl]]:
        taken = {ADDITIONAL_FIELD} if decl.additional is not None else set()
        identifiers = self.NAMING.unique_fields([f.json_name for f in decl.fields], taken)
        return [(identifiers[f.json_name], f) for f in decl.fields]

    def render_record(self, decl: RecordDecl) -> RenderedType:
        name = decl.name
        fields = self.record_fields(decl)
        members = [(ident, self.type_expr(f.type_ref)) for ident, f in fields]
        if decl.additional is not None:
            members.append((ADDITIONAL_FIELD, f"Dict String {paren(self.type_expr(decl.additional))}"))
        boxed = self.is_boxed(decl)

        if members:
            body = "\n".join(("{ " if i == 0 else ", ") + f"{ident} : {expr}" for i, (ident, expr) in enumerate(members)) + "\n}"
        else:
            body = "{}"
        if boxed:
            type_text = f"type {name}\n{INDENT}= {name}\n{indent(body, 2)}"
        else:
            type_text = f"type alias {name} =\n{indent(body)}"

        decoder_sig, encoder_sig = self._signatures(name)
        return RenderedType(
            name=name,
            type_text=self.doc(decl.description) + type_text,
            decoder=decoder_sig + indent(self._record_decoder(decl, fields, boxed)),
            encoder=encoder_sig + self._record_encoder(decl, fields, boxed),
        )

    def _field_decoder(self, field: FieldDecl) -> str:
        key = elm_string(field.json_name)
        if field.required:
            return f"Decode.field {key} {paren(self.decoder_expr(field.type_ref))}"
        # Absent and null both decode to Nothing
        inner = field.type_ref.inner if field.type_ref.kind == TypeRefKind.OPTIONAL else field.type_ref
        return f"Decode.maybe (Decode.field {key} (Decode.nullable {paren(self.decoder_expr(inner))})) |> Decode.map (Maybe.andThen identity)"

    def _record_decoder(self, decl: RecordDecl, fields: list[tuple[str, FieldDecl]], boxed: bool) -> str:
        parts = [self._field_decoder(f) for _, f in fields]
        names = [ident for ident, _ in fields]
        if decl.additional is not None:
            known = ", ".join(elm_string(f.json_name) for _, f in fields)
            known_list = f"[ {known} ]" if known else "[]"
            parts.append(f"decodeAdditional {known_list} {paren(self.decoder_expr(decl.additional))}")
            names.append(ADDITIONAL_FIELD)

        if not parts:
            return f"Decode.succeed ({decl.name} {{}})" if boxed else "Decode.succeed {}"
        if boxed:
            assignments = ", ".join(f"{n} = {n}" for n in names)
            constructor = f"(\\{' '.join(names)} -> {decl.name} {{ {assignments} }})"
        else:
            constructor = decl.name

        if len(parts) <= MAX_FIXED_ARITY:
            map_fn = "Decode.map" if len(parts) == 1 else f"Decode.map{len(parts)}"
            lines = [f"{map_fn} {constructor}"] + [f"{INDENT}({p})" for p in parts]
        else:
            lines = [f"Decode.succeed {constructor}"] + [f"{INDENT}|> andMap ({p})" for p in parts]
        return "\n".join(lines)

    def _record_encoder(self, decl: RecordDecl, fields: list[tuple[str, FieldDecl]], boxed: bool) -> str:
        parameter = f"({decl.name} value)" if boxed else "value"
        if not fields and decl.additional is None:
            blank = f"({decl.name} _)" if boxed else "_"
            return f"encode{decl.name} {blank} =\n{INDENT}Encode.object []"

        entries = []
        for ident, field in fields:
            key = elm_string(field.json_name)
            if field.required:
                entries.append(f"Just ( {key}, {self.encoder_expr(field.type_ref)} value.{ident} )")
            else:
                inner = field.type_ref.inner if field.type_ref.kind == TypeRefKind.OPTIONAL else field.type_ref
                entries.append(f"Maybe.map (\\v -> ( {key}, {self.encoder_expr(inner)} v )) value.{ident}")

        if entries:
            listed = "\n".join(("[ " if i == 0 else ", ") + e for i, e in enumerate(entries)) + "\n]"
            pairs = "List.filterMap identity\n" + indent(listed)
        else:
            pairs = "[]"
        if decl.additional is not None:
            additional = f"(Dict.toList value.{ADDITIONAL_FIELD} |> List.map (\\( k, v ) -> ( k, {self.encoder_expr(decl.additional)} v )))"
            pairs = f"({pairs})\n++ {additional}" if entries else additional
        return f"encode{decl.name} {parameter} =\n{INDENT}Encode.object\n{indent('(' + pairs + ')', 2)}"

    def enum_constructors(self, decl: EnumDecl) -> list[tuple[str, str]]:
        taken: set[str] = set()
        constructors = []
        for index, value in enumerate(decl.values):
            member = self.NAMING.member_name(str(value))
            candidate = decl.name + member
            if not _CONSTRUCTOR.match(candidate) or member == "Value":
                candidate = f"{decl.name}Value{index + 1}"
            constructors.append((unique_name(candidate, taken), str(value)))
        return constructors

    def render_enum(self, decl: EnumDecl) -> RenderedType:
        if not decl.values:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="enum without values"))
        name = decl.name
        constructors = self.enum_constructors(decl)
        variants = "\n".join(("= " if i == 0 else "| ") + c for i, (c, _) in enumerate(constructors))
        type_text = f"type {name}\n{indent(variants)}"

        branches = "\n\n".join(f"{elm_string(raw)} ->\n{INDENT}Decode.succeed {c}" for c, raw in constructors)
        fallback = f'_ ->\n{INDENT}Decode.fail ("Invalid {name}: " ++ str)'
        switch = f"case str of\n{indent(branches)}\n\n{indent(fallback)}"
        decoder_sig, encoder_sig = self._signatures(name)
        decoder = decoder_sig + indent(self._and_then("Decode.string", "str", switch))

        encode_branches = "\n\n".join(f"{c} ->\n{INDENT}Encode.string {elm_string(raw)}" for c, raw in constructors)
        encoder = encoder_sig + f"encode{name} value =\n{INDENT}case value of\n{indent(encode_branches, 2)}"
        return RenderedType(name, self.doc(decl.description) + type_text, decoder, encoder)

    def render_union(self, decl: UnionDecl) -> RenderedType:
        if not decl.cases:
            return self.render_placeholder(PlaceholderDecl(name=decl.name, description=decl.description, reason="union without variants"))
        name = decl.name
        variants = "\n".join(("= " if i == 0 else "| ") + f"{c.constructor} {paren(self.type_expr(c.type_ref))}" for i, c in enumerate(decl.cases))
        type_text = f"type {name}\n{indent(variants)}"

        decoder_sig, encoder_sig = self._signatures(name)
        if decl.discriminated:
            seen: set[str] = set()
            branches = []
            for case in decl.cases:
                if case.tag in seen:
                    continue
                seen.add(case.tag)
                branches.append(f"{elm_string(case.tag)} ->\n{INDENT}Decode.map {case.constructor} {paren(self.decoder_expr(case.type_ref))}")
            fallback = f'_ ->\n{INDENT}Decode.fail ("Unknown {name} type: " ++ d)'
            switch = "case d of\n" + indent("\n\n".join(branches + [fallback]))
            body = self._and_then(f"Decode.field {elm_string(decl.discriminator_field)} Decode.string", "d", switch)
        else:
            alternatives = "\n".join(("[ " if i == 0 else ", ") + f"Decode.map {c.constructor} {paren(self.decoder_expr(c.type_ref))}" for i, c in enumerate(decl.cases))
            body = f"Decode.oneOf\n{indent(alternatives)}\n{INDENT}]"
        decoder = decoder_sig + indent(body)

        encode_branches = "\n\n".join(f"{c.constructor} inner ->\n{INDENT}{self.encoder_expr(c.type_ref)} inner" for c in decl.cases)
        encoder = encoder_sig + f"encode{name} value =\n{INDENT}case value of\n{indent(encode_branches, 2)}"
        return RenderedType(name, self.doc(decl.description) + type_text, decoder, encoder)

    def render_conditional(self, decl: ConditionalDecl) -> RenderedType:
        name = decl.name
        type_text = f"type {name}\n{INDENT}= {name}Then ()\n{INDENT}| {name}Else ()\n{INDENT}| {name}Unknown Decode.Value"
        decoder_sig, encoder_sig = self._signatures(name)
        # The predicate is not evaluated; the raw value is kept
        decoder = decoder_sig + f"{INDENT}Decode.map {name}Unknown Decode.value"
        branches = "\n\n".join(
            [
                f'{name}Then _ ->\n{INDENT}Encode.object [ ( "type", Encode.string "then" ) ]',
                f'{name}Else _ ->\n{INDENT}Encode.object [ ( "type", Encode.string "else" ) ]',
                f"{name}Unknown raw ->\n{INDENT}raw",
            ]
        )
        encoder = encoder_sig + f"encode{name} value =\n{INDENT}case value of\n{indent(branches, 2)}"
        return RenderedType(name, self.doc(decl.description) + type_text, decoder, encoder)

    def render_alias(self, decl: AliasDecl) -> RenderedType:
        name = decl.name
        decoder_sig, encoder_sig = self._signatures(name)
        if self.is_boxed(decl):
            # Elm rejects recursive type aliases
            return RenderedType(
                name=name,
                type_text=self.doc(decl.description) + f"type {name}\n{INDENT}= {name} {paren(self.type_expr(decl.target))}",
                decoder=decoder_sig + f"{INDENT}Decode.map {name} {paren(self.decoder_expr(decl.target))}",
                encoder=encoder_sig + f"encode{name} ({name} value) =\n{INDENT}{self.encoder_expr(decl.target)} value",
            )
        return RenderedType(
            name=name,
            type_text=self.doc(decl.description) + f"type alias {name} =\n{INDENT}{self.type_expr(decl.target)}",
            decoder=decoder_sig + INDENT + self.decoder_expr(decl.target),
            encoder=encoder_sig + f"encode{name} =\n{INDENT}{self.encoder_expr(decl.target)}",
        )

    def render_placeholder(self, decl: PlaceholderDecl) -> RenderedType:
        name = decl.name
        decoder_sig, encoder_sig = self._signatures(name)
        note = self.comment(f"{name} could not be generated: {decl.reason}")
        return RenderedType(
            name=name,
            type_text=f"{note}\n{self.doc(decl.description)}type alias {name} =\n{INDENT}Decode.Value",
            decoder=decoder_sig + f"{INDENT}Decode.value",
            encoder=encoder_sig + f"encode{name} =\n{INDENT}identity",
        )

    # ------------------------------------------------------------ operations

    def render_error_type(self, error_type: ErrorTypeDecl) -> str:
        cases = [f"{c.constructor} {self.type_expr(c.payload) if c.payload is not None else 'String'}" for c in error_type.cases]
        cases.append(f"{error_type.unknown} String")
        variants = "\n".join(("= " if i == 0 else "| ") + c for i, c in enumerate(cases))
        operation = self.NAMING.function_name(error_type.operation)
        return f"{{-| Error types for {operation} operation\n-}}\ntype {error_type.name}\n{indent(variants)}"

    def render_config(self, config: ClientConfiguration) -> tuple[str, str]:
        members = [("baseUrl", "String", elm_string(config.base_url))]
        members += [(c.name, "String", elm_string(c.default)) for c in config.credentials]
        headers = ", ".join(f"( {elm_string(k)}, {elm_string(v)} )" for k, v in config.custom_headers)
        members.append(("customHeaders", "List ( String, String )", f"[ {headers} ]" if headers else "[]"))
        timeout = f"Just {config.timeout}" if config.timeout is not None else "Nothing"
        members.append(("timeout", "Maybe Float", timeout))

        type_body = "\n".join(("{ " if i == 0 else ", ") + f"{n} : {t}" for i, (n, t, _) in enumerate(members)) + "\n}"
        value_body = "\n".join(("{ " if i == 0 else ", ") + f"{n} = {v}" for i, (n, _, v) in enumerate(members)) + "\n}"
        config_type = f"{{-| Client configuration\n-}}\ntype alias {self.CONFIG_TYPE} =\n{indent(type_body)}"
        default = f"{{-| Default client configuration\n-}}\ndefaultConfig : {self.CONFIG_TYPE}\ndefaultConfig =\n{indent(value_body)}"
        return config_type, default

    def argument_names(self, binding: OperationBinding) -> dict[str, str]:
        """Elm argument name per parameter name, avoiding ``config`` and ``body``."""
        taken = {"config", "body", "response", "metadata", "responseBody", "value", "err", "headerName", "headerValue", "queryValue", "badUrl"}
        return {p.name: unique_name(self.NAMING.field_name(p.name), taken) for p in binding.parameters}

    def _stringify(self, parameter: BoundParameter, variable: str) -> str:
        stringifier = self.STRINGIFIERS.get(parameter.stringifier)
        return f"{stringifier} {variable}" if stringifier else variable

    def render_request(self, binding: OperationBinding, context: ModulePlan) -> tuple[str, str]:
        function = self.NAMING.function_name(binding.function_name)
        arguments = self.argument_names(binding)
        error_type = binding.error_type.name if binding.error_type is not None else "Http.Error"
        success = self.type_expr(binding.success_type)

        arg_types = [self.CONFIG_TYPE] + [self.type_expr(p.type_ref) for p in binding.parameters]
        arg_names = ["config"] + [arguments[p.name] for p in binding.parameters]
        if binding.request_body is not None:
            arg_types.append(self.type_expr(binding.request_body.type_ref))
            arg_names.append("body")

        signature = self.doc(binding.summary) + f"{function} : {' -> '.join(arg_types)} -> Task {error_type} {paren(success)}"

        record = [
            f"method = {elm_string(binding.http_method)}",
            f"headers = {self._headers(binding)}",
            f"url = {self._url(binding, arguments)}",
            f"body = {self._body(binding)}",
            "resolver =\n" + indent(self._resolver(binding)),
            "timeout = config.timeout",
        ]
        fields = "\n".join(("{ " if i == 0 else ", ") + entry for i, entry in enumerate(record)) + "\n}"
        body = f"{function} {' '.join(arg_names)} =\n{INDENT}Http.task\n{indent(fields, 2)}"
        return signature, body

    def _headers(self, binding: OperationBinding) -> str:
        steps = []
        for step in binding.security:
            value = f"config.{step.credential}"
            if step.prefix:
                value = f"({elm_string(step.prefix)} ++ {value})"
            steps.append(f"Http.header {elm_string(step.header)} {value}")
        custom = "List.map (\\( headerName, headerValue ) -> Http.header headerName headerValue) config.customHeaders"
        if not steps:
            return custom
        return f"[ {', '.join(steps)} ] ++ {custom}"

    def _url(self, binding: OperationBinding, arguments: dict[str, str]) -> str:
        by_name = {p.name: p for p in binding.parameters}
        segments = []
        for segment in binding.path_segments:
            match segment:
                case LiteralSegment():
                    segments.append(elm_string(segment.text))
                case ParameterSegment():
                    segments.append(self._stringify(by_name[segment.name], arguments[segment.name]))
                case _:
                    assert_never(segment)
        query = []
        for parameter in binding.query_parameters:
            variable = arguments[parameter.name]
            key = elm_string(parameter.name)
            if parameter.required:
                query.append(f"Just (Url.string {key} ({self._stringify(parameter, variable)}))")
            else:
                query.append(f"Maybe.map (\\queryValue -> Url.string {key} ({self._stringify(parameter, 'queryValue')})) {variable}")
        path = f"[ {', '.join(segments)} ]" if segments else "[]"
        query_list = f"(List.filterMap identity [ {', '.join(query)} ])" if query else "[]"
        return f"Url.crossOrigin config.baseUrl {path} {query_list}"

    def _body(self, binding: OperationBinding) -> str:
        if binding.request_body is None:
            return "Http.emptyBody"
        return f"Http.jsonBody ({self.encoder_expr(binding.request_body.type_ref)} body)"

    def _dispatch(self, binding: OperationBinding) -> str:
        """One case over every declared success and error status."""
        error_type = binding.error_type
        branches = []
        for response in binding.responses:
            if response.is_success:
                if binding.success_type.kind == TypeRefKind.UNIT:
                    outcome = "Ok ()"
                else:
                    failure = f"{error_type.unknown} (Decode.errorToString err)" if error_type else "Http.BadBody (Decode.errorToString err)"
                    outcome = (
                        f"case Decode.decodeString {paren(self.decoder_expr(binding.success_type))} responseBody of\n"
                        f"{INDENT}Ok value ->\n{INDENT * 2}Ok value\n\n"
                        f"{INDENT}Err err ->\n{INDENT * 2}Err ({failure})"
                    )
            elif response.is_error and error_type is not None:
                case = error_type.case_for(response.status)
                if case is None:
                    continue
                if case.payload is None:
                    outcome = f"Err ({case.constructor} responseBody)"
                else:
                    outcome = (
                        f"case Decode.decodeString {paren(self.decoder_expr(case.payload))} responseBody of\n"
                        f"{INDENT}Ok value ->\n{INDENT * 2}Err ({case.constructor} value)\n\n"
                        f"{INDENT}Err _ ->\n{INDENT * 2}Err ({error_type.unknown} responseBody)"
                    )
            else:
                continue
            branches.append(f"{response.code} ->\n{indent(outcome)}")
        if error_type is not None:
            default = f'_ ->\n{INDENT}Err ({error_type.unknown} ("Unexpected status " ++ String.fromInt metadata.statusCode))'
        else:
            default = f"_ ->\n{INDENT}Err (Http.BadStatus metadata.statusCode)"
        branches.append(default)
        return "case metadata.statusCode of\n" + indent("\n\n".join(branches))

    def _resolver(self, binding: OperationBinding) -> str:
        error_type = binding.error_type
        if error_type is not None:
            transport = [
                ("Http.BadUrl_ badUrl", f'Err ({error_type.unknown} ("Bad URL: " ++ badUrl))'),
                ("Http.Timeout_", f'Err ({error_type.unknown} "Timeout")'),
                ("Http.NetworkError_", f'Err ({error_type.unknown} "Network error")'),
            ]
        else:
            transport = [
                ("Http.BadUrl_ badUrl", "Err (Http.BadUrl badUrl)"),
                ("Http.Timeout_", "Err Http.Timeout"),
                ("Http.NetworkError_", "Err Http.NetworkError"),
            ]
        dispatch = self._dispatch(binding)
        # Http routes 2xx and other statuses through separate channels
        branches = [f"{pattern} ->\n{INDENT}{outcome}" for pattern, outcome in transport]
        branches.append(f"Http.BadStatus_ metadata responseBody ->\n{indent(dispatch)}")
        branches.append(f"Http.GoodStatus_ metadata responseBody ->\n{indent(dispatch)}")
        switch = "case response of\n" + indent("\n\n".join(branches))
        return f"Http.stringResolver\n{INDENT}(\\response ->\n{indent(switch, 2)}\n{INDENT})"

    def render_imports(self, context: ModulePlan) -> str:
        lines = []
        for module_import in context.imports:
            exposed = []
            for decl in module_import.declarations:
                type_name = f"{decl.name}(..)" if self.exposes_constructors(decl) else decl.name
                exposed += [type_name, f"decoder{decl.name}", f"encode{decl.name}"]
            lines.append(f"import {module_import.module} exposing ({', '.join(exposed)})")
        return "\n".join(lines)
