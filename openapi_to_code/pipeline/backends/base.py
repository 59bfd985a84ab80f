"""
Base class for target backends.

A backend owns its naming rules, primitive table and module template. The
resolver, synthesizer and binder are language-neutral; backends only render
their output.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, assert_never

import jinja2
from jinja2 import meta

from ...errors import TemplateMissingPlaceholderError, TemplateRejectedError
from ...utils import escape_reserved, unique_name
from ..assembler.units import ModulePlan, ModuleUnit, RenderedType
from ..binder.bindings import ClientConfiguration, ErrorTypeDecl, OperationBinding, UnboundOperation
from ..synthesis.ir import (
    AliasDecl,
    ConditionalDecl,
    Declaration,
    EnumDecl,
    PlaceholderDecl,
    RecordDecl,
    Requirement,
    TypeRef,
    UnionDecl,
)

logger = logging.getLogger(__name__)

# Placeholders every module template must reference
BASE_PLACEHOLDERS = (
    "module_name",
    "api_description",
    "generation_timestamp",
    "types",
    "decoders",
    "encoders",
    "requests",
)

# Exceptions a single declaration or operation may raise while rendering
RENDER_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


@dataclass(frozen=True)
class ValidationOutcome:
    ok: bool
    problems: tuple[str, ...] = ()


class ModulePieces(NamedTuple):
    """Rendered declarations, error types and requests of one module."""

    types: list[RenderedType]
    errors: list[str]
    requests: list[tuple[str, str]]


@dataclass(frozen=True)
class NamingRules:
    """Per-language identifier rules."""

    reserved_words: frozenset[str]
    field_case: Callable[[str], str]
    function_case: Callable[[str], str]
    member_case: Callable[[str], str]
    reserved_suffix: str = "_"
    digit_prefix: str = "f"
    # Type names generated modules already use (imports, the configuration type)
    reserved_types: frozenset[str] = frozenset()

    def _identifier(self, raw: str, case: Callable[[str], str], fallback: str) -> str:
        name = case(raw) or fallback
        if name[0].isdigit():
            name = self.digit_prefix + name
        return escape_reserved(name, self.reserved_words, self.reserved_suffix)

    def field_name(self, raw: str) -> str:
        return self._identifier(raw, self.field_case, "field")

    def function_name(self, raw: str) -> str:
        return self._identifier(raw, self.function_case, "operation")

    def member_name(self, raw: str) -> str:
        return self._identifier(raw, self.member_case, "Value")

    def type_name(self, name: str) -> str:
        return escape_reserved(name, self.reserved_words, self.reserved_suffix)

    def unique_fields(self, raw_names: list[str], taken: set[str] | None = None) -> dict[str, str]:
        """Map raw names to distinct identifiers, suffixing collisions."""
        used = set(taken or ())
        return {raw: unique_name(self.field_name(raw), used) for raw in raw_names}


class TargetBackend(ABC):
    """Abstract base class for target backends."""

    name: str = ""
    file_extension: str = ""
    default_module_prefix: str = ""

    # Template directory name
    TEMPLATE_LANG: str = ""

    # Template flag name -> requirement it reflects
    IMPORT_FLAGS: dict[str, Requirement] = {}

    # Primitive base type -> language type
    PRIMITIVES: dict[str, str] = {}

    NAMING: NamingRules

    COMMENT_PREFIX: str = "#"

    # Used when the embedded template cannot be loaded
    FALLBACK_TEMPLATE: str = ""

    def __init__(self, template_path: str | Path | None = None):
        """
        Initialize the backend.

        Args:
            template_path: Optional custom module template

        Raises:
            TemplateRejectedError: The custom template is unusable
        """
        self.template_path = Path(template_path) if template_path else None
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.template_dir)),
            lstrip_blocks=True,
            trim_blocks=True,
            keep_trailing_newline=True,
        )
        self.template = self._load_template()

    @property
    def template_dir(self) -> Path:
        return Path(__file__).parent.parent.parent / "templates" / self.TEMPLATE_LANG

    @property
    def template_name(self) -> str:
        return f"module.{self.file_extension.lstrip('.')}.jinja2"

    # --------------------------------------------------------------- templates

    @property
    def required_placeholders(self) -> set[str]:
        return set(BASE_PLACEHOLDERS) | set(self.IMPORT_FLAGS)

    def missing_placeholders(self, text: str) -> list[str]:
        """Required placeholders a template never references."""
        declared = meta.find_undeclared_variables(self.jinja_env.parse(text))
        return sorted(self.required_placeholders - declared)

    def validate_template(self, text: str, template_name: str = "<template>") -> None:
        """Reject a template that misses placeholders or does not parse.

        Raises:
            TemplateMissingPlaceholderError: Required placeholders are missing
            TemplateRejectedError: The template is not valid Jinja2
        """
        try:
            missing = self.missing_placeholders(text)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateRejectedError(f"Template '{template_name}' is not valid: {e}") from e
        if missing:
            raise TemplateMissingPlaceholderError(template_name, missing)

    def get_default_template(self) -> str:
        """Text of the embedded module template, or the minimal fallback."""
        try:
            return (self.template_dir / self.template_name).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Embedded %s template unavailable (%s), using minimal fallback", self.name, e)
            return self.FALLBACK_TEMPLATE

    def _load_template(self) -> jinja2.Template:
        if self.template_path is not None:
            try:
                text = self.template_path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Custom template %s unavailable (%s), using the default", self.template_path, e)
            else:
                self.validate_template(text, str(self.template_path))
                return self.jinja_env.from_string(text)
        try:
            return self.jinja_env.from_string(self.get_default_template())
        except jinja2.TemplateSyntaxError as e:
            logger.warning("Embedded %s template is broken (%s), using minimal fallback", self.name, e)
            return self.jinja_env.from_string(self.FALLBACK_TEMPLATE)

    # ------------------------------------------------------------ module paths

    @abstractmethod
    def module_name(self, prefix: str, *parts: str) -> str:
        """Qualified module name for a prefix and name parts ("Schemas", "Types", "US", "Api")."""

    def relative_path(self, qualified_name: str) -> str:
        return qualified_name.replace(".", "/") + self.file_extension

    def get_output_path(self, base: str | Path, prefix: str) -> Path:
        """Path of the single-module output under ``base``."""
        return Path(base) / self.relative_path(self.module_name(prefix or self.default_module_prefix, "Schemas"))

    def support_units(self, prefix: str, plans: list[ModulePlan]) -> list[ModuleUnit]:
        """Extra units the generated modules depend on."""
        return []

    # ------------------------------------------------------------ declarations

    def generate_types(self, context: ModulePlan | None) -> list[RenderedType]:
        """Render format aliases and declarations of a module."""
        if context is None:
            return [self.render_placeholder(PlaceholderDecl(name="Missing", reason="no module context"))]
        self.enter_module(context)
        rendered = [self.render_format_alias(alias) for alias in sorted(context.formats)]
        for decl in context.declarations:
            rendered.append(self._render_declaration(decl))
        return rendered

    def _render_declaration(self, decl: Declaration) -> RenderedType:
        try:
            match decl:
                case RecordDecl():
                    return self.render_record(decl)
                case EnumDecl():
                    return self.render_enum(decl)
                case UnionDecl():
                    return self.render_union(decl)
                case ConditionalDecl():
                    return self.render_conditional(decl)
                case AliasDecl():
                    return self.render_alias(decl)
                case PlaceholderDecl():
                    return self.render_placeholder(decl)
                case _:
                    assert_never(decl)
        except RENDER_ERRORS as e:
            logger.warning("Could not render %s: %s", decl.name, e)
            return self.render_placeholder(PlaceholderDecl(name=decl.name, reason=f"rendering failed: {e}"))

    def generate_error_types(self, context: ModulePlan | None) -> list[str]:
        if context is None:
            return []
        self.enter_module(context)
        return [self.render_error_type(b.error_type) for b in context.bindings if b.error_type is not None]

    def generate_requests(self, context: ModulePlan | None) -> list[tuple[str, str]]:
        """(signature, body) per operation; unbound operations become comments."""
        if context is None:
            return [("", self.comment("no module context"))]
        self.enter_module(context)
        requests = []
        for operation in context.operations:
            if isinstance(operation, UnboundOperation):
                requests.append(("", self.comment(f"{operation.http_method.upper()} {operation.path} was not generated: {operation.reason}")))
                continue
            try:
                requests.append(self.render_request(operation, context))
            except RENDER_ERRORS as e:
                logger.warning("Could not render %s: %s", operation.function_name, e)
                requests.append(("", self.comment(f"{operation.function_name} was not generated: {e}")))
        return requests

    def enter_module(self, context: ModulePlan) -> None:
        """Hook run before the pieces of a module are rendered."""

    def comment(self, text: str) -> str:
        return "\n".join(f"{self.COMMENT_PREFIX} {line}" if line else self.COMMENT_PREFIX for line in text.splitlines() or [""])

    # ------------------------------------------------------------------ module

    def render_pieces(self, context: ModulePlan) -> ModulePieces:
        return ModulePieces(self.generate_types(context), self.generate_error_types(context), self.generate_requests(context))

    def template_variables(self, context: ModulePlan, pieces: ModulePieces | None = None) -> dict:
        types, errors, requests = pieces or self.render_pieces(context)
        type_blocks = [t.type_text for t in types]
        request_blocks = []
        if context.client_config is not None:
            config_type, config_value = self.render_config(context.client_config)
            type_blocks.append(config_type)
            request_blocks.append(config_value)
        type_blocks.extend(errors)
        request_blocks.extend(self.join_request(signature, body) for signature, body in requests)
        variables = {
            "module_name": context.qualified_name,
            "api_description": context.api_description,
            "generation_timestamp": context.generation_timestamp,
            "types": "\n\n\n".join(type_blocks),
            "decoders": "\n\n\n".join(t.decoder for t in types if t.decoder),
            "encoders": "\n\n\n".join(t.encoder for t in types if t.encoder),
            "requests": "\n\n\n".join(request_blocks),
            "module_imports": self.render_imports(context),
            "diagnostics": [str(d) for d in context.diagnostics],
        }
        for flag, requirement in self.IMPORT_FLAGS.items():
            variables[flag] = requirement in context.requirements
        return variables

    def generate_module(self, context: ModulePlan | None) -> str:
        """Compose a module's declarations and requests into the template."""
        if context is None:
            return self.comment("No module context: nothing could be generated.") + "\n"
        return self.template.render(**self.template_variables(context))

    def build_unit(self, plan: ModulePlan) -> ModuleUnit:
        pieces = self.render_pieces(plan)
        types, errors, requests = pieces
        source = self.template.render(**self.template_variables(plan, pieces))
        outcome = self.validate_output(source)
        if not outcome.ok:
            logger.warning("%s failed structural validation: %s", plan.qualified_name, "; ".join(outcome.problems))
            source = self.comment("Structural validation failed: " + "; ".join(outcome.problems)) + "\n" + source
        return ModuleUnit(
            qualified_name=plan.qualified_name,
            relative_path=self.relative_path(plan.qualified_name),
            type_declarations=tuple(t.type_text for t in types) + tuple(errors),
            encode_declarations=tuple(t.encoder for t in types),
            decode_declarations=tuple(t.decoder for t in types),
            operation_declarations=tuple(self.join_request(s, b) for s, b in requests),
            import_requirements=frozenset(plan.requirements),
            module_imports=tuple(plan.imports),
            diagnostics=tuple(plan.diagnostics),
            source=source,
        )

    def join_request(self, signature: str, body: str) -> str:
        return f"{signature}\n{body}" if signature else body

    # --------------------------------------------------------- per language

    @abstractmethod
    def validate_output(self, source: str) -> ValidationOutcome:
        """Cheap structural check of a generated module."""

    @abstractmethod
    def type_expr(self, type_ref: TypeRef) -> str:
        """Language type for a type reference."""

    @abstractmethod
    def render_format_alias(self, alias: str) -> RenderedType: ...

    @abstractmethod
    def render_record(self, decl: RecordDecl) -> RenderedType: ...

    @abstractmethod
    def render_enum(self, decl: EnumDecl) -> RenderedType: ...

    @abstractmethod
    def render_union(self, decl: UnionDecl) -> RenderedType: ...

    @abstractmethod
    def render_conditional(self, decl: ConditionalDecl) -> RenderedType: ...

    @abstractmethod
    def render_alias(self, decl: AliasDecl) -> RenderedType: ...

    @abstractmethod
    def render_placeholder(self, decl: PlaceholderDecl) -> RenderedType: ...

    @abstractmethod
    def render_error_type(self, error_type: ErrorTypeDecl) -> str: ...

    @abstractmethod
    def render_config(self, config: ClientConfiguration) -> tuple[str, str]:
        """(configuration type, default configuration value)"""

    @abstractmethod
    def render_request(self, binding: OperationBinding, context: ModulePlan) -> tuple[str, str]:
        """(signature, body) of one operation."""

    @abstractmethod
    def render_imports(self, context: ModulePlan) -> str:
        """Import statements for other generated modules."""
