"""
Language-neutral declarations produced by the type synthesizer.

Every backend renders the same declarations; only naming, primitive tables
and syntax differ. Each declaration records the support it needs
(``Requirement``) as it is built, so modules can compute their imports
without looking at generated text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Requirement(Enum):
    """Support a declaration needs from the target language's libraries."""

    DECODE = "decode"
    ENCODE = "encode"
    DICT = "dict"  # open string-keyed maps
    JSON_VALUE = "json_value"  # opaque JSON values
    LAZY = "lazy"  # deferred recursive fields
    ENUM = "enum"
    MANY_FIELDS = "many_fields"  # records wider than fixed-arity combinators
    HTTP = "http"
    TASK = "task"
    URL = "url"


# Records with more fields than this need pipeline-style decoding
MAX_FIXED_ARITY = 8


class TypeRefKind(Enum):
    """Kind of type reference."""

    PRIMITIVE = "primitive"  # string, integer, number, boolean
    FORMAT = "format"  # string-backed format alias (DateTime, Uuid, ...)
    NAMED = "named"  # a synthesized declaration
    LIST = "list"
    OPTIONAL = "optional"
    DICT = "dict"  # string-keyed map
    LAZY = "lazy"  # deferred reference to a recursive type
    JSON_VALUE = "json_value"
    UNIT = "unit"


@dataclass(frozen=True)
class TypeRef:
    """A type as used by a field, parameter or payload."""

    kind: TypeRefKind
    name: str = ""
    args: tuple[TypeRef, ...] = ()

    @property
    def inner(self) -> TypeRef:
        return self.args[0]

    @staticmethod
    def primitive(name: str) -> TypeRef:
        return TypeRef(TypeRefKind.PRIMITIVE, name)

    @staticmethod
    def format_alias(name: str) -> TypeRef:
        return TypeRef(TypeRefKind.FORMAT, name)

    @staticmethod
    def named(name: str) -> TypeRef:
        return TypeRef(TypeRefKind.NAMED, name)

    @staticmethod
    def list_of(item: TypeRef) -> TypeRef:
        return TypeRef(TypeRefKind.LIST, args=(item,))

    @staticmethod
    def optional(item: TypeRef) -> TypeRef:
        if item.kind == TypeRefKind.OPTIONAL:
            return item
        return TypeRef(TypeRefKind.OPTIONAL, args=(item,))

    @staticmethod
    def dict_of(value: TypeRef) -> TypeRef:
        return TypeRef(TypeRefKind.DICT, args=(value,))

    @staticmethod
    def lazy(item: TypeRef) -> TypeRef:
        return TypeRef(TypeRefKind.LAZY, args=(item,))

    @staticmethod
    def json_value() -> TypeRef:
        return TypeRef(TypeRefKind.JSON_VALUE)

    @staticmethod
    def unit() -> TypeRef:
        return TypeRef(TypeRefKind.UNIT)

    def walk(self):
        """Yield this reference and every nested one."""
        yield self
        for arg in self.args:
            yield from arg.walk()


@dataclass
class TypeDecl:
    """Base for synthesized declarations."""

    name: str = ""
    description: str | None = None
    requirements: set[Requirement] = field(default_factory=set)
    formats: set[str] = field(default_factory=set)  # format aliases used
    references: set[str] = field(default_factory=set)  # named types used


@dataclass
class FieldDecl:
    json_name: str
    type_ref: TypeRef
    required: bool = False
    description: str | None = None


@dataclass
class RecordDecl(TypeDecl):
    fields: list[FieldDecl] = field(default_factory=list)
    # Value type of the open map field, when additionalProperties is present
    additional: TypeRef | None = None

    @property
    def field_count(self) -> int:
        return len(self.fields) + (1 if self.additional is not None else 0)


@dataclass
class EnumDecl(TypeDecl):
    values: list[str] = field(default_factory=list)


@dataclass
class UnionCase:
    variant: str  # name of the variant's type
    constructor: str  # globally unique constructor name
    type_ref: TypeRef = field(default_factory=TypeRef.json_value)
    tag: str = ""


@dataclass
class UnionDecl(TypeDecl):
    cases: list[UnionCase] = field(default_factory=list)
    # True: dispatch on the discriminator field; False: first successful decode wins
    discriminated: bool = True
    discriminator_field: str = "type"
    exclusive: bool = True


@dataclass
class ConditionalDecl(TypeDecl):
    """Then/Else/Unknown placeholder for an if/then/else schema."""


@dataclass
class AliasDecl(TypeDecl):
    target: TypeRef = field(default_factory=TypeRef.json_value)


@dataclass
class PlaceholderDecl(TypeDecl):
    """Stand-in for a schema that could not be synthesized."""

    reason: str = ""


Declaration = RecordDecl | EnumDecl | UnionDecl | ConditionalDecl | AliasDecl | PlaceholderDecl
