"""
Type synthesis: named schema nodes into language-neutral declarations.
"""

from __future__ import annotations

from .ir import (
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
    UnionCase,
    UnionDecl,
)
from .synthesizer import FORMAT_ALIASES, TypeSynthesizer, placeholder

__all__ = [
    "FORMAT_ALIASES",
    "AliasDecl",
    "ConditionalDecl",
    "Declaration",
    "EnumDecl",
    "FieldDecl",
    "PlaceholderDecl",
    "RecordDecl",
    "Requirement",
    "TypeRef",
    "TypeRefKind",
    "TypeSynthesizer",
    "UnionCase",
    "UnionDecl",
    "placeholder",
]
