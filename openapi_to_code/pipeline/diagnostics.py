"""
Diagnostics accumulated while resolving, synthesizing and binding.

Recoverable problems are reported to a ``Diagnostics`` sink that is passed
explicitly to every phase. The phase then degrades the affected schema or
operation and keeps going.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    """Categories of problems found in an API document."""

    UNRESOLVED_REFERENCE = "unresolved-reference"
    UNSUPPORTED_SCHEMA_CONSTRUCT = "unsupported-schema-construct"
    MISSING_OPERATION_FIELD = "missing-operation-field"
    TEMPLATE_MISSING_PLACEHOLDER = "template-missing-placeholder"
    CATASTROPHIC_PARSE_FAILURE = "catastrophic-parse-failure"


@dataclass(frozen=True)
class Diagnostic:
    """A single problem, located by a JSON-pointer-like path."""

    kind: DiagnosticKind
    location: str
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.location}: {self.message}"


class Diagnostics:
    """Ordered accumulator of diagnostics for one generation run."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def report(self, kind: DiagnosticKind, location: str, message: str) -> Diagnostic:
        """Record a diagnostic and return it."""
        diagnostic = Diagnostic(kind, location, message)
        self._items.append(diagnostic)
        logger.warning("%s", diagnostic)
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def under(self, *prefixes: str) -> list[Diagnostic]:
        """Diagnostics whose location starts with any of the given prefixes."""
        return [d for d in self._items if any(d.location == p or d.location.startswith(p + "/") for p in prefixes)]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
