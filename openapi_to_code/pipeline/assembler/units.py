"""
Module plans and assembled module units.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..binder.bindings import ClientConfiguration, OperationBinding, UnboundOperation
from ..diagnostics import Diagnostic
from ..synthesis.ir import Declaration, Requirement


@dataclass(frozen=True)
class ModuleImport:
    """Declarations one generated module uses from another."""

    module: str
    declarations: tuple[Declaration, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.declarations)


@dataclass
class ModulePlan:
    """Everything a backend needs to render one module."""

    qualified_name: str
    declarations: list[Declaration] = field(default_factory=list)
    operations: list[OperationBinding | UnboundOperation] = field(default_factory=list)
    client_config: ClientConfiguration | None = None
    imports: list[ModuleImport] = field(default_factory=list)
    requirements: set[Requirement] = field(default_factory=set)
    formats: set[str] = field(default_factory=set)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    api_description: str = ""
    generation_timestamp: str = ""
    module_prefix: str = ""

    @property
    def bindings(self) -> list[OperationBinding]:
        return [op for op in self.operations if isinstance(op, OperationBinding)]


@dataclass(frozen=True)
class RenderedType:
    """Type declaration with its decode and encode routines."""

    name: str
    type_text: str
    decoder: str
    encoder: str


@dataclass(frozen=True)
class ModuleUnit:
    """One emitted artifact, written at ``relative_path`` under the output directory."""

    qualified_name: str
    relative_path: str
    type_declarations: tuple[str, ...] = ()
    encode_declarations: tuple[str, ...] = ()
    decode_declarations: tuple[str, ...] = ()
    operation_declarations: tuple[str, ...] = ()
    import_requirements: frozenset[Requirement] = frozenset()
    module_imports: tuple[ModuleImport, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    source: str = ""
