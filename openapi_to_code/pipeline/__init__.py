"""
Pipeline - OpenAPI document to client code generator.

Phases, each in its own subpackage:

1. Schema Resolver: classify component schemas into named nodes
2. Type Synthesizer: derive language-neutral declarations from the nodes
3. Operation Binder: bind each (path, method) to a callable signature
4. Module Assembler: prune to reachable schemas and lay out modules
5. Target Backend: render each module through a jinja2 template
"""

from __future__ import annotations

from .assembler import ModuleUnit
from .backends import TargetBackend, available_targets, get_backend
from .config import GeneratorConfig
from .diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from .generator import PipelineGenerator

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    "GeneratorConfig",
    "ModuleUnit",
    "PipelineGenerator",
    "TargetBackend",
    "available_targets",
    "get_backend",
]
