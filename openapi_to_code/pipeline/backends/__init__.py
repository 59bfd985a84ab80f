"""
Target backends and their registry.
"""

from __future__ import annotations

from pathlib import Path

from ...errors import UnsupportedTargetError
from .base import ModulePieces, NamingRules, TargetBackend, ValidationOutcome
from .csharp_backend import CSharpBackend
from .elm_backend import ElmBackend
from .python_backend import PythonBackend

BACKENDS: dict[str, type[TargetBackend]] = {
    CSharpBackend.name: CSharpBackend,
    ElmBackend.name: ElmBackend,
    PythonBackend.name: PythonBackend,
}


def available_targets() -> list[str]:
    return sorted(BACKENDS)


def get_backend(name: str, template_path: str | Path | None = None) -> TargetBackend:
    """
    Instantiate the backend registered under ``name``.

    Raises:
        UnsupportedTargetError: No backend has that name
        TemplateRejectedError: The custom template is unusable
    """
    backend_class = BACKENDS.get(name.lower())
    if backend_class is None:
        raise UnsupportedTargetError(name, available_targets())
    return backend_class(template_path)


__all__ = [
    "BACKENDS",
    "CSharpBackend",
    "ElmBackend",
    "ModulePieces",
    "NamingRules",
    "PythonBackend",
    "TargetBackend",
    "ValidationOutcome",
    "available_targets",
    "get_backend",
]
