"""
Operation binding: one callable binding per (path, method).
"""

from __future__ import annotations

from .binder import OperationBinder, client_configuration
from .bindings import (
    BoundBody,
    BoundParameter,
    BoundResponse,
    ClientConfiguration,
    CredentialField,
    ErrorCase,
    ErrorTypeDecl,
    HeaderStep,
    LiteralSegment,
    OperationBinding,
    ParameterSegment,
    UnboundOperation,
)

__all__ = [
    "BoundBody",
    "BoundParameter",
    "BoundResponse",
    "ClientConfiguration",
    "CredentialField",
    "ErrorCase",
    "ErrorTypeDecl",
    "HeaderStep",
    "LiteralSegment",
    "OperationBinder",
    "OperationBinding",
    "ParameterSegment",
    "UnboundOperation",
    "client_configuration",
]
