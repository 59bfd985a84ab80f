"""OpenAPI to Code Generator

A Python package for generating typed API clients from OpenAPI 3.x and
Swagger 2.0 documents. Supports Elm and Python targets through a
template-driven backend interface.
"""

__version__ = "0.1.0"
__author__ = "François Lagunas"

from .document import ApiDocument, load_spec
from .errors import (
    CatastrophicParseFailure,
    OpenApiToCodeError,
    TemplateMissingPlaceholderError,
    TemplateRejectedError,
    UnsupportedTargetError,
)
from .output import WriteResult, write_modules
from .pipeline import Diagnostics, GeneratorConfig, ModuleUnit, PipelineGenerator, available_targets, get_backend

__all__ = [
    "ApiDocument",
    "CatastrophicParseFailure",
    "Diagnostics",
    "GeneratorConfig",
    "ModuleUnit",
    "OpenApiToCodeError",
    "PipelineGenerator",
    "TemplateMissingPlaceholderError",
    "TemplateRejectedError",
    "UnsupportedTargetError",
    "WriteResult",
    "available_targets",
    "get_backend",
    "load_spec",
    "write_modules",
]
