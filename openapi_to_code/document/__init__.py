"""
API document object model and loader.
"""

from __future__ import annotations

from .loader import load_spec, parse_text, read_source
from .model import ApiDocument, Operation, Parameter, RequestBody, Response, SecurityScheme, Server

__all__ = [
    "ApiDocument",
    "Operation",
    "Parameter",
    "RequestBody",
    "Response",
    "SecurityScheme",
    "Server",
    "load_spec",
    "parse_text",
    "read_source",
]
