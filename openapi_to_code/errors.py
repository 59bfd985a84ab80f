"""
Exceptions raised by the OpenAPI code generator.

Only conditions that cannot be recovered locally are raised; everything else
is recorded as a diagnostic and generation continues.
"""

from __future__ import annotations


class OpenApiToCodeError(Exception):
    """Base class for generator errors."""


class CatastrophicParseFailure(OpenApiToCodeError):
    """Raised when the top-level API document cannot be loaded or parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not parse API description '{source}': {reason}")


class TemplateRejectedError(OpenApiToCodeError):
    """Raised when a custom template cannot be used."""


class TemplateMissingPlaceholderError(TemplateRejectedError):
    """Raised when a custom template lacks required placeholders."""

    def __init__(self, template_name: str, missing: list[str]):
        self.template_name = template_name
        self.missing = sorted(missing)
        super().__init__(f"Template '{template_name}' is missing required placeholders: {', '.join(self.missing)}")


class UnsupportedTargetError(OpenApiToCodeError):
    """Raised when no backend is registered for the requested target."""

    def __init__(self, target: str, available: list[str]):
        self.target = target
        self.available = available
        super().__init__(f"Unsupported target '{target}'. Available targets: {', '.join(available)}")
