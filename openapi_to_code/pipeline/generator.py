"""
Pipeline generator: drives every phase for one API document.

1. Resolve component schemas into named nodes
2. Synthesize declarations for every named node
3. Bind every operation
4. Compute reachability and assemble modules
5. Render each module with the target backend
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..document.model import ApiDocument
from .assembler import DeclarationEntry, ModuleAssembler, ModuleUnit
from .backends import TargetBackend, get_backend
from .binder import OperationBinder, client_configuration
from .config import GeneratorConfig
from .diagnostics import DiagnosticKind, Diagnostics
from .schema import NameRegistry, SchemaResolver
from .synthesis import FORMAT_ALIASES, TypeSynthesizer, placeholder

logger = logging.getLogger(__name__)

# Unexpected failures confined to the schema being processed
SCHEMA_ERRORS = (ValueError, KeyError, TypeError, AttributeError, RecursionError)


class PipelineGenerator:
    """Generate module units for one document and one target backend."""

    def __init__(self, document: ApiDocument, config: GeneratorConfig | None = None, backend: TargetBackend | None = None):
        """Initialize the generator.

        Args:
            document: Parsed API document
            config: Generator configuration (defaults apply when None)
            backend: Backend instance; built from ``config.target`` when None

        Raises:
            UnsupportedTargetError: ``config.target`` names no backend
            TemplateRejectedError: ``config.template_path`` is unusable
        """
        self.document = document
        self.config = config or GeneratorConfig()
        self.backend = backend or get_backend(self.config.target, self.config.template_path)
        self.diagnostics = Diagnostics()

        names = NameRegistry()
        # Generated declarations must not shadow backend or format alias names
        names.reserve(self.backend.NAMING.reserved_types)
        names.reserve(FORMAT_ALIASES.values())
        self.resolver = SchemaResolver(document.schemas, self.diagnostics, names, document.schema_ref_prefix)
        self.synthesizer = TypeSynthesizer(self.resolver, self.diagnostics)
        self.binder = OperationBinder(document, self.resolver, self.diagnostics)

    @property
    def generation_timestamp(self) -> str:
        if self.config.generation_timestamp:
            return self.config.generation_timestamp
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    def generate(self) -> list[ModuleUnit]:
        """Run every phase and return the rendered module units."""
        self._resolve()
        entries = self._synthesize()
        operations = self.binder.bind_all()
        client_config = client_configuration(self.document, self.config.default_base_url, self.config.custom_headers)
        assembler = ModuleAssembler(
            self.backend,
            self.resolver,
            self.diagnostics,
            self.config,
            api_description=self.document.api_description,
            generation_timestamp=self.generation_timestamp,
        )
        units = assembler.assemble(entries, operations, client_config)
        logger.info("Generated %d %s modules with %d diagnostics", len(units), self.backend.name, len(self.diagnostics))
        return units

    def _resolve(self) -> None:
        for key in self.resolver.names_by_key:
            try:
                self.resolver.resolve_component(key)
            except SCHEMA_ERRORS as e:
                self.diagnostics.report(
                    DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT,
                    self.resolver.component_path(key),
                    f"schema could not be resolved: {e!r}",
                )
        logger.debug("Resolved %d named schemas", len(self.resolver.nodes))

    def _synthesize(self) -> list[DeclarationEntry]:
        """Declarations for every component schema, in document order."""
        entries: list[DeclarationEntry] = []
        for key, name in self.resolver.names_by_key.items():
            node = self.resolver.lookup(name)
            if node is None:
                entries.append(DeclarationEntry(placeholder(name, "schema could not be resolved"), name))
                continue
            try:
                declarations = self.synthesizer.synthesize(node)
            except SCHEMA_ERRORS as e:
                self.diagnostics.report(
                    DiagnosticKind.UNSUPPORTED_SCHEMA_CONSTRUCT,
                    self.resolver.component_path(key),
                    f"type could not be synthesized: {e!r}",
                )
                declarations = [placeholder(name, "type could not be synthesized")]
            for decl in declarations:
                entries.append(DeclarationEntry(decl, self.resolver.owners.get(decl.name, name)))
        logger.debug("Synthesized %d declarations", len(entries))
        return entries
