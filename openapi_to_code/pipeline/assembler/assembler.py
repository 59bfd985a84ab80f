"""
Module assembler.

Prunes declarations to the reachable set, chooses the layout and builds one
``ModulePlan`` per output module, then lets the backend render each plan into
a ``ModuleUnit``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..backends.base import TargetBackend
from ..binder.bindings import ClientConfiguration, OperationBinding, UnboundOperation
from ..config import GeneratorConfig
from ..diagnostics import Diagnostic, Diagnostics
from ..schema.resolver import SchemaResolver
from ..synthesis.ir import Declaration
from .layout import LayoutDecision, decide_layout, group_key
from .reachability import reachable_schemas
from .units import ModuleImport, ModulePlan, ModuleUnit

logger = logging.getLogger(__name__)


@dataclass
class DeclarationEntry:
    """A synthesized declaration and the component schema it was synthesized for."""

    declaration: Declaration
    owner: str


class ModuleAssembler:
    """Assemble declarations and bindings into modules for one backend."""

    def __init__(
        self,
        backend: TargetBackend,
        resolver: SchemaResolver,
        diagnostics: Diagnostics,
        config: GeneratorConfig,
        api_description: str = "",
        generation_timestamp: str = "",
    ):
        self.backend = backend
        self.resolver = resolver
        self.diagnostics = diagnostics
        self.config = config
        self.api_description = api_description
        self.generation_timestamp = generation_timestamp
        self.prefix = config.module_prefix or backend.default_module_prefix
        self.layout: LayoutDecision | None = None

    def assemble(
        self,
        entries: list[DeclarationEntry],
        operations: list[OperationBinding | UnboundOperation],
        client_config: ClientConfiguration | None,
    ) -> list[ModuleUnit]:
        """Render every planned module plus the backend's support units."""
        plans = self.plan(entries, operations, client_config)
        units = [self.backend.build_unit(plan) for plan in plans]
        units.extend(self.backend.support_units(self.prefix, plans))
        return units

    def plan(
        self,
        entries: list[DeclarationEntry],
        operations: list[OperationBinding | UnboundOperation],
        client_config: ClientConfiguration | None,
    ) -> list[ModulePlan]:
        reachable = reachable_schemas(operations, self.resolver)
        kept = self.prune(entries, reachable)
        self.layout = decide_layout(reachable, self.resolver, self.config)
        if self.layout.split:
            plans = self._split_plans(kept, operations, client_config)
        else:
            plans = [self._single_plan(kept, operations, client_config)]
        self._link_imports(plans)
        self._localize_diagnostics(plans)
        return plans

    @staticmethod
    def prune(entries: list[DeclarationEntry], reachable: set[str]) -> list[DeclarationEntry]:
        """Keep reachable declarations and everything they reference."""
        by_name = {e.declaration.name: e for e in entries}
        keep = set(reachable)
        stack = list(reachable)
        while stack:
            entry = by_name.get(stack.pop())
            if entry is None:
                continue
            for reference in entry.declaration.references:
                if reference not in keep:
                    keep.add(reference)
                    stack.append(reference)
        kept = [e for e in entries if e.declaration.name in keep]
        logger.debug("Kept %d of %d declarations", len(kept), len(entries))
        return kept

    def _new_plan(self, qualified_name: str) -> ModulePlan:
        return ModulePlan(
            qualified_name=qualified_name,
            api_description=self.api_description,
            generation_timestamp=self.generation_timestamp,
            module_prefix=self.prefix,
        )

    @staticmethod
    def _add_declaration(plan: ModulePlan, decl: Declaration) -> None:
        plan.declarations.append(decl)
        plan.requirements |= decl.requirements
        plan.formats |= decl.formats

    @staticmethod
    def _add_operations(plan: ModulePlan, operations: list[OperationBinding | UnboundOperation], client_config: ClientConfiguration | None) -> None:
        plan.operations = list(operations)
        plan.client_config = client_config
        for binding in plan.bindings:
            plan.requirements |= binding.requirements

    def _single_plan(self, kept: list[DeclarationEntry], operations: list[OperationBinding | UnboundOperation], client_config: ClientConfiguration | None) -> ModulePlan:
        plan = self._new_plan(self.backend.module_name(self.prefix, "Schemas"))
        for entry in kept:
            self._add_declaration(plan, entry.declaration)
        self._add_operations(plan, operations, client_config)
        return plan

    def _split_plans(self, kept: list[DeclarationEntry], operations: list[OperationBinding | UnboundOperation], client_config: ClientConfiguration | None) -> list[ModulePlan]:
        groups: dict[str, ModulePlan] = {}
        for entry in kept:
            key = group_key(entry.owner, self.config.group_prefix_length)
            if key not in groups:
                groups[key] = self._new_plan(self.backend.module_name(self.prefix, "Types", key))
            self._add_declaration(groups[key], entry.declaration)
        api = self._new_plan(self.backend.module_name(self.prefix, "Api"))
        self._add_operations(api, operations, client_config)
        logger.debug("Split layout: %d type modules", len(groups))
        return list(groups.values()) + [api]

    @staticmethod
    def _link_imports(plans: list[ModulePlan]) -> None:
        """Record, per module, the declarations it uses from other modules."""
        home: dict[str, tuple[ModulePlan, Declaration]] = {}
        for plan in plans:
            for decl in plan.declarations:
                home[decl.name] = (plan, decl)
        for plan in plans:
            needed: set[str] = set()
            for decl in plan.declarations:
                needed |= decl.references
            for binding in plan.bindings:
                needed |= binding.references
            imported: dict[str, list[Declaration]] = {}
            for name in needed:
                if name not in home:
                    continue
                other, decl = home[name]
                if other is not plan:
                    imported.setdefault(other.qualified_name, []).append(decl)
            order = {p.qualified_name: i for i, p in enumerate(plans)}
            plan.imports = [
                ModuleImport(module, tuple(sorted(decls, key=lambda d: d.name)))
                for module, decls in sorted(imported.items(), key=lambda item: order[item[0]])
            ]

    def _localize_diagnostics(self, plans: list[ModulePlan]) -> None:
        """Attach each diagnostic to the module it concerns; the rest go to the operations module."""
        if len(plans) == 1:
            plans[0].diagnostics = list(self.diagnostics)
            return
        key_by_name = {name: key for key, name in self.resolver.names_by_key.items()}
        assigned: set[int] = set()
        for plan in plans[:-1]:
            prefixes = []
            for decl in plan.declarations:
                prefixes.append(decl.name)
                if decl.name in key_by_name:
                    prefixes.append(self.resolver.component_path(key_by_name[decl.name]))
            plan.diagnostics = self.diagnostics.under(*prefixes) if prefixes else []
            assigned.update(id(d) for d in plan.diagnostics)
        rest: list[Diagnostic] = [d for d in self.diagnostics if id(d) not in assigned]
        plans[-1].diagnostics = rest
