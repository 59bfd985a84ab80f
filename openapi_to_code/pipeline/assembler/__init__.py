"""
Module assembly: reachability pruning, layout and per-module plans.
"""

from __future__ import annotations

from .assembler import DeclarationEntry, ModuleAssembler
from .layout import LayoutDecision, decide_layout, group_key
from .reachability import reachable_schemas
from .units import ModuleImport, ModulePlan, ModuleUnit, RenderedType

__all__ = [
    "DeclarationEntry",
    "LayoutDecision",
    "ModuleAssembler",
    "ModuleImport",
    "ModulePlan",
    "ModuleUnit",
    "RenderedType",
    "decide_layout",
    "group_key",
    "reachable_schemas",
]
