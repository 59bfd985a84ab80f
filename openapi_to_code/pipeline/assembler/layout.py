"""
Module layout policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import GeneratorConfig
from ..schema.resolver import SchemaResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutDecision:
    split: bool
    schema_count: int
    complex_count: int


def decide_layout(reachable: set[str], resolver: SchemaResolver, config: GeneratorConfig) -> LayoutDecision:
    """Split when reachable component schemas or complex ones exceed their thresholds.

    Args:
        reachable: Names of every reachable named schema
        resolver: Resolver owning the schema graph
        config: Generator configuration holding the thresholds

    Returns:
        The layout decision with the counts that led to it
    """
    components = [name for name in resolver.component_names if name in reachable]
    complex_count = sum(1 for name in components if resolver.is_complex(name, config.complex_property_threshold))
    split = len(components) > config.split_schema_threshold or complex_count > config.split_complex_threshold
    logger.debug("Layout: %d reachable schemas, %d complex, split=%s", len(components), complex_count, split)
    return LayoutDecision(split, len(components), complex_count)


def group_key(name: str, length: int) -> str:
    """Fixed-length upper-cased name prefix grouping a type into a module."""
    return name[:length].upper()
