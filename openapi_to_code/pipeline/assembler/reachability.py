"""
Reachability: which named schemas some operation actually uses.
"""

from __future__ import annotations

import logging

from ..binder.bindings import OperationBinding, UnboundOperation
from ..schema.resolver import SchemaResolver

logger = logging.getLogger(__name__)


def reachable_schemas(operations: list[OperationBinding | UnboundOperation], resolver: SchemaResolver) -> set[str]:
    """Named schemas transitively referenced by any request body or response.

    Must run after every operation is bound.
    """
    roots: set[str] = set()
    for operation in operations:
        if isinstance(operation, OperationBinding):
            roots |= operation.references
    reachable = set(roots)
    for name in roots:
        reachable |= resolver.reachable_from(name)
    logger.debug("%d named schemas reachable from %d roots", len(reachable), len(roots))
    return reachable
