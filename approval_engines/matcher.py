"""
approval_engines.matcher -- Pure node applicability check.

Responsibility:
    Decide whether one configured workflow node applies to a purchase
    request, from the node type, inclusive amount bounds and organization
    scope.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ types.

Invariants enforced:
    - Only ``user_activity`` nodes ever match; other node types are graph
      authoring artifacts.
    - Bounds are inclusive: amount == min_amount or amount == max_amount
      matches.
    - ``organization_type == 'all'`` matches every organization.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from approval_kernel.domain.workflow_graph import (
    ORGANIZATION_ALL,
    NodeType,
    WorkflowNode,
)


class MatchSubject(Protocol):
    """The request fields the matcher reads."""

    @property
    def amount(self) -> Decimal: ...

    @property
    def organization_type(self) -> str: ...


def matches(node: WorkflowNode, request: MatchSubject) -> bool:
    """True if ``node`` is an approval step for ``request``."""
    if node.node_type is not NodeType.USER_ACTIVITY:
        return False

    cond = node.condition
    amount = request.amount
    if cond.min_amount is not None and amount < cond.min_amount:
        return False
    if cond.max_amount is not None and amount > cond.max_amount:
        return False

    if (
        cond.organization_type != ORGANIZATION_ALL
        and cond.organization_type != request.organization_type
    ):
        return False

    return True
