"""
approval_engines.normalization -- Workflow config input normalization.

Responsibility:
    Turn a loosely-typed authoring document (as posted by a graph editor,
    snake_case or camelCase keys) into a validated ``WorkflowConfig``.

Architecture position:
    Engines -- pure, zero I/O.  Directory checks (does an explicit user
    approver exist?) are done by the config store, which owns the directory.

Normalization rules:
    - Unknown or missing ``node_type`` becomes ``user_activity``.
    - ``approval_mode`` other than ``any`` becomes ``serial``.
    - ``timeout_hours`` is clamped to >= 1; missing or zero means 24.
    - A role approver without a role gets the default approver role.
    - Role/user fields inconsistent with ``approver_type`` are dropped.
    - Unknown organization types become ``all``.
    - Non-finite positions are dropped; non-dict extras become {}.
    - Edges with an empty endpoint are dropped; unknown ports become bottom.

Failure modes:
    - WorkflowConfigValidationError collecting every structural error:
      malformed amounts, min > max, duplicate node ids, a user approver
      without a valid user id, edges pointing at unknown nodes.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Collection
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from approval_kernel.domain.workflow_graph import (
    ORGANIZATION_ALL,
    ApprovalMode,
    Approver,
    EdgePort,
    NodeCondition,
    NodePosition,
    NodeType,
    RoleApprover,
    UserApprover,
    WorkflowConfig,
    WorkflowEdge,
    WorkflowNode,
)
from approval_kernel.exceptions import WorkflowConfigValidationError

DEFAULT_WORKFLOW_NAME = "Purchase approval workflow"
DEFAULT_NODE_NAME = "Unnamed step"
DEFAULT_TIMEOUT_HOURS = 24


def _get(raw: dict[str, Any], snake: str, camel: str | None = None) -> Any:
    if snake in raw:
        return raw[snake]
    if camel is not None:
        return raw.get(camel)
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _new_id() -> str:
    return str(uuid4())


def _parse_amount(value: Any, label: str, errors: list[str]) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        errors.append(f"{label} must be a number, got {value!r}")
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(f"{label} must be a number, got {value!r}")
        return None
    if not amount.is_finite():
        errors.append(f"{label} must be finite, got {value!r}")
        return None
    if amount < 0:
        errors.append(f"{label} must not be negative, got {value!r}")
        return None
    return amount


def _timeout_hours(value: Any) -> int:
    try:
        hours = int(value or DEFAULT_TIMEOUT_HOURS)
    except (TypeError, ValueError):
        hours = DEFAULT_TIMEOUT_HOURS
    return max(1, hours)


def _position(value: Any) -> NodePosition | None:
    if not isinstance(value, dict):
        return None
    x, y = value.get("x"), value.get("y")
    for v in (x, y):
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            return None
    return NodePosition(x=float(x), y=float(y))


def _node_type(value: Any) -> NodeType:
    try:
        return NodeType(value)
    except ValueError:
        return NodeType.USER_ACTIVITY


def _port(value: Any) -> EdgePort:
    try:
        return EdgePort(value)
    except ValueError:
        return EdgePort.BOTTOM


def _approver(
    raw: dict[str, Any],
    label: str,
    default_role: str,
    errors: list[str],
) -> Approver:
    if _get(raw, "approver_type", "approverType") == "user":
        raw_user = _get(raw, "approver_user_id", "approverUserId")
        try:
            return UserApprover(user_id=UUID(str(raw_user)))
        except (TypeError, ValueError):
            errors.append(f"{label}: user approver needs a valid user id, got {raw_user!r}")
            return RoleApprover(role=default_role)
    role = _text(_get(raw, "approver_role", "approverRole"))
    return RoleApprover(role=role or default_role)


def normalize_node(
    raw: dict[str, Any],
    index: int,
    errors: list[str],
    *,
    default_approver_role: str,
    organization_types: Collection[str],
    id_factory: Callable[[], str] = _new_id,
) -> WorkflowNode:
    """Normalize one node; structural problems are appended to ``errors``."""
    node_id = _text(raw.get("id")) or id_factory()
    label = f"node[{index}] {node_id}"

    cond_raw = raw.get("condition")
    cond_raw = cond_raw if isinstance(cond_raw, dict) else {}
    min_amount = _parse_amount(_get(cond_raw, "min_amount", "minAmount"), f"{label} min_amount", errors)
    max_amount = _parse_amount(_get(cond_raw, "max_amount", "maxAmount"), f"{label} max_amount", errors)
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        errors.append(f"{label}: min_amount {min_amount} exceeds max_amount {max_amount}")

    org = _get(cond_raw, "organization_type", "organizationType")
    if org not in organization_types:
        org = ORGANIZATION_ALL

    extras = raw.get("extras")
    mode = ApprovalMode.ANY if _get(raw, "approval_mode", "approvalMode") == "any" else ApprovalMode.SERIAL

    return WorkflowNode(
        id=node_id,
        name=_text(raw.get("name")) or DEFAULT_NODE_NAME,
        approver=_approver(raw, label, default_approver_role, errors),
        node_type=_node_type(_get(raw, "node_type", "nodeType")),
        approval_mode=mode,
        timeout_hours=_timeout_hours(_get(raw, "timeout_hours", "timeoutHours")),
        required_comment=bool(_get(raw, "required_comment", "requiredComment")),
        condition=NodeCondition(
            min_amount=min_amount,
            max_amount=max_amount,
            organization_type=org,
        ),
        position=_position(raw.get("position")),
        extras=dict(extras) if isinstance(extras, dict) else {},
    )


def normalize_edges(
    raw_edges: Any,
    id_factory: Callable[[], str] = _new_id,
) -> tuple[WorkflowEdge, ...]:
    if not isinstance(raw_edges, list):
        return ()
    edges: list[WorkflowEdge] = []
    for raw in raw_edges:
        if not isinstance(raw, dict):
            continue
        source = _text(_get(raw, "source_id", "sourceId"))
        target = _text(_get(raw, "target_id", "targetId"))
        if not source or not target:
            continue
        edges.append(WorkflowEdge(
            id=_text(raw.get("id")) or id_factory(),
            source_id=source,
            target_id=target,
            source_port=_port(_get(raw, "source_port", "sourcePort")),
            target_port=_port(_get(raw, "target_port", "targetPort")),
        ))
    return tuple(edges)


def validate_structure(
    nodes: tuple[WorkflowNode, ...],
    edges: tuple[WorkflowEdge, ...],
) -> list[str]:
    """Errors for duplicate node ids and edges with unknown endpoints."""
    errors: list[str] = []
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            errors.append(f"duplicate node id {node.id}")
        seen.add(node.id)
    for edge in edges:
        for end in (edge.source_id, edge.target_id):
            if end not in seen:
                errors.append(f"edge {edge.id} references unknown node {end}")
    return errors


def normalize_config_input(
    raw: dict[str, Any],
    *,
    workflow_key: str,
    default_approver_role: str,
    organization_types: Collection[str],
    id_factory: Callable[[], str] = _new_id,
) -> WorkflowConfig:
    """Normalize and structurally validate a whole config document.

    Raises:
        WorkflowConfigValidationError: with every error found.
    """
    errors: list[str] = []
    raw_nodes = raw.get("nodes")
    if raw_nodes is not None and not isinstance(raw_nodes, list):
        errors.append("nodes must be a list")
        raw_nodes = []

    nodes = tuple(
        normalize_node(
            item if isinstance(item, dict) else {},
            i,
            errors,
            default_approver_role=default_approver_role,
            organization_types=organization_types,
            id_factory=id_factory,
        )
        for i, item in enumerate(raw_nodes or [])
    )
    edges = normalize_edges(raw.get("edges"), id_factory=id_factory)
    errors.extend(validate_structure(nodes, edges))

    if errors:
        raise WorkflowConfigValidationError(errors)

    return WorkflowConfig(
        workflow_key=workflow_key,
        name=_text(raw.get("name")) or DEFAULT_WORKFLOW_NAME,
        enabled=bool(raw.get("enabled")),
        nodes=nodes,
        edges=edges,
    )
