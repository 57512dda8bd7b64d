"""
Workflow graph types (``approval_kernel.domain.workflow_graph``).

Responsibility
--------------
Pure value objects for the authored approval graph: nodes, their approver
rule and applicability condition, the visual edges between them, and the
named configuration document that holds both.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* The approver rule of a node is a tagged union (``RoleApprover`` or
  ``UserApprover``); a node never carries both a role and a user.
* ``timeout_hours`` is at least 1 (advisory SLA only).
* ``to_dict`` output is a fresh deep copy, so a snapshot serialized onto
  a purchase request shares no mutable state with the config it came from.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

DEFAULT_WORKFLOW_KEY = "purchase_default"
ORGANIZATION_ALL = "all"


class NodeType(str, Enum):
    """Kinds of graph node.  Only USER_ACTIVITY takes part in approval."""

    USER_ACTIVITY = "user_activity"
    SYSTEM_ACTIVITY = "system_activity"
    SUB_PROCESS = "sub_process"
    CONNECTION = "connection"
    CIRCULATE = "circulate"


class ApprovalMode(str, Enum):
    """Serial: one designated approver.  Any: first responder wins."""

    SERIAL = "serial"
    ANY = "any"


class EdgePort(str, Enum):
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


@dataclass(frozen=True)
class RoleApprover:
    """Approver resolved at run time from a directory role."""

    role: str

    @property
    def approver_type(self) -> str:
        return "role"


@dataclass(frozen=True)
class UserApprover:
    """Approver fixed to one user at config time."""

    user_id: UUID

    @property
    def approver_type(self) -> str:
        return "user"


Approver = RoleApprover | UserApprover


@dataclass(frozen=True)
class NodeCondition:
    """Applicability condition of a node.

    ``min_amount``/``max_amount`` are inclusive bounds; None means unbounded.
    """

    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    organization_type: str = ORGANIZATION_ALL


@dataclass(frozen=True)
class NodePosition:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class WorkflowNode:
    """A single approval step definition."""

    id: str
    name: str
    approver: Approver
    node_type: NodeType = NodeType.USER_ACTIVITY
    approval_mode: ApprovalMode = ApprovalMode.SERIAL
    timeout_hours: int = 24
    required_comment: bool = False
    condition: NodeCondition = field(default_factory=NodeCondition)
    position: NodePosition | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout_hours < 1:
            raise ValueError(
                f"timeout_hours must be >= 1, got {self.timeout_hours}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict (flat approver fields)."""
        approver = self.approver
        return {
            "id": self.id,
            "name": self.name,
            "node_type": self.node_type.value,
            "approver_type": approver.approver_type,
            "approver_role": approver.role if isinstance(approver, RoleApprover) else None,
            "approver_user_id": (
                str(approver.user_id) if isinstance(approver, UserApprover) else None
            ),
            "approval_mode": self.approval_mode.value,
            "timeout_hours": self.timeout_hours,
            "required_comment": self.required_comment,
            "condition": {
                "min_amount": _decimal_to_str(self.condition.min_amount),
                "max_amount": _decimal_to_str(self.condition.max_amount),
                "organization_type": self.condition.organization_type,
            },
            "position": (
                {"x": self.position.x, "y": self.position.y}
                if self.position is not None
                else None
            ),
            "extras": copy.deepcopy(self.extras),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowNode:
        """Inverse of ``to_dict``.  Expects already-normalized data."""
        if data["approver_type"] == "user":
            approver: Approver = UserApprover(user_id=UUID(str(data["approver_user_id"])))
        else:
            approver = RoleApprover(role=data["approver_role"])
        cond = data.get("condition") or {}
        pos = data.get("position")
        return cls(
            id=data["id"],
            name=data["name"],
            approver=approver,
            node_type=NodeType(data["node_type"]),
            approval_mode=ApprovalMode(data["approval_mode"]),
            timeout_hours=int(data["timeout_hours"]),
            required_comment=bool(data["required_comment"]),
            condition=NodeCondition(
                min_amount=_str_to_decimal(cond.get("min_amount")),
                max_amount=_str_to_decimal(cond.get("max_amount")),
                organization_type=cond.get("organization_type") or ORGANIZATION_ALL,
            ),
            position=NodePosition(x=pos["x"], y=pos["y"]) if pos else None,
            extras=copy.deepcopy(data.get("extras") or {}),
        )


@dataclass(frozen=True)
class WorkflowEdge:
    """Visual connection between two nodes.  Not used for execution."""

    id: str
    source_id: str
    target_id: str
    source_port: EdgePort = EdgePort.BOTTOM
    target_port: EdgePort = EdgePort.BOTTOM

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_port": self.source_port.value,
            "target_id": self.target_id,
            "target_port": self.target_port.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowEdge:
        return cls(
            id=data["id"],
            source_id=data["source_id"],
            target_id=data["target_id"],
            source_port=EdgePort(data["source_port"]),
            target_port=EdgePort(data["target_port"]),
        )


@dataclass(frozen=True)
class WorkflowConfig:
    """A named approval graph.

    ``nodes`` order is the authored approval sequence.  ``version`` counts
    saves and is informational; it is not a concurrency token.
    """

    workflow_key: str
    name: str
    enabled: bool
    nodes: tuple[WorkflowNode, ...] = ()
    edges: tuple[WorkflowEdge, ...] = ()
    version: int = 1
    updated_at: datetime | None = None
    updated_by: UUID | None = None

    def definition_dict(self) -> dict[str, Any]:
        """The node/edge document as stored."""
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def _decimal_to_str(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _str_to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))
