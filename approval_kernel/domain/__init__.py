"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.directory import Directory, DirectoryUser
from approval_kernel.domain.purchase import (
    PURCHASE_LIFECYCLE,
    ActionPayload,
    Capability,
    NotificationEvent,
    PaymentMethod,
    PurchaseRequest,
    PurchaseStatus,
    ReimbursementStatus,
    RequestSummary,
    TransitionResult,
    WorkflowAction,
    WorkflowLogEntry,
)
from approval_kernel.domain.workflow import Guard, Transition, Workflow
from approval_kernel.domain.workflow_graph import (
    DEFAULT_WORKFLOW_KEY,
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

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Directory",
    "DirectoryUser",
    "PURCHASE_LIFECYCLE",
    "ActionPayload",
    "Capability",
    "NotificationEvent",
    "PaymentMethod",
    "PurchaseRequest",
    "PurchaseStatus",
    "ReimbursementStatus",
    "RequestSummary",
    "TransitionResult",
    "WorkflowAction",
    "WorkflowLogEntry",
    "Guard",
    "Transition",
    "Workflow",
    "DEFAULT_WORKFLOW_KEY",
    "ORGANIZATION_ALL",
    "ApprovalMode",
    "Approver",
    "EdgePort",
    "NodeCondition",
    "NodePosition",
    "NodeType",
    "RoleApprover",
    "UserApprover",
    "WorkflowConfig",
    "WorkflowEdge",
    "WorkflowNode",
]
