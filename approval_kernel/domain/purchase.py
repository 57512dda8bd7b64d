"""
Purchase lifecycle domain types (``approval_kernel.domain.purchase``).

Responsibility
--------------
Pure value objects for the purchase request being approved: status and
reimbursement enums, the lifecycle transition table, the request record,
workflow log entries, and the typed result every transition returns.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from sibling ``domain`` modules and ``exceptions``.

Invariants enforced
-------------------
* ``PURCHASE_LIFECYCLE`` defines the only valid (status, action) pairs.
  Terminal statuses (paid, rejected, cancelled) have no outgoing edges.
* ``draft`` is re-entered only through ``withdraw`` from
  ``pending_approval``.
* ``workflow_step_index`` is either None or a valid index into
  ``workflow_nodes``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from approval_kernel.domain.workflow import Guard, Transition, Workflow
from approval_kernel.domain.workflow_graph import WorkflowNode
from approval_kernel.exceptions import ApprovalKernelError, ErrorKind


# =========================================================================
# Status enums
# =========================================================================


class PurchaseStatus(str, Enum):
    """Purchase request lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    PENDING_INBOUND = "pending_inbound"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"


class ReimbursementStatus(str, Enum):
    """Reimbursement sub-status, meaningful once approved."""

    NONE = "none"
    INVOICE_PENDING = "invoice_pending"
    REIMBURSEMENT_PENDING = "reimbursement_pending"
    REIMBURSEMENT_REJECTED = "reimbursement_rejected"
    REIMBURSED = "reimbursed"


class PaymentMethod(str, Enum):
    CORPORATE_TRANSFER = "corporate_transfer"
    CASH = "cash"
    PERSONAL_CARD = "personal_card"
    OTHER = "other"


class WorkflowAction(str, Enum):
    """Actions recorded in the workflow log."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    TRANSFER = "transfer"
    PAY = "pay"
    WITHDRAW = "withdraw"
    CANCEL = "cancel"
    MARK_ISSUE = "mark_issue"
    RESOLVE_ISSUE = "resolve_issue"
    CONFIRM_INBOUND = "confirm_inbound"
    SUBMIT_REIMBURSEMENT = "submit_reimbursement"
    REJECT_REIMBURSEMENT = "reject_reimbursement"


class Capability(str, Enum):
    """Capabilities granted to roles through engine settings."""

    APPROVAL_OVERRIDE = "approval_override"
    PAYMENT = "payment"
    PURCHASE_VIEW_ALL = "purchase_view_all"
    PURCHASE_CREATE = "purchase_create"
    INVENTORY = "inventory"


class NotificationEvent(str, Enum):
    PURCHASE_SUBMITTED = "purchase_submitted"
    PURCHASE_APPROVED = "purchase_approved"
    PURCHASE_REJECTED = "purchase_rejected"
    PURCHASE_TRANSFERRED = "purchase_transferred"
    PURCHASE_PAID = "purchase_paid"
    PAYMENT_ISSUE_MARKED = "payment_issue_marked"
    PAYMENT_ISSUE_RESOLVED = "payment_issue_resolved"
    REIMBURSEMENT_SUBMITTED = "reimbursement_submitted"


# =========================================================================
# Lifecycle table
# =========================================================================

_D = PurchaseStatus.DRAFT.value
_PA = PurchaseStatus.PENDING_APPROVAL.value
_PI = PurchaseStatus.PENDING_INBOUND.value
_AP = PurchaseStatus.APPROVED.value
_RJ = PurchaseStatus.REJECTED.value
_PD = PurchaseStatus.PAID.value
_CX = PurchaseStatus.CANCELLED.value

_BUDGET = Guard("budget_available", "Budget guard accepts amount plus fees")
_COMMENT = Guard("step_comment", "Non-empty comment when the step requires one")
_REASON = Guard("reason_given", "Non-empty reason")
_PAYABLE = Guard("payable", "No open issue, not paid, amount within bounds")


def _settlement_loops(state: str) -> tuple[Transition, ...]:
    return (
        Transition(state, _PD, WorkflowAction.PAY.value, guard=_PAYABLE),
        Transition(state, state, WorkflowAction.MARK_ISSUE.value, guard=_REASON),
        Transition(state, state, WorkflowAction.RESOLVE_ISSUE.value, guard=_REASON),
        Transition(state, state, WorkflowAction.SUBMIT_REIMBURSEMENT.value),
        Transition(state, state, WorkflowAction.REJECT_REIMBURSEMENT.value, guard=_REASON),
    )


PURCHASE_LIFECYCLE = Workflow(
    name="purchase_request",
    description="Purchase request approval and settlement lifecycle",
    initial_state=_D,
    states=tuple(s.value for s in PurchaseStatus),
    transitions=(
        Transition(_D, _PA, WorkflowAction.SUBMIT.value, guard=_BUDGET),
        Transition(_D, _AP, WorkflowAction.SUBMIT.value, guard=_BUDGET),
        Transition(_D, _PI, WorkflowAction.SUBMIT.value, guard=_BUDGET),
        Transition(_D, _CX, WorkflowAction.CANCEL.value),
        Transition(_PA, _PA, WorkflowAction.APPROVE.value, guard=_COMMENT),
        Transition(_PA, _AP, WorkflowAction.APPROVE.value, guard=_COMMENT),
        Transition(_PA, _PI, WorkflowAction.APPROVE.value, guard=_COMMENT),
        Transition(_PA, _RJ, WorkflowAction.REJECT.value, guard=_REASON),
        Transition(_PA, _PA, WorkflowAction.TRANSFER.value),
        Transition(_PA, _D, WorkflowAction.WITHDRAW.value, guard=_REASON),
        Transition(_PA, _CX, WorkflowAction.CANCEL.value),
        Transition(_PI, _AP, WorkflowAction.CONFIRM_INBOUND.value),
        *_settlement_loops(_PI),
        *_settlement_loops(_AP),
    ),
    terminal_states=(_RJ, _PD, _CX),
)

TERMINAL_PURCHASE_STATUSES: frozenset[PurchaseStatus] = frozenset({
    PurchaseStatus.REJECTED,
    PurchaseStatus.PAID,
    PurchaseStatus.CANCELLED,
})

# Statuses whose amount counts against a department's period budget.
COMMITTED_PURCHASE_STATUSES: frozenset[PurchaseStatus] = frozenset({
    PurchaseStatus.PENDING_APPROVAL,
    PurchaseStatus.PENDING_INBOUND,
    PurchaseStatus.APPROVED,
    PurchaseStatus.PAID,
})


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class PurchaseRequest:
    """A purchase request as seen by the workflow engine."""

    id: UUID
    purchase_number: str
    item_name: str
    amount: Decimal
    organization_type: str
    purchaser_id: UUID
    created_by: UUID
    purchase_date: date
    status: PurchaseStatus = PurchaseStatus.DRAFT
    reimbursement_status: ReimbursementStatus = ReimbursementStatus.NONE
    specification: str | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal | None = None
    fee_amount: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.CORPORATE_TRANSFER
    purpose: str | None = None
    notes: str | None = None
    # Workflow state
    pending_approver_id: UUID | None = None
    workflow_step_index: int | None = None
    workflow_nodes: tuple[WorkflowNode, ...] = ()
    workflow_key: str | None = None
    workflow_config_version: int | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None
    rejected_at: datetime | None = None
    rejected_by: UUID | None = None
    rejection_reason: str | None = None
    # Settlement
    paid_at: datetime | None = None
    paid_by: UUID | None = None
    paid_amount: Decimal | None = None
    payment_note: str | None = None
    payment_issue_open: bool = False
    payment_issue_reason: str | None = None
    payment_issue_at: datetime | None = None
    payment_issue_by: UUID | None = None
    reimbursement_submitted_at: datetime | None = None
    reimbursement_rejected_reason: str | None = None
    duplicated_from_id: UUID | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_amount(self) -> Decimal:
        """Amount including fees, as checked against the budget."""
        return self.amount + self.fee_amount

    @property
    def current_node(self) -> WorkflowNode | None:
        idx = self.workflow_step_index
        if idx is None or not 0 <= idx < len(self.workflow_nodes):
            return None
        return self.workflow_nodes[idx]

    @property
    def is_final_step(self) -> bool:
        idx = self.workflow_step_index
        return idx is not None and idx == len(self.workflow_nodes) - 1


@dataclass(frozen=True)
class WorkflowLogEntry:
    """One audited transition.  Immutable once written."""

    request_id: UUID
    action: WorkflowAction
    from_status: PurchaseStatus
    to_status: PurchaseStatus
    operator_id: UUID
    comment: str | None
    created_at: datetime
    id: UUID | None = None


@dataclass(frozen=True)
class ActionPayload:
    """Caller-supplied input for a transition.

    Each action reads only the fields it needs: ``comment`` for
    approve/transfer/withdraw/issue reasons, ``target_approver_id`` for
    transfer, ``paid_amount``/``payment_note`` for pay.
    """

    comment: str | None = None
    target_approver_id: UUID | None = None
    paid_amount: Decimal | str | int | float | None = None
    payment_note: str | None = None

    @property
    def text(self) -> str:
        return (self.comment or "").strip()


@dataclass(frozen=True)
class RequestSummary:
    """Payload handed to the notifier."""

    request_id: UUID
    purchase_number: str
    item_name: str
    amount: Decimal
    status: PurchaseStatus
    purchaser_id: UUID
    created_by: UUID
    pending_approver_id: UUID | None = None
    actor_id: UUID | None = None
    comment: str | None = None

    @classmethod
    def of(
        cls,
        request: PurchaseRequest,
        actor_id: UUID | None = None,
        comment: str | None = None,
    ) -> RequestSummary:
        return cls(
            request_id=request.id,
            purchase_number=request.purchase_number,
            item_name=request.item_name,
            amount=request.total_amount,
            status=request.status,
            purchaser_id=request.purchaser_id,
            created_by=request.created_by,
            pending_approver_id=request.pending_approver_id,
            actor_id=actor_id,
            comment=comment,
        )


@dataclass(frozen=True)
class TransitionResult:
    """Result of a workflow operation.

    On success ``request`` is the updated record.  On failure the stored
    record is unchanged and ``error_kind``/``error_code`` say why.
    """

    success: bool
    action: str
    request: PurchaseRequest | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    message: str = ""
    log_entry: WorkflowLogEntry | None = None
    details: dict[str, object] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        action: str,
        request: PurchaseRequest,
        log_entry: WorkflowLogEntry | None = None,
    ) -> TransitionResult:
        return cls(success=True, action=action, request=request, log_entry=log_entry)

    @classmethod
    def failure(cls, action: str, error: ApprovalKernelError) -> TransitionResult:
        details = {
            k: v for k, v in vars(error).items()
            if not k.startswith("_") and k != "args"
        }
        return cls(
            success=False,
            action=action,
            error_kind=error.kind,
            error_code=error.code,
            message=str(error),
            details=details,
        )
