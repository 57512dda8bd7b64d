"""
Module: approval_kernel.models.purchase
Responsibility: ORM persistence for purchase requests and their append-only
    workflow log.

Architecture position: Kernel > Models.  May import from db/base.py, domain/
    and exceptions only.

Invariants enforced:
    - Valid status and reimbursement values (CHECK constraints).
    - ``version`` is the optimistic concurrency counter.  Every workflow write
      is ``UPDATE ... WHERE id, status, version`` and bumps it by one.
    - ``workflow_nodes`` is a deep-copied JSON snapshot; it is written at
      submit/withdraw only and never derived from a live config.
    - Workflow log rows are append-only: ORM listeners reject UPDATE/DELETE.

Failure modes:
    - ImmutabilityViolationError on workflow log UPDATE/DELETE.
    - IntegrityError on a duplicate (request_id, seq) log row.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base, TrackedBase, UUIDString
from approval_kernel.domain.purchase import (
    PaymentMethod,
    PurchaseRequest,
    PurchaseStatus,
    ReimbursementStatus,
    WorkflowAction,
    WorkflowLogEntry,
)
from approval_kernel.domain.workflow_graph import WorkflowNode
from approval_kernel.exceptions import ImmutabilityViolationError


def _in_list(column: str, enum_cls) -> str:
    values = ", ".join(f"'{m.value}'" for m in enum_cls)
    return f"{column} IN ({values})"


class PurchaseRequestModel(TrackedBase):
    """Persistent purchase request.

    ``created_by_id`` (from TrackedBase) is the request's creator.
    """

    __tablename__ = "purchase_requests"

    __table_args__ = (
        CheckConstraint(
            _in_list("status", PurchaseStatus),
            name="ck_purchase_requests_valid_status",
        ),
        CheckConstraint(
            _in_list("reimbursement_status", ReimbursementStatus),
            name="ck_purchase_requests_valid_reimbursement",
        ),
        CheckConstraint("version >= 1", name="ck_purchase_requests_version"),
        Index("ix_purchase_requests_status", "status"),
        Index("ix_purchase_requests_pending_approver", "pending_approver_id", "status"),
        Index("ix_purchase_requests_purchaser_date", "purchaser_id", "purchase_date"),
    )

    purchase_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specification: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    organization_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    purchaser_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[str] = mapped_column(String(50), nullable=False)
    reimbursement_status: Mapped[str] = mapped_column(String(50), nullable=False)
    pending_approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    workflow_step_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    workflow_nodes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    workflow_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    workflow_config_version: Mapped[int | None] = mapped_column(nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_issue_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_issue_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_issue_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_issue_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reimbursement_submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reimbursement_rejected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    duplicated_from_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<PurchaseRequest {self.purchase_number} status={self.status} "
            f"step={self.workflow_step_index} v{self.version}>"
        )

    def to_dto(self) -> PurchaseRequest:
        return PurchaseRequest(
            id=self.id,
            purchase_number=self.purchase_number,
            item_name=self.item_name,
            specification=self.specification,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
            fee_amount=self.fee_amount,
            purchase_date=self.purchase_date,
            organization_type=self.organization_type,
            payment_method=PaymentMethod(self.payment_method),
            purpose=self.purpose,
            notes=self.notes,
            purchaser_id=self.purchaser_id,
            created_by=self.created_by_id,
            status=PurchaseStatus(self.status),
            reimbursement_status=ReimbursementStatus(self.reimbursement_status),
            pending_approver_id=self.pending_approver_id,
            workflow_step_index=self.workflow_step_index,
            workflow_nodes=tuple(WorkflowNode.from_dict(n) for n in self.workflow_nodes or []),
            workflow_key=self.workflow_key,
            workflow_config_version=self.workflow_config_version,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            approved_by=self.approved_by,
            rejected_at=self.rejected_at,
            rejected_by=self.rejected_by,
            rejection_reason=self.rejection_reason,
            paid_at=self.paid_at,
            paid_by=self.paid_by,
            paid_amount=self.paid_amount,
            payment_note=self.payment_note,
            payment_issue_open=self.payment_issue_open,
            payment_issue_reason=self.payment_issue_reason,
            payment_issue_at=self.payment_issue_at,
            payment_issue_by=self.payment_issue_by,
            reimbursement_submitted_at=self.reimbursement_submitted_at,
            reimbursement_rejected_reason=self.reimbursement_rejected_reason,
            duplicated_from_id=self.duplicated_from_id,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @staticmethod
    def column_values(dto: PurchaseRequest) -> dict[str, Any]:
        """Mutable workflow columns of ``dto``, keyed by attribute name.

        Identity and creation columns (id, created_*) are excluded; they are
        written once by ``from_dto``.
        """
        return {
            "purchase_number": dto.purchase_number,
            "item_name": dto.item_name,
            "specification": dto.specification,
            "quantity": dto.quantity,
            "unit_price": dto.unit_price,
            "amount": dto.amount,
            "fee_amount": dto.fee_amount,
            "purchase_date": dto.purchase_date,
            "organization_type": dto.organization_type,
            "payment_method": dto.payment_method.value,
            "purpose": dto.purpose,
            "notes": dto.notes,
            "purchaser_id": dto.purchaser_id,
            "status": dto.status.value,
            "reimbursement_status": dto.reimbursement_status.value,
            "pending_approver_id": dto.pending_approver_id,
            "workflow_step_index": dto.workflow_step_index,
            "workflow_nodes": [n.to_dict() for n in dto.workflow_nodes],
            "workflow_key": dto.workflow_key,
            "workflow_config_version": dto.workflow_config_version,
            "submitted_at": dto.submitted_at,
            "approved_at": dto.approved_at,
            "approved_by": dto.approved_by,
            "rejected_at": dto.rejected_at,
            "rejected_by": dto.rejected_by,
            "rejection_reason": dto.rejection_reason,
            "paid_at": dto.paid_at,
            "paid_by": dto.paid_by,
            "paid_amount": dto.paid_amount,
            "payment_note": dto.payment_note,
            "payment_issue_open": dto.payment_issue_open,
            "payment_issue_reason": dto.payment_issue_reason,
            "payment_issue_at": dto.payment_issue_at,
            "payment_issue_by": dto.payment_issue_by,
            "reimbursement_submitted_at": dto.reimbursement_submitted_at,
            "reimbursement_rejected_reason": dto.reimbursement_rejected_reason,
            "duplicated_from_id": dto.duplicated_from_id,
            "version": dto.version,
            "updated_at": dto.updated_at,
        }

    @classmethod
    def from_dto(cls, dto: PurchaseRequest, created_at: datetime) -> PurchaseRequestModel:
        values = cls.column_values(dto)
        values["updated_at"] = dto.updated_at or created_at
        return cls(
            id=dto.id,
            created_at=created_at,
            created_by_id=dto.created_by,
            **values,
        )


class WorkflowLogModel(Base):
    """Append-only audit row for one workflow transition.

    ``seq`` orders entries of one request when timestamps collide.
    """

    __tablename__ = "purchase_workflow_logs"

    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_purchase_workflow_logs_seq"),
        CheckConstraint(
            _in_list("action", WorkflowAction),
            name="ck_purchase_workflow_logs_valid_action",
        ),
        Index("ix_purchase_workflow_logs_request", "request_id", "created_at"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_requests.id"), nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str] = mapped_column(String(50), nullable=False)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    operator_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowLog {self.request_id}#{self.seq} {self.action} "
            f"{self.from_status}->{self.to_status}>"
        )

    def to_dto(self) -> WorkflowLogEntry:
        return WorkflowLogEntry(
            id=self.id,
            request_id=self.request_id,
            action=WorkflowAction(self.action),
            from_status=PurchaseStatus(self.from_status),
            to_status=PurchaseStatus(self.to_status),
            operator_id=self.operator_id,
            comment=self.comment,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowLogEntry, seq: int) -> WorkflowLogModel:
        kwargs: dict[str, Any] = {}
        if dto.id is not None:
            kwargs["id"] = dto.id
        return cls(
            request_id=dto.request_id,
            seq=seq,
            action=dto.action.value,
            from_status=dto.from_status.value,
            to_status=dto.to_status.value,
            operator_id=dto.operator_id,
            comment=dto.comment,
            created_at=dto.created_at,
            **kwargs,
        )


# =============================================================================
# ORM-Level Immutability for the Workflow Log (Append-Only)
# =============================================================================


@event.listens_for(WorkflowLogModel, "before_update")
def prevent_workflow_log_update(mapper, connection, target):
    """Prevent updates to workflow log records."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowLogEntry",
        entity_id=str(target.id),
        reason="Workflow log entries are immutable -- cannot modify",
    )


@event.listens_for(WorkflowLogModel, "before_delete")
def prevent_workflow_log_delete(mapper, connection, target):
    """Prevent deletion of workflow log records."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowLogEntry",
        entity_id=str(target.id),
        reason="Workflow log entries are immutable -- cannot delete",
    )
