"""
approval_kernel.services.purchase_store -- Purchase request persistence.

Responsibility:
    Loads and writes purchase requests and their workflow log.  Every
    status-bearing write is a compare-and-swap on (status, version), so a
    caller that read a request, decided on a transition and then lost a
    race observes StaleStateError instead of overwriting the winner.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Conditional write: ``UPDATE ... WHERE id AND status AND version``;
      zero rows updated means the read was stale.
    - The workflow log is insert-only; ``seq`` gives a total order per request.

Failure modes:
    - RequestNotFoundError if request_id not found.
    - StaleStateError on a lost compare-and-swap.
"""

from __future__ import annotations

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.purchase import (
    PurchaseRequest,
    PurchaseStatus,
    WorkflowLogEntry,
)
from approval_kernel.exceptions import RequestNotFoundError, StaleStateError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.purchase import PurchaseRequestModel, WorkflowLogModel

logger = get_logger("services.purchase_store")


class PurchaseRequestStore:
    """Reads and conditionally writes purchase requests."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    def create(self, request: PurchaseRequest) -> PurchaseRequest:
        """Insert a new request (always version 1)."""
        now = self._clock.now()
        request = dataclasses.replace(request, version=1, created_at=now, updated_at=now)
        model = PurchaseRequestModel.from_dto(request, created_at=now)
        self._session.add(model)
        self._session.flush()
        logger.info(
            "purchase_request_created",
            extra={
                "request_id": str(model.id),
                "purchase_number": model.purchase_number,
                "status": model.status,
            },
        )
        return model.to_dto()

    def next_purchase_number(self, now: datetime) -> str:
        """Next ``PC<YYYYMM><seq>`` number for the month of ``now``.

        The unique constraint on purchase_number rejects a duplicate if two
        creations race for the same sequence.
        """
        prefix = f"PC{now:%Y%m}"
        count = self._session.execute(
            select(func.count())
            .select_from(PurchaseRequestModel)
            .where(PurchaseRequestModel.purchase_number.like(f"{prefix}%"))
        ).scalar()
        return f"{prefix}{(count or 0) + 1:04d}"

    def get(self, request_id: UUID) -> PurchaseRequest:
        """Load the current stored state, bypassing the identity map."""
        model = self._session.execute(
            select(PurchaseRequestModel)
            .where(PurchaseRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise RequestNotFoundError(str(request_id))
        return model.to_dto()

    def compare_and_swap(
        self,
        expected: PurchaseRequest,
        updated: PurchaseRequest,
    ) -> PurchaseRequest:
        """Persist ``updated`` only if the row still matches ``expected``.

        Returns ``updated`` with its version bumped and ``updated_at`` set.

        Raises:
            StaleStateError: The row's status or version moved since
                ``expected`` was read.
        """
        stored = dataclasses.replace(
            updated,
            version=expected.version + 1,
            updated_at=self._clock.now(),
        )
        values = PurchaseRequestModel.column_values(stored)
        result = self._session.execute(
            update(PurchaseRequestModel)
            .where(
                PurchaseRequestModel.id == expected.id,
                PurchaseRequestModel.status == expected.status.value,
                PurchaseRequestModel.version == expected.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "purchase_request_stale_write",
                extra={
                    "request_id": str(expected.id),
                    "expected_status": expected.status.value,
                    "expected_version": expected.version,
                },
            )
            raise StaleStateError(
                str(expected.id), expected.status.value, expected.version,
            )
        return stored

    def append_log(self, entry: WorkflowLogEntry) -> WorkflowLogEntry:
        last_seq = self._session.execute(
            select(func.max(WorkflowLogModel.seq))
            .where(WorkflowLogModel.request_id == entry.request_id)
        ).scalar()
        model = WorkflowLogModel.from_dto(entry, seq=(last_seq or 0) + 1)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_logs(self, request_id: UUID) -> list[WorkflowLogEntry]:
        rows = self._session.execute(
            select(WorkflowLogModel)
            .where(WorkflowLogModel.request_id == request_id)
            .order_by(WorkflowLogModel.created_at, WorkflowLogModel.seq)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def list_pending_for(self, approver_id: UUID) -> list[PurchaseRequest]:
        """Requests awaiting ``approver_id``, oldest submission first."""
        rows = self._session.execute(
            select(PurchaseRequestModel)
            .where(
                PurchaseRequestModel.status == PurchaseStatus.PENDING_APPROVAL.value,
                PurchaseRequestModel.pending_approver_id == approver_id,
            )
            .order_by(PurchaseRequestModel.submitted_at, PurchaseRequestModel.purchase_number)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def committed_spend(
        self,
        purchaser_ids: Iterable[UUID],
        start: date,
        end: date,
        statuses: Iterable[PurchaseStatus],
    ) -> Decimal:
        """Sum of amount plus fees for matching requests dated in [start, end]."""
        ids = list(purchaser_ids)
        if not ids:
            return Decimal("0")
        total = self._session.execute(
            select(
                func.sum(PurchaseRequestModel.amount + PurchaseRequestModel.fee_amount)
            ).where(
                PurchaseRequestModel.purchaser_id.in_(ids),
                PurchaseRequestModel.purchase_date >= start,
                PurchaseRequestModel.purchase_date <= end,
                PurchaseRequestModel.status.in_([s.value for s in statuses]),
            )
        ).scalar()
        if total is None:
            return Decimal("0")
        return Decimal(str(total))
