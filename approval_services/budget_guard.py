"""
approval_services.budget_guard -- Spend ceiling checks at submission.

Responsibility:
    Decide whether a purchaser's department can absorb a new request
    (amount plus fees) in the request's calendar month.  Consulted exactly
    once, by ``submit``.

Architecture position:
    Services layer.  Reads committed spend through PurchaseRequestStore and
    department membership through the Directory.

Known relaxation:
    The check is not serializable with other concurrent submits against the
    same department.  Two submissions racing each other may both read the
    same committed total and both pass, transiently over-allocating the
    month.  A stricter deployment can replace this guard with one that
    writes a reservation row or takes a per-department lock.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from approval_config.schema import BudgetSettings
from approval_kernel.domain.directory import Directory
from approval_kernel.domain.purchase import COMMITTED_PURCHASE_STATUSES
from approval_kernel.logging_config import get_logger
from approval_kernel.services.purchase_store import PurchaseRequestStore

logger = get_logger("services.budget_guard")


@dataclass(frozen=True)
class BudgetDecision:
    """Outcome of a budget check."""

    allowed: bool
    reason: str = ""
    allowance: Decimal | None = None
    committed: Decimal | None = None

    @property
    def available(self) -> Decimal | None:
        if self.allowance is None or self.committed is None:
            return None
        return self.allowance - self.committed


class BudgetGuard(Protocol):
    """Pluggable spend ceiling."""

    def check(
        self,
        purchaser_id: UUID,
        amount_including_fees: Decimal,
        purchase_date: date,
    ) -> BudgetDecision:
        ...


class AllowAllBudgetGuard:
    """Budget guard that never rejects."""

    def check(
        self,
        purchaser_id: UUID,
        amount_including_fees: Decimal,
        purchase_date: date,
    ) -> BudgetDecision:
        return BudgetDecision(allowed=True, reason="budget checks disabled")


def month_bounds(day: date) -> tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class PeriodAllowanceBudgetGuard:
    """Monthly allowance per department.

    Committed spend is the sum of amount plus fees of the department's
    requests dated in the same month whose status is pending approval,
    pending inbound, approved or paid.  A department with no allowance
    configured is unlimited.
    """

    def __init__(
        self,
        store: PurchaseRequestStore,
        directory: Directory,
        budget: BudgetSettings,
    ) -> None:
        self._store = store
        self._directory = directory
        self._budget = budget

    def check(
        self,
        purchaser_id: UUID,
        amount_including_fees: Decimal,
        purchase_date: date,
    ) -> BudgetDecision:
        department = self._directory.department_of(purchaser_id)
        allowance = self._budget.allowance_for(department)
        if allowance is None:
            return BudgetDecision(allowed=True, reason="no allowance configured")

        members = (
            self._directory.members_of(department)
            if department is not None
            else (purchaser_id,)
        )
        start, end = month_bounds(purchase_date)
        committed = self._store.committed_spend(
            members, start, end, COMMITTED_PURCHASE_STATUSES,
        )
        allowed = committed + amount_including_fees <= allowance

        logger.info(
            "budget_check",
            extra={
                "purchaser_id": str(purchaser_id),
                "department": department,
                "period_start": start.isoformat(),
                "allowance": str(allowance),
                "committed": str(committed),
                "requested": str(amount_including_fees),
                "allowed": allowed,
            },
        )

        if allowed:
            return BudgetDecision(True, allowance=allowance, committed=committed)
        return BudgetDecision(
            False,
            reason=(
                f"department {department} has {allowance - committed} left "
                f"of {allowance} for {start:%Y-%m}"
            ),
            allowance=allowance,
            committed=committed,
        )
