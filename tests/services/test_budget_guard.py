"""
Tests for budget guards.

Covers:
- Calendar month bounds, including leap years
- AllowAllBudgetGuard
- PeriodAllowanceBudgetGuard: unlimited departments, boundary, exceeded
  reason, department-wide committed spend, only committed statuses count
"""

import dataclasses
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from approval_config.schema import BudgetSettings
from approval_kernel.domain.purchase import PurchaseRequest, PurchaseStatus
from approval_kernel.services.purchase_store import PurchaseRequestStore
from approval_services.budget_guard import (
    AllowAllBudgetGuard,
    BudgetDecision,
    PeriodAllowanceBudgetGuard,
    month_bounds,
)

from tests.conftest import EMPLOYEE_ID, OTHER_EMPLOYEE_ID, SALES_EMPLOYEE_ID

MARCH = date(2024, 3, 10)


@pytest.fixture
def store(session, deterministic_clock):
    return PurchaseRequestStore(session, deterministic_clock)


@pytest.fixture
def guard(store, directory):
    return PeriodAllowanceBudgetGuard(
        store,
        directory,
        BudgetSettings(departments={"engineering": Decimal("5000")}),
    )


def seed(store, purchaser, amount, status=PurchaseStatus.APPROVED, purchase_date=MARCH):
    request = store.create(PurchaseRequest(
        id=uuid4(),
        purchase_number=f"PC-{uuid4().hex[:10]}",
        item_name="Seed",
        amount=Decimal(amount),
        organization_type="company",
        purchaser_id=purchaser,
        created_by=purchaser,
        purchase_date=purchase_date,
    ))
    if status is not PurchaseStatus.DRAFT:
        store.compare_and_swap(request, dataclasses.replace(request, status=status))


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 2, 14), (date(2024, 2, 1), date(2024, 2, 29))),
        (date(2023, 2, 1), (date(2023, 2, 1), date(2023, 2, 28))),
        (date(2024, 12, 31), (date(2024, 12, 1), date(2024, 12, 31))),
    ],
)
def test_month_bounds(day, expected):
    assert month_bounds(day) == expected


def test_allow_all_never_rejects():
    decision = AllowAllBudgetGuard().check(EMPLOYEE_ID, Decimal("1e12"), MARCH)
    assert decision.allowed
    assert decision.available is None


def test_available_is_allowance_minus_committed():
    assert BudgetDecision(True, allowance=Decimal("100"), committed=Decimal("30")).available == Decimal("70")


class TestPeriodAllowance:

    def test_department_without_allowance_is_unlimited(self, guard):
        assert guard.check(SALES_EMPLOYEE_ID, Decimal("999999"), MARCH).allowed

    def test_exactly_at_allowance_passes(self, guard, store):
        seed(store, EMPLOYEE_ID, "2000")
        decision = guard.check(EMPLOYEE_ID, Decimal("3000"), MARCH)
        assert decision.allowed
        assert decision.available == Decimal("3000")

    def test_colleague_spend_counts_against_department(self, guard, store):
        seed(store, OTHER_EMPLOYEE_ID, "4500")
        decision = guard.check(EMPLOYEE_ID, Decimal("600"), MARCH)

        assert not decision.allowed
        assert decision.committed == Decimal("4500")
        assert "engineering" in decision.reason
        assert "2024-03" in decision.reason

    def test_only_committed_statuses_in_same_month_count(self, guard, store):
        seed(store, EMPLOYEE_ID, "4000", status=PurchaseStatus.DRAFT)
        seed(store, EMPLOYEE_ID, "4000", status=PurchaseStatus.CANCELLED)
        seed(store, EMPLOYEE_ID, "4000", status=PurchaseStatus.REJECTED)
        seed(store, EMPLOYEE_ID, "4000", purchase_date=date(2024, 2, 28))

        assert guard.check(EMPLOYEE_ID, Decimal("5000"), MARCH).allowed

    def test_default_allowance_applies_to_unlisted_departments(self, store, directory):
        guard = PeriodAllowanceBudgetGuard(store, directory, BudgetSettings(default_allowance=Decimal("100")))
        assert not guard.check(SALES_EMPLOYEE_ID, Decimal("100.01"), MARCH).allowed
