"""Tests for role-derived capability checks."""

from uuid import uuid4

import pytest

from approval_kernel.domain.purchase import Capability
from approval_kernel.exceptions import (
    ActorForbiddenError,
    FlowActionForbiddenError,
    WrongApproverError,
)
from approval_services.capabilities import CapabilityChecker

from tests.conftest import (
    ADMIN_ID,
    EMPLOYEE_ID,
    ENG_MANAGER_ID,
    FINANCE_ID,
    INVENTORY_ID,
    SUPER_ADMIN_ID,
)


@pytest.fixture
def checker(settings, directory):
    return CapabilityChecker(settings, directory)


@pytest.mark.parametrize(
    "actor, capability, expected",
    [
        (ADMIN_ID, Capability.APPROVAL_OVERRIDE, True),
        (FINANCE_ID, Capability.PAYMENT, True),
        (FINANCE_ID, Capability.APPROVAL_OVERRIDE, False),
        (INVENTORY_ID, Capability.INVENTORY, True),
        (INVENTORY_ID, Capability.PURCHASE_CREATE, False),
        (EMPLOYEE_ID, Capability.PURCHASE_VIEW_ALL, False),
    ],
)
def test_has(checker, actor, capability, expected):
    assert checker.has(actor, capability) is expected


def test_unknown_actor_has_nothing(checker):
    assert checker.capabilities_of(uuid4()) == frozenset()


def test_flow_excluded_role_wins_over_other_roles(checker):
    # super admin also holds admin, which grants override
    assert checker.has(SUPER_ADMIN_ID, Capability.APPROVAL_OVERRIDE)
    with pytest.raises(FlowActionForbiddenError) as exc_info:
        checker.require_flow_participant(SUPER_ADMIN_ID)
    assert exc_info.value.role == "super_admin"


def test_require_raises_with_capability_name(checker):
    with pytest.raises(ActorForbiddenError, match="payment"):
        checker.require(EMPLOYEE_ID, Capability.PAYMENT, "pay")


def test_pending_approver_or_override(checker, service, create_draft):
    draft = create_draft()
    pending = service.submit(draft.id, EMPLOYEE_ID).request

    checker.require_pending_approver(ENG_MANAGER_ID, pending)
    checker.require_pending_approver(ADMIN_ID, pending)
    with pytest.raises(WrongApproverError):
        checker.require_pending_approver(FINANCE_ID, pending)
