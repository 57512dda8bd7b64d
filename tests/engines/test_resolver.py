"""
Tests for approver resolution.

Covers:
- Out-of-range step index
- User approver resolves verbatim
- Department-scoped role: requester's department first, global fallback
- Global roles: most recently updated holder, then by id
- No holder: None plus an approver_not_found log line
- Inactive users are never resolved
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from approval_engines.resolver import resolve_approver
from approval_kernel.domain.directory import DirectoryUser
from approval_kernel.domain.workflow_graph import RoleApprover, UserApprover, WorkflowNode
from approval_services.directory import StaticDirectory

from tests.conftest import (
    EMPLOYEE_ID,
    ENG_MANAGER_ID,
    FINANCE_ID,
    SALES_EMPLOYEE_ID,
    SALES_MANAGER_ID,
    directory_users,
)


def role_step(role: str) -> WorkflowNode:
    return WorkflowNode(id=f"{role}-step", name=role, approver=RoleApprover(role))


def test_index_out_of_range_returns_none(directory):
    snapshot = (role_step("finance"),)
    assert resolve_approver(snapshot, 1, EMPLOYEE_ID, directory) is None
    assert resolve_approver(snapshot, -1, EMPLOYEE_ID, directory) is None
    assert resolve_approver(snapshot, None, EMPLOYEE_ID, directory) is None
    assert resolve_approver((), 0, EMPLOYEE_ID, directory) is None


def test_user_approver_is_returned_verbatim(directory):
    target = uuid4()
    snapshot = (WorkflowNode(id="u", name="u", approver=UserApprover(target)),)
    assert resolve_approver(snapshot, 0, EMPLOYEE_ID, directory) == target


def test_department_manager_comes_from_requesters_department(directory):
    snapshot = (role_step("department_manager"),)
    assert resolve_approver(snapshot, 0, EMPLOYEE_ID, directory) == ENG_MANAGER_ID
    assert resolve_approver(snapshot, 0, SALES_EMPLOYEE_ID, directory) == SALES_MANAGER_ID


def test_department_scoped_role_falls_back_to_global_search(directory, captured_logs):
    requester = uuid4()
    directory.add(DirectoryUser(requester, "New Hire", ("employee",), "research", datetime(2024, 1, 1, tzinfo=timezone.utc)))
    snapshot = (role_step("department_manager"),)

    # Same updated_at for both managers, so the lower id wins.
    assert resolve_approver(snapshot, 0, requester, directory) == ENG_MANAGER_ID
    assert any(r["message"] == "approver_department_fallback" for r in captured_logs())


def test_global_role_prefers_most_recently_updated_holder(directory):
    assert resolve_approver((role_step("finance"),), 0, EMPLOYEE_ID, directory) == FINANCE_ID


def test_global_role_ties_broken_by_id():
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    low = UUID("10000000-0000-0000-0000-000000000000")
    high = UUID("20000000-0000-0000-0000-000000000000")
    directory = StaticDirectory([
        DirectoryUser(high, "High", ("finance",), None, stamp),
        DirectoryUser(low, "Low", ("finance",), None, stamp),
    ])
    assert resolve_approver((role_step("finance"),), 0, uuid4(), directory) == low


def test_inactive_holders_are_skipped():
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    inactive = uuid4()
    active = uuid4()
    directory = StaticDirectory([
        DirectoryUser(inactive, "Gone", ("finance",), None, datetime(2024, 6, 1, tzinfo=timezone.utc), active=False),
        DirectoryUser(active, "Here", ("finance",), None, stamp),
    ])
    assert resolve_approver((role_step("finance"),), 0, uuid4(), directory) == active


def test_no_holder_returns_none_and_logs(directory, captured_logs):
    assert resolve_approver((role_step("auditor"),), 0, EMPLOYEE_ID, directory) is None
    records = [r for r in captured_logs() if r["message"] == "approver_not_found"]
    assert records and records[0]["role"] == "auditor"


def test_resolution_is_deterministic_for_identical_directory_state():
    snapshot = (role_step("department_manager"), role_step("finance"))
    first = StaticDirectory(directory_users())
    second = StaticDirectory(list(reversed(directory_users())))
    for idx in range(len(snapshot)):
        assert resolve_approver(snapshot, idx, EMPLOYEE_ID, first) == resolve_approver(
            snapshot, idx, EMPLOYEE_ID, second
        )


def test_custom_department_scoped_roles(directory):
    directory.add(DirectoryUser(uuid4(), "Eng Finance", ("finance",), "engineering", datetime(2020, 1, 1, tzinfo=timezone.utc)))
    snapshot = (role_step("finance"),)
    scoped = resolve_approver(snapshot, 0, EMPLOYEE_ID, directory, department_scoped_roles={"finance"})
    assert scoped != FINANCE_ID
    assert directory.department_of(scoped) == "engineering"
