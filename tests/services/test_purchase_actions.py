"""
Tests for approval-phase actions and actor checks.

Covers:
- Actor authority: creator-only submit, pending approver, override, flow exclusion
- Required step comments
- transfer(): target validation and hand-over
- cancel(), duplicate(), create_draft()
- get_logs() visibility
- Notifier failures never fail a transition
"""

import dataclasses
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from approval_config.loader import parse_notify_policy
from approval_kernel.domain.directory import DirectoryUser
from approval_kernel.domain.purchase import (
    ActionPayload,
    NotificationEvent,
    PaymentMethod,
    PurchaseStatus,
    WorkflowAction,
)
from approval_kernel.exceptions import ActorForbiddenError, ErrorKind, RequestNotFoundError
from approval_services.messages import MessageCategory, describe_failure

from tests.conftest import (
    ADMIN_ID,
    EMPLOYEE_ID,
    ENG_MANAGER_ID,
    FINANCE_BACKUP_ID,
    FINANCE_ID,
    INVENTORY_ID,
    OTHER_EMPLOYEE_ID,
    SALES_EMPLOYEE_ID,
    SALES_MANAGER_ID,
    SUPER_ADMIN_ID,
    FailingNotifier,
)

OK = ActionPayload(comment="ok")


@pytest.fixture
def pending(service, create_draft):
    """A submitted 3000 request awaiting ENG_MANAGER_ID."""
    draft = create_draft(Decimal("3000"))
    result = service.submit(draft.id, EMPLOYEE_ID)
    assert result.success, result.message
    return result.request


class TestActorChecks:

    def test_only_creator_may_submit(self, service, create_draft):
        draft = create_draft()
        result = service.submit(draft.id, OTHER_EMPLOYEE_ID)
        assert result.error_kind is ErrorKind.FORBIDDEN
        assert service.get_request(draft.id).status is PurchaseStatus.DRAFT

    def test_wrong_approver_rejected(self, service, pending):
        result = service.approve(pending.id, SALES_MANAGER_ID, OK)
        assert result.error_kind is ErrorKind.FORBIDDEN
        assert result.error_code == "NOT_PENDING_APPROVER"
        assert service.get_request(pending.id) == pending

    def test_override_capability_may_approve(self, service, pending):
        result = service.approve(pending.id, ADMIN_ID, OK)
        assert result.success
        assert result.request.approved_by == ADMIN_ID

    def test_flow_excluded_role_refused_even_with_override(self, service, pending):
        result = service.approve(pending.id, SUPER_ADMIN_ID, OK)
        assert result.error_kind is ErrorKind.FORBIDDEN
        assert result.error_code == "FLOW_ACTION_FORBIDDEN"

    def test_unknown_request(self, service):
        result = service.approve(uuid4(), ENG_MANAGER_ID, OK)
        assert result.error_kind is ErrorKind.NOT_FOUND
        assert describe_failure(result).category is MessageCategory.NOT_FOUND

    def test_approve_on_draft_is_invalid_transition(self, service, create_draft):
        draft = create_draft()
        result = service.approve(draft.id, ENG_MANAGER_ID, OK)
        assert result.error_code == "INVALID_TRANSITION"
        assert describe_failure(result).category is MessageCategory.RETRY

    def test_double_approval_by_same_actor_rejected(self, service, pending):
        assert service.approve(pending.id, ENG_MANAGER_ID, OK).success
        again = service.approve(pending.id, ENG_MANAGER_ID, OK)
        assert again.error_kind is ErrorKind.INVALID_STATE
        approvals = [
            e for e in service.get_logs(pending.id, EMPLOYEE_ID)
            if e.action is WorkflowAction.APPROVE
        ]
        assert len(approvals) == 1


class TestRequiredComment:

    @pytest.mark.parametrize("comment", [None, "", "  "])
    def test_missing_comment_rejected(self, service, pending, comment):
        result = service.approve(pending.id, ENG_MANAGER_ID, ActionPayload(comment=comment))
        assert result.error_kind is ErrorKind.VALIDATION
        assert result.error_code == "COMMENT_REQUIRED"
        assert result.details["node_id"] == "dept-manager-review"
        assert describe_failure(result).category is MessageCategory.FIX_INPUT

    def test_optional_comment_step(self, service, config_store, create_draft):
        config_store.upsert_config(
            {"enabled": True, "nodes": [{"id": "quick", "approver_role": "finance", "required_comment": False}]},
            operator_id=ADMIN_ID,
        )
        draft = create_draft()
        service.submit(draft.id, EMPLOYEE_ID)
        result = service.approve(draft.id, FINANCE_ID)
        assert result.success
        assert result.log_entry.comment is None


class TestTransfer:

    def test_transfer_hands_over_pending_step(self, service, pending, notifier):
        result = service.transfer(
            pending.id, ENG_MANAGER_ID,
            ActionPayload(comment="on leave", target_approver_id=FINANCE_ID),
        )

        assert result.success
        assert result.request.status is PurchaseStatus.PENDING_APPROVAL
        assert result.request.pending_approver_id == FINANCE_ID
        assert result.request.workflow_step_index == 0
        assert notifier.events[-1] is NotificationEvent.PURCHASE_TRANSFERRED
        assert notifier.sent[-1][2] == ("in_app",)

        # The new approver can act; the old one cannot.
        assert service.approve(pending.id, ENG_MANAGER_ID, OK).error_code == "NOT_PENDING_APPROVER"
        assert service.approve(pending.id, FINANCE_ID, OK).success

    @pytest.mark.parametrize(
        "target, comment, code",
        [
            (None, "x", "INVALID_TRANSFER_TARGET"),
            (ENG_MANAGER_ID, "x", "INVALID_TRANSFER_TARGET"),
            (FINANCE_ID, "", "COMMENT_REQUIRED"),
            (OTHER_EMPLOYEE_ID, "x", "INVALID_TRANSFER_TARGET"),
            (INVENTORY_ID, "x", "INVALID_TRANSFER_TARGET"),
            (SUPER_ADMIN_ID, "x", "INVALID_TRANSFER_TARGET"),
        ],
        ids=["no-target", "self", "no-comment", "no-approval-role", "inventory", "flow-excluded"],
    )
    def test_invalid_transfers(self, service, pending, target, comment, code):
        result = service.transfer(
            pending.id, ENG_MANAGER_ID,
            ActionPayload(comment=comment, target_approver_id=target),
        )
        assert not result.success
        assert result.error_code == code
        assert service.get_request(pending.id) == pending

    def test_transfer_to_inactive_user_rejected(self, service, directory, pending):
        ghost = uuid4()
        directory.add(DirectoryUser(
            ghost, "Former Finance", ("finance",), "finance",
            datetime(2024, 1, 1, tzinfo=timezone.utc), active=False,
        ))
        result = service.transfer(
            pending.id, ENG_MANAGER_ID, ActionPayload(comment="x", target_approver_id=ghost),
        )
        assert result.error_code == "INVALID_TRANSFER_TARGET"

    def test_transfer_chain(self, service, pending):
        service.transfer(pending.id, ENG_MANAGER_ID, ActionPayload(comment="a", target_approver_id=FINANCE_ID))
        result = service.transfer(
            pending.id, FINANCE_ID, ActionPayload(comment="b", target_approver_id=FINANCE_BACKUP_ID),
        )
        assert result.request.pending_approver_id == FINANCE_BACKUP_ID


class TestCancel:

    def test_creator_cancels_pending(self, service, pending):
        result = service.cancel(pending.id, EMPLOYEE_ID)
        assert result.success
        assert result.request.status is PurchaseStatus.CANCELLED
        assert result.request.pending_approver_id is None
        assert result.request.workflow_step_index is None

    def test_creator_cancels_draft(self, service, create_draft):
        draft = create_draft()
        assert service.cancel(draft.id, EMPLOYEE_ID).request.status is PurchaseStatus.CANCELLED

    def test_override_may_cancel(self, service, pending):
        assert service.cancel(pending.id, ADMIN_ID).success

    def test_others_may_not_cancel(self, service, pending):
        assert service.cancel(pending.id, ENG_MANAGER_ID).error_kind is ErrorKind.FORBIDDEN

    def test_cannot_cancel_after_approval(self, service, pending):
        service.approve(pending.id, ENG_MANAGER_ID, OK)
        assert service.cancel(pending.id, EMPLOYEE_ID).error_code == "INVALID_TRANSITION"


class TestDuplicate:

    def test_duplicate_copies_item_fields_into_new_draft(self, service, create_draft):
        source = create_draft(Decimal("1234.56"), fee_amount=Decimal("10"), payment_method=PaymentMethod.CASH)
        service.submit(source.id, EMPLOYEE_ID)

        result = service.duplicate(source.id, EMPLOYEE_ID)

        assert result.success
        copy = result.request
        assert copy.id != source.id
        assert copy.purchase_number != source.purchase_number
        assert copy.purchase_number.startswith("PC202403")
        assert copy.status is PurchaseStatus.DRAFT
        assert copy.duplicated_from_id == source.id
        assert copy.amount == source.amount
        assert copy.fee_amount == source.fee_amount
        assert copy.payment_method is PaymentMethod.CASH
        assert copy.purchaser_id == source.purchaser_id
        assert copy.workflow_nodes == ()
        assert copy.version == 1
        # Source untouched, no log entry for duplicate.
        assert service.get_request(source.id).status is PurchaseStatus.PENDING_APPROVAL
        assert [e.action for e in service.get_logs(source.id, EMPLOYEE_ID)] == [WorkflowAction.SUBMIT]

    def test_viewer_with_create_capability_becomes_creator(self, service, create_draft):
        source = create_draft()
        result = service.duplicate(source.id, FINANCE_ID)
        assert result.success
        assert result.request.created_by == FINANCE_ID
        assert result.request.purchaser_id == EMPLOYEE_ID

    def test_unrelated_employee_cannot_duplicate(self, service, create_draft):
        source = create_draft()
        assert service.duplicate(source.id, OTHER_EMPLOYEE_ID).error_kind is ErrorKind.FORBIDDEN

    def test_viewer_without_create_capability_refused(self, service, create_draft):
        source = create_draft()
        assert service.duplicate(source.id, INVENTORY_ID).error_kind is ErrorKind.FORBIDDEN


class TestCreateDraft:

    def test_sequential_purchase_numbers(self, create_draft):
        first = create_draft()
        second = create_draft()
        assert first.purchase_number == "PC2024030001"
        assert second.purchase_number == "PC2024030002"

    def test_purchaser_defaults_to_creator(self, create_draft):
        assert create_draft().purchaser_id == EMPLOYEE_ID

    def test_negative_amount_rejected(self, service):
        result = service.create_draft(
            EMPLOYEE_ID,
            item_name="Desk",
            amount=Decimal("-1"),
            organization_type="company",
            purchase_date=date(2024, 3, 1),
        )
        assert result.error_kind is ErrorKind.VALIDATION

    def test_blank_item_name_rejected(self, service):
        result = service.create_draft(
            EMPLOYEE_ID,
            item_name="  ",
            amount=Decimal("10"),
            organization_type="company",
            purchase_date=date(2024, 3, 1),
        )
        assert result.error_kind is ErrorKind.VALIDATION

    def test_role_without_create_capability_refused(self, service):
        result = service.create_draft(
            INVENTORY_ID,
            item_name="Pallet",
            amount=Decimal("10"),
            organization_type="company",
            purchase_date=date(2024, 3, 1),
        )
        assert result.error_kind is ErrorKind.FORBIDDEN


class TestPendingApprovals:

    def test_queue_per_approver_oldest_first(self, service, create_draft, deterministic_clock):
        later = create_draft(item_name="Chair")
        earlier = create_draft(item_name="Desk")
        sales = create_draft(creator=SALES_EMPLOYEE_ID)
        service.submit(earlier.id, EMPLOYEE_ID)
        deterministic_clock.advance(60)
        service.submit(later.id, EMPLOYEE_ID)
        service.submit(sales.id, SALES_EMPLOYEE_ID)

        queue = service.list_pending_approvals(ENG_MANAGER_ID)

        assert [r.id for r in queue] == [earlier.id, later.id]
        assert [r.id for r in service.list_pending_approvals(SALES_MANAGER_ID)] == [sales.id]

    def test_queue_follows_approval_and_transfer(self, service, pending):
        service.transfer(pending.id, ENG_MANAGER_ID, ActionPayload(comment="away", target_approver_id=FINANCE_ID))
        assert service.list_pending_approvals(ENG_MANAGER_ID) == []
        assert [r.id for r in service.list_pending_approvals(FINANCE_ID)] == [pending.id]

        service.approve(pending.id, FINANCE_ID, OK)
        assert service.list_pending_approvals(FINANCE_ID) == []


class TestLogVisibility:

    def test_parties_and_viewers_may_read(self, service, pending):
        assert service.get_logs(pending.id, EMPLOYEE_ID)
        assert service.get_logs(pending.id, FINANCE_ID)
        assert service.get_logs(pending.id, INVENTORY_ID)

    def test_unrelated_actor_refused(self, service, pending):
        with pytest.raises(ActorForbiddenError):
            service.get_logs(pending.id, OTHER_EMPLOYEE_ID)

    def test_unknown_request(self, service):
        with pytest.raises(RequestNotFoundError):
            service.get_logs(uuid4(), ADMIN_ID)


class TestNotifierFailure:

    def test_failing_notifier_does_not_fail_transition(self, make_service, create_draft, captured_logs):
        failing = FailingNotifier()
        service = make_service(notifier=failing)
        draft = create_draft()

        result = service.submit(draft.id, EMPLOYEE_ID)

        assert result.success
        assert failing.calls == 1
        assert service.get_request(draft.id).status is PurchaseStatus.PENDING_APPROVAL
        failures = [r for r in captured_logs() if r["message"] == "notification_failed"]
        assert failures and failures[0]["exc_type"] == "ConnectionError"

    def test_disabled_event_is_not_delivered(self, make_service, settings, create_draft, notifier):
        quiet = dataclasses.replace(
            settings, notify_policy=parse_notify_policy({"purchase_submitted": {"enabled": False}}),
        )
        service = make_service(settings=quiet)
        draft = create_draft()
        assert service.submit(draft.id, EMPLOYEE_ID).success
        assert notifier.sent == []


class TestTransitionTrace:

    def test_applied_and_rejected_traces(self, service, pending, captured_logs):
        service.approve(pending.id, SALES_MANAGER_ID, OK)
        service.approve(pending.id, ENG_MANAGER_ID, OK)

        traces = [r for r in captured_logs() if r.get("trace_type") == "PURCHASE_WORKFLOW_TRANSITION"]
        assert [t["outcome"] for t in traces] == ["rejected", "applied"]
        assert traces[0]["error_code"] == "NOT_PENDING_APPROVER"
        assert traces[1]["to_status"] == "approved"
        assert traces[1]["action"] == "approve"
        assert traces[1]["actor_id"] == str(ENG_MANAGER_ID)
