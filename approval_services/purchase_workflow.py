"""
approval_services.purchase_workflow -- Purchase Lifecycle State Machine.

Responsibility:
    Executes purchase workflow actions (submit, approve, reject, transfer,
    pay, payment-issue toggles, withdraw, cancel, inbound confirmation,
    reimbursement, duplicate).  Thin coordinator: snapshot building and
    approver resolution are delegated to the pure engines, budget checks
    to the BudgetGuard, authority checks to CapabilityChecker, persistence
    to PurchaseRequestStore, delivery to NotificationDispatcher.

Architecture position:
    Services layer.  May import from approval_engines/ (pure engines),
    approval_kernel/ (domain, services, models) and approval_config.

Invariants enforced:
    - Every action is checked against PURCHASE_LIFECYCLE before it is applied.
    - Read-decide-write: the request is read once, the new state is computed
      without touching storage, then written with a compare-and-swap on
      (status, version).  A losing concurrent caller gets
      CONCURRENT_MODIFICATION and the winner's state is untouched.
    - The snapshot is built exactly once per submission, from the config
      enabled at that moment, and is only cleared by withdraw.
    - workflow_step_index only moves forward while pending; final approval
      leaves it on the last step.
    - Exactly one workflow log entry per applied action, in the same flush
      as the request update.  Failed actions write nothing.
    - Notification failures never fail an action.

Failure modes:
    All ApprovalKernelError subclasses raised while deciding an action are
    returned as ``TransitionResult(success=False, error_kind=..., error_code=...)``.
    Database errors propagate to the caller's transaction scope.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from approval_config.schema import EngineSettings
from approval_engines.resolver import resolve_approver
from approval_engines.snapshot import build_snapshot
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.directory import Directory
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
from approval_kernel.domain.workflow_graph import DEFAULT_WORKFLOW_KEY, WorkflowNode
from approval_kernel.exceptions import (
    ActorForbiddenError,
    AlreadyPaidError,
    ApprovalKernelError,
    ApproverResolutionError,
    BudgetExceededError,
    InvalidAmountError,
    InvalidTransferTargetError,
    InvalidTransitionError,
    MissingCommentError,
    MissingReasonError,
    PaymentIssueOpenError,
    StaleStateError,
    WorkflowValidationError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.services.purchase_store import PurchaseRequestStore
from approval_services.budget_guard import AllowAllBudgetGuard, BudgetGuard
from approval_services.capabilities import CapabilityChecker
from approval_services.config_store import WorkflowConfigStore
from approval_services.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)

logger = get_logger("services.purchase_workflow")

TRACE_TYPE_PURCHASE_TRANSITION = "PURCHASE_WORKFLOW_TRANSITION"
OUTCOME_APPLIED = "applied"
OUTCOME_REJECTED = "rejected"
OUTCOME_STALE = "stale"


def _emit_transition_trace(
    action: str,
    request_id: UUID,
    from_status: str | None,
    outcome: str,
    duration_ms: float,
    to_status: str | None = None,
    step_index: int | None = None,
    error_code: str | None = None,
    reason: str = "",
) -> None:
    """Emit a structured record for every attempted transition."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_PURCHASE_TRANSITION,
        "workflow": PURCHASE_LIFECYCLE.name,
        "transition_action": action,
        "purchase_id": str(request_id),
        "from_status": from_status,
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
    }
    if to_status is not None:
        record["to_status"] = to_status
    if step_index is not None:
        record["step_index"] = step_index
    if error_code is not None:
        record["error_code"] = error_code
    if reason:
        record["reason"] = reason
    if outcome == OUTCOME_APPLIED:
        logger.info("purchase_transition_applied", extra=record)
    else:
        logger.warning("purchase_transition_rejected", extra=record)


@dataclass(frozen=True)
class _Decision:
    """What an action wants to write, computed before any storage write."""

    updated: PurchaseRequest
    comment: str | None = None
    event: NotificationEvent | None = None


_Planner = Callable[[PurchaseRequest, UUID, ActionPayload], _Decision]


def initial_reimbursement_status(request: PurchaseRequest) -> ReimbursementStatus:
    """Reimbursement sub-status a request enters on final approval."""
    if request.payment_method is PaymentMethod.CORPORATE_TRANSFER:
        return ReimbursementStatus.NONE
    return ReimbursementStatus.INVOICE_PENDING


def parse_paid_amount(value: Any, ceiling: Decimal) -> Decimal:
    """Validate a paid amount: finite, non-negative, at most ``ceiling``."""
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidAmountError(value, "a paid amount is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmountError(value, "not a number") from None
    if not amount.is_finite():
        raise InvalidAmountError(value, "must be finite")
    if amount < 0:
        raise InvalidAmountError(value, "must not be negative")
    if amount > ceiling:
        raise InvalidAmountError(value, f"exceeds amount plus fees ({ceiling})")
    return amount


class PurchaseWorkflowService:
    """Drives purchase requests through approval and settlement.

    Every action takes ``(request_id, actor_id, payload)`` and returns a
    TransitionResult.  The service only flushes; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        directory: Directory,
        settings: EngineSettings,
        config_store: WorkflowConfigStore | None = None,
        budget_guard: BudgetGuard | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        workflow_key: str = DEFAULT_WORKFLOW_KEY,
    ) -> None:
        self._clock = clock or SystemClock()
        self._directory = directory
        self._settings = settings
        self._store = PurchaseRequestStore(session, self._clock)
        self._configs = config_store or WorkflowConfigStore(
            session, directory, settings, self._clock,
        )
        self._budget = budget_guard or AllowAllBudgetGuard()
        self._dispatcher = NotificationDispatcher(
            notifier or LoggingNotifier(), settings.notify_policy,
        )
        self._caps = CapabilityChecker(settings, directory)
        self._workflow_key = workflow_key

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: UUID) -> PurchaseRequest:
        return self._store.get(request_id)

    def build_snapshot_for_request(self, request: PurchaseRequest) -> tuple[WorkflowNode, ...]:
        """Steps ``request`` would get if submitted now.  Writes nothing but a seed config."""
        return build_snapshot(self._configs.get_config(self._workflow_key), request)

    def get_logs(self, request_id: UUID, actor_id: UUID) -> list[WorkflowLogEntry]:
        """Workflow log of a request, oldest first.

        Raises:
            RequestNotFoundError: unknown request.
            ActorForbiddenError: actor is not the creator or purchaser and
                cannot view all purchases.
        """
        request = self._store.get(request_id)
        if actor_id not in (request.created_by, request.purchaser_id) and not self._caps.can_view_all(actor_id):
            raise ActorForbiddenError(str(actor_id), "view logs", "not a party to this purchase")
        return self._store.list_logs(request_id)

    def list_pending_approvals(self, approver_id: UUID) -> list[PurchaseRequest]:
        """Requests currently waiting on ``approver_id``, oldest submission first."""
        return self._store.list_pending_for(approver_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_draft(
        self,
        actor_id: UUID,
        *,
        item_name: str,
        amount: Decimal,
        organization_type: str,
        purchase_date: date,
        purchaser_id: UUID | None = None,
        fee_amount: Decimal = Decimal("0"),
        quantity: Decimal = Decimal("1"),
        unit_price: Decimal | None = None,
        specification: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.CORPORATE_TRANSFER,
        purpose: str | None = None,
        notes: str | None = None,
    ) -> TransitionResult:
        """Create a new draft purchase request owned by ``actor_id``."""
        action = "create"
        try:
            self._caps.require_flow_participant(actor_id)
            self._caps.require(actor_id, Capability.PURCHASE_CREATE, action)
            for label, value in (("amount", amount), ("fee_amount", fee_amount)):
                if not isinstance(value, Decimal) or not value.is_finite() or value < 0:
                    raise InvalidAmountError(value, f"{label} must be a finite, non-negative Decimal")
            if not item_name.strip():
                raise WorkflowValidationError("item_name is required")
        except ApprovalKernelError as exc:
            return TransitionResult.failure(action, exc)

        request = PurchaseRequest(
            id=uuid4(),
            purchase_number=self._store.next_purchase_number(self._clock.now()),
            item_name=item_name.strip(),
            specification=specification,
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
            fee_amount=fee_amount,
            purchase_date=purchase_date,
            organization_type=organization_type,
            payment_method=payment_method,
            purpose=purpose,
            notes=notes,
            purchaser_id=purchaser_id or actor_id,
            created_by=actor_id,
        )
        return TransitionResult.ok(action, self._store.create(request))

    def duplicate(
        self,
        request_id: UUID,
        actor_id: UUID,
        payload: ActionPayload | None = None,
    ) -> TransitionResult:
        """New draft copying the item and amount fields of ``request_id``.

        The source record is not modified and gets no log entry.
        """
        action = "duplicate"
        with LogContext.bind(request_id=str(request_id), actor_id=str(actor_id), action=action):
            try:
                self._caps.require_flow_participant(actor_id)
                source = self._store.get(request_id)
                is_owner = actor_id == source.created_by
                if not (
                    is_owner
                    or self._caps.can_view_all(actor_id)
                    or self._caps.has(actor_id, Capability.APPROVAL_OVERRIDE)
                ):
                    raise ActorForbiddenError(str(actor_id), action, "cannot see this purchase")
                if not is_owner:
                    self._caps.require(actor_id, Capability.PURCHASE_CREATE, action)
            except ApprovalKernelError as exc:
                return TransitionResult.failure(action, exc)

            copy = PurchaseRequest(
                id=uuid4(),
                purchase_number=self._store.next_purchase_number(self._clock.now()),
                item_name=source.item_name,
                specification=source.specification,
                quantity=source.quantity,
                unit_price=source.unit_price,
                amount=source.amount,
                fee_amount=source.fee_amount,
                purchase_date=source.purchase_date,
                organization_type=source.organization_type,
                payment_method=source.payment_method,
                purpose=source.purpose,
                notes=source.notes,
                purchaser_id=source.purchaser_id,
                created_by=actor_id,
                duplicated_from_id=source.id,
            )
            created = self._store.create(copy)
            logger.info(
                "purchase_request_duplicated",
                extra={"source_id": str(source.id), "new_id": str(created.id)},
            )
            return TransitionResult.ok(action, created)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.SUBMIT, request_id, actor_id, payload, self._plan_submit)

    def approve(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.APPROVE, request_id, actor_id, payload, self._plan_approve)

    def reject(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.REJECT, request_id, actor_id, payload, self._plan_reject)

    def transfer(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.TRANSFER, request_id, actor_id, payload, self._plan_transfer)

    def pay(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.PAY, request_id, actor_id, payload, self._plan_pay)

    def mark_issue(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.MARK_ISSUE, request_id, actor_id, payload, self._plan_mark_issue)

    def resolve_issue(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.RESOLVE_ISSUE, request_id, actor_id, payload, self._plan_resolve_issue)

    def withdraw(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.WITHDRAW, request_id, actor_id, payload, self._plan_withdraw)

    def cancel(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.CANCEL, request_id, actor_id, payload, self._plan_cancel)

    def confirm_inbound(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(WorkflowAction.CONFIRM_INBOUND, request_id, actor_id, payload, self._plan_confirm_inbound)

    def submit_reimbursement(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(
            WorkflowAction.SUBMIT_REIMBURSEMENT, request_id, actor_id, payload,
            self._plan_submit_reimbursement,
        )

    def reject_reimbursement(self, request_id: UUID, actor_id: UUID, payload: ActionPayload | None = None) -> TransitionResult:
        return self._run(
            WorkflowAction.REJECT_REIMBURSEMENT, request_id, actor_id, payload,
            self._plan_reject_reimbursement,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run(
        self,
        action: WorkflowAction,
        request_id: UUID,
        actor_id: UUID,
        payload: ActionPayload | None,
        planner: _Planner,
    ) -> TransitionResult:
        payload = payload or ActionPayload()
        start = time.monotonic()
        with LogContext.bind(request_id=str(request_id), actor_id=str(actor_id), action=action.value):
            current: PurchaseRequest | None = None
            try:
                self._caps.require_flow_participant(actor_id)
                current = self._store.get(request_id)
                decision = planner(current, actor_id, payload)
                self._require_declared(current, action, decision.updated.status)
                stored = self._store.compare_and_swap(current, decision.updated)
                entry = self._store.append_log(WorkflowLogEntry(
                    request_id=stored.id,
                    action=action,
                    from_status=current.status,
                    to_status=stored.status,
                    operator_id=actor_id,
                    comment=decision.comment,
                    created_at=self._clock.now(),
                ))
            except ApprovalKernelError as exc:
                _emit_transition_trace(
                    action=action.value,
                    request_id=request_id,
                    from_status=current.status.value if current is not None else None,
                    outcome=OUTCOME_STALE if isinstance(exc, StaleStateError) else OUTCOME_REJECTED,
                    duration_ms=(time.monotonic() - start) * 1000,
                    error_code=exc.code,
                    reason=str(exc),
                )
                return TransitionResult.failure(action.value, exc)

            _emit_transition_trace(
                action=action.value,
                request_id=request_id,
                from_status=current.status.value,
                to_status=stored.status.value,
                outcome=OUTCOME_APPLIED,
                duration_ms=(time.monotonic() - start) * 1000,
                step_index=stored.workflow_step_index,
            )
            if decision.event is not None:
                self._dispatcher.dispatch(
                    decision.event,
                    RequestSummary.of(stored, actor_id=actor_id, comment=decision.comment),
                )
            return TransitionResult.ok(action.value, stored, entry)

    def _require_allowed(self, request: PurchaseRequest, action: WorkflowAction) -> None:
        if not PURCHASE_LIFECYCLE.allows(request.status.value, action.value):
            raise InvalidTransitionError(str(request.id), action.value, request.status.value)

    def _require_declared(
        self,
        request: PurchaseRequest,
        action: WorkflowAction,
        to_status: PurchaseStatus,
    ) -> None:
        if PURCHASE_LIFECYCLE.target_for(request.status.value, action.value, to_status.value) is None:
            raise InvalidTransitionError(str(request.id), action.value, request.status.value)

    def _resolve(self, request: PurchaseRequest, snapshot: tuple[WorkflowNode, ...], index: int) -> UUID:
        approver = resolve_approver(
            snapshot,
            index,
            request.purchaser_id,
            self._directory,
            self._settings.department_scoped_roles,
        )
        if approver is None:
            node_id = snapshot[index].id if 0 <= index < len(snapshot) else None
            raise ApproverResolutionError(str(request.id), index, node_id)
        return approver

    def _approved_status(self) -> PurchaseStatus:
        if self._settings.require_inbound:
            return PurchaseStatus.PENDING_INBOUND
        return PurchaseStatus.APPROVED

    @staticmethod
    def _require_reason(payload: ActionPayload, action: WorkflowAction) -> str:
        reason = payload.text
        if not reason:
            raise MissingReasonError(action.value)
        return reason

    # ------------------------------------------------------------------
    # Planners: pure decisions over the loaded request
    # ------------------------------------------------------------------

    def _plan_submit(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.SUBMIT)
        self._caps.require_creator(actor_id, current, WorkflowAction.SUBMIT.value)

        total = current.total_amount
        budget = self._budget.check(current.purchaser_id, total, current.purchase_date)
        if not budget.allowed:
            available = budget.available
            raise BudgetExceededError(
                str(current.purchaser_id),
                str(total),
                str(available) if available is not None else None,
                budget.reason,
            )

        config = self._configs.get_config(self._workflow_key)
        snapshot = build_snapshot(config, current)
        now = self._clock.now()
        common = dict(
            workflow_nodes=snapshot,
            workflow_key=config.workflow_key,
            workflow_config_version=config.version,
            submitted_at=now,
            rejection_reason=None,
            rejected_at=None,
            rejected_by=None,
        )

        if not snapshot:
            updated = dataclasses.replace(
                current,
                status=self._approved_status(),
                pending_approver_id=None,
                workflow_step_index=None,
                approved_at=now,
                approved_by=None,
                reimbursement_status=initial_reimbursement_status(current),
                **common,
            )
        else:
            updated = dataclasses.replace(
                current,
                status=PurchaseStatus.PENDING_APPROVAL,
                workflow_step_index=0,
                pending_approver_id=self._resolve(current, snapshot, 0),
                **common,
            )
        return _Decision(updated, payload.text or None, NotificationEvent.PURCHASE_SUBMITTED)

    def _plan_approve(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.APPROVE)
        self._caps.require_pending_approver(actor_id, current)

        node = current.current_node
        if node is None:
            raise InvalidTransitionError(str(current.id), WorkflowAction.APPROVE.value, current.status.value)
        comment = payload.text or None
        if node.required_comment and not comment:
            raise MissingCommentError(WorkflowAction.APPROVE.value, node.id)

        if current.is_final_step:
            updated = dataclasses.replace(
                current,
                status=self._approved_status(),
                pending_approver_id=None,
                approved_at=self._clock.now(),
                approved_by=actor_id,
                reimbursement_status=initial_reimbursement_status(current),
            )
            return _Decision(updated, comment, NotificationEvent.PURCHASE_APPROVED)

        next_index = current.workflow_step_index + 1
        updated = dataclasses.replace(
            current,
            workflow_step_index=next_index,
            pending_approver_id=self._resolve(current, current.workflow_nodes, next_index),
        )
        return _Decision(updated, comment, NotificationEvent.PURCHASE_SUBMITTED)

    def _plan_reject(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.REJECT)
        self._caps.require_pending_approver(actor_id, current)
        reason = self._require_reason(payload, WorkflowAction.REJECT)
        updated = dataclasses.replace(
            current,
            status=PurchaseStatus.REJECTED,
            pending_approver_id=None,
            rejection_reason=reason,
            rejected_at=self._clock.now(),
            rejected_by=actor_id,
        )
        return _Decision(updated, reason, NotificationEvent.PURCHASE_REJECTED)

    def _plan_transfer(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.TRANSFER)
        self._caps.require_pending_approver(actor_id, current)

        target = payload.target_approver_id
        if target is None:
            raise InvalidTransferTargetError(None, "a target approver is required")
        if target == actor_id:
            raise InvalidTransferTargetError(str(target), "cannot transfer to yourself")
        comment = payload.text
        if not comment:
            raise MissingCommentError(WorkflowAction.TRANSFER.value)
        if not self._directory.is_active(target):
            raise InvalidTransferTargetError(str(target), "unknown or inactive user")
        roles = self._directory.roles_of(target)
        if self._settings.excluded_role(roles) is not None:
            raise InvalidTransferTargetError(str(target), "target may not take workflow actions")
        if not self._settings.approval_roles.intersection(roles):
            raise InvalidTransferTargetError(str(target), "target holds no approval role")

        updated = dataclasses.replace(current, pending_approver_id=target)
        return _Decision(updated, comment, NotificationEvent.PURCHASE_TRANSFERRED)

    def _plan_pay(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._caps.require(actor_id, Capability.PAYMENT, WorkflowAction.PAY.value)
        if current.status is PurchaseStatus.PAID or current.paid_at is not None:
            raise AlreadyPaidError(str(current.id))
        self._require_allowed(current, WorkflowAction.PAY)
        if current.payment_issue_open:
            raise PaymentIssueOpenError(str(current.id))
        if self._settings.require_reimbursement_before_payment and current.reimbursement_status not in (
            ReimbursementStatus.NONE,
            ReimbursementStatus.REIMBURSEMENT_PENDING,
        ):
            raise InvalidTransitionError(
                str(current.id),
                WorkflowAction.PAY.value,
                f"{current.status.value}/{current.reimbursement_status.value}",
            )

        amount = parse_paid_amount(payload.paid_amount, current.total_amount)
        note = (payload.payment_note or payload.comment or "").strip() or None
        reimbursement = current.reimbursement_status
        if reimbursement is ReimbursementStatus.REIMBURSEMENT_PENDING:
            reimbursement = ReimbursementStatus.REIMBURSED
        updated = dataclasses.replace(
            current,
            status=PurchaseStatus.PAID,
            paid_at=self._clock.now(),
            paid_by=actor_id,
            paid_amount=amount,
            payment_note=note,
            reimbursement_status=reimbursement,
        )
        return _Decision(updated, note, NotificationEvent.PURCHASE_PAID)

    def _plan_mark_issue(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._caps.require(actor_id, Capability.PAYMENT, WorkflowAction.MARK_ISSUE.value)
        self._require_allowed(current, WorkflowAction.MARK_ISSUE)
        if current.payment_issue_open:
            raise PaymentIssueOpenError(str(current.id))
        reason = self._require_reason(payload, WorkflowAction.MARK_ISSUE)
        updated = dataclasses.replace(
            current,
            payment_issue_open=True,
            payment_issue_reason=reason,
            payment_issue_at=self._clock.now(),
            payment_issue_by=actor_id,
        )
        return _Decision(updated, reason, NotificationEvent.PAYMENT_ISSUE_MARKED)

    def _plan_resolve_issue(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._caps.require(actor_id, Capability.PAYMENT, WorkflowAction.RESOLVE_ISSUE.value)
        self._require_allowed(current, WorkflowAction.RESOLVE_ISSUE)
        if not current.payment_issue_open:
            raise InvalidTransitionError(
                str(current.id), WorkflowAction.RESOLVE_ISSUE.value, current.status.value,
            )
        reason = self._require_reason(payload, WorkflowAction.RESOLVE_ISSUE)
        updated = dataclasses.replace(
            current,
            payment_issue_open=False,
            payment_issue_reason=None,
            payment_issue_at=None,
            payment_issue_by=None,
        )
        return _Decision(updated, reason, NotificationEvent.PAYMENT_ISSUE_RESOLVED)

    def _plan_withdraw(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.WITHDRAW)
        self._caps.require_creator(actor_id, current, WorkflowAction.WITHDRAW.value)
        reason = self._require_reason(payload, WorkflowAction.WITHDRAW)
        updated = dataclasses.replace(
            current,
            status=PurchaseStatus.DRAFT,
            workflow_step_index=None,
            pending_approver_id=None,
            workflow_nodes=(),
            workflow_key=None,
            workflow_config_version=None,
            submitted_at=None,
        )
        return _Decision(updated, reason)

    def _plan_cancel(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.CANCEL)
        if actor_id != current.created_by and not self._caps.has(actor_id, Capability.APPROVAL_OVERRIDE):
            raise ActorForbiddenError(
                str(actor_id), WorkflowAction.CANCEL.value, "only the creator or an override holder may cancel",
            )
        updated = dataclasses.replace(
            current,
            status=PurchaseStatus.CANCELLED,
            workflow_step_index=None,
            pending_approver_id=None,
        )
        return _Decision(updated, payload.text or None)

    def _plan_confirm_inbound(self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload) -> _Decision:
        self._require_allowed(current, WorkflowAction.CONFIRM_INBOUND)
        if actor_id not in (current.purchaser_id, current.created_by) and not self._caps.has(
            actor_id, Capability.INVENTORY
        ):
            raise ActorForbiddenError(
                str(actor_id), WorkflowAction.CONFIRM_INBOUND.value, "not the purchaser or inventory staff",
            )
        updated = dataclasses.replace(current, status=PurchaseStatus.APPROVED)
        return _Decision(updated, payload.text or None)

    def _plan_submit_reimbursement(
        self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload,
    ) -> _Decision:
        self._require_allowed(current, WorkflowAction.SUBMIT_REIMBURSEMENT)
        if actor_id not in (current.purchaser_id, current.created_by):
            raise ActorForbiddenError(
                str(actor_id), WorkflowAction.SUBMIT_REIMBURSEMENT.value, "not the purchaser or creator",
            )
        if current.reimbursement_status not in (
            ReimbursementStatus.INVOICE_PENDING,
            ReimbursementStatus.REIMBURSEMENT_REJECTED,
        ):
            raise InvalidTransitionError(
                str(current.id),
                WorkflowAction.SUBMIT_REIMBURSEMENT.value,
                f"{current.status.value}/{current.reimbursement_status.value}",
            )
        updated = dataclasses.replace(
            current,
            reimbursement_status=ReimbursementStatus.REIMBURSEMENT_PENDING,
            reimbursement_submitted_at=self._clock.now(),
            reimbursement_rejected_reason=None,
        )
        return _Decision(updated, payload.text or None, NotificationEvent.REIMBURSEMENT_SUBMITTED)

    def _plan_reject_reimbursement(
        self, current: PurchaseRequest, actor_id: UUID, payload: ActionPayload,
    ) -> _Decision:
        self._caps.require(actor_id, Capability.PAYMENT, WorkflowAction.REJECT_REIMBURSEMENT.value)
        self._require_allowed(current, WorkflowAction.REJECT_REIMBURSEMENT)
        if current.reimbursement_status is not ReimbursementStatus.REIMBURSEMENT_PENDING:
            raise InvalidTransitionError(
                str(current.id),
                WorkflowAction.REJECT_REIMBURSEMENT.value,
                f"{current.status.value}/{current.reimbursement_status.value}",
            )
        reason = self._require_reason(payload, WorkflowAction.REJECT_REIMBURSEMENT)
        updated = dataclasses.replace(
            current,
            reimbursement_status=ReimbursementStatus.REIMBURSEMENT_REJECTED,
            reimbursement_rejected_reason=reason,
        )
        return _Decision(updated, reason)
