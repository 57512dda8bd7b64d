"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine (an API handler, a UI, a batch script) need
to tell "try again" apart from "fix your input" and from "you can't do
this".  Parsing messages for that is fragile, so every failure is:

  1. A TYPED exception class (catch by type, not message)
  2. Tagged with a stable CODE (machine-readable, API-safe)
  3. Tagged with an ErrorKind (the coarse category a caller branches on)
  4. Carrying structured DATA as attributes

Example - WRONG way:
    try:
        service.approve(request_id, actor_id, payload)
    except Exception as e:
        if "not the assigned approver" in str(e):   # FRAGILE
            ...

Example - RIGHT way:
    result = service.approve(request_id, actor_id, payload)
    if not result.success and result.error_kind is ErrorKind.FORBIDDEN:
        api_response(status=403, code=result.error_code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ApprovalKernelError:

    ApprovalKernelError (base)
    |
    +-- NotFoundError                      kind=NOT_FOUND
    |   +-- RequestNotFoundError
    |
    +-- ForbiddenError                     kind=FORBIDDEN
    |   +-- ActorForbiddenError
    |   +-- WrongApproverError
    |   +-- FlowActionForbiddenError
    |
    +-- InvalidStateError                  kind=INVALID_STATE
    |   +-- InvalidTransitionError
    |   +-- StaleStateError
    |   +-- PaymentIssueOpenError
    |   +-- AlreadyPaidError
    |
    +-- WorkflowValidationError            kind=VALIDATION
    |   +-- MissingReasonError
    |   +-- MissingCommentError
    |   +-- InvalidAmountError
    |   +-- InvalidTransferTargetError
    |   +-- WorkflowConfigValidationError
    |
    +-- BudgetExceededError                kind=BUDGET_EXCEEDED
    |
    +-- ApproverResolutionError            kind=RESOLUTION_FAILED
    |
    +-- ImmutabilityViolationError         (append-only workflow log)

===============================================================================
HANDLING GUIDANCE
===============================================================================

   - NOT_FOUND          -> 404, nothing to retry
   - FORBIDDEN          -> 403, the actor cannot do this
   - INVALID_STATE      -> 409, reload and retry (includes contention)
   - VALIDATION         -> 400, fix the input
   - BUDGET_EXCEEDED    -> 409, wait for budget or lower the amount
   - RESOLUTION_FAILED  -> 500-class, the workflow config is broken

===============================================================================
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse failure category a caller can branch on."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION = "VALIDATION"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `kind` used by the result mapping.
    """

    code: str = "APPROVAL_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INVALID_STATE


# Not found


class NotFoundError(ApprovalKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class RequestNotFoundError(NotFoundError):
    """Purchase request with given ID was not found."""

    code: str = "PURCHASE_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Purchase request not found: {request_id}")


# Forbidden


class ForbiddenError(ApprovalKernelError):
    """Base exception for authorization failures."""

    code: str = "FORBIDDEN"
    kind: ErrorKind = ErrorKind.FORBIDDEN


class ActorForbiddenError(ForbiddenError):
    """Actor is neither the required party nor holds the needed capability."""

    code: str = "ACTOR_FORBIDDEN"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


class WrongApproverError(ForbiddenError):
    """Actor is not the pending approver and holds no override."""

    code: str = "NOT_PENDING_APPROVER"

    def __init__(self, actor_id: str, pending_approver_id: str | None):
        self.actor_id = actor_id
        self.pending_approver_id = pending_approver_id
        super().__init__(
            f"Actor {actor_id} is not the assigned approver "
            f"(pending approver: {pending_approver_id})"
        )


class FlowActionForbiddenError(ForbiddenError):
    """Actor holds a role that is excluded from all workflow actions."""

    code: str = "FLOW_ACTION_FORBIDDEN"

    def __init__(self, actor_id: str, role: str):
        self.actor_id = actor_id
        self.role = role
        super().__init__(
            f"Role {role} may not take part in purchase workflow actions"
        )


# Invalid state


class InvalidStateError(ApprovalKernelError):
    """Base exception for guards on the current status."""

    code: str = "INVALID_STATE"
    kind: ErrorKind = ErrorKind.INVALID_STATE


class InvalidTransitionError(InvalidStateError):
    """Action is not allowed from the request's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, action: str, current_status: str):
        self.request_id = request_id
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} purchase {request_id} in status {current_status}"
        )


class StaleStateError(InvalidStateError):
    """The request changed between read and conditional write."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, request_id: str, expected_status: str, expected_version: int):
        self.request_id = request_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Purchase {request_id} was modified concurrently "
            f"(expected status={expected_status}, version={expected_version})"
        )


class PaymentIssueOpenError(InvalidStateError):
    """Payment is blocked by an open payment issue."""

    code: str = "PAYMENT_ISSUE_OPEN"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Purchase {request_id} has an open payment issue")


class AlreadyPaidError(InvalidStateError):
    """Purchase has already been paid."""

    code: str = "ALREADY_PAID"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Purchase {request_id} is already paid")


# Validation


class WorkflowValidationError(ApprovalKernelError):
    """Base exception for caller input errors."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class MissingReasonError(WorkflowValidationError):
    """A non-empty reason is required for this action."""

    code: str = "REASON_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A reason is required to {action}")


class MissingCommentError(WorkflowValidationError):
    """The current step (or action) requires a non-empty comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, action: str, node_id: str | None = None):
        self.action = action
        self.node_id = node_id
        super().__init__(
            f"A comment is required to {action}"
            + (f" at step {node_id}" if node_id else "")
        )


class InvalidAmountError(WorkflowValidationError):
    """Amount is not a finite, non-negative value within bounds."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidTransferTargetError(WorkflowValidationError):
    """Transfer target is missing, is the actor, or cannot approve."""

    code: str = "INVALID_TRANSFER_TARGET"

    def __init__(self, target_id: str | None, reason: str):
        self.target_id = target_id
        self.reason = reason
        super().__init__(f"Invalid transfer target {target_id}: {reason}")


class WorkflowConfigValidationError(WorkflowValidationError):
    """Workflow configuration document failed structural validation."""

    code: str = "INVALID_WORKFLOW_CONFIG"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Invalid workflow configuration: " + "; ".join(self.errors)
        )


# Budget


class BudgetExceededError(ApprovalKernelError):
    """Budget guard rejected the submission."""

    code: str = "BUDGET_EXCEEDED"
    kind: ErrorKind = ErrorKind.BUDGET_EXCEEDED

    def __init__(self, purchaser_id: str, requested: str, available: str | None, reason: str):
        self.purchaser_id = purchaser_id
        self.requested = requested
        self.available = available
        self.reason = reason
        super().__init__(f"Budget exceeded for purchaser {purchaser_id}: {reason}")


# Resolution


class ApproverResolutionError(ApprovalKernelError):
    """No approver could be resolved for a workflow step."""

    code: str = "APPROVER_REQUIRED"
    kind: ErrorKind = ErrorKind.RESOLUTION_FAILED

    def __init__(self, request_id: str, step_index: int, node_id: str | None):
        self.request_id = request_id
        self.step_index = step_index
        self.node_id = node_id
        super().__init__(
            f"No approver found for purchase {request_id} "
            f"at step {step_index} (node {node_id})"
        )


# Immutability


class ImmutabilityViolationError(ApprovalKernelError):
    """
    Attempted to modify or delete an immutable record.

    Workflow log entries are append-only once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
