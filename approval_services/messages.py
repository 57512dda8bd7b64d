"""
approval_services.messages -- Caller-facing categories for failed actions.

Maps ``ErrorKind`` to a stable category that a UI or API layer can branch
on without parsing error codes: whether to re-read and retry, ask the user
to fix input, show a permission error, a not-found page, or escalate a
workflow misconfiguration to an administrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from approval_kernel.domain.purchase import TransitionResult
from approval_kernel.exceptions import ErrorKind


class MessageCategory(str, Enum):
    RETRY = "retry"
    FIX_INPUT = "fix_input"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    MISCONFIGURED = "misconfigured"


_CATEGORY_BY_KIND: dict[ErrorKind, MessageCategory] = {
    ErrorKind.INVALID_STATE: MessageCategory.RETRY,
    ErrorKind.BUDGET_EXCEEDED: MessageCategory.RETRY,
    ErrorKind.VALIDATION: MessageCategory.FIX_INPUT,
    ErrorKind.FORBIDDEN: MessageCategory.FORBIDDEN,
    ErrorKind.NOT_FOUND: MessageCategory.NOT_FOUND,
    ErrorKind.RESOLUTION_FAILED: MessageCategory.MISCONFIGURED,
}

_HEADLINES: dict[MessageCategory, str] = {
    MessageCategory.RETRY: "The purchase changed or cannot take this action now. Reload and try again.",
    MessageCategory.FIX_INPUT: "Some required information is missing or invalid.",
    MessageCategory.FORBIDDEN: "You are not allowed to perform this action.",
    MessageCategory.NOT_FOUND: "The purchase request could not be found.",
    MessageCategory.MISCONFIGURED: "No approver could be found for this step. Contact an administrator.",
}


@dataclass(frozen=True)
class UserMessage:
    category: MessageCategory
    headline: str
    code: str | None
    detail: str


def category_for(kind: ErrorKind) -> MessageCategory:
    return _CATEGORY_BY_KIND[kind]


def describe_failure(result: TransitionResult) -> UserMessage | None:
    """User-facing message for a failed result; None for a successful one."""
    if result.success or result.error_kind is None:
        return None
    category = category_for(result.error_kind)
    return UserMessage(
        category=category,
        headline=_HEADLINES[category],
        code=result.error_code,
        detail=result.message,
    )
