"""
approval_services -- Package init and public API.

Responsibility:
    Stateful orchestration of the purchase approval workflow.  Composes the
    pure engines (approval_engines/) with database sessions, the user
    directory, engine settings and the notifier.  This is the only layer
    that holds sessions together with settings and wall-clock time.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        approval_services/ -> approval_engines/  (allowed)
        approval_services/ -> approval_kernel/   (allowed)
        approval_services/ -> approval_config/   (allowed)
        approval_engines/  -> approval_services/ (FORBIDDEN)
        approval_kernel/   -> approval_services/ (FORBIDDEN)

Failure modes:
    - Workflow actions never raise ApprovalKernelError; they return a
      failed TransitionResult.  Database errors propagate.
"""

from approval_kernel.logging_config import get_logger

logger = get_logger("services")

from approval_services.budget_guard import (  # noqa: E402
    AllowAllBudgetGuard,
    BudgetDecision,
    BudgetGuard,
    PeriodAllowanceBudgetGuard,
)
from approval_services.capabilities import CapabilityChecker  # noqa: E402
from approval_services.config_store import SYSTEM_ACTOR_ID, WorkflowConfigStore  # noqa: E402
from approval_services.directory import StaticDirectory  # noqa: E402
from approval_services.messages import MessageCategory, UserMessage, describe_failure  # noqa: E402
from approval_services.notifications import (  # noqa: E402
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)
from approval_services.purchase_workflow import PurchaseWorkflowService  # noqa: E402

__all__ = [
    "AllowAllBudgetGuard",
    "BudgetDecision",
    "BudgetGuard",
    "CapabilityChecker",
    "LoggingNotifier",
    "MessageCategory",
    "NotificationDispatcher",
    "Notifier",
    "PeriodAllowanceBudgetGuard",
    "PurchaseWorkflowService",
    "StaticDirectory",
    "SYSTEM_ACTOR_ID",
    "UserMessage",
    "WorkflowConfigStore",
    "describe_failure",
]
