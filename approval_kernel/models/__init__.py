"""ORM models for the approval kernel."""

from approval_kernel.models.purchase import PurchaseRequestModel, WorkflowLogModel
from approval_kernel.models.workflow_config import WorkflowConfigModel

__all__ = [
    "PurchaseRequestModel",
    "WorkflowConfigModel",
    "WorkflowLogModel",
]
