"""Services for the approval kernel (persistence side)."""

from approval_kernel.services.config_repository import WorkflowConfigRepository
from approval_kernel.services.purchase_store import PurchaseRequestStore

__all__ = [
    "PurchaseRequestStore",
    "WorkflowConfigRepository",
]
