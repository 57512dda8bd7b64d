"""
approval_services.capabilities -- Actor authority checks at the workflow boundary.

Responsibility:
    Answer "may this actor do this?" for purchase workflow actions from
    directory roles plus the role -> capability map in engine settings.
    Flow-excluded roles (e.g. super_admin) are refused every workflow
    action regardless of other roles.

Architecture position:
    Services layer.  Consumes EngineSettings from approval_config and a
    Directory.  Called by PurchaseWorkflowService before any guard on
    the request itself.
"""

from __future__ import annotations

from uuid import UUID

from approval_config.schema import EngineSettings
from approval_kernel.domain.directory import Directory
from approval_kernel.domain.purchase import Capability, PurchaseRequest
from approval_kernel.exceptions import (
    ActorForbiddenError,
    FlowActionForbiddenError,
    WrongApproverError,
)


class CapabilityChecker:
    """Role-derived capability checks for one settings/directory pair."""

    def __init__(self, settings: EngineSettings, directory: Directory) -> None:
        self._settings = settings
        self._directory = directory

    def capabilities_of(self, actor_id: UUID) -> frozenset[Capability]:
        return self._settings.capabilities_for(self._directory.roles_of(actor_id))

    def has(self, actor_id: UUID, capability: Capability) -> bool:
        return capability in self.capabilities_of(actor_id)

    def require_flow_participant(self, actor_id: UUID) -> None:
        """Raise if the actor holds a role excluded from workflow actions."""
        role = self._settings.excluded_role(self._directory.roles_of(actor_id))
        if role is not None:
            raise FlowActionForbiddenError(str(actor_id), role)

    def require(self, actor_id: UUID, capability: Capability, action: str) -> None:
        if not self.has(actor_id, capability):
            raise ActorForbiddenError(
                str(actor_id), action, f"missing capability {capability.value}",
            )

    def require_creator(self, actor_id: UUID, request: PurchaseRequest, action: str) -> None:
        if actor_id != request.created_by:
            raise ActorForbiddenError(str(actor_id), action, "only the creator may do this")

    def require_pending_approver(self, actor_id: UUID, request: PurchaseRequest) -> None:
        """Actor must be the pending approver or hold approval override."""
        if actor_id == request.pending_approver_id:
            return
        if self.has(actor_id, Capability.APPROVAL_OVERRIDE):
            return
        raise WrongApproverError(
            str(actor_id),
            str(request.pending_approver_id) if request.pending_approver_id else None,
        )

    def can_view_all(self, actor_id: UUID) -> bool:
        return self.has(actor_id, Capability.PURCHASE_VIEW_ALL)
