"""
approval_engines.resolver -- Approver resolution for one workflow step.

Responsibility:
    Turn the approver rule of a snapshot step into a concrete user id.

Architecture position:
    Engines -- pure over the Directory protocol.  The directory is a read
    interface supplied by the caller; this module keeps no state and never
    writes.

Invariants enforced:
    - Out-of-range step index resolves to None.
    - A user approver resolves verbatim.  Existence is checked when the
      config is saved, not here.
    - A department-scoped role searches the requester's department first,
      then falls back to a global search.  Other roles search globally.
    - Holder order (most recently updated, then id) comes from the
      directory, so identical directory state gives identical results.

Failure modes:
    - Returns None when no holder exists; the caller reports that as a
      RESOLUTION_FAILED configuration defect.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from uuid import UUID

from approval_kernel.domain.directory import Directory
from approval_kernel.domain.workflow_graph import (
    RoleApprover,
    UserApprover,
    WorkflowNode,
)
from approval_kernel.logging_config import get_logger

logger = get_logger("engines.resolver")

DEFAULT_DEPARTMENT_SCOPED_ROLES: frozenset[str] = frozenset({"department_manager"})


def resolve_approver(
    snapshot: Sequence[WorkflowNode],
    step_index: int | None,
    requester_id: UUID,
    directory: Directory,
    department_scoped_roles: Collection[str] = DEFAULT_DEPARTMENT_SCOPED_ROLES,
) -> UUID | None:
    """Concrete approver for ``snapshot[step_index]``, or None."""
    if step_index is None or not 0 <= step_index < len(snapshot):
        return None

    node = snapshot[step_index]
    match node.approver:
        case UserApprover(user_id=user_id):
            return user_id
        case RoleApprover(role=role):
            return _resolve_role(role, requester_id, directory, department_scoped_roles)
        case _:
            raise TypeError(f"Unknown approver variant: {node.approver!r}")


def _resolve_role(
    role: str,
    requester_id: UUID,
    directory: Directory,
    department_scoped_roles: Collection[str],
) -> UUID | None:
    if role in department_scoped_roles:
        department = directory.department_of(requester_id)
        if department is not None:
            holders = directory.find_role_holders(role, department=department)
            if holders:
                return holders[0]
            logger.info(
                "approver_department_fallback",
                extra={"role": role, "department": department},
            )

    holders = directory.find_role_holders(role)
    if holders:
        return holders[0]

    logger.warning("approver_not_found", extra={"role": role})
    return None
