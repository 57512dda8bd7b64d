"""
Directory protocol (``approval_kernel.domain.directory``).

The workflow engine does not own employees or departments.  It reads
them through this pluggable interface, which backs approver resolution,
transfer-target checks, capability lookups and the budget guard's
department membership query.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class DirectoryUser:
    """A person known to the directory."""

    user_id: UUID
    display_name: str
    roles: tuple[str, ...]
    department: str | None
    updated_at: datetime
    active: bool = True


class Directory(Protocol):
    """Pluggable interface for employee/role lookups."""

    def exists(self, user_id: UUID) -> bool:
        ...

    def is_active(self, user_id: UUID) -> bool:
        ...

    def department_of(self, user_id: UUID) -> str | None:
        ...

    def roles_of(self, user_id: UUID) -> tuple[str, ...]:
        ...

    def find_role_holders(self, role: str, department: str | None = None) -> tuple[UUID, ...]:
        """Active holders of ``role``, most recently updated first, then by id.

        When ``department`` is given only members of it are returned.
        """
        ...

    def members_of(self, department: str) -> tuple[UUID, ...]:
        ...

    def list_approver_candidates(self) -> tuple[DirectoryUser, ...]:
        """All active users, for workflow authoring UIs."""
        ...
