"""
approval_services.directory -- In-memory Directory implementation.

Satisfies the Directory protocol from approval_kernel/domain/directory.py.
Can be replaced with a database-backed or LDAP-backed implementation; the
workflow services only depend on the protocol.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from approval_kernel.domain.directory import DirectoryUser


class StaticDirectory:
    """Directory backed by a dict of DirectoryUser records."""

    def __init__(self, users: Iterable[DirectoryUser] = ()) -> None:
        self._users: dict[UUID, DirectoryUser] = {u.user_id: u for u in users}

    def add(self, user: DirectoryUser) -> None:
        """Insert or replace a user."""
        self._users[user.user_id] = user

    def get(self, user_id: UUID) -> DirectoryUser | None:
        return self._users.get(user_id)

    def exists(self, user_id: UUID) -> bool:
        return user_id in self._users

    def is_active(self, user_id: UUID) -> bool:
        user = self._users.get(user_id)
        return user is not None and user.active

    def department_of(self, user_id: UUID) -> str | None:
        user = self._users.get(user_id)
        return user.department if user is not None else None

    def roles_of(self, user_id: UUID) -> tuple[str, ...]:
        user = self._users.get(user_id)
        return user.roles if user is not None else ()

    def find_role_holders(self, role: str, department: str | None = None) -> tuple[UUID, ...]:
        holders = [
            u for u in self._users.values()
            if u.active
            and role in u.roles
            and (department is None or u.department == department)
        ]
        # Most recently updated first; ties broken by id for determinism.
        holders.sort(key=lambda u: str(u.user_id))
        holders.sort(key=lambda u: u.updated_at, reverse=True)
        return tuple(u.user_id for u in holders)

    def members_of(self, department: str) -> tuple[UUID, ...]:
        return tuple(sorted(
            (u.user_id for u in self._users.values() if u.department == department),
            key=str,
        ))

    def list_approver_candidates(self) -> tuple[DirectoryUser, ...]:
        active = [u for u in self._users.values() if u.active]
        active.sort(key=lambda u: (u.display_name, str(u.user_id)))
        return tuple(active)
