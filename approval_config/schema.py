"""
Engine settings schema (``approval_config.schema``).

Frozen dataclasses produced by ``approval_config.loader``.  Nothing here
reads files or the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from approval_kernel.domain.purchase import Capability, NotificationEvent

ALL_CHANNELS: tuple[str, ...] = ("in_app", "email")


@dataclass(frozen=True)
class NotifyRule:
    """Delivery policy for one notification event."""

    enabled: bool = True
    channels: tuple[str, ...] = ALL_CHANNELS


@dataclass(frozen=True)
class NotifyPolicy:
    rules: dict[str, NotifyRule] = field(default_factory=dict)

    def rule_for(self, event: NotificationEvent | str) -> NotifyRule:
        key = event.value if isinstance(event, NotificationEvent) else event
        return self.rules.get(key, NotifyRule())


@dataclass(frozen=True)
class BudgetSettings:
    """Monthly allowance per department; None means unlimited."""

    default_allowance: Decimal | None = None
    departments: dict[str, Decimal] = field(default_factory=dict)

    def allowance_for(self, department: str | None) -> Decimal | None:
        if department is not None and department in self.departments:
            return self.departments[department]
        return self.default_allowance


@dataclass(frozen=True)
class EngineSettings:
    """Everything the workflow services read from configuration."""

    department_scoped_roles: frozenset[str] = frozenset({"department_manager"})
    default_approver_role: str = "admin"
    approval_roles: frozenset[str] = frozenset({"admin", "department_manager", "finance"})
    flow_excluded_roles: frozenset[str] = frozenset({"super_admin"})
    role_capabilities: dict[str, frozenset[Capability]] = field(default_factory=dict)
    organization_types: tuple[str, ...] = ("school", "company")
    require_inbound: bool = False
    require_reimbursement_before_payment: bool = False
    budget: BudgetSettings = field(default_factory=BudgetSettings)
    notify_policy: NotifyPolicy = field(default_factory=NotifyPolicy)
    default_workflow: dict[str, Any] = field(default_factory=dict)
    checksum: str | None = None

    def capabilities_for(self, roles: tuple[str, ...] | list[str]) -> frozenset[Capability]:
        caps: set[Capability] = set()
        for role in roles:
            caps |= self.role_capabilities.get(role, frozenset())
        return frozenset(caps)

    def excluded_role(self, roles: tuple[str, ...] | list[str]) -> str | None:
        """First of ``roles`` barred from workflow actions, if any."""
        for role in roles:
            if role in self.flow_excluded_roles:
                return role
        return None
