"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads the engine settings YAML file and parses it into the typed
``approval_config.schema`` dataclasses.  Services never call this
directly; they receive an ``EngineSettings`` from
``approval_config.get_engine_settings()`` or from their caller.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown capability names are rejected, not ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash so a log
  line can tie a decision to the exact settings that governed it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown capability or malformed amount  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import (
    ALL_CHANNELS,
    BudgetSettings,
    EngineSettings,
    NotifyPolicy,
    NotifyRule,
)
from approval_kernel.domain.purchase import Capability, NotificationEvent


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_amount(value: Any) -> Decimal | None:
    """Parse an optional non-negative amount from YAML."""
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot parse amount from {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Amount must be finite and non-negative: {value!r}")
    return amount


def parse_capabilities(data: dict[str, Any]) -> dict[str, frozenset[Capability]]:
    """Parse the role -> capability list mapping."""
    result: dict[str, frozenset[Capability]] = {}
    for role, names in (data or {}).items():
        try:
            result[role] = frozenset(Capability(name) for name in names or [])
        except ValueError:
            raise ValueError(
                f"Unknown capability in role {role!r}: {names!r}"
            ) from None
    return result


def parse_notify_policy(data: dict[str, Any]) -> NotifyPolicy:
    known = {e.value for e in NotificationEvent}
    rules: dict[str, NotifyRule] = {}
    for event, rule in (data or {}).items():
        if event not in known:
            raise ValueError(f"Unknown notification event: {event!r}")
        rule = rule or {}
        rules[event] = NotifyRule(
            enabled=bool(rule.get("enabled", True)),
            channels=tuple(rule.get("channels") or ALL_CHANNELS),
        )
    return NotifyPolicy(rules=rules)


def parse_budget(data: dict[str, Any]) -> BudgetSettings:
    data = data or {}
    return BudgetSettings(
        default_allowance=parse_amount(data.get("default_allowance")),
        departments={
            dept: parse_amount(value)
            for dept, value in (data.get("departments") or {}).items()
        },
    )


def parse_engine_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse ``EngineSettings`` from a dict.

    Sections absent from ``data`` keep the schema defaults.
    """
    defaults = EngineSettings()
    roles = data.get("roles") or {}
    lifecycle = data.get("lifecycle") or {}
    return EngineSettings(
        department_scoped_roles=frozenset(
            roles.get("department_scoped", defaults.department_scoped_roles)
        ),
        default_approver_role=roles.get("default_approver", defaults.default_approver_role),
        approval_roles=frozenset(roles.get("approval", defaults.approval_roles)),
        flow_excluded_roles=frozenset(roles.get("flow_excluded", defaults.flow_excluded_roles)),
        role_capabilities=parse_capabilities(data.get("capabilities") or {}),
        organization_types=tuple(
            data.get("organization_types") or defaults.organization_types
        ),
        require_inbound=bool(lifecycle.get("require_inbound", False)),
        require_reimbursement_before_payment=bool(
            lifecycle.get("require_reimbursement_before_payment", False)
        ),
        budget=parse_budget(data.get("budget") or {}),
        notify_policy=parse_notify_policy(data.get("notifications") or {}),
        default_workflow=dict(data.get("default_workflow") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
