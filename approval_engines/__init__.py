"""
Module: approval_engines
Responsibility:
    Package entrypoint that re-exports the pure workflow engines: node
    matching, snapshot building, approver resolution and config
    normalization.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel (domain types, exceptions, logging).
    MUST NOT import approval_services.

Invariants enforced:
    - Purity: engines never read the clock or the database.  The directory
      used by the resolver is a read-only protocol passed in by the caller.
    - Determinism: identical inputs always produce identical outputs.
"""

from approval_engines.matcher import MatchSubject, matches
from approval_engines.normalization import (
    DEFAULT_WORKFLOW_NAME,
    normalize_config_input,
    normalize_edges,
    normalize_node,
    validate_structure,
)
from approval_engines.resolver import DEFAULT_DEPARTMENT_SCOPED_ROLES, resolve_approver
from approval_engines.snapshot import build_snapshot, snapshot_from_json, snapshot_to_json

__all__ = [
    "MatchSubject",
    "matches",
    "DEFAULT_WORKFLOW_NAME",
    "normalize_config_input",
    "normalize_edges",
    "normalize_node",
    "validate_structure",
    "DEFAULT_DEPARTMENT_SCOPED_ROLES",
    "resolve_approver",
    "build_snapshot",
    "snapshot_from_json",
    "snapshot_to_json",
]
