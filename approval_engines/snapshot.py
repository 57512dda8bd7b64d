"""
approval_engines.snapshot -- Workflow snapshot builder.

Responsibility:
    Produce the ordered, immutable list of approval steps that applies to a
    request at submission time, and its persisted JSON form.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The config is passed in
    by the caller; there is no module-level "current config".

Invariants enforced:
    - A disabled config yields an empty snapshot (approval bypass).
    - Authored node order is preserved: the first matching node is step 0.
    - Deterministic: same config and request always give the same snapshot.
    - ``snapshot_to_json`` returns fresh objects, so stored snapshots share
      nothing with the config they were built from.
"""

from __future__ import annotations

from typing import Any

from approval_engines.matcher import MatchSubject, matches
from approval_kernel.domain.workflow_graph import WorkflowConfig, WorkflowNode


def build_snapshot(
    config: WorkflowConfig,
    request: MatchSubject,
) -> tuple[WorkflowNode, ...]:
    """Applicable approval steps for ``request`` under ``config``."""
    if not config.enabled:
        return ()
    return tuple(node for node in config.nodes if matches(node, request))


def snapshot_to_json(snapshot: tuple[WorkflowNode, ...]) -> list[dict[str, Any]]:
    return [node.to_dict() for node in snapshot]


def snapshot_from_json(data: list[dict[str, Any]] | None) -> tuple[WorkflowNode, ...]:
    return tuple(WorkflowNode.from_dict(item) for item in data or [])
