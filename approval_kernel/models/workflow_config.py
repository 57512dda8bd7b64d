"""
Module: approval_kernel.models.workflow_config
Responsibility: ORM persistence for named approval workflow configurations.

Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    - One row per workflow_key (UNIQUE), hence at most one enabled config
      per key.
    - The node/edge document lives in a single JSON column so a save
      replaces the whole graph in one UPDATE.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import TrackedBase
from approval_kernel.domain.workflow_graph import (
    WorkflowConfig,
    WorkflowEdge,
    WorkflowNode,
)


class WorkflowConfigModel(TrackedBase):
    """Persistent workflow configuration document."""

    __tablename__ = "workflow_configs"

    workflow_key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowConfig {self.workflow_key} v{self.version} "
            f"enabled={self.enabled}>"
        )

    def to_dto(self) -> WorkflowConfig:
        definition = self.definition or {}
        return WorkflowConfig(
            workflow_key=self.workflow_key,
            name=self.name,
            enabled=self.enabled,
            nodes=tuple(WorkflowNode.from_dict(n) for n in definition.get("nodes", [])),
            edges=tuple(WorkflowEdge.from_dict(e) for e in definition.get("edges", [])),
            version=self.version,
            updated_at=self.updated_at,
            updated_by=self.updated_by_id,
        )
