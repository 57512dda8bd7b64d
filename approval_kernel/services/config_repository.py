"""
approval_kernel.services.config_repository -- Workflow config persistence.

Responsibility:
    Loads and replaces workflow configuration documents by key.  A save
    replaces the whole node/edge document in one row update; concurrent
    saves are last-writer-wins.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.workflow_graph import WorkflowConfig
from approval_kernel.models.workflow_config import WorkflowConfigModel


class WorkflowConfigRepository:
    """Keyed storage of WorkflowConfig documents."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    def _load(self, workflow_key: str) -> WorkflowConfigModel | None:
        return self._session.execute(
            select(WorkflowConfigModel)
            .where(WorkflowConfigModel.workflow_key == workflow_key)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get(self, workflow_key: str) -> WorkflowConfig | None:
        model = self._load(workflow_key)
        return model.to_dto() if model is not None else None

    def save(self, config: WorkflowConfig, operator_id: UUID) -> WorkflowConfig:
        """Insert or wholesale-replace the document under ``config.workflow_key``.

        The stored version is one more than the previous stored version
        (1 for a new key), whatever ``config.version`` says.
        """
        now = self._clock.now()
        model = self._load(config.workflow_key)
        if model is None:
            model = WorkflowConfigModel(
                workflow_key=config.workflow_key,
                name=config.name,
                enabled=config.enabled,
                version=1,
                definition=config.definition_dict(),
                created_at=now,
                updated_at=now,
                created_by_id=operator_id,
                updated_by_id=operator_id,
            )
            self._session.add(model)
        else:
            model.name = config.name
            model.enabled = config.enabled
            model.version = model.version + 1
            model.definition = config.definition_dict()
            model.updated_at = now
            model.updated_by_id = operator_id
        self._session.flush()
        return model.to_dto()
