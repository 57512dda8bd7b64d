"""
approval_services.config_store -- Workflow Configuration Store.

Responsibility:
    Read and replace approval workflow configurations.  Normalizes
    authoring input through the pure normalization engine, checks explicit
    user approvers against the directory, and seeds the default workflow
    from engine settings on first access.

Architecture position:
    Services layer.  Composes approval_engines.normalization with the
    kernel's WorkflowConfigRepository.

Invariants enforced:
    - Whole-document replace: nodes and edges are written together in one
      row update.  Concurrent saves are last-writer-wins.
    - Every user approver references a user that exists at save time, so
      resolution never has to check existence.

Failure modes:
    - WorkflowConfigValidationError on malformed input or unknown users.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from approval_config.schema import EngineSettings
from approval_engines.normalization import normalize_config_input
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.directory import Directory, DirectoryUser
from approval_kernel.domain.workflow_graph import (
    DEFAULT_WORKFLOW_KEY,
    UserApprover,
    WorkflowConfig,
)
from approval_kernel.exceptions import WorkflowConfigValidationError
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.services.config_repository import WorkflowConfigRepository

logger = get_logger("services.config_store")

# Seeded configs are attributed to this well-known system actor.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


class WorkflowConfigStore:
    """Named, versioned approval graphs."""

    def __init__(
        self,
        session: Session,
        directory: Directory,
        settings: EngineSettings,
        clock: Clock | None = None,
    ) -> None:
        self._directory = directory
        self._settings = settings
        self._repository = WorkflowConfigRepository(session, clock or SystemClock())

    def get_config(self, workflow_key: str = DEFAULT_WORKFLOW_KEY) -> WorkflowConfig:
        """Current config for ``workflow_key``, seeding the default if absent."""
        config = self._repository.get(workflow_key)
        if config is not None:
            return config
        seeded = self._seed(workflow_key)
        logger.info(
            "workflow_config_seeded",
            extra={"workflow_key": workflow_key, "node_count": len(seeded.nodes)},
        )
        return seeded

    def upsert_config(
        self,
        raw: dict[str, Any],
        operator_id: UUID,
        workflow_key: str = DEFAULT_WORKFLOW_KEY,
    ) -> WorkflowConfig:
        """Normalize, validate and wholesale-replace the config under ``workflow_key``."""
        with LogContext.bind(actor_id=str(operator_id), workflow_key=workflow_key):
            config = self._normalize(raw, workflow_key)
            saved = self._repository.save(config, operator_id)
            logger.info(
                "workflow_config_saved",
                extra={
                    "version": saved.version,
                    "enabled": saved.enabled,
                    "node_count": len(saved.nodes),
                    "edge_count": len(saved.edges),
                },
            )
            return saved

    def list_approver_candidates(self) -> tuple[DirectoryUser, ...]:
        return self._directory.list_approver_candidates()

    def _normalize(self, raw: dict[str, Any], workflow_key: str) -> WorkflowConfig:
        try:
            config = normalize_config_input(
                raw,
                workflow_key=workflow_key,
                default_approver_role=self._settings.default_approver_role,
                organization_types=self._settings.organization_types,
            )
        except WorkflowConfigValidationError as exc:
            logger.warning(
                "workflow_config_rejected",
                extra={"workflow_key": workflow_key, "errors": exc.errors},
            )
            raise

        unknown = [
            f"node {node.id} approver user {node.approver.user_id} does not exist"
            for node in config.nodes
            if isinstance(node.approver, UserApprover)
            and not self._directory.exists(node.approver.user_id)
        ]
        if unknown:
            logger.warning(
                "workflow_config_rejected",
                extra={"workflow_key": workflow_key, "errors": unknown},
            )
            raise WorkflowConfigValidationError(unknown)
        return config

    def _seed(self, workflow_key: str) -> WorkflowConfig:
        raw = dict(self._settings.default_workflow)
        raw.pop("workflow_key", None)
        config = normalize_config_input(
            raw,
            workflow_key=workflow_key,
            default_approver_role=self._settings.default_approver_role,
            organization_types=self._settings.organization_types,
        )
        return self._repository.save(config, SYSTEM_ACTOR_ID)
