"""
approval_config -- single public entrypoint for engine settings.

Responsibility:
    Provides ``get_engine_settings()``, which loads the YAML settings file
    (packaged default, an explicit path, or ``APPROVAL_ENGINE_CONFIG``) into
    a frozen ``EngineSettings``.

Architecture position:
    Configuration -- sits above ``approval_kernel`` and below
    ``approval_services``.  The kernel and the engines MUST NEVER import
    from ``approval_config``; services receive settings by injection.

Failure modes:
    - ``FileNotFoundError`` -- the configured settings file is missing.
    - ``ValueError`` -- unknown capability or notification event, or a
      malformed budget amount.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from approval_config.loader import load_yaml_file, parse_engine_settings
from approval_config.schema import (
    BudgetSettings,
    EngineSettings,
    NotifyPolicy,
    NotifyRule,
)

_logger = logging.getLogger("approval_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults" / "engine.yaml"
SETTINGS_ENV_VAR = "APPROVAL_ENGINE_CONFIG"


def resolve_settings_path(path: Path | str | None = None) -> Path:
    """Explicit path, else ``$APPROVAL_ENGINE_CONFIG``, else the packaged default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_SETTINGS_PATH


def get_engine_settings(path: Path | str | None = None) -> EngineSettings:
    """Load and parse the engine settings file."""
    settings_path = resolve_settings_path(path)
    settings = parse_engine_settings(load_yaml_file(settings_path))
    _logger.info(
        "engine_settings_loaded",
        extra={
            "path": str(settings_path),
            "checksum": settings.checksum,
            "require_inbound": settings.require_inbound,
            "capability_roles": sorted(settings.role_capabilities),
        },
    )
    return settings


__all__ = [
    "BudgetSettings",
    "EngineSettings",
    "NotifyPolicy",
    "NotifyRule",
    "DEFAULT_SETTINGS_PATH",
    "SETTINGS_ENV_VAR",
    "get_engine_settings",
    "resolve_settings_path",
]
