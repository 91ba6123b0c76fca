"""
dairy_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the one way to obtain configuration.  It
    resolves the YAML file (explicit path, then ``DAIRY_CONFIG``, then the
    packaged ``defaults.yaml``), applies the ``DAIRY_DATABASE_URL``
    override, and returns a frozen ``DairyConfig``.

Architecture position:
    Sits above ``dairy_kernel`` and below ``dairy_services`` /
    ``dairy_batch``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from dairy_config.loader import load_config
from dairy_config.schema import (
    BillingConfig,
    CattleConfig,
    DairyConfig,
    DatabaseConfig,
    JobScheduleDef,
    NotificationConfig,
    SchedulingConfig,
)
from dairy_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV = "DAIRY_CONFIG"
DATABASE_URL_ENV = "DAIRY_DATABASE_URL"


def get_active_config(path: str | Path | None = None) -> DairyConfig:
    """Load the active configuration.

    Args:
        path: Explicit YAML file.  Takes precedence over ``DAIRY_CONFIG``.
    """
    resolved = Path(path) if path else Path(os.environ.get(CONFIG_ENV) or DEFAULTS_PATH)
    config = load_config(resolved)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    logger.info(
        "config_loaded",
        extra={
            "config_path": str(resolved),
            "timezone": config.timezone,
            "job_count": len(config.jobs),
            "database_url_override": bool(database_url),
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "CattleConfig",
    "DairyConfig",
    "DatabaseConfig",
    "JobScheduleDef",
    "NotificationConfig",
    "SchedulingConfig",
    "get_active_config",
]
