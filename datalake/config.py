"""
Deployment configuration for the data lake.

Loads .env and exposes the boundary inputs. Every value can be overridden via
environment variables (and, for CLI runs, via flags).

Environment variables:
  - DATALAKE_PROJECT_NAME   (optional, default: data-pipeline)
  - DATALAKE_ENVIRONMENT    (optional, default: dev)
  - DATALAKE_REGION         (optional; falls back to AWS_REGION, then ap-northeast-2)
  - DATALAKE_STATE_PATH     (optional, default: .datalake/state.json)
  - DATALAKE_LOG_LEVEL      (optional, default: INFO)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from datalake.models import DeploymentConfig
from datalake.state import load_or_create_suffix


DEFAULT_PROJECT_NAME = "data-pipeline"
DEFAULT_ENVIRONMENT = "dev"
DEFAULT_REGION = "ap-northeast-2"
DEFAULT_STATE_PATH = ".datalake/state.json"
DEFAULT_LOG_LEVEL = "INFO"


def load_env(log: Optional[logging.LoggerAdapter] = None) -> None:
    """
    Load a .env file from the current working directory (if one exists).

    Shell / CI environment variables already set take priority: load_dotenv() is
    called with override=False so existing values are never overwritten.
    """
    env_file = Path.cwd() / ".env"
    if not env_file.is_file():
        return

    loaded = load_dotenv(env_file, override=False)
    if log is not None:
        if loaded:
            log.debug("loaded .env from %s (shell vars take precedence)", env_file)
        else:
            log.debug(
                ".env found at %s but all variables were already set in the environment",
                env_file,
            )


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, stripped; return default if unset or empty."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def get_project_name() -> str:
    return _get_env("DATALAKE_PROJECT_NAME", DEFAULT_PROJECT_NAME) or DEFAULT_PROJECT_NAME


def get_environment() -> str:
    return _get_env("DATALAKE_ENVIRONMENT", DEFAULT_ENVIRONMENT) or DEFAULT_ENVIRONMENT


def get_region() -> str:
    """Return the target region (DATALAKE_REGION, then AWS_REGION, then the default)."""
    return _get_env("DATALAKE_REGION") or _get_env("AWS_REGION") or DEFAULT_REGION


def get_state_path() -> Path:
    return Path(_get_env("DATALAKE_STATE_PATH", DEFAULT_STATE_PATH) or DEFAULT_STATE_PATH).expanduser()


def get_log_level() -> str:
    return _get_env("DATALAKE_LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL


def load_deployment_config(
    *,
    project_name: Optional[str] = None,
    environment: Optional[str] = None,
    region: Optional[str] = None,
    state_path: Optional[Path] = None,
    log: Optional[logging.LoggerAdapter] = None,
) -> DeploymentConfig:
    """
    Resolve the deployment configuration.

    Explicit arguments win over environment variables, which win over defaults.
    The suffix is read from (or generated into) the state file, so calling this
    repeatedly returns the same suffix.
    """
    load_env(log)
    path = state_path or get_state_path()
    return DeploymentConfig(
        project_name=(project_name or get_project_name()).strip(),
        environment=(environment or get_environment()).strip(),
        region=(region or get_region()).strip(),
        suffix=load_or_create_suffix(path),
    )
