from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_DELAY_MS,
    DEFAULT_WEBHOOK_TIMEOUT_SECONDS,
    MAX_STEPS_PER_EXECUTION,
)


class EngineSettings(BaseModel):
    """Execution limits and step defaults."""

    max_steps: int = MAX_STEPS_PER_EXECUTION
    default_delay_ms: int = DEFAULT_DELAY_MS


class WebhookSettings(BaseModel):
    """Settings for the default HTTP webhook delivery."""

    timeout_seconds: float = DEFAULT_WEBHOOK_TIMEOUT_SECONDS
    default_retries: int = 0


class AutoflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineSettings = EngineSettings()
    webhook: WebhookSettings = WebhookSettings()
    database_url: Optional[str] = None
    workflows_path: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> AutoflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to AUTOFLOW_CONFIG env
            variable or 'autoflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("AUTOFLOW_CONFIG", "autoflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = AutoflowConfig(**data)
    else:
        config = AutoflowConfig()

    env_db_url = os.getenv("AUTOFLOW_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_level = os.getenv("AUTOFLOW_LOG_LEVEL")
    if env_level:
        config.log_level = env_level
    return config
