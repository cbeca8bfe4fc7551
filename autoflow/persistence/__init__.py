"""Persistence layer for autoflow workflows and executions."""

from __future__ import annotations

import os
from typing import Optional

from ..config import AutoflowConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .repository import WorkflowRepository
from .sqlite import SQLiteWorkflowRepository


def get_repository(
    database_url: Optional[str] = None, config: Optional[AutoflowConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via the ``AUTOFLOW_DATABASE_URL`` environment variable or
    from loaded configuration. When no database is configured an in-memory
    repository is returned.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("AUTOFLOW_DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        return InMemoryWorkflowRepository()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteWorkflowRepository(path)

    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
