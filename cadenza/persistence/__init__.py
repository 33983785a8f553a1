"""Persistence layer for Cadenza workflow instances."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CadenzaConfig, load_config
from .inmemory import InMemoryWorkflowInstanceRepository
from .repository import InstanceActionHandler, WorkflowInstanceRepository
from .sqlite import SQLiteWorkflowInstanceRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresWorkflowInstanceRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresWorkflowInstanceRepository = None  # type: ignore

_repository_instance: WorkflowInstanceRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[CadenzaConfig] = None
) -> WorkflowInstanceRepository:
    """Factory function to obtain a workflow-instance repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``CADENZA_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CADENZA_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryWorkflowInstanceRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowInstanceRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresWorkflowInstanceRepository is None:
            raise RuntimeError("Postgres support not available")
        _repository_instance = PostgresWorkflowInstanceRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "InstanceActionHandler",
    "WorkflowInstanceRepository",
    "InMemoryWorkflowInstanceRepository",
    "SQLiteWorkflowInstanceRepository",
    "PostgresWorkflowInstanceRepository",
    "get_repository",
]
