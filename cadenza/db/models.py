from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepTaskRecord(SQLModel, table=True):
    """A task reported by the task runtime for one workflow-instance run."""

    id: Optional[int] = Field(default=None, primary_key=True)
    workflow_id: str = Field(index=True)
    workflow_instance_id: int = Field(index=True)
    workflow_run_id: int = Field(index=True)
    reference_name: str
    task_type: str
    seq: int = 0
    status: str
    output_data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    recorded_at: datetime = Field(default_factory=_utcnow)


class WorkflowSummaryRecord(SQLModel, table=True):
    """Runtime DAG and restart context of a workflow-instance run."""

    workflow_id: str = Field(primary_key=True)
    workflow_instance_id: int = Field(primary_key=True)
    workflow_run_id: int = Field(primary_key=True)
    summary: dict = Field(sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=_utcnow)
