from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlmodel import SQLModel, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from ..models import StepTask, TaskStatus
from ..overview.summary import WorkflowSummary
from .models import StepTaskRecord, WorkflowSummaryRecord


class TaskDB:
    """Async store for the tasks and summaries the progress evaluator reads."""

    def __init__(self, database_url: str) -> None:
        connect_args = (
            {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        )
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with AsyncSession(self.engine) as session:
            yield session

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def record_task(
        self, workflow_id: str, instance_id: int, run_id: int, task: StepTask
    ) -> StepTaskRecord:
        row = StepTaskRecord(
            workflow_id=workflow_id,
            workflow_instance_id=instance_id,
            workflow_run_id=run_id,
            reference_name=task.reference_name,
            task_type=task.task_type,
            seq=task.seq,
            status=task.status.value,
            output_data=task.output_data,
        )
        async with self.session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def list_tasks(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> List[StepTask]:
        """Tasks of one run in the order they were recorded."""
        stmt = (
            select(StepTaskRecord)
            .where(StepTaskRecord.workflow_id == workflow_id)
            .where(StepTaskRecord.workflow_instance_id == instance_id)
            .where(StepTaskRecord.workflow_run_id == run_id)
            .order_by(StepTaskRecord.id)
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            StepTask(
                reference_name=row.reference_name,
                task_type=row.task_type,
                seq=row.seq,
                status=TaskStatus(row.status),
                output_data=row.output_data or {},
            )
            for row in rows
        ]

    async def save_summary(self, summary: WorkflowSummary) -> None:
        row = WorkflowSummaryRecord(
            workflow_id=summary.workflow_id,
            workflow_instance_id=summary.workflow_instance_id,
            workflow_run_id=summary.workflow_run_id,
            summary=summary.model_dump(mode="json"),
        )
        async with self.session() as session:
            await session.merge(row)
            await session.commit()

    async def get_summary(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> Optional[WorkflowSummary]:
        async with self.session() as session:
            row = await session.get(
                WorkflowSummaryRecord, (workflow_id, instance_id, run_id)
            )
            return WorkflowSummary.model_validate(row.summary) if row else None
