"""PostgreSQL implementation of the workflow-instance repository."""

from __future__ import annotations

from datetime import datetime, timezone

import asyncpg

from ..errors import NotFoundError
from ..models import (
    InstanceAction,
    TerminationRequest,
    User,
    WorkflowInstance,
    WorkflowInstanceStatus,
)
from .repository import WorkflowInstanceRepository

_INSTANCE_COLUMNS = (
    "workflow_id, instance_id, run_id, workflow_uuid, execution_id, status"
)
_REQUEST_COLUMNS = (
    "workflow_id, instance_id, run_id, workflow_uuid, action, user_name, reason, requested_at"
)


class PostgresWorkflowInstanceRepository(WorkflowInstanceRepository):
    """Persist workflow-instance state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                workflow_id TEXT NOT NULL,
                instance_id BIGINT NOT NULL,
                run_id BIGINT NOT NULL,
                workflow_uuid TEXT NOT NULL,
                execution_id TEXT,
                status TEXT NOT NULL,
                PRIMARY KEY (workflow_id, instance_id, run_id)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS termination_requests (
                id SERIAL PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                instance_id BIGINT NOT NULL,
                run_id BIGINT NOT NULL,
                workflow_uuid TEXT NOT NULL,
                action TEXT NOT NULL,
                user_name TEXT NOT NULL,
                reason TEXT NOT NULL,
                requested_at TIMESTAMPTZ NOT NULL,
                UNIQUE (workflow_id, instance_id, run_id, workflow_uuid)
            )
            """
        )

    @staticmethod
    def _to_instance(row: asyncpg.Record) -> WorkflowInstance:
        return WorkflowInstance(
            workflow_id=row["workflow_id"],
            workflow_instance_id=row["instance_id"],
            workflow_run_id=row["run_id"],
            workflow_uuid=row["workflow_uuid"],
            execution_id=row["execution_id"],
            status=WorkflowInstanceStatus(row["status"]),
        )

    # ------------------------------------------------------------------
    async def create_instance(self, instance: WorkflowInstance) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO workflow_instances ({_INSTANCE_COLUMNS}) "
                "VALUES ($1, $2, $3, $4, $5, $6)",
                instance.workflow_id,
                instance.workflow_instance_id,
                instance.workflow_run_id,
                instance.workflow_uuid,
                instance.execution_id,
                instance.status.value,
            )
        finally:
            await conn.close()

    async def get_instance_run(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstance | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances "
                "WHERE workflow_id = $1 AND instance_id = $2 AND run_id = $3",
                workflow_id,
                instance_id,
                run_id,
            )
        finally:
            await conn.close()
        return self._to_instance(row) if row else None

    async def get_instance_status(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstanceStatus | None:
        conn = await self._connect()
        try:
            status = await conn.fetchval(
                "SELECT status FROM workflow_instances "
                "WHERE workflow_id = $1 AND instance_id = $2 AND run_id = $3",
                workflow_id,
                instance_id,
                run_id,
            )
        finally:
            await conn.close()
        return WorkflowInstanceStatus(status) if status else None

    async def update_instance_status(
        self,
        workflow_id: str,
        instance_id: int,
        run_id: int,
        status: WorkflowInstanceStatus,
    ) -> None:
        conn = await self._connect()
        try:
            result = await conn.execute(
                "UPDATE workflow_instances SET status = $1 "
                "WHERE workflow_id = $2 AND instance_id = $3 AND run_id = $4",
                status.value,
                workflow_id,
                instance_id,
                run_id,
            )
        finally:
            await conn.close()
        if result.endswith(" 0"):
            raise NotFoundError(
                f"Workflow instance [{workflow_id}:{instance_id}:{run_id}] not found"
            )

    async def list_instances(
        self, workflow_id: str | None = None
    ) -> list[WorkflowInstance]:
        conn = await self._connect()
        try:
            if workflow_id is None:
                rows = await conn.fetch(
                    f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances "
                    "ORDER BY workflow_id, instance_id, run_id"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances "
                    "WHERE workflow_id = $1 ORDER BY instance_id, run_id",
                    workflow_id,
                )
        finally:
            await conn.close()
        return [self._to_instance(r) for r in rows]

    async def terminate(
        self,
        instance: WorkflowInstance,
        user: User,
        action: InstanceAction,
        reason: str,
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO termination_requests ({_REQUEST_COLUMNS}) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8) ON CONFLICT DO NOTHING",
                instance.workflow_id,
                instance.workflow_instance_id,
                instance.workflow_run_id,
                instance.workflow_uuid,
                action.value,
                user.name,
                reason,
                datetime.now(timezone.utc),
            )
        finally:
            await conn.close()

    async def list_termination_requests(
        self, workflow_id: str | None = None
    ) -> list[TerminationRequest]:
        conn = await self._connect()
        try:
            if workflow_id is None:
                rows = await conn.fetch(
                    f"SELECT {_REQUEST_COLUMNS} FROM termination_requests ORDER BY id"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {_REQUEST_COLUMNS} FROM termination_requests "
                    "WHERE workflow_id = $1 ORDER BY id",
                    workflow_id,
                )
        finally:
            await conn.close()
        return [
            TerminationRequest(
                workflow_id=r["workflow_id"],
                workflow_instance_id=r["instance_id"],
                workflow_run_id=r["run_id"],
                workflow_uuid=r["workflow_uuid"],
                action=InstanceAction(r["action"]),
                user=r["user_name"],
                reason=r["reason"],
                requested_at=r["requested_at"],
            )
            for r in rows
        ]
