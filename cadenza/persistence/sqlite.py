"""SQLite implementation of the workflow-instance repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

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


class SQLiteWorkflowInstanceRepository(WorkflowInstanceRepository):
    """Persist workflow-instance state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                workflow_id TEXT NOT NULL,
                instance_id INTEGER NOT NULL,
                run_id INTEGER NOT NULL,
                workflow_uuid TEXT NOT NULL,
                execution_id TEXT,
                status TEXT NOT NULL,
                PRIMARY KEY (workflow_id, instance_id, run_id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS termination_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT NOT NULL,
                instance_id INTEGER NOT NULL,
                run_id INTEGER NOT NULL,
                workflow_uuid TEXT NOT NULL,
                action TEXT NOT NULL,
                user_name TEXT NOT NULL,
                reason TEXT NOT NULL,
                requested_at TEXT NOT NULL,
                UNIQUE (workflow_id, instance_id, run_id, workflow_uuid)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_instance(row: sqlite3.Row) -> WorkflowInstance:
        return WorkflowInstance(
            workflow_id=row["workflow_id"],
            workflow_instance_id=row["instance_id"],
            workflow_run_id=row["run_id"],
            workflow_uuid=row["workflow_uuid"],
            execution_id=row["execution_id"],
            status=WorkflowInstanceStatus(row["status"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def create_instance(self, instance: WorkflowInstance) -> None:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflow_instances ({_INSTANCE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            instance.workflow_id,
            instance.workflow_instance_id,
            instance.workflow_run_id,
            instance.workflow_uuid,
            instance.execution_id,
            instance.status.value,
        )

    async def get_instance_run(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances "
            "WHERE workflow_id = ? AND instance_id = ? AND run_id = ?",
            workflow_id,
            instance_id,
            run_id,
        )
        return self._to_instance(row) if row else None

    async def get_instance_status(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstanceStatus | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT status FROM workflow_instances "
            "WHERE workflow_id = ? AND instance_id = ? AND run_id = ?",
            workflow_id,
            instance_id,
            run_id,
        )
        return WorkflowInstanceStatus(row["status"]) if row else None

    async def update_instance_status(
        self,
        workflow_id: str,
        instance_id: int,
        run_id: int,
        status: WorkflowInstanceStatus,
    ) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_instances SET status = ? "
            "WHERE workflow_id = ? AND instance_id = ? AND run_id = ?",
            status.value,
            workflow_id,
            instance_id,
            run_id,
        )
        if not updated:
            raise NotFoundError(
                f"Workflow instance [{workflow_id}:{instance_id}:{run_id}] not found"
            )

    async def list_instances(
        self, workflow_id: str | None = None
    ) -> list[WorkflowInstance]:
        query = f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances"
        params: tuple[Any, ...] = ()
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params = (workflow_id,)
        query += " ORDER BY workflow_id, instance_id, run_id"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [self._to_instance(row) for row in rows]

    async def terminate(
        self,
        instance: WorkflowInstance,
        user: User,
        action: InstanceAction,
        reason: str,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            f"INSERT OR IGNORE INTO termination_requests ({_REQUEST_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            instance.workflow_id,
            instance.workflow_instance_id,
            instance.workflow_run_id,
            instance.workflow_uuid,
            action.value,
            user.name,
            reason,
            datetime.now(timezone.utc).isoformat(),
        )

    async def list_termination_requests(
        self, workflow_id: str | None = None
    ) -> list[TerminationRequest]:
        query = f"SELECT {_REQUEST_COLUMNS} FROM termination_requests"
        params: tuple[Any, ...] = ()
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params = (workflow_id,)
        query += " ORDER BY id"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [
            TerminationRequest(
                workflow_id=r["workflow_id"],
                workflow_instance_id=r["instance_id"],
                workflow_run_id=r["run_id"],
                workflow_uuid=r["workflow_uuid"],
                action=InstanceAction(r["action"]),
                user=r["user_name"],
                reason=r["reason"],
                requested_at=datetime.fromisoformat(r["requested_at"]),
            )
            for r in rows
        ]
