"""Evaluate workflow-instance progress from stored tasks."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from ..constants import DEFAULT_TASK_CONVENTIONS, TaskConventions
from ..db.task_db import TaskDB
from ..errors import NotFoundError
from ..models import TaskStatus
from .aggregator import compute_overview
from .models import WorkflowRollupOverview, WorkflowRuntimeOverview
from .progress import check_progress
from .tasks import get_user_defined_real_task_map

logger = logging.getLogger(__name__)


class ProgressReport(BaseModel):
    overview: WorkflowRuntimeOverview
    status: Optional[TaskStatus] = None

    @property
    def is_final(self) -> bool:
        return self.status is not None


class ProgressService:
    """Loads a run's tasks and summary and evaluates its progress."""

    def __init__(
        self,
        task_db: TaskDB,
        conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS,
    ) -> None:
        self.task_db = task_db
        self.conventions = conventions

    async def evaluate(
        self,
        workflow_id: str,
        instance_id: int,
        run_id: int,
        is_strict: bool = False,
        rollup_base: Optional[WorkflowRollupOverview] = None,
    ) -> ProgressReport:
        summary = await self.task_db.get_summary(workflow_id, instance_id, run_id)
        if summary is None:
            raise NotFoundError(
                f"No workflow summary for [{workflow_id}:{instance_id}:{run_id}]"
            )
        tasks = await self.task_db.list_tasks(workflow_id, instance_id, run_id)
        real_task_map = get_user_defined_real_task_map(tasks, self.conventions)
        overview = compute_overview(summary, rollup_base, real_task_map, self.conventions)
        status = check_progress(
            real_task_map, summary, overview, is_strict, self.conventions
        )
        logger.info(
            f"Workflow [{summary.identity}] progress: "
            f"{status.value if status else 'in progress'}"
        )
        return ProgressReport(overview=overview, status=status)
