from .models import StepTaskRecord, WorkflowSummaryRecord
from .task_db import TaskDB

__all__ = [
    "StepTaskRecord",
    "WorkflowSummaryRecord",
    "TaskDB",
]
