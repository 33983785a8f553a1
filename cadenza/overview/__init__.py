"""Step status aggregation and progress evaluation."""

from __future__ import annotations

from .aggregator import compute_overview, to_step_status_map
from .models import (
    CountReference,
    WorkflowRollupOverview,
    WorkflowRuntimeOverview,
    WorkflowStepStatusSummary,
)
from .progress import check_progress
from .summary import (
    RestartConfig,
    StepRuntimeState,
    StepRuntimeSummary,
    StepTransition,
    WorkflowSummary,
)
from .tasks import (
    get_all_step_output_data,
    get_task_map,
    get_user_defined_real_task_map,
    is_real_task,
    is_user_defined_real_task,
    is_user_defined_task,
)

__all__ = [
    "CountReference",
    "RestartConfig",
    "StepRuntimeState",
    "StepRuntimeSummary",
    "StepTransition",
    "WorkflowRollupOverview",
    "WorkflowRuntimeOverview",
    "WorkflowStepStatusSummary",
    "WorkflowSummary",
    "check_progress",
    "compute_overview",
    "get_all_step_output_data",
    "get_task_map",
    "get_user_defined_real_task_map",
    "is_real_task",
    "is_user_defined_real_task",
    "is_user_defined_task",
    "to_step_status_map",
]
