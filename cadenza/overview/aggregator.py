"""Step status aggregation for a workflow instance."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from ..constants import CONTAINER_STEP_TYPES, DEFAULT_TASK_CONVENTIONS, TaskConventions
from ..models import StepStatus, StepTask
from .models import (
    WorkflowRollupOverview,
    WorkflowRuntimeOverview,
    WorkflowStepStatusSummary,
    sort_by_status,
)
from .summary import StepRuntimeState, StepRuntimeSummary, WorkflowSummary
from .tasks import retrieve_runtime_summary

logger = logging.getLogger(__name__)


def to_step_status_map(
    summary: WorkflowSummary, states: Mapping[str, StepRuntimeState]
) -> Dict[StepStatus, WorkflowStepStatusSummary]:
    """Group step states by status, skipping steps that were never created."""
    ordinals = summary.step_ordinals()
    grouped: Dict[StepStatus, List[List[Optional[int]]]] = {}
    for step_id, state in states.items():
        if state.status is StepStatus.NOT_CREATED:
            continue
        grouped.setdefault(state.status, []).append(
            [ordinals.get(step_id), state.start_time, state.end_time]
        )
    return sort_by_status(
        {
            status: WorkflowStepStatusSummary.of_steps(steps)
            for status, steps in grouped.items()
        }
    )


def step_rollup(
    summary: WorkflowSummary, step_summary: StepRuntimeSummary, step_id: str
) -> WorkflowRollupOverview:
    """Leaf rollup contributed by one step.

    Container steps report the rollup of their own leaves; a container that
    has not reported one yet contributes nothing.
    """
    if step_summary.type in CONTAINER_STEP_TYPES:
        return step_summary.rollup_overview or WorkflowRollupOverview()
    return WorkflowRollupOverview.of_leaf(
        step_summary.runtime_state.status,
        summary.identity,
        f"{step_summary.step_id or step_id}:{step_summary.step_attempt_id}",
    )


def compute_overview(
    summary: WorkflowSummary,
    rollup_base: Optional[WorkflowRollupOverview],
    real_task_map: Mapping[str, StepTask],
    conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS,
) -> WorkflowRuntimeOverview:
    """Build the runtime overview of a workflow instance.

    Args:
        summary: Runtime DAG and identity of the instance.
        rollup_base: Rollup carried over from earlier runs, e.g. for steps
            skipped by a restart. Merged into the computed rollup.
        real_task_map: Latest real task per step reference name.
        conventions: Task-type tag and payload key of step-execution tasks.

    Returns:
        The per-status step overview together with the recursive rollup.
    """
    states: Dict[str, StepRuntimeState] = {}
    rollup = rollup_base or WorkflowRollupOverview()
    for step_id, task in real_task_map.items():
        if summary.is_excluded(step_id):
            logger.debug(
                f"Skipping step [{step_id}] excluded by restart of workflow [{summary.identity}]"
            )
            continue
        step_summary = retrieve_runtime_summary(task, conventions)
        if step_summary is None:
            states[step_id] = StepRuntimeState()
            continue
        states[step_id] = step_summary.runtime_state
        if step_summary.runtime_state.status is not StepStatus.NOT_CREATED:
            rollup = rollup.aggregate(step_rollup(summary, step_summary, step_id))

    return WorkflowRuntimeOverview(
        total_step_count=summary.total_step_count,
        step_overview=to_step_status_map(summary, states),
        rollup_overview=rollup,
    )
