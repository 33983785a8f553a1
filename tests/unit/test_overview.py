"""Tests for step status aggregation."""

import pytest
from pydantic import ValidationError

from cadenza.models import StepStatus, TaskStatus
from cadenza.overview import (
    CountReference,
    WorkflowRollupOverview,
    WorkflowStepStatusSummary,
    compute_overview,
    get_user_defined_real_task_map,
)


def test_compute_overview_groups_steps_by_status(load_summary, make_task):
    summary = load_summary("sample-wf-summary-params")
    tasks = [
        make_task("job3", StepStatus.SUCCEEDED, start_time=100, end_time=200),
        make_task("job1", StepStatus.RUNNING, TaskStatus.IN_PROGRESS, start_time=150),
        make_task("job.2", task_status=TaskStatus.SCHEDULED),
    ]

    overview = compute_overview(summary, None, get_user_defined_real_task_map(tasks))

    assert overview.total_step_count == 4
    assert list(overview.step_overview) == [StepStatus.RUNNING, StepStatus.SUCCEEDED]
    assert overview.step_overview[StepStatus.RUNNING] == WorkflowStepStatusSummary(
        cnt=1, steps=[[2, 150, None]]
    )
    assert overview.step_overview[StepStatus.SUCCEEDED].steps == [[1, 100, 200]]

    rollup = overview.rollup_overview
    assert rollup.total_leaf_count == 2
    assert rollup.overview[StepStatus.SUCCEEDED] == CountReference(cnt=1)
    assert rollup.overview[StepStatus.RUNNING].ref == {
        "sample-minimal-wf:1:1": ["job1:1"]
    }
    assert overview.exists_created_step()
    assert overview.exists_not_created_step()


def test_compute_overview_rolls_up_container_steps(load_summary, make_task):
    summary = load_summary("sample-wf-summary-params")
    inner = {
        "total_leaf_count": 3,
        "overview": {
            "SUCCEEDED": {"cnt": 2},
            "FATALLY_FAILED": {"cnt": 1, "ref": {"inner-wf:1:1": ["step-x:1"]}},
        },
    }
    tasks = [
        make_task("job3", StepStatus.FATALLY_FAILED, TaskStatus.FAILED),
        make_task("job1", StepStatus.FATALLY_FAILED, step_type="FOREACH", rollup=inner),
    ]

    overview = compute_overview(summary, None, get_user_defined_real_task_map(tasks))

    rollup = overview.rollup_overview
    assert rollup.total_leaf_count == 4
    assert rollup.overview[StepStatus.SUCCEEDED].cnt == 2
    failed = rollup.overview[StepStatus.FATALLY_FAILED]
    assert failed.cnt == 2
    assert failed.ref == {
        "inner-wf:1:1": ["step-x:1"],
        "sample-minimal-wf:1:1": ["job3:1"],
    }
    assert overview.step_overview[StepStatus.FATALLY_FAILED].cnt == 2


def test_compute_overview_merges_rollup_base(load_summary, make_task):
    summary = load_summary("sample-wf-summary-params")
    base = WorkflowRollupOverview.of_leaf(
        StepStatus.SUCCEEDED, "sample-minimal-wf:1:0", "job3:1"
    )
    tasks = [make_task("job1", StepStatus.SUCCEEDED)]

    overview = compute_overview(summary, base, get_user_defined_real_task_map(tasks))

    assert overview.rollup_overview.total_leaf_count == 2
    assert overview.rollup_overview.overview[StepStatus.SUCCEEDED].cnt == 2


def test_compute_overview_skips_restart_excluded_steps(load_summary, make_task):
    summary = load_summary("sample-wf-summary-restart")
    tasks = [
        make_task("job1", StepStatus.FATALLY_FAILED, TaskStatus.FAILED),
        make_task("job.2", StepStatus.RUNNING, TaskStatus.IN_PROGRESS),
    ]

    overview = compute_overview(summary, None, get_user_defined_real_task_map(tasks))

    assert list(overview.step_overview) == [StepStatus.RUNNING]
    assert overview.rollup_overview.total_leaf_count == 1


def test_rollup_requires_consistent_leaf_count():
    with pytest.raises(ValidationError):
        WorkflowRollupOverview(
            total_leaf_count=2,
            overview={StepStatus.SUCCEEDED: CountReference(cnt=1)},
        )


def test_step_status_summary_orders_by_ordinal():
    summary = WorkflowStepStatusSummary.of_steps([[3, 1, 2], [None, 5, 6], [1, 3, 4]])
    assert summary.cnt == 3
    assert summary.steps == [[1, 3, 4], [3, 1, 2], [None, 5, 6]]
