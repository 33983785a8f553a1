import json
from pathlib import Path

import pytest

from cadenza.constants import STEP_RUNTIME_SUMMARY_FIELD, STEP_TASK_TYPE
from cadenza.models import StepStatus, StepTask, TaskStatus
from cadenza.overview.summary import WorkflowSummary

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def load_summary():
    def _load(name: str) -> WorkflowSummary:
        data = json.loads((FIXTURES / f"{name}.json").read_text())
        return WorkflowSummary.model_validate(data)

    return _load


@pytest.fixture
def make_task():
    def _make(
        ref: str,
        step_status: StepStatus | None = None,
        task_status: TaskStatus = TaskStatus.COMPLETED,
        seq: int = 1,
        step_type: str = "NOOP",
        start_time: int | None = None,
        end_time: int | None = None,
        rollup: dict | None = None,
    ) -> StepTask:
        output = {}
        if step_status is not None:
            summary = {
                "step_id": ref,
                "step_attempt_id": 1,
                "type": step_type,
                "runtime_state": {
                    "status": step_status.value,
                    "start_time": start_time,
                    "end_time": end_time,
                },
            }
            if rollup is not None:
                summary["rollup_overview"] = rollup
            output[STEP_RUNTIME_SUMMARY_FIELD] = summary
        return StepTask(
            reference_name=ref,
            task_type=STEP_TASK_TYPE,
            seq=seq,
            status=task_status,
            output_data=output,
        )

    return _make
