"""Well-known names shared between the task runtime and the controller."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

STEP_TASK_TYPE = "CADENZA_TASK"
STEP_RUNTIME_SUMMARY_FIELD = "cadenza_step_runtime_summary"

DEFAULT_TERMINATE_TOPIC = "cadenza.terminate-then-run"
DEFAULT_RUN_TOPIC = "cadenza.run-instances"
DEFAULT_DEAD_LETTER_TOPIC = "cadenza.deadletter"
DEFAULT_MAX_ATTEMPTS = 10

# step types whose leaves are rolled up from their own runtime summary
CONTAINER_STEP_TYPES = frozenset({"FOREACH", "SUBWORKFLOW"})


class TaskConventions(BaseModel):
    """Task-type tag and payload key used to recognise step-execution tasks.

    Passed explicitly to the aggregator and the progress evaluator so that a
    deployment with a different task runtime naming can be evaluated without
    touching module state.
    """

    model_config = ConfigDict(frozen=True)

    task_type: str = STEP_TASK_TYPE
    runtime_summary_field: str = STEP_RUNTIME_SUMMARY_FIELD


DEFAULT_TASK_CONVENTIONS = TaskConventions()
