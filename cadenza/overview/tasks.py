"""Classification of task records into real, user-defined steps."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from ..constants import DEFAULT_TASK_CONVENTIONS, TaskConventions
from ..errors import InternalError
from ..models import StepStatus, StepTask
from .summary import StepRuntimeState, StepRuntimeSummary


def is_user_defined_task(
    task: StepTask, conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> bool:
    """Whether ``task`` is the engine's own step-execution task."""
    return task.task_type == conventions.task_type


def is_real_task(
    task: StepTask, conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> bool:
    """Whether ``task`` is a real step attempt.

    A negative sequence number marks an internal retry placeholder. A task
    whose runtime summary is still NOT_CREATED is a restart placeholder. A
    task without any runtime summary yet is real: it is scheduled but the
    step logic has not reported back.
    """
    if task.seq < 0:
        return False
    raw = task.output_data.get(conventions.runtime_summary_field)
    if raw is None:
        return True
    state = _parse(StepRuntimeState, _field(raw, "runtime_state") or {}, task)
    return state.status is not StepStatus.NOT_CREATED


def is_user_defined_real_task(
    task: StepTask, conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> bool:
    return is_user_defined_task(task, conventions) and is_real_task(task, conventions)


def get_task_map(
    tasks: Iterable[StepTask], conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> Dict[str, StepTask]:
    """Map reference names to the latest user-defined task."""
    return {
        task.reference_name: task
        for task in tasks
        if is_user_defined_task(task, conventions)
    }


def get_user_defined_real_task_map(
    tasks: Iterable[StepTask], conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> Dict[str, StepTask]:
    """Map reference names to the latest real user-defined task."""
    return {
        task.reference_name: task
        for task in tasks
        if is_user_defined_real_task(task, conventions)
    }


def get_all_step_output_data(
    tasks: Iterable[StepTask], conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> Dict[str, Dict[str, Any]]:
    return {
        ref: task.output_data for ref, task in get_task_map(tasks, conventions).items()
    }


def retrieve_runtime_summary(
    task: StepTask, conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> Optional[StepRuntimeSummary]:
    """Parse the runtime summary of ``task``; ``None`` if it has none yet."""
    raw = task.output_data.get(conventions.runtime_summary_field)
    if raw is None:
        return None
    return _parse(StepRuntimeSummary, raw, task)


def retrieve_runtime_state(
    task: StepTask, conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS
) -> StepRuntimeState:
    """Latest runtime state of ``task``; NOT_CREATED if it never ran."""
    summary = retrieve_runtime_summary(task, conventions)
    if summary is None:
        return StepRuntimeState()
    return summary.runtime_state


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def _parse(model: Any, raw: Any, task: StepTask) -> Any:
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise InternalError(
            f"Invalid runtime summary for step [{task.reference_name}]: {exc}"
        ) from exc
