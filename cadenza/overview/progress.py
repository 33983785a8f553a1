"""Decide whether a workflow instance reached a terminal status."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Mapping, Optional, Set

from ..constants import DEFAULT_TASK_CONVENTIONS, TaskConventions
from ..errors import InvalidDagStateError
from ..models import FailureMode, StepStatus, StepTask, TaskStatus
from .models import WorkflowRuntimeOverview
from .summary import StepRuntimeState, WorkflowSummary
from .tasks import retrieve_runtime_state

logger = logging.getLogger(__name__)


def check_progress(
    real_task_map: Mapping[str, StepTask],
    summary: WorkflowSummary,
    overview: WorkflowRuntimeOverview,
    is_strict: bool,
    conventions: TaskConventions = DEFAULT_TASK_CONVENTIONS,
) -> Optional[TaskStatus]:
    """Return the terminal status of the instance, or ``None`` if not final.

    Strict evaluation is for callers allowed to end the workflow: a retryable
    step failure counts as final once every task is terminal, and a step the
    DAG does not know about raises :class:`InvalidDagStateError`. Relaxed
    evaluation treats retryable failures as still in flight and reports
    unknown steps as FAILED without raising. In both modes a known step that
    ran although the DAG could not have started it yet is a terminal error.
    """
    states: Dict[str, StepRuntimeState] = {
        step_id: retrieve_runtime_state(task, conventions)
        for step_id, task in real_task_map.items()
        if not summary.is_excluded(step_id)
    }

    unknown = sorted(step_id for step_id in states if step_id not in summary.runtime_dag)
    if unknown:
        message = f"Invalid state: stepId {unknown} should not have any status"
        if is_strict:
            raise InvalidDagStateError(message)
        logger.warning(f"{message} in workflow [{summary.identity}], marking it as failed")
        return TaskStatus.FAILED

    all_terminal = is_strict and all(
        real_task_map[step_id].status.is_terminal for step_id in states
    )

    for step_id, state in states.items():
        if (
            state.status.is_failure
            and summary.failure_mode(step_id) is FailureMode.FAIL_IMMEDIATELY
            and (not state.status.is_retryable or all_terminal)
        ):
            logger.info(
                f"Step [{step_id}] of workflow [{summary.identity}] failed with "
                f"[{state.status.value}] and fails the workflow immediately"
            )
            return TaskStatus.FAILED_WITH_TERMINAL_ERROR

    all_done = True
    is_failed = False
    is_timeout = False
    is_stopped = False
    for step_id, state in states.items():
        status = state.status
        if status is StepStatus.NOT_CREATED:
            continue
        if not status.is_terminal or (status.is_retryable and not all_terminal):
            all_done = False
            break
        if status.is_failure:
            if summary.failure_mode(step_id) is not FailureMode.IGNORE_FAILURE:
                is_failed = True
        elif status is StepStatus.TIMED_OUT:
            is_timeout = True
        elif status is StepStatus.STOPPED:
            is_stopped = True

    if all_done and overview.exists_not_created_step():
        try:
            all_done = _confirm_done(states, summary)
        except InvalidDagStateError as exc:
            logger.warning(
                f"{exc.message} in workflow [{summary.identity}], "
                "failing it with a terminal error"
            )
            return TaskStatus.FAILED_WITH_TERMINAL_ERROR

    if all_done and not (is_failed or is_timeout or is_stopped):
        if not overview.exists_created_step():
            logger.warning(
                f"There are no created steps in workflow [{summary.identity}], "
                "marking it as failed"
            )
            is_failed = True

    logger.debug(
        f"Progress of workflow [{summary.identity}]: all_done={all_done}, "
        f"failed={is_failed}, timed_out={is_timeout}, stopped={is_stopped}"
    )
    if not all_done:
        return None
    if is_failed:
        return TaskStatus.FAILED
    if is_timeout:
        return TaskStatus.TIMED_OUT
    if is_stopped:
        return TaskStatus.CANCELED
    return TaskStatus.COMPLETED


def _confirm_done(states: Mapping[str, StepRuntimeState], summary: WorkflowSummary) -> bool:
    """Whether no not-yet-created step can still be reached.

    Walks the runtime DAG from its roots through steps that let their
    successors run. Reaching a step that has not been created means the
    instance still has work to do. A step carrying a status that the walk
    cannot reach, or that sits upstream of the restart step, could not have
    run and raises :class:`InvalidDagStateError`.
    """
    carried = summary.carried_over_steps()
    ran_early = sorted(
        step_id
        for step_id, state in states.items()
        if step_id in carried and state.status is not StepStatus.NOT_CREATED
    )
    if ran_early:
        raise InvalidDagStateError(
            f"Invalid state: stepId {ran_early} should not run before restart step "
            f"[{summary.restart_config.restart_from}]"
        )

    passable: Set[str] = carried | {s for s in summary.runtime_dag if summary.is_excluded(s)}
    for step_id, state in states.items():
        if state.status.is_complete or (
            state.status.is_failure
            and summary.failure_mode(step_id) is FailureMode.IGNORE_FAILURE
        ):
            passable.add(step_id)

    def _satisfied(step_id: str) -> bool:
        return all(
            pred in passable or pred not in summary.runtime_dag
            for pred in summary.transition(step_id).predecessors
        )

    queue = deque(summary.root_steps())
    visited: Set[str] = set()
    done = True
    while queue:
        step_id = queue.popleft()
        if step_id in visited:
            continue
        visited.add(step_id)
        if step_id not in passable:
            state = states.get(step_id)
            if state is None or state.status is StepStatus.NOT_CREATED:
                done = False
            continue
        for successor in summary.transition(step_id).successors:
            if successor not in visited and _satisfied(successor):
                queue.append(successor)

    unreachable = sorted(
        step_id
        for step_id, state in states.items()
        if step_id not in visited and state.status is not StepStatus.NOT_CREATED
    )
    if unreachable:
        raise InvalidDagStateError(
            f"Invalid state: stepId {unreachable} ran before its predecessors completed"
        )
    return done
