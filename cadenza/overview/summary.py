"""Workflow definition context and step runtime payloads."""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..errors import InternalError
from ..models import FailureMode, StepStatus
from .models import WorkflowRollupOverview


class StepTransition(BaseModel):
    """Edges and failure handling of one step in the runtime DAG."""

    predecessors: List[str] = Field(default_factory=list)
    successors: List[str] = Field(default_factory=list)
    failure_mode: FailureMode = FailureMode.FAIL_AFTER_RUNNING


class RestartConfig(BaseModel):
    """Restart context of a run.

    ``skip_steps`` are carried over from the previous run. Their task records
    may still show up, but they are not part of this run's progress. Steps
    upstream of ``restart_from`` are not executed again.
    """

    restart_from: Optional[str] = None
    skip_steps: List[str] = Field(default_factory=list)


class WorkflowSummary(BaseModel):
    """DAG and identity of the workflow instance being evaluated."""

    workflow_id: Optional[str] = None
    workflow_instance_id: int = 0
    workflow_run_id: int = 0
    workflow_uuid: Optional[str] = None
    runtime_dag: Dict[str, StepTransition] = Field(default_factory=dict)
    restart_config: Optional[RestartConfig] = None

    @property
    def identity(self) -> str:
        return f"{self.workflow_id}:{self.workflow_instance_id}:{self.workflow_run_id}"

    @property
    def total_step_count(self) -> int:
        return len(self.runtime_dag)

    def is_excluded(self, step_id: str) -> bool:
        return self.restart_config is not None and step_id in self.restart_config.skip_steps

    def transition(self, step_id: str) -> StepTransition:
        try:
            return self.runtime_dag[step_id]
        except KeyError:
            raise InternalError(
                f"Step [{step_id}] is referenced but missing from the runtime DAG "
                f"of workflow [{self.identity}]"
            ) from None

    def failure_mode(self, step_id: str) -> FailureMode:
        return self.transition(step_id).failure_mode

    def step_ordinals(self) -> Dict[str, int]:
        """1-based position of every step in the runtime DAG."""
        return {step_id: index for index, step_id in enumerate(self.runtime_dag, start=1)}

    def carried_over_steps(self) -> Set[str]:
        """Upstream steps of the restart step, which this run does not execute."""
        restart_from = self.restart_config.restart_from if self.restart_config else None
        if restart_from not in self.runtime_dag:
            return set()
        carried: Set[str] = set()
        pending = list(self.runtime_dag[restart_from].predecessors)
        while pending:
            step_id = pending.pop()
            if step_id in carried or step_id not in self.runtime_dag:
                continue
            carried.add(step_id)
            pending.extend(self.runtime_dag[step_id].predecessors)
        return carried

    def root_steps(self) -> List[str]:
        """Steps with no predecessor inside this run."""
        return [
            step_id
            for step_id, transition in self.runtime_dag.items()
            if not any(p in self.runtime_dag for p in transition.predecessors)
        ]


class StepRuntimeState(BaseModel):
    """Latest runtime status and timing of a step."""

    status: StepStatus = StepStatus.NOT_CREATED
    start_time: Optional[int] = None
    end_time: Optional[int] = None


class StepRuntimeSummary(BaseModel):
    """Structured output written by a step-execution task."""

    step_id: Optional[str] = None
    step_attempt_id: int = 1
    type: str
    runtime_state: StepRuntimeState
    rollup_overview: Optional[WorkflowRollupOverview] = None
