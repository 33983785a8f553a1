"""Derived overview snapshots of a workflow instance."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models import StepStatus

V = TypeVar("V")

# statuses whose contributing steps are not tracked by reference
_UNREFERENCED_STATUSES = frozenset({StepStatus.SUCCEEDED, StepStatus.SKIPPED})


def sort_by_status(values: Mapping[StepStatus, V]) -> Dict[StepStatus, V]:
    """Return ``values`` ordered by status declaration order."""
    return {status: values[status] for status in sorted(values, key=lambda s: s.ordinal)}


class WorkflowStepStatusSummary(BaseModel):
    """Steps sharing one status.

    Each entry of ``steps`` is ``[ordinal, start_time, end_time]`` where the
    ordinal is the 1-based position of the step in the runtime DAG.
    """

    model_config = ConfigDict(frozen=True)

    cnt: int = 0
    steps: List[List[Optional[int]]] = Field(default_factory=list)

    @classmethod
    def of_steps(cls, steps: Iterable[List[Optional[int]]]) -> "WorkflowStepStatusSummary":
        ordered = sorted(
            steps, key=lambda s: (s[0] is None, s[0] if s[0] is not None else 0)
        )
        return cls(cnt=len(ordered), steps=ordered)


class CountReference(BaseModel):
    """Leaf count for one status, with the contributing step references."""

    model_config = ConfigDict(frozen=True)

    cnt: int = 0
    ref: Optional[Dict[str, List[str]]] = None

    def aggregate(self, other: "CountReference") -> "CountReference":
        merged: Optional[Dict[str, List[str]]] = None
        if self.ref or other.ref:
            collected: Dict[str, List[str]] = {}
            for source in (self.ref or {}, other.ref or {}):
                for key, values in source.items():
                    collected.setdefault(key, []).extend(values)
            merged = {key: sorted(collected[key]) for key in sorted(collected)}
        return CountReference(cnt=self.cnt + other.cnt, ref=merged)


class WorkflowRollupOverview(BaseModel):
    """Recursive rollup of leaf-step outcomes.

    Foreach and subworkflow steps contribute the rollup of their own leaves,
    so ``total_leaf_count`` always equals the sum of the per-status counts.
    """

    model_config = ConfigDict(frozen=True)

    total_leaf_count: int = 0
    overview: Dict[StepStatus, CountReference] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_leaf_count(self) -> "WorkflowRollupOverview":
        counted = sum(ref.cnt for ref in self.overview.values())
        if counted != self.total_leaf_count:
            raise ValueError(
                f"total_leaf_count [{self.total_leaf_count}] does not match "
                f"the sum of status counts [{counted}]"
            )
        return self

    @classmethod
    def of_leaf(
        cls, status: StepStatus, identity: str, step_reference: str
    ) -> "WorkflowRollupOverview":
        """Rollup of a single leaf step."""
        ref = None
        if status not in _UNREFERENCED_STATUSES:
            ref = {identity: [step_reference]}
        return cls(total_leaf_count=1, overview={status: CountReference(cnt=1, ref=ref)})

    def aggregate(self, other: "WorkflowRollupOverview") -> "WorkflowRollupOverview":
        merged = dict(self.overview)
        for status, count in other.overview.items():
            merged[status] = merged[status].aggregate(count) if status in merged else count
        return WorkflowRollupOverview(
            total_leaf_count=self.total_leaf_count + other.total_leaf_count,
            overview=sort_by_status(merged),
        )


class WorkflowRuntimeOverview(BaseModel):
    """Snapshot of step statuses of one workflow instance."""

    model_config = ConfigDict(frozen=True)

    total_step_count: int = 0
    step_overview: Dict[StepStatus, WorkflowStepStatusSummary] = Field(
        default_factory=dict
    )
    rollup_overview: WorkflowRollupOverview = Field(
        default_factory=WorkflowRollupOverview
    )

    def _created_count(self) -> int:
        return sum(
            summary.cnt
            for status, summary in self.step_overview.items()
            if status is not StepStatus.NOT_CREATED
        )

    def exists_created_step(self) -> bool:
        return self._created_count() > 0

    def exists_not_created_step(self) -> bool:
        return self._created_count() < self.total_step_count
