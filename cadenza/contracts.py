"""Job events exchanged between the lifecycle controller and its pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import InstanceAction, InstanceRunUuid, User


class TerminateThenRunJobEvent(BaseModel):
    """Terminate a set of runs, then start the run-after run if there is one.

    ``instance_run_uuids`` are terminated unconditionally. ``run_after`` is only
    published once every one of them has reached a terminal status.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["TERMINATE_THEN_RUN"] = "TERMINATE_THEN_RUN"
    workflow_id: str
    action: InstanceAction
    user: User
    reason: str
    instance_run_uuids: Tuple[InstanceRunUuid, ...] = ()
    run_after: Optional[InstanceRunUuid] = None

    @classmethod
    def init(
        cls,
        workflow_id: str,
        action: InstanceAction,
        user: User,
        reason: str,
    ) -> "TerminateThenRunJobEventBuilder":
        """Start building an event; call ``build()`` once all runs are added."""
        return TerminateThenRunJobEventBuilder(workflow_id, action, user, reason)

    @property
    def identity(self) -> str:
        return f"[{self.workflow_id}][{self.action.value}]"


class TerminateThenRunJobEventBuilder:
    """Accumulates runs for a :class:`TerminateThenRunJobEvent`."""

    def __init__(
        self, workflow_id: str, action: InstanceAction, user: User, reason: str
    ) -> None:
        self._workflow_id = workflow_id
        self._action = action
        self._user = user
        self._reason = reason
        self._runs: List[InstanceRunUuid] = []
        self._run_after: Optional[InstanceRunUuid] = None

    def add_one_run(self, run: InstanceRunUuid) -> "TerminateThenRunJobEventBuilder":
        """Add a run to terminate. Adding the same run twice keeps one entry."""
        if run not in self._runs:
            self._runs.append(run)
        return self

    def add_run_after(
        self, instance_id: int, run_id: int, uuid: str
    ) -> "TerminateThenRunJobEventBuilder":
        """Set the run to start once all added runs are terminal."""
        self._run_after = InstanceRunUuid(
            instance_id=instance_id, run_id=run_id, uuid=uuid
        )
        return self

    def build(self) -> TerminateThenRunJobEvent:
        return TerminateThenRunJobEvent(
            workflow_id=self._workflow_id,
            action=self._action,
            user=self._user,
            reason=self._reason,
            instance_run_uuids=tuple(self._runs),
            run_after=self._run_after,
        )


class RunInstancesJobEvent(BaseModel):
    """Start the listed workflow-instance runs."""

    model_config = ConfigDict(frozen=True)

    type: Literal["RUN_INSTANCES"] = "RUN_INSTANCES"
    workflow_id: str
    instance_run_uuids: Tuple[InstanceRunUuid, ...] = ()

    @classmethod
    def of(cls, workflow_id: str, *runs: InstanceRunUuid) -> "RunInstancesJobEvent":
        return cls(workflow_id=workflow_id, instance_run_uuids=tuple(runs))


JobEvent = Annotated[
    Union[TerminateThenRunJobEvent, RunInstancesJobEvent],
    Field(discriminator="type"),
]


class JobMessage(BaseModel):
    """Envelope exchanged over the transport."""

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt: int = 1
    event: JobEvent
    spec_version: str = "1.0"

    def to_json(self) -> str:
        """Serialize message to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "JobMessage":
        """Deserialize message from JSON."""
        return cls.model_validate_json(data)

    def next_attempt(self) -> "JobMessage":
        """Copy of this message for redelivery."""
        return self.model_copy(
            update={
                "attempt": self.attempt + 1,
                "timestamp": datetime.now(timezone.utc),
            }
        )
