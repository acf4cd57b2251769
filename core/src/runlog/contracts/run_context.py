from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeAlias


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class FlowRunContext:
    """
    Identity of one executing flow run.

    Keep this stable: log records and sinks only depend on these fields.
    """

    flow_run_id: str
    flow_run_name: str
    flow_name: str
    parent_run_id: str | None = None
    log_prints: bool = False
    start_time: datetime = field(default_factory=_utcnow)
    _task_counter: itertools.count = field(
        default_factory=itertools.count, repr=False, compare=False
    )

    @property
    def run_id(self) -> str:
        return self.flow_run_id

    @property
    def run_name(self) -> str:
        return self.flow_run_name

    def next_task_index(self) -> int:
        return next(self._task_counter)

    def log_fields(self) -> dict[str, str]:
        return {
            "flow_run_id": self.flow_run_id,
            "flow_run_name": self.flow_run_name,
            "flow_name": self.flow_name,
        }


@dataclass(frozen=True, slots=True)
class TaskRunContext:
    """Identity of one executing task run, linked to its nearest flow run."""

    task_run_id: str
    task_run_name: str
    task_name: str
    flow_run: FlowRunContext | None = None
    parent_run_id: str | None = None
    log_prints: bool = False
    start_time: datetime = field(default_factory=_utcnow)

    @property
    def run_id(self) -> str:
        return self.task_run_id

    @property
    def run_name(self) -> str:
        return self.task_run_name

    def log_fields(self) -> dict[str, str]:
        fields = {
            "task_run_id": self.task_run_id,
            "task_run_name": self.task_run_name,
            "task_name": self.task_name,
        }
        if self.flow_run is not None:
            fields.update(self.flow_run.log_fields())
        return fields


RunContext: TypeAlias = FlowRunContext | TaskRunContext

FLOW_RUN_FIELDS = ("flow_run_id", "flow_run_name", "flow_name")
TASK_RUN_FIELDS = ("task_run_id", "task_run_name", "task_name")
RUN_FIELDS = TASK_RUN_FIELDS + FLOW_RUN_FIELDS
