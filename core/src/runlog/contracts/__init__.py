from .run_context import (
    FLOW_RUN_FIELDS,
    RUN_FIELDS,
    TASK_RUN_FIELDS,
    FlowRunContext,
    RunContext,
    TaskRunContext,
)
from .tracking import RunStatus, TrackingClient

__all__ = [
    "FlowRunContext",
    "TaskRunContext",
    "RunContext",
    "FLOW_RUN_FIELDS",
    "TASK_RUN_FIELDS",
    "RUN_FIELDS",
    "TrackingClient",
    "RunStatus",
]
