"""Runtime helpers for run execution."""

from runlog.runtime.context import (
    copy_run_context,
    current,
    current_flow_run,
    current_task_run,
    enter_run,
    pop,
    push,
)
from runlog.runtime.names import generate_run_name
from runlog.runtime.paths import log_dir_candidates, resolve_log_file
from runlog.runtime.prints import print_capture, resolve_log_prints

__all__ = [
    "push",
    "pop",
    "current",
    "current_flow_run",
    "current_task_run",
    "enter_run",
    "copy_run_context",
    "generate_run_name",
    "log_dir_candidates",
    "resolve_log_file",
    "print_capture",
    "resolve_log_prints",
]
