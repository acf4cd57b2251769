"""
Registry of the run context active in the current execution unit.

Backed by a ``ContextVar``: asyncio tasks inherit a copy of the context of the
code that created them, new threads start empty. Work handed to a thread must
carry the context explicitly (see ``copy_run_context``).
"""

from __future__ import annotations

import contextvars
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from runlog.contracts.run_context import FlowRunContext, RunContext, TaskRunContext

T = TypeVar("T")

_current_run: contextvars.ContextVar[RunContext | None] = contextvars.ContextVar(
    "runlog_current_run", default=None
)

RunToken = contextvars.Token


def push(context: RunContext) -> RunToken:
    """Install ``context`` as current for this execution unit and its descendants."""
    return _current_run.set(context)


def pop(token: RunToken) -> None:
    """Restore the context that was current before the matching ``push``."""
    _current_run.reset(token)


def current() -> RunContext | None:
    return _current_run.get()


def current_flow_run() -> FlowRunContext | None:
    context = current()
    if isinstance(context, TaskRunContext):
        return context.flow_run
    return context


def current_task_run() -> TaskRunContext | None:
    context = current()
    return context if isinstance(context, TaskRunContext) else None


@contextmanager
def enter_run(context: RunContext) -> Iterator[RunContext]:
    token = push(context)
    try:
        yield context
    finally:
        pop(token)


def copy_run_context(fn: Callable[..., T]) -> Callable[..., T]:
    """Bind ``fn`` to a snapshot of the caller's context, for use on another thread."""
    snapshot = contextvars.copy_context()

    def run(*args: Any, **kwargs: Any) -> T:
        return snapshot.run(fn, *args, **kwargs)

    return run
