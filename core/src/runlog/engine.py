"""
Minimal flow/task execution engine.

The engine produces the run-start and run-end events the logging layer
consumes: it creates the run context, resolves ``log_prints`` once, pushes the
context, opens the print capture, logs lifecycle lines, and releases all of it
on every exit path (return, exception, cancellation).
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any

from runlog.contracts.run_context import FlowRunContext, RunContext, TaskRunContext
from runlog.contracts.tracking import RunStatus, TrackingClient
from runlog.logging_context import LoggingContext, get_logging_context
from runlog.loggers import get_run_logger
from runlog.runtime.context import copy_run_context, current, current_flow_run, enter_run
from runlog.runtime.names import generate_run_name
from runlog.runtime.prints import print_capture, resolve_log_prints

logger = logging.getLogger("runlog.engine")


class Flow:
    def __init__(
        self,
        fn: Callable[..., Any],
        *,
        name: str | None = None,
        flow_run_name: str | None = None,
        log_prints: bool | None = None,
        logging_context: LoggingContext | None = None,
    ) -> None:
        self.fn = fn
        self.name = name or fn.__name__.replace("_", "-")
        self.flow_run_name = flow_run_name
        self.log_prints = log_prints
        self.logging_context = logging_context
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if inspect.iscoroutinefunction(self.fn):
            return self._call_async(*args, **kwargs)
        with self._run_scope():
            return self.fn(*args, **kwargs)

    async def _call_async(self, *args: Any, **kwargs: Any) -> Any:
        with self._run_scope():
            return await self.fn(*args, **kwargs)

    @contextmanager
    def _run_scope(self) -> Iterator[FlowRunContext]:
        logging_context = self.logging_context or get_logging_context()
        parent = current()
        context = FlowRunContext(
            flow_run_id=str(uuid.uuid4()),
            flow_run_name=self.flow_run_name or generate_run_name(),
            flow_name=self.name,
            parent_run_id=parent.run_id if parent is not None else None,
            log_prints=resolve_log_prints(
                self.log_prints, parent, logging_context.settings.log_prints
            ),
        )

        with enter_run(context):
            run_logger = get_run_logger(context)
            run_logger.info(
                "Beginning flow run %r for flow %r", context.flow_run_name, context.flow_name
            )
            tracking = logging_context.tracking
            started_tracking = parent is None and _start_tracking(tracking, context)
            status: RunStatus = "failed"
            try:
                with print_capture(run_logger, context.log_prints):
                    yield context
            except Exception as exc:
                run_logger.error(
                    "Finished in state Failed(%r)",
                    f"Flow run encountered an exception: {type(exc).__name__}: {exc}",
                    exc_info=True,
                )
                raise
            except asyncio.CancelledError:
                status = "cancelled"
                run_logger.warning("Finished in state Cancelled()")
                raise
            except BaseException as exc:
                run_logger.error("Finished in state Crashed(%r)", type(exc).__name__)
                raise
            else:
                status = "completed"
                run_logger.info("Finished in state Completed()")
            finally:
                _persist_run_logs(logging_context, tracking, context)
                if started_tracking:
                    _end_tracking(tracking, context, status)


class Task:
    def __init__(
        self,
        fn: Callable[..., Any],
        *,
        name: str | None = None,
        task_run_name: str | None = None,
        log_prints: bool | None = None,
        logging_context: LoggingContext | None = None,
    ) -> None:
        self.fn = fn
        self.name = name or fn.__name__
        self.task_run_name = task_run_name
        self.log_prints = log_prints
        self.logging_context = logging_context
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if inspect.iscoroutinefunction(self.fn):
            return self._call_async(*args, **kwargs)
        with self._run_scope():
            return self.fn(*args, **kwargs)

    async def _call_async(self, *args: Any, **kwargs: Any) -> Any:
        with self._run_scope():
            return await self.fn(*args, **kwargs)

    def submit(self, *args: Any, **kwargs: Any) -> Future:
        """Run the task on a worker thread that inherits the caller's run context."""
        if inspect.iscoroutinefunction(self.fn):
            raise TypeError(f"Task {self.name!r} is async; await it instead of submitting it")
        return _task_executor().submit(copy_run_context(self), *args, **kwargs)

    @contextmanager
    def _run_scope(self) -> Iterator[TaskRunContext]:
        logging_context = self.logging_context or get_logging_context()
        parent = current()
        flow_run = current_flow_run()
        context = TaskRunContext(
            task_run_id=str(uuid.uuid4()),
            task_run_name=self.task_run_name or _default_task_run_name(self.name, flow_run),
            task_name=self.name,
            flow_run=flow_run,
            parent_run_id=parent.run_id if parent is not None else None,
            log_prints=resolve_log_prints(
                self.log_prints, parent, logging_context.settings.log_prints
            ),
        )
        if flow_run is not None:
            get_run_logger(flow_run).info(
                "Created task run %r for task %r", context.task_run_name, context.task_name
            )

        with enter_run(context):
            run_logger = get_run_logger(context)
            try:
                with print_capture(run_logger, context.log_prints):
                    yield context
            except Exception as exc:
                run_logger.error(
                    "Finished in state Failed(%r)",
                    f"Task run encountered an exception: {type(exc).__name__}: {exc}",
                    exc_info=True,
                )
                raise
            except asyncio.CancelledError:
                run_logger.warning("Finished in state Cancelled()")
                raise
            except BaseException as exc:
                run_logger.error("Finished in state Crashed(%r)", type(exc).__name__)
                raise
            else:
                run_logger.info("Finished in state Completed()")


def flow(
    fn: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    flow_run_name: str | None = None,
    log_prints: bool | None = None,
    logging_context: LoggingContext | None = None,
) -> Any:
    """Decorate a function as a flow; each call is one flow run."""
    if fn is None:
        return functools.partial(
            flow,
            name=name,
            flow_run_name=flow_run_name,
            log_prints=log_prints,
            logging_context=logging_context,
        )
    return Flow(
        fn,
        name=name,
        flow_run_name=flow_run_name,
        log_prints=log_prints,
        logging_context=logging_context,
    )


def task(
    fn: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    task_run_name: str | None = None,
    log_prints: bool | None = None,
    logging_context: LoggingContext | None = None,
) -> Any:
    """Decorate a function as a task; each call is one task run."""
    if fn is None:
        return functools.partial(
            task,
            name=name,
            task_run_name=task_run_name,
            log_prints=log_prints,
            logging_context=logging_context,
        )
    return Task(
        fn,
        name=name,
        task_run_name=task_run_name,
        log_prints=log_prints,
        logging_context=logging_context,
    )


def _default_task_run_name(task_name: str, flow_run: FlowRunContext | None) -> str:
    if flow_run is None:
        return f"{task_name}-{uuid.uuid4().hex[:3]}"
    return f"{task_name}-{flow_run.next_task_index()}"


def _start_tracking(tracking: TrackingClient | None, context: FlowRunContext) -> bool:
    if tracking is None:
        return False
    try:
        tracking.start_run(
            run_name=context.flow_run_name,
            tags={
                "flow_name": context.flow_name,
                "flow_run_id": context.flow_run_id,
            },
        )
    except Exception:
        logger.warning(
            "Failed to start tracking run for flow run %s",
            context.flow_run_name,
            exc_info=True,
        )
        return False
    return True


def _persist_run_logs(
    logging_context: LoggingContext,
    tracking: TrackingClient | None,
    context: RunContext,
) -> None:
    lines = logging_context.drain_run_logs(context.run_id)
    if tracking is None or tracking.active_run_id is None or not lines:
        return
    try:
        tracking.log_text(
            "\n".join(lines) + "\n",
            artifact_file=f"logs/{context.run_name}.log",
        )
    except Exception:
        logger.warning(
            "Failed to persist logs for flow run %s",
            context.run_name,
            exc_info=True,
        )


def _end_tracking(tracking: TrackingClient | None, context: FlowRunContext, status: RunStatus) -> None:
    if tracking is None:
        return
    try:
        tracking.end_run(status=status)
    except Exception:
        logger.warning(
            "Failed to end tracking run for flow run %s",
            context.flow_run_name,
            exc_info=True,
        )


_executor_lock = threading.Lock()
_executor: ThreadPoolExecutor | None = None


def _task_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(thread_name_prefix="runlog-task")
        return _executor
