from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

from runlog.contracts.run_context import RUN_FIELDS, FlowRunContext, RunContext
from runlog.exceptions import NoActiveRunError
from runlog.runtime.context import current

FLOW_RUN_LOGGER = "runlog.flow_runs"
TASK_RUN_LOGGER = "runlog.task_runs"


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a library logger under the ``runlog`` namespace."""
    if not name:
        return logging.getLogger("runlog")
    if not name.startswith("runlog."):
        name = f"runlog.{name}"
    return logging.getLogger(name)


class RunLoggerAdapter(logging.LoggerAdapter):
    """
    Logger bound to one run context.

    Every record gets the run's contextual fields; call-site ``extra`` values
    are kept, but never override run fields.
    """

    def __init__(self, logger: logging.Logger, context: RunContext, extra: dict[str, Any] | None = None) -> None:
        super().__init__(logger, {**(extra or {}), **context.log_fields()})
        self.context = context

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs

    def getChild(self, suffix: str) -> RunLoggerAdapter:
        return RunLoggerAdapter(self.logger.getChild(suffix), self.context, dict(self.extra))


def get_run_logger(context: RunContext | None = None, **extra: Any) -> RunLoggerAdapter:
    """
    Return a logger bound to ``context`` or to the currently active run.

    Raises:
        NoActiveRunError: if no context is given and no run is active.
    """
    context = context if context is not None else current()
    if context is None:
        raise NoActiveRunError(
            "There is no active flow or task run; get_run_logger() can only be "
            "called while a run is executing. Use runlog.get_logger() elsewhere."
        )
    name = FLOW_RUN_LOGGER if isinstance(context, FlowRunContext) else TASK_RUN_LOGGER
    return RunLoggerAdapter(logging.getLogger(name), context, extra)


class RunContextFilter(logging.Filter):
    """Add the active run's fields to records that do not already carry them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if any(getattr(record, name, None) for name in RUN_FIELDS):
            return True
        context = current()
        if context is not None:
            for key, value in context.log_fields().items():
                setattr(record, key, value)
        return True
