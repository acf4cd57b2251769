"""Contextual logging for flow and task runs."""

from runlog.configuration import SettingsResolver, resolve_settings
from runlog.contracts import FlowRunContext, RunContext, TaskRunContext
from runlog.engine import Flow, Task, flow, task
from runlog.exceptions import ConfigError, NoActiveRunError, RunlogError, TemplateError
from runlog.formatting import CompiledTemplate, JsonFormatter, RunLogFormatter, compile_template
from runlog.highlighting import highlight
from runlog.logging_context import (
    LoggingContext,
    get_logging_context,
    set_logging_context,
    setup_logging,
)
from runlog.loggers import RunContextFilter, RunLoggerAdapter, get_logger, get_run_logger
from runlog.runtime.prints import print_capture
from runlog.settings import EffectiveSettings, LoggingSettings

__all__ = [
    "flow",
    "task",
    "Flow",
    "Task",
    "get_run_logger",
    "get_logger",
    "RunLoggerAdapter",
    "RunContextFilter",
    "FlowRunContext",
    "TaskRunContext",
    "RunContext",
    "LoggingSettings",
    "EffectiveSettings",
    "SettingsResolver",
    "resolve_settings",
    "LoggingContext",
    "setup_logging",
    "get_logging_context",
    "set_logging_context",
    "print_capture",
    "compile_template",
    "CompiledTemplate",
    "RunLogFormatter",
    "JsonFormatter",
    "highlight",
    "RunlogError",
    "NoActiveRunError",
    "ConfigError",
    "TemplateError",
]
