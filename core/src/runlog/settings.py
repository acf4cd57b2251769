from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from runlog.exceptions import TemplateError
from runlog.formatting import (
    DEFAULT_DATEFMT,
    DEFAULT_FLOW_RUN_FORMAT,
    DEFAULT_FORMAT,
    DEFAULT_TASK_RUN_FORMAT,
    compile_template,
)

HandlerType = Literal["console", "file", "tracking"]
StreamName = Literal["stdout", "stderr"]

DEFAULT_CONSOLE_STYLES: dict[str, str] = {
    "log.web_url": "bright_blue",
    "log.local_url": "bright_blue",
    "log.debug_level": "blue",
    "log.info_level": "cyan",
    "log.warning_level": "yellow3",
    "log.error_level": "red3",
    "log.critical_level": "bright_red",
    "log.completed_state": "green",
    "log.cancelled_state": "bright_black",
    "log.failed_state": "red",
    "log.crashed_state": "bright_red",
    "log.flow_run_name": "magenta",
    "log.flow_name": "bold magenta",
    "log.task_run_name": "cyan",
}


def _normalize_level(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError(f"invalid log level {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"invalid log level {value!r}")
        name = logging.getLevelName(value)
        return str(value) if name.startswith("Level ") else name
    text = str(value).strip().upper()
    if text.isdigit():
        return _normalize_level(int(text))
    if text not in logging.getLevelNamesMapping():
        raise ValueError(f"invalid log level {value!r}")
    return text


class LoggerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    level: str | None = None
    handlers: tuple[str, ...] = ()
    propagate: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str | None:
        if value is None:
            return None
        return _normalize_level(value)

    @field_validator("handlers", mode="before")
    @classmethod
    def _split_handlers(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value


class HandlerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: HandlerType = "console"
    level: str = "NOTSET"
    formatter: str = "standard"
    stream: StreamName = "stderr"
    filename: str | None = None
    max_bytes: int = Field(default=10_000_000, ge=0)
    backup_count: int = Field(default=5, ge=0)
    styles: dict[str, str] = Field(default_factory=dict)

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        return _normalize_level(value)

    @model_validator(mode="after")
    def _require_filename(self) -> HandlerSettings:
        if self.type == "file" and not self.filename:
            raise ValueError("file handlers require a filename")
        return self


class FormatterSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    style: Literal["template", "json"] = "template"
    format: str = DEFAULT_FORMAT
    flow_run_format: str | None = None
    task_run_format: str | None = None
    datefmt: str | None = DEFAULT_DATEFMT

    @field_validator("format", "flow_run_format", "task_run_format")
    @classmethod
    def _compile(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            compile_template(value)
        except TemplateError as exc:
            raise ValueError(str(exc)) from exc
        return value


def _default_formatters() -> dict[str, FormatterSettings]:
    return {
        "standard": FormatterSettings(
            flow_run_format=DEFAULT_FLOW_RUN_FORMAT,
            task_run_format=DEFAULT_TASK_RUN_FORMAT,
        ),
        "json": FormatterSettings(style="json"),
    }


def _default_handlers() -> dict[str, HandlerSettings]:
    return {
        "console": HandlerSettings(
            type="console",
            formatter="standard",
            styles=dict(DEFAULT_CONSOLE_STYLES),
        ),
        "tracking": HandlerSettings(type="tracking", formatter="standard"),
    }


def _default_loggers() -> dict[str, LoggerSettings]:
    return {
        "runlog": LoggerSettings(),
        "runlog.extra": LoggerSettings(handlers=("tracking",)),
        "runlog.flow_runs": LoggerSettings(level="NOTSET", handlers=("tracking",)),
        "runlog.task_runs": LoggerSettings(level="NOTSET", handlers=("tracking",)),
    }


class LoggingSettings(BaseModel):
    """
    Effective logging configuration.

    Immutable snapshot built by the settings resolver from defaults, an optional
    YAML file and ``RUNLOG_LOGGING_*`` environment variables.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    level: str = "INFO"
    colors: bool = True
    markup: bool = False
    log_prints: bool = False
    extra_loggers: tuple[str, ...] = ()
    root: LoggerSettings = Field(
        default_factory=lambda: LoggerSettings(level="WARNING", handlers=("console",))
    )
    loggers: dict[str, LoggerSettings] = Field(default_factory=_default_loggers)
    handlers: dict[str, HandlerSettings] = Field(default_factory=_default_handlers)
    formatters: dict[str, FormatterSettings] = Field(default_factory=_default_formatters)

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        return _normalize_level(value)

    @field_validator("extra_loggers", mode="before")
    @classmethod
    def _split_extra_loggers(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @model_validator(mode="after")
    def _check_references(self) -> LoggingSettings:
        errors: list[str] = []
        for name, handler in self.handlers.items():
            if handler.formatter not in self.formatters:
                errors.append(f"handler '{name}' uses unknown formatter '{handler.formatter}'")
        for name, logger in {"root": self.root, **self.loggers}.items():
            for handler_name in logger.handlers:
                if handler_name not in self.handlers:
                    errors.append(f"logger '{name}' uses unknown handler '{handler_name}'")
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def level_for(self, logger_name: str) -> str:
        """Return the configured level of a logger, falling back to the global level."""
        logger = self.loggers.get(logger_name)
        if logger is None or logger.level is None:
            return self.level
        return logger.level


EffectiveSettings = LoggingSettings
