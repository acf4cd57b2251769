"""
Explicit logging context.

A ``LoggingContext`` owns one settings snapshot and the handlers built from it.
``apply()`` attaches those handlers to the configured loggers and remembers
what it changed; ``close()`` undoes exactly that, leaving handlers installed by
anyone else (test harnesses, host applications) alone.
"""

from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from typing import Any

from runlog.configuration import SettingsResolver
from runlog.contracts.tracking import TrackingClient
from runlog.formatting import JsonFormatter, RunLogFormatter
from runlog.handlers import ConsoleHandler, TrackingLogHandler, resolve_stream
from runlog.loggers import RunContextFilter
from runlog.runtime.paths import resolve_log_file
from runlog.settings import FormatterSettings, HandlerSettings, LoggerSettings, LoggingSettings

logger = logging.getLogger("runlog.logging")

EXTRA_LOGGERS_KEY = "runlog.extra"


def level_value(level: str | None) -> int | str:
    if level is None:
        return logging.NOTSET
    return int(level) if level.isdigit() else level


def build_formatter(settings: FormatterSettings) -> logging.Formatter:
    if settings.style == "json":
        return JsonFormatter()
    return RunLogFormatter(
        format=settings.format,
        datefmt=settings.datefmt,
        flow_run_format=settings.flow_run_format,
        task_run_format=settings.task_run_format,
    )


def build_handler(settings: HandlerSettings, *, colors: bool, markup: bool) -> logging.Handler:
    level = level_value(settings.level)
    if settings.type == "console":
        return ConsoleHandler(
            resolve_stream(settings.stream),
            level=level,
            styles=settings.styles,
            colors=colors,
            markup=markup,
        )
    if settings.type == "file":
        handler = RotatingFileHandler(
            resolve_log_file(settings.filename or ""),
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        return handler
    return TrackingLogHandler(level=level)


class LoggingContext:
    """
    Settings snapshot plus the handlers configured from it.

    ``reload()`` resolves a new snapshot and swaps it in under a lock; readers
    of ``settings`` always get a complete snapshot, old or new.
    """

    def __init__(
        self,
        settings: LoggingSettings | None = None,
        *,
        resolver: SettingsResolver | None = None,
        tracking: TrackingClient | None = None,
    ) -> None:
        self._resolver = resolver if resolver is not None else SettingsResolver()
        self._settings = settings if settings is not None else self._resolver.resolve()
        self.tracking = tracking
        self._lock = threading.RLock()
        self._handlers: dict[str, logging.Handler] = {}
        self._attached: list[tuple[logging.Logger, logging.Handler]] = []
        self._saved: dict[str, tuple[int, bool]] = {}
        self._applied = False

    @property
    def settings(self) -> LoggingSettings:
        return self._settings

    @property
    def applied(self) -> bool:
        return self._applied

    @property
    def handlers(self) -> dict[str, logging.Handler]:
        return dict(self._handlers)

    @property
    def tracking_handlers(self) -> list[TrackingLogHandler]:
        return [h for h in self._handlers.values() if isinstance(h, TrackingLogHandler)]

    def apply(self) -> LoggingContext:
        with self._lock:
            if self._applied:
                self._detach()
            self._attach(self._settings)
            self._applied = True
        logger.debug(
            "Logging configured (level=%s, handlers=%s)",
            self._settings.level,
            ",".join(sorted(self._handlers)),
        )
        return self

    def close(self) -> None:
        with self._lock:
            if not self._applied:
                return
            self._detach()
            self._applied = False

    def reload(self, settings: LoggingSettings | None = None) -> LoggingSettings:
        new_settings = settings if settings is not None else self._resolver.resolve()
        with self._lock:
            was_applied = self._applied
            if was_applied:
                self._detach()
            self._settings = new_settings
            if was_applied:
                self._attach(new_settings)
        return new_settings

    def drain_run_logs(self, flow_run_id: str) -> list[str]:
        lines: list[str] = []
        for handler in self.tracking_handlers:
            lines.extend(handler.drain(flow_run_id))
        return lines

    def __enter__(self) -> LoggingContext:
        return self.apply()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _attach(self, settings: LoggingSettings) -> None:
        formatters = {name: build_formatter(spec) for name, spec in settings.formatters.items()}
        context_filter = RunContextFilter()
        for name, spec in settings.handlers.items():
            handler = build_handler(spec, colors=settings.colors, markup=settings.markup)
            handler.set_name(name)
            handler.setFormatter(formatters[spec.formatter])
            handler.addFilter(context_filter)
            self._handlers[name] = handler

        self._configure(logging.getLogger(), settings.root, settings.root.level or "WARNING")
        for logger_name, spec in settings.loggers.items():
            if logger_name == EXTRA_LOGGERS_KEY:
                continue
            self._configure(
                logging.getLogger(logger_name), spec, settings.level_for(logger_name)
            )

        extra_spec = settings.loggers.get(EXTRA_LOGGERS_KEY, LoggerSettings())
        for logger_name in settings.extra_loggers:
            self._configure(
                logging.getLogger(logger_name),
                extra_spec,
                extra_spec.level or settings.level,
            )

    def _configure(self, target: logging.Logger, spec: LoggerSettings, level: str) -> None:
        key = target.name
        if key not in self._saved:
            self._saved[key] = (target.level, target.propagate)
        target.setLevel(level_value(level))
        target.propagate = spec.propagate
        for handler_name in spec.handlers:
            handler = self._handlers[handler_name]
            target.addHandler(handler)
            self._attached.append((target, handler))

    def _detach(self) -> None:
        for target, handler in self._attached:
            target.removeHandler(handler)
        for handler in self._handlers.values():
            handler.close()
        for name, (level, propagate) in self._saved.items():
            target = logging.getLogger(name) if name != "root" else logging.getLogger()
            target.setLevel(level)
            target.propagate = propagate
        self._attached.clear()
        self._handlers.clear()
        self._saved.clear()


def setup_logging(
    settings: LoggingSettings | None = None,
    *,
    tracking: TrackingClient | None = None,
    **resolver_kwargs: Any,
) -> LoggingContext:
    """Resolve settings (unless given) and apply them."""
    resolver = SettingsResolver(**resolver_kwargs)
    return LoggingContext(settings, resolver=resolver, tracking=tracking).apply()


_default_lock = threading.Lock()
_default_context: LoggingContext | None = None


def get_logging_context() -> LoggingContext:
    """Return the process default context, applying it on first use."""
    global _default_context
    with _default_lock:
        if _default_context is None:
            _default_context = setup_logging()
        return _default_context


def set_logging_context(context: LoggingContext | None) -> LoggingContext | None:
    """Replace the process default context; returns the previous one."""
    global _default_context
    with _default_lock:
        previous, _default_context = _default_context, context
    return previous
