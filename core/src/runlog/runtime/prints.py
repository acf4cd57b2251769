"""
Scoped routing of ``print`` output into run loggers.

While any capture scope is open, ``sys.stdout`` is replaced by a routing stream.
Each write looks up the capture target of the *calling* execution unit; units
without a target write straight through to the original stream, so sibling
threads and tasks never see each other's captured output.
"""

from __future__ import annotations

import contextvars
import io
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

from runlog.contracts.run_context import RunContext

logger = logging.getLogger("runlog.prints")


def resolve_log_prints(
    explicit: bool | None,
    parent: RunContext | None,
    default: bool,
) -> bool:
    """Explicit value, else the nearest ancestor's resolved value, else the default."""
    if explicit is not None:
        return explicit
    if parent is not None:
        return parent.log_prints
    return default


class _PrintTarget:
    def __init__(self, run_logger: logging.Logger | logging.LoggerAdapter, level: int) -> None:
        self._logger = run_logger
        self._level = level
        self._buffer = ""
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._buffer += text
            *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._emit(line)

    def flush(self) -> None:
        with self._lock:
            pending, self._buffer = self._buffer, ""
        self._emit(pending)

    def _emit(self, line: str) -> None:
        if not line.strip():
            return
        token = _routing.set(True)
        try:
            self._logger.log(self._level, line.rstrip("\r"))
        finally:
            _routing.reset(token)


_print_target: contextvars.ContextVar[_PrintTarget | None] = contextvars.ContextVar(
    "runlog_print_target", default=None
)
_routing: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "runlog_print_routing", default=False
)


class _RoutingStream(io.TextIOBase):
    def __init__(self, original: TextIO) -> None:
        self.original = original

    def write(self, text: str) -> int:
        target = _print_target.get()
        if target is None or _routing.get():
            return self.original.write(text)
        target.write(text)
        return len(text)

    def flush(self) -> None:
        target = _print_target.get()
        if target is None:
            self.original.flush()

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return self.original.isatty()

    def fileno(self) -> int:
        return self.original.fileno()

    @property
    def encoding(self) -> str:  # type: ignore[override]
        return getattr(self.original, "encoding", "utf-8")

    def __getattr__(self, name: str) -> Any:
        return getattr(self.original, name)


def unwrap_stream(stream: TextIO) -> TextIO:
    """Return the stream underneath a print-capture routing stream."""
    return stream.original if isinstance(stream, _RoutingStream) else stream


_install_lock = threading.Lock()
_install_count = 0
_routing_stream: _RoutingStream | None = None


def _install() -> None:
    global _install_count, _routing_stream
    with _install_lock:
        if _install_count == 0:
            _routing_stream = _RoutingStream(sys.stdout)
            sys.stdout = _routing_stream
        _install_count += 1


def _uninstall() -> None:
    global _install_count, _routing_stream
    with _install_lock:
        _install_count -= 1
        if _install_count > 0:
            return
        stream, _routing_stream = _routing_stream, None
        if stream is None:
            return
        if sys.stdout is stream:
            sys.stdout = stream.original
        else:
            logger.debug("sys.stdout was replaced during print capture; leaving it in place")


def is_capturing() -> bool:
    return _print_target.get() is not None


@contextmanager
def print_capture(
    run_logger: logging.Logger | logging.LoggerAdapter,
    enabled: bool = True,
    *,
    level: int = logging.INFO,
) -> Iterator[None]:
    """
    Route this execution unit's stdout writes to ``run_logger`` for the scope.

    A disabled scope switches off any capture inherited from an enclosing scope.
    """
    target = _PrintTarget(run_logger, level) if enabled else None
    if target is None and not is_capturing():
        yield
        return

    _install()
    token = _print_target.set(target)
    try:
        yield
    finally:
        _print_target.reset(token)
        _uninstall()
        if target is not None:
            target.flush()
