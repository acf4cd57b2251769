from __future__ import annotations

import logging
import sys
import threading
from collections import defaultdict
from collections.abc import Mapping
from typing import TextIO

from rich.console import Console
from rich.text import Text

from runlog.highlighting import expand_markup, highlight
from runlog.runtime.prints import unwrap_stream


class ConsoleHandler(logging.Handler):
    """
    Render records on a terminal through rich.

    The stream is fixed when the handler is built, so a handler created inside
    a print-capture scope still writes to the real terminal.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        level: int | str = logging.NOTSET,
        styles: Mapping[str, str] | None = None,
        colors: bool = True,
        markup: bool = False,
    ) -> None:
        super().__init__(level=level)
        self.stream = stream if stream is not None else unwrap_stream(sys.stderr)
        self.styles = dict(styles or {})
        self.colors = colors
        self.markup = markup
        self.console = Console(
            file=self.stream,
            no_color=not colors,
            highlight=False,
            markup=False,
            emoji=False,
            soft_wrap=True,
        )

    def render(self, record: logging.LogRecord) -> Text:
        message = self.format(record)
        text = expand_markup(message) if self.markup else Text(message)
        if self.colors and self.styles:
            text = highlight(text, self.styles)
        return text

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.acquire()
            try:
                self.console.print(self.render(record))
            finally:
                self.release()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


class TrackingLogHandler(logging.Handler):
    """
    Buffer formatted flow-run lines in memory until the flow run ends.

    Emission never performs I/O; the engine drains a run's lines and hands
    them to the tracking backend once the run is finished. Records without a
    ``flow_run_id`` are ignored.
    """

    def __init__(self, level: int | str = logging.NOTSET) -> None:
        super().__init__(level=level)
        self._lines: dict[str, list[str]] = defaultdict(list)
        self._buffer_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        flow_run_id = getattr(record, "flow_run_id", None)
        if not flow_run_id:
            return
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._buffer_lock:
            self._lines[flow_run_id].append(line)

    def drain(self, flow_run_id: str) -> list[str]:
        with self._buffer_lock:
            return self._lines.pop(flow_run_id, [])


def resolve_stream(name: str) -> TextIO:
    stream = sys.stdout if name == "stdout" else sys.stderr
    return unwrap_stream(stream)
