from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from runlog.formatting import run_fields
from runlog.loggers import RunContextFilter


class RecordCollector(logging.Handler):
    """Handler that keeps every record it receives, for assertions in tests."""

    def __init__(self, level: int = logging.NOTSET) -> None:
        super().__init__(level=level)
        self.records: list[logging.LogRecord] = []
        self.addFilter(RunContextFilter())

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]

    def fields(self) -> list[dict[str, str]]:
        return [run_fields(record) for record in self.records]


@contextmanager
def collect_records(*logger_names: str, level: int = logging.DEBUG) -> Iterator[RecordCollector]:
    """Attach a collector to the given loggers (default ``runlog``) for the scope."""
    collector = RecordCollector()
    targets = [logging.getLogger(name) for name in (logger_names or ("runlog",))]
    saved = [target.level for target in targets]
    for target in targets:
        target.addHandler(collector)
        if target.getEffectiveLevel() > level:
            target.setLevel(level)
    try:
        yield collector
    finally:
        for target, previous in zip(targets, saved, strict=True):
            target.removeHandler(collector)
            target.setLevel(previous)
