from __future__ import annotations

import os

import pytest

from runlog.logging_context import LoggingContext, set_logging_context
from runlog.settings import LoggingSettings


@pytest.fixture(autouse=True)
def _isolated_logging(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("RUNLOG_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.setenv("RUNLOG_HOME", str(tmp_path / "runlog-home"))
    monkeypatch.setenv("RUNLOG_LOG_DIR", str(tmp_path / "logs"))
    previous = set_logging_context(None)
    yield
    current = set_logging_context(previous)
    if current is not None:
        current.close()


@pytest.fixture
def logging_context():
    context = LoggingContext(LoggingSettings(colors=False)).apply()
    yield context
    context.close()
