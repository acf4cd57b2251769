from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

ENV_LOG_DIR = "RUNLOG_LOG_DIR"


def log_dir_candidates() -> Iterator[Path]:
    """Directories tried for relative file-sink names, most specific first."""
    configured = os.environ.get(ENV_LOG_DIR)
    if configured:
        yield Path(configured).expanduser()
    yield Path.cwd() / ".runlog-logs"
    yield Path(tempfile.gettempdir()) / "runlog-logs"


def resolve_log_file(filename: str, *, log_dir: Path | None = None) -> Path:
    """
    Resolve the path a file sink writes to and create its parent directory.

    Absolute names are used as given. Relative names go under ``log_dir`` or,
    when none is given, under the first candidate directory that can be
    created and opened for appending.
    """
    path = Path(filename).expanduser()
    if path.is_absolute() or log_dir is not None:
        target = path if path.is_absolute() else Path(log_dir) / path
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    for root in log_dir_candidates():
        target = root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a", encoding="utf-8"):
                pass
        except OSError:
            continue
        return target

    raise RuntimeError(f"No writable directory for log file {filename!r}")
