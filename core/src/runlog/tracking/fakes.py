from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from runlog.contracts.tracking import RunStatus


@dataclass(frozen=True, slots=True)
class TrackingCall:
    """Record of a tracking call for assertions in tests."""

    name: str
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


class FakeTrackingClient:
    """
    In-memory TrackingClient for unit tests.
    """

    def __init__(self) -> None:
        self._active_run_id: str | None = None
        self._run_counter = 0
        self._calls: list[TrackingCall] = []
        self._texts: dict[str, dict[str, str]] = {}

    @property
    def active_run_id(self) -> str | None:
        """Return the active run id, if any."""
        return self._active_run_id

    @property
    def calls(self) -> list[TrackingCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    def texts(self, run_id: str) -> dict[str, str]:
        """Return the text artifacts stored for a run, keyed by artifact file."""
        return dict(self._texts.get(run_id, {}))

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        """Start a fake run and return its id."""
        self._ensure_no_active_run()
        self._run_counter += 1
        self._active_run_id = f"run_{self._run_counter}"
        self._record("start_run", run_name=run_name, tags=dict(tags))
        return self._active_run_id

    def end_run(self, *, status: RunStatus) -> None:
        """End the active fake run."""
        self._ensure_active_run()
        self._record("end_run", status=status)
        self._active_run_id = None

    def set_tags(self, tags: Mapping[str, str]) -> None:
        """Set tags on the active run."""
        self._ensure_active_run()
        self._record("set_tags", tags=dict(tags))

    def log_text(self, text: str, *, artifact_file: str) -> None:
        """Store a text artifact on the active run."""
        run_id = self._ensure_active_run()
        self._texts.setdefault(run_id, {})[artifact_file] = text
        self._record("log_text", artifact_file=artifact_file)

    def _record(self, name: str, **kwargs: Any) -> None:
        self._calls.append(TrackingCall(name=name, args=(), kwargs=kwargs))

    def _ensure_active_run(self) -> str:
        if self._active_run_id is None:
            raise RuntimeError("No active run. Call start_run first.")
        return self._active_run_id

    def _ensure_no_active_run(self) -> None:
        if self._active_run_id is not None:
            raise RuntimeError("A run is already active.")
