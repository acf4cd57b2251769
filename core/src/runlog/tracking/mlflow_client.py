from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from runlog.contracts.tracking import RunStatus

try:
    import mlflow as _mlflow
except Exception:  # pragma: no cover - handled via runtime error
    _mlflow = None


def _require_mlflow() -> Any:
    if _mlflow is None:
        raise RuntimeError(
            "mlflow is not installed. Install runlog[mlflow] or provide a fake module for tests."
        )
    return _mlflow


class MlflowTrackingClient:
    """
    MLflow-backed implementation of the TrackingClient facade.

    Each top-level flow run maps to one MLflow run; its log lines are stored
    as text artifacts.
    """

    def __init__(
        self,
        *,
        tracking_uri: str | None = None,
        experiment_name: str | None = None,
        experiment_id: str | None = None,
    ) -> None:
        """Create a tracking client with optional MLflow configuration."""
        if experiment_name and experiment_id:
            raise ValueError("Provide either experiment_name or experiment_id, not both.")

        self._mlflow = _require_mlflow()
        self._experiment_id = experiment_id
        self._active_run_id: str | None = None

        if tracking_uri is not None:
            self._mlflow.set_tracking_uri(tracking_uri)
        if experiment_name is not None:
            self._mlflow.set_experiment(experiment_name)

    @property
    def active_run_id(self) -> str | None:
        """Return the active run id, if any."""
        return self._active_run_id

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        """Start a new MLflow run and return its id."""
        self._ensure_no_active_run()
        run = self._mlflow.start_run(
            run_name=run_name,
            tags=dict(tags),
            experiment_id=self._experiment_id,
        )
        self._active_run_id = run.info.run_id
        return self._active_run_id

    def end_run(self, *, status: RunStatus) -> None:
        """End the active MLflow run."""
        self._ensure_active_run()
        self._mlflow.end_run(status=_map_run_status(status))
        self._active_run_id = None

    def set_tags(self, tags: Mapping[str, str]) -> None:
        """Set tags on the active run."""
        self._ensure_active_run()
        self._mlflow.set_tags(dict(tags))

    def log_text(self, text: str, *, artifact_file: str) -> None:
        """Store text as an artifact file of the active run."""
        self._ensure_active_run()
        self._mlflow.log_text(text, artifact_file)

    def _ensure_active_run(self) -> None:
        if self._active_run_id is None:
            raise RuntimeError("No active MLflow run. Call start_run first.")

    def _ensure_no_active_run(self) -> None:
        if self._active_run_id is not None or self._mlflow.active_run() is not None:
            raise RuntimeError("An MLflow run is already active.")


def _map_run_status(status: RunStatus) -> str:
    mapping = {
        "completed": "FINISHED",
        "failed": "FAILED",
        "cancelled": "KILLED",
    }
    return mapping[status]
