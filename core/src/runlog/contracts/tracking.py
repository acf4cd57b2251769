from __future__ import annotations

from collections.abc import Mapping
from typing import Literal, Protocol, runtime_checkable

RunStatus = Literal["completed", "failed", "cancelled"]


@runtime_checkable
class TrackingClient(Protocol):
    """
    Facade contract for backends that persist flow-run logs.
    """

    @property
    def active_run_id(self) -> str | None:
        """Return the active tracking run id, if any."""
        ...

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        """Start a new tracking run and return its id."""
        ...

    def end_run(self, *, status: RunStatus) -> None:
        """End the active tracking run with the given status."""
        ...

    def set_tags(self, tags: Mapping[str, str]) -> None:
        """Set tags on the active tracking run."""
        ...

    def log_text(self, text: str, *, artifact_file: str) -> None:
        """Store text as an artifact file of the active tracking run."""
        ...
