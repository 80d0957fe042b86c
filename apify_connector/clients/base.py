"""Base class for remote job clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..models import RemoteRun, RunStatus


class RemoteJobClient(ABC):
    """Capability interface the orchestrator drives: submit, poll, fetch.

    Transport, authentication and endpoint construction are left to the
    implementation.
    """

    @abstractmethod
    async def submit(self, target: str, payload: Dict[str, Any]) -> RemoteRun:
        """Start a run of `target` with `payload` as its input."""
        raise NotImplementedError

    @abstractmethod
    async def poll_status(self, run_id: str) -> RunStatus:
        """Return the current status of a run."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_results(self, dataset_id: str) -> List[Any]:
        """Download every record of a finished run's result set."""
        raise NotImplementedError
