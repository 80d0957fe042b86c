"""In-memory test doubles."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from apify_connector.clients.base import RemoteJobClient
from apify_connector.errors import RemoteStatusError
from apify_connector.models import RemoteRun, RunStatus
from apify_connector.observer import JobObserver


class FakeClient(RemoteJobClient):
    """Replays a scripted sequence of status answers (or exceptions)."""

    def __init__(
        self,
        statuses: Sequence[Union[RunStatus, Exception]] = (RunStatus.SUCCEEDED,),
        records: Optional[List[Any]] = None,
        submit_error: Optional[Exception] = None,
        fetch_error: Optional[Exception] = None,
    ) -> None:
        self._statuses = list(statuses)
        self._records = records if records is not None else []
        self._submit_error = submit_error
        self._fetch_error = fetch_error
        self.submitted: List[Dict[str, Any]] = []
        self.status_checks = 0
        self.fetches = 0

    async def submit(self, target: str, payload: Dict[str, Any]) -> RemoteRun:
        if self._submit_error is not None:
            raise self._submit_error
        self.submitted.append({"target": target, "payload": payload})
        return RemoteRun(run_id=f"run-{len(self.submitted)}", dataset_id=f"ds-{len(self.submitted)}")

    async def poll_status(self, run_id: str) -> RunStatus:
        index = self.status_checks
        self.status_checks += 1
        answer = self._statuses[min(index, len(self._statuses) - 1)]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def fetch_results(self, dataset_id: str) -> List[Any]:
        self.fetches += 1
        if self._fetch_error is not None:
            raise self._fetch_error
        return list(self._records)


def flaky(message: str = "connection reset") -> RemoteStatusError:
    return RemoteStatusError(message)


class RecordingObserver(JobObserver):
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def on_job_started(self, target: str) -> None:
        self.events.append(("started", target))

    def on_job_succeeded(self, target: str, duration_s: float) -> None:
        self.events.append(("succeeded", target))

    def on_job_failed(self, target: str, duration_s: float) -> None:
        self.events.append(("failed", target))


class NoSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
