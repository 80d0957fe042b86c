"""Job orchestration: submit -> poll -> fetch -> extract -> map state.

A run is one sequential coroutine. The only temporal policy lives here: the
status of a submitted run is checked at a fixed interval, and both "still
running" answers and failed status checks count against the same attempt
bound (300 x 1s by default), so a run never waits longer than roughly five
minutes regardless of how the remote side misbehaves.

A run either returns a complete JobResponse or raises a ConnectorError; it
never returns partial items or partial state. Runs share no mutable state, so
any number of them may be awaited concurrently.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from .clients.base import RemoteJobClient
from .errors import JobTimeoutError, RemoteFailedError, RemoteStatusError
from .extraction import extract_export_items
from .models import JobRequest, JobResponse, RemoteRun, RunStatus
from .observer import JobObserver
from .state import RunContext, compute_state, validate_state_rules


logger = structlog.get_logger(__name__)

MAX_POLL_ATTEMPTS = 300
POLL_INTERVAL_S = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """Drive one remote job per `run()` call."""

    def __init__(
        self,
        client: RemoteJobClient,
        observer: Optional[JobObserver] = None,
        poll_interval_s: float = POLL_INTERVAL_S,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_poll_attempts <= 0:
            raise ValueError("max_poll_attempts must be positive")
        self._client = client
        self._observer = observer or JobObserver()
        self._poll_interval_s = poll_interval_s
        self._max_poll_attempts = max_poll_attempts
        self._sleep = sleep
        self._clock = clock

    async def run(self, request: JobRequest) -> JobResponse:
        """Run `request` to completion.

        Raises:
            ValidationError: state rules or previous state are malformed (nothing submitted).
            RemoteSubmitError: the job could not be started.
            RemoteFailedError: the platform reported the run as failed.
            JobTimeoutError: the run did not finish within the attempt bound.
            RemoteFetchError: the result set could not be downloaded.
            ExpressionError: a state formula failed after the results were fetched.
        """
        log = logger.bind(target=request.target)
        context = RunContext(start=self._clock())
        started = time.monotonic()
        self._notify("on_job_started", request.target)

        try:
            log.debug("validating_state_mapping", rules=len(request.state_mappings))
            validate_state_rules(request.previous_state, request.state_mappings)

            run = await self._submit(request, log)
            log = log.bind(run_id=run.run_id, dataset_id=run.dataset_id)

            await self._wait_for_completion(run, log)

            log.info("job_succeeded_downloading_results")
            records = await self._client.fetch_results(run.dataset_id)
            items = extract_export_items(records, request.field_mappings)
            log.info("export_items_extracted", record_count=len(records), item_count=len(items))

            state = compute_state(request.previous_state, request.state_mappings, context)
        except Exception as exc:
            log.error("job_failed", error=str(exc), error_type=type(exc).__name__)
            self._notify("on_job_failed", request.target, time.monotonic() - started)
            raise

        self._notify("on_job_succeeded", request.target, time.monotonic() - started)
        log.info("job_completed", result_count=len(items))
        return JobResponse(state=state, result=items)

    async def run_many(self, requests: List[JobRequest]) -> List[Any]:
        """Run independent requests concurrently; failures are returned in place."""
        return await asyncio.gather(*(self.run(r) for r in requests), return_exceptions=True)

    async def _submit(self, request: JobRequest, log: Any) -> RemoteRun:
        log.info("starting_actor_job")
        run = await self._client.submit(request.target, request.payload)
        log.info("actor_job_started", run_id=run.run_id)
        return run

    async def _wait_for_completion(self, run: RemoteRun, log: Any) -> None:
        attempts = 0
        while True:
            try:
                status = await self._client.poll_status(run.run_id)
            except RemoteStatusError as exc:
                log.warning("status_check_failed_retrying", poll_count=attempts + 1, error=str(exc))
                status = None

            if status is RunStatus.SUCCEEDED:
                run.status = status
                log.info("job_finished", poll_count=attempts + 1)
                return
            if status is RunStatus.FAILED:
                run.status = status
                raise RemoteFailedError(run.run_id)

            attempts += 1
            if attempts >= self._max_poll_attempts:
                raise JobTimeoutError(run.run_id, attempts, self._poll_interval_s)
            if status is RunStatus.RUNNING:
                log.debug("job_still_running", poll_count=attempts, max=self._max_poll_attempts)
            await self._sleep(self._poll_interval_s)

    def _notify(self, event: str, *args: Any) -> None:
        try:
            getattr(self._observer, event)(*args)
        except Exception as exc:  # noqa: BLE001
            logger.warning("observer_failed", event_name=event, error=str(exc))
