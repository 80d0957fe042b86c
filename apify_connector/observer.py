"""Run lifecycle observers.

The orchestrator reports start / success / failure of each run to an injected
observer. Observers are telemetry only: they never influence control flow, and
an exception raised by one is logged and dropped.
"""

from __future__ import annotations

import structlog


logger = structlog.get_logger(__name__)


class JobObserver:
    """Receives run lifecycle events. The default implementation ignores them."""

    def on_job_started(self, target: str) -> None:
        pass

    def on_job_succeeded(self, target: str, duration_s: float) -> None:
        pass

    def on_job_failed(self, target: str, duration_s: float) -> None:
        pass


NullObserver = JobObserver


class LoggingObserver(JobObserver):
    """Emit lifecycle events as structured log lines."""

    def __init__(self, component: str = "jobs") -> None:
        self._log = logger.bind(component=component)

    def on_job_started(self, target: str) -> None:
        self._log.info("job_started", target=target)

    def on_job_succeeded(self, target: str, duration_s: float) -> None:
        self._log.info("job_succeeded", target=target, duration_s=round(duration_s, 3))

    def on_job_failed(self, target: str, duration_s: float) -> None:
        self._log.warning("job_failed", target=target, duration_s=round(duration_s, 3))
