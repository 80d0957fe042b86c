"""Error taxonomy for an orchestration run.

Every fatal condition raised by the connector derives from `ConnectorError`, so
the boundary (CLI, HTTP layer) can map a single exception type to its own
response. Per-record extraction problems are not errors: those records are
simply skipped.
"""

from __future__ import annotations


class ConnectorError(Exception):
    """Base class for fatal run failures."""


class ValidationError(ConnectorError):
    """Malformed request: bad state rule, bad previous state, bad actor config."""


class ExpressionError(ValidationError):
    """A state-mapping formula could not be parsed or evaluated."""


class RemoteError(ConnectorError):
    """A call to the remote job platform failed."""


class RemoteSubmitError(RemoteError):
    """Submitting the job failed; never retried."""


class RemoteStatusError(RemoteError):
    """A status check failed; retried against the poll attempt bound."""


class RemoteFetchError(RemoteError):
    """Downloading the result set failed."""


class RemoteFailedError(RemoteError):
    """The remote platform reported the run as failed."""

    def __init__(self, run_id: str, status: str = "FAILED") -> None:
        super().__init__(f"Actor run {run_id} finished with status {status}")
        self.run_id = run_id
        self.status = status


class JobTimeoutError(ConnectorError):
    """The run did not finish within the poll attempt bound."""

    def __init__(self, run_id: str, attempts: int, interval_s: float) -> None:
        waited = attempts * interval_s
        super().__init__(
            f"Actor run {run_id} timed out after {attempts} status checks (~{waited:g} seconds)"
        )
        self.run_id = run_id
        self.attempts = attempts
