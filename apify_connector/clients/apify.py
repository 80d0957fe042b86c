"""Apify REST client.

Docs: https://docs.apify.com/api/v2

Three endpoints are used:
- POST /acts/{actor}/runs            start a run, returns run id + default dataset id
- GET  /actor-runs/{run_id}          current run status
- GET  /datasets/{dataset_id}/items  the run's output records

Transport and decoding failures are wrapped into the connector's error
taxonomy so the orchestrator can tell a failed submission from a flaky status
check.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

import httpx
import structlog

from ..errors import RemoteError, RemoteFetchError, RemoteStatusError, RemoteSubmitError
from ..models import RemoteRun, RunStatus
from .base import RemoteJobClient


logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.apify.com/v2"

# Apify run statuses that still lead somewhere; everything else that is not
# SUCCEEDED (FAILED, ABORTED, TIMED-OUT, ...) is terminal failure.
PENDING_STATUSES = {"READY", "RUNNING"}
SUCCEEDED_STATUS = "SUCCEEDED"


def map_status(raw: str) -> RunStatus:
    """Map an Apify run status string onto RunStatus."""
    status = raw.strip().upper()
    if status == SUCCEEDED_STATUS:
        return RunStatus.SUCCEEDED
    if status in PENDING_STATUSES:
        return RunStatus.RUNNING
    return RunStatus.FAILED


def actor_path(actor: str) -> str:
    """Apify accepts `username~actor-name` in URL paths for `username/actor-name`."""
    return actor.strip().replace("/", "~")


class ApifyClient(RemoteJobClient):
    """Talk to the Apify API with a single token."""

    name = "apify"

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)

    async def __aenter__(self) -> "ApifyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        error: Type[RemoteError],
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, params={"token": self._token}, json=json_body)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise error(
                f"{method} {path} returned HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise error(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise error(f"{method} {path} returned invalid JSON: {exc}") from exc

    @staticmethod
    def _data(payload: Any, error: Type[RemoteError]) -> Dict[str, Any]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise error("response has no 'data' object")
        return data

    async def submit(self, target: str, payload: Dict[str, Any]) -> RemoteRun:
        body = await self._request("POST", f"/acts/{actor_path(target)}/runs", RemoteSubmitError, json_body=payload)
        data = self._data(body, RemoteSubmitError)

        run_id = data.get("id")
        dataset_id = data.get("defaultDatasetId")
        if not (isinstance(run_id, str) and isinstance(dataset_id, str)):
            raise RemoteSubmitError("run response is missing 'id' or 'defaultDatasetId'")

        logger.debug("actor_run_created", actor=target, run_id=run_id, dataset_id=dataset_id)
        # Status at creation is informational; the run is polled afterwards.
        raw_status = data.get("status")
        status = map_status(raw_status) if isinstance(raw_status, str) else RunStatus.RUNNING
        return RemoteRun(run_id=run_id, dataset_id=dataset_id, status=status)

    async def poll_status(self, run_id: str) -> RunStatus:
        body = await self._request("GET", f"/actor-runs/{run_id}", RemoteStatusError)
        data = self._data(body, RemoteStatusError)
        raw_status = data.get("status")
        if not isinstance(raw_status, str):
            raise RemoteStatusError("response has no string 'status'")
        return map_status(raw_status)

    async def fetch_results(self, dataset_id: str) -> List[Any]:
        body = await self._request("GET", f"/datasets/{dataset_id}/items", RemoteFetchError)
        if not isinstance(body, list):
            raise RemoteFetchError("dataset items response is not a JSON array")
        return body
