"""Job documents in, JobResponse out.

A job document is what a caller posts for one run:

    {
      "settings": {
        "token": "...",
        "actor_config": {...},          # preset config, or
        "actor_id": "user/actor",       # arbitrary actor id plus
        "actor_input": {...},           # its free-form input
        "key_mapping": [...],
        "state_mapping": [...]
      },
      "state": "{\"since\": \"2024-01-01\"}"
    }

This module turns such a document into a `JobRequest` (preset validation,
request body, previous state merged into the body) and runs it with an
`ApifyClient`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .actors import parse_actor_config
from .clients.apify import ApifyClient
from .clients.base import RemoteJobClient
from .config import Settings
from .errors import ValidationError
from .models import FieldMapping, JobRequest, JobResponse, StateMappingRule
from .observer import JobObserver, LoggingObserver
from .orchestrator import JobOrchestrator
from .state import merge_state_into_payload


class JobSettings(BaseModel):
    token: Optional[str] = None
    actor_config: Any = None
    actor_id: Optional[str] = None
    actor_input: Any = None
    key_mapping: List[FieldMapping] = Field(default_factory=list)
    state_mapping: List[StateMappingRule] = Field(default_factory=list)


class JobDocument(BaseModel):
    settings: JobSettings
    state: str = Field(default="{}", description="JSON-encoded state from the previous run.")


def build_preset_request(actor_type: str, job: JobDocument) -> JobRequest:
    """Build a request for one of the preset actors (see `actors.py`)."""
    config = parse_actor_config(actor_type, job.settings.actor_config or {})
    payload = merge_state_into_payload(config.to_body(), job.state, job.settings.state_mapping)
    return JobRequest(
        target=config.actor_name,
        payload=payload,
        field_mappings=job.settings.key_mapping,
        state_mappings=job.settings.state_mapping,
        previous_state=job.state,
    )


def build_arbitrary_request(job: JobDocument) -> JobRequest:
    """Build a request for any actor id with a free-form input object."""
    actor_id = (job.settings.actor_id or "").strip()
    if not actor_id:
        raise ValidationError("settings.actor_id is required for an arbitrary actor job")
    base: Dict[str, Any] = dict(job.settings.actor_input) if isinstance(job.settings.actor_input, dict) else {}
    payload = merge_state_into_payload(base, job.state, job.settings.state_mapping)
    return JobRequest(
        target=actor_id,
        payload=payload,
        field_mappings=job.settings.key_mapping,
        state_mappings=job.settings.state_mapping,
        previous_state=job.state,
    )


async def run_job_document(
    job: JobDocument,
    actor_type: Optional[str] = None,
    settings: Optional[Settings] = None,
    observer: Optional[JobObserver] = None,
    client: Optional[RemoteJobClient] = None,
) -> JobResponse:
    """Run a preset job (`actor_type` given) or an arbitrary actor job.

    Without an explicit `client`, an ApifyClient is opened for the run; the
    token in the document wins over `APIFY_TOKEN`.
    """
    settings = settings or Settings()
    request = build_preset_request(actor_type, job) if actor_type else build_arbitrary_request(job)

    if client is not None:
        return await _orchestrator(client, settings, observer).run(request)

    token = job.settings.token or settings.apify_token
    if not token:
        raise ValidationError("no Apify token: set settings.token or APIFY_TOKEN")

    async with ApifyClient(token, base_url=settings.apify_base_url, timeout_s=settings.apify_timeout_s) as apify:
        return await _orchestrator(apify, settings, observer).run(request)


def _orchestrator(client: RemoteJobClient, settings: Settings, observer: Optional[JobObserver]) -> JobOrchestrator:
    return JobOrchestrator(
        client,
        observer=observer or LoggingObserver(),
        poll_interval_s=settings.poll_interval_s,
        max_poll_attempts=settings.max_poll_attempts,
    )
