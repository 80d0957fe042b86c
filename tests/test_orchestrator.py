import json
from datetime import datetime, timezone

import pytest

from apify_connector.errors import (
    ExpressionError,
    JobTimeoutError,
    RemoteFailedError,
    RemoteFetchError,
    RemoteSubmitError,
    ValidationError,
)
from apify_connector.models import DateKind, FieldMapping, JobRequest, RunStatus, StateMappingRule
from apify_connector.orchestrator import MAX_POLL_ATTEMPTS, JobOrchestrator

from tests.fakes import FakeClient, NoSleep, RecordingObserver, flaky


START = datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)

RECORDS = [
    {"content": "hi", "date": "2024-01-05", "extra": "x"},
    {"content": "no date"},
    {"content": "bye", "date": "2024-01-06"},
]


def make_request(**overrides):
    fields = dict(
        target="apify/web-scraper",
        payload={"startUrls": ["https://example.com"]},
        field_mappings=[
            FieldMapping(from_="date", to="date", kind=DateKind(format="%Y-%m-%d")),
            FieldMapping(from_="content", to="content"),
        ],
        state_mappings=[StateMappingRule(from_="runDate", to="_", update='$format_date(start_date, "%Y-%m-%d")')],
        previous_state='{"cursor": "abc"}',
    )
    fields.update(overrides)
    return JobRequest(**fields)


def make_orchestrator(client, observer=None, sleep=None):
    return JobOrchestrator(client, observer=observer, sleep=sleep or NoSleep(), clock=lambda: START)


@pytest.mark.asyncio
async def test_run_polls_until_succeeded_then_fetches_once():
    client = FakeClient([RunStatus.RUNNING] * 5 + [RunStatus.SUCCEEDED], records=RECORDS)
    sleep = NoSleep()
    observer = RecordingObserver()

    response = await make_orchestrator(client, observer, sleep).run(make_request())

    assert client.status_checks == 6
    assert client.fetches == 1
    assert sleep.calls == [1.0] * 5
    assert [i.content for i in response.result] == ["hi", "bye"]
    assert response.result[0].metadata == {"extra": "x"}
    assert json.loads(response.state) == {"cursor": "abc", "runDate": "2024-01-15"}
    assert observer.events == [("started", "apify/web-scraper"), ("succeeded", "apify/web-scraper")]
    assert client.submitted == [{"target": "apify/web-scraper", "payload": {"startUrls": ["https://example.com"]}}]


@pytest.mark.asyncio
async def test_run_times_out_after_attempt_bound():
    client = FakeClient([RunStatus.RUNNING])
    observer = RecordingObserver()

    with pytest.raises(JobTimeoutError):
        await make_orchestrator(client, observer).run(make_request())

    assert client.status_checks == MAX_POLL_ATTEMPTS == 300
    assert client.fetches == 0
    assert observer.events[-1] == ("failed", "apify/web-scraper")


@pytest.mark.asyncio
async def test_status_errors_count_against_the_same_bound():
    statuses = [flaky() if i % 2 else RunStatus.RUNNING for i in range(MAX_POLL_ATTEMPTS)]
    client = FakeClient(statuses)

    with pytest.raises(JobTimeoutError):
        await make_orchestrator(client).run(make_request())

    assert client.status_checks == MAX_POLL_ATTEMPTS
    assert client.fetches == 0


@pytest.mark.asyncio
async def test_transient_status_errors_are_retried():
    client = FakeClient([flaky(), flaky(), RunStatus.RUNNING, RunStatus.SUCCEEDED], records=RECORDS)

    response = await make_orchestrator(client).run(make_request())

    assert client.status_checks == 4
    assert len(response.result) == 2


@pytest.mark.asyncio
async def test_remote_failure_aborts_without_fetch():
    client = FakeClient([RunStatus.RUNNING, RunStatus.RUNNING, RunStatus.FAILED, RunStatus.SUCCEEDED])

    with pytest.raises(RemoteFailedError):
        await make_orchestrator(client).run(make_request())

    assert client.status_checks == 3
    assert client.fetches == 0


@pytest.mark.asyncio
async def test_invalid_state_rule_fails_before_submit():
    client = FakeClient()
    request = make_request(state_mappings=[StateMappingRule(from_="d", to="d", update="$format_date(")])

    with pytest.raises(ExpressionError):
        await make_orchestrator(client).run(request)

    assert client.submitted == []
    assert client.status_checks == 0


@pytest.mark.asyncio
async def test_unparsable_previous_state_fails_before_submit():
    client = FakeClient()

    with pytest.raises(ValidationError):
        await make_orchestrator(client).run(make_request(previous_state="{broken"))

    assert client.submitted == []


@pytest.mark.asyncio
async def test_submit_failure_is_not_retried():
    client = FakeClient(submit_error=RemoteSubmitError("HTTP 401"))
    observer = RecordingObserver()

    with pytest.raises(RemoteSubmitError):
        await make_orchestrator(client, observer).run(make_request())

    assert client.status_checks == 0
    assert observer.events[-1][0] == "failed"


@pytest.mark.asyncio
async def test_fetch_failure_is_fatal():
    client = FakeClient(fetch_error=RemoteFetchError("HTTP 500"))

    with pytest.raises(RemoteFetchError):
        await make_orchestrator(client).run(make_request())

    assert client.fetches == 1


@pytest.mark.asyncio
async def test_state_formula_uses_run_start_not_fetch_time():
    rules = [StateMappingRule(from_="since", to="startDate", update='$format_date(sub_days(start_date, 1), "%Y-%m-%dT%H")')]
    client = FakeClient(records=RECORDS)

    response = await make_orchestrator(client).run(make_request(state_mappings=rules))

    assert json.loads(response.state)["since"] == "2024-01-14T08"


@pytest.mark.asyncio
async def test_observer_errors_do_not_break_the_run():
    class BrokenObserver(RecordingObserver):
        def on_job_started(self, target):
            raise RuntimeError("metrics backend down")

    client = FakeClient(records=RECORDS)
    response = await make_orchestrator(client, BrokenObserver()).run(make_request())
    assert len(response.result) == 2


@pytest.mark.asyncio
async def test_run_many_keeps_runs_independent():
    client = FakeClient([RunStatus.SUCCEEDED], records=RECORDS)
    orchestrator = make_orchestrator(client)

    results = await orchestrator.run_many([make_request(), make_request(previous_state="[]"), make_request()])

    assert len(results[0].result) == 2
    assert isinstance(results[1], ValidationError)
    assert len(results[2].result) == 2
    assert len(client.submitted) == 2


def test_max_poll_attempts_must_be_positive():
    with pytest.raises(ValueError):
        JobOrchestrator(FakeClient(), max_poll_attempts=0)


@pytest.mark.asyncio
async def test_unexpected_error_still_reports_failure():
    client = FakeClient([AttributeError("'int' object has no attribute 'strip'")])
    observer = RecordingObserver()

    with pytest.raises(AttributeError):
        await make_orchestrator(client, observer).run(make_request())

    assert client.fetches == 0
    assert observer.events == [("started", "apify/web-scraper"), ("failed", "apify/web-scraper")]
