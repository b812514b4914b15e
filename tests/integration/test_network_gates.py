from datetime import UTC, datetime

import httpx
import pytest

from repo_agents.agents.loader import load_agent_definition
from repo_agents.policy.backpressure import check_max_open_prs
from repo_agents.policy.dependencies import check_blocking_issues
from repo_agents.policy.rate_limit import check_rate_limit
from repo_agents.policy.result import Outcome

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _runs(*runs: tuple[str, str]):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/widgets/actions/workflows/agent-triage.yml/runs"
        return httpx.Response(
            200,
            json={
                "workflow_runs": [
                    {"id": index, "conclusion": conclusion, "created_at": created_at}
                    for index, (conclusion, created_at) in enumerate(runs)
                ]
            },
        )

    return handler


@pytest.mark.asyncio
async def test_rate_limit_denies_recent_success(make_ctx, make_client) -> None:
    agent = load_agent_definition({"name": "triage", "rate_limit_minutes": 10})
    handler = _runs(("failure", "2026-03-01T11:59:00Z"), ("success", "2026-03-01T11:55:30Z"))
    async with make_client(handler) as client:
        result = await check_rate_limit(make_ctx(), agent, client, now=NOW)
    assert result.outcome is Outcome.DENIED
    assert result.reason == "Rate limit: 6 minutes remaining"
    assert result.details["last_run"] == "2026-03-01T11:55:30Z"


@pytest.mark.asyncio
async def test_rate_limit_allows_after_window(make_ctx, make_client) -> None:
    agent = load_agent_definition({"name": "triage"})
    async with make_client(_runs(("success", "2026-03-01T11:00:00Z"))) as client:
        result = await check_rate_limit(make_ctx(), agent, client, now=NOW)
    assert result.outcome is Outcome.ALLOWED


@pytest.mark.asyncio
async def test_rate_limit_allows_without_successful_runs(make_ctx, make_client) -> None:
    agent = load_agent_definition({"name": "triage"})
    async with make_client(_runs(("failure", "2026-03-01T11:59:00Z"))) as client:
        result = await check_rate_limit(make_ctx(), agent, client, now=NOW)
    assert result.outcome is Outcome.ALLOWED


@pytest.mark.asyncio
async def test_rate_limit_uses_explicit_workflow_file(make_ctx, make_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/workflows/custom.yml/runs")
        return httpx.Response(200, json={"workflow_runs": []})

    agent = load_agent_definition({"name": "triage"})
    async with make_client(handler) as client:
        result = await check_rate_limit(
            make_ctx(workflow_file="custom.yml"), agent, client, now=NOW
        )
    assert result.allowed is True


@pytest.mark.asyncio
async def test_rate_limit_fails_open(make_ctx, make_client) -> None:
    agent = load_agent_definition({"name": "triage"})
    async with make_client(lambda request: httpx.Response(502)) as client:
        result = await check_rate_limit(make_ctx(), agent, client, now=NOW)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True


@pytest.mark.asyncio
async def test_rate_limit_fails_open_on_malformed_run_id(make_ctx, make_client) -> None:
    agent = load_agent_definition({"name": "triage"})
    payload = {"workflow_runs": [{"id": "abc", "conclusion": "success", "created_at": "x"}]}
    async with make_client(lambda request: httpx.Response(200, json=payload)) as client:
        result = await check_rate_limit(make_ctx(), agent, client, now=NOW)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True


def _pr_agent(max_open_prs: int | None = 2, create_pr: bool = True):
    data = {"name": "implementer", "outputs": {"create-pr": create_pr}}
    if max_open_prs is not None:
        data["max_open_prs"] = max_open_prs
    return load_agent_definition(data)


def _search(total: int):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search/issues"
        assert 'label:"implementation-in-progress"' in request.url.params["q"]
        return httpx.Response(200, json={"total_count": total})

    return handler


@pytest.mark.asyncio
async def test_max_open_prs_denies_silently_at_limit(make_ctx, make_client) -> None:
    async with make_client(_search(2)) as client:
        result = await check_max_open_prs(make_ctx(), _pr_agent(), client)
    assert result.outcome is Outcome.DENIED
    assert result.silent is True
    assert result.reason == "Max open PRs limit reached: 2/2"


@pytest.mark.asyncio
async def test_max_open_prs_allows_below_limit(make_ctx, make_client) -> None:
    async with make_client(_search(1)) as client:
        result = await check_max_open_prs(make_ctx(), _pr_agent(), client)
    assert result.allowed is True
    assert result.details["current_count"] == 1


@pytest.mark.asyncio
async def test_max_open_prs_not_applicable(make_ctx, make_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no API call expected")

    async with make_client(handler) as client:
        unlimited = await check_max_open_prs(make_ctx(), _pr_agent(max_open_prs=None), client)
        no_prs = await check_max_open_prs(make_ctx(), _pr_agent(create_pr=False), client)
    assert unlimited.allowed is True
    assert no_prs.allowed is True


@pytest.mark.asyncio
async def test_max_open_prs_fails_open(make_ctx, make_client) -> None:
    async with make_client(lambda request: httpx.Response(500)) as client:
        result = await check_max_open_prs(make_ctx(), _pr_agent(), client)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True


def _blocking_agent():
    return load_agent_definition({"name": "a", "pre_flight": {"check_blocking_issues": True}})


@pytest.mark.asyncio
async def test_blocking_issues_denies_with_open_blockers(
    make_ctx, make_client, write_event
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/widgets/issues/12/dependencies/blocked_by"
        return httpx.Response(
            200,
            json=[
                {"number": 3, "title": "Schema first", "state": "open"},
                {"number": 4, "title": "Done already", "state": "closed"},
            ],
        )

    ctx = make_ctx(event_path=write_event({"issue": {"number": 12}}))
    async with make_client(handler) as client:
        result = await check_blocking_issues(ctx, _blocking_agent(), client)
    assert result.outcome is Outcome.DENIED
    assert result.reason == "Issue is blocked by 1 open issue(s): #3: Schema first"
    assert result.details["blocking_count"] == 1


@pytest.mark.asyncio
async def test_blocking_issues_allows_when_all_closed(make_ctx, make_client, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"issue": {"number": 12}}))
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"number": 4, "state": "closed"}])

    async with make_client(handler) as client:
        result = await check_blocking_issues(ctx, _blocking_agent(), client)
    assert result.outcome is Outcome.ALLOWED


@pytest.mark.asyncio
async def test_blocking_issues_skips_non_issue_events(make_ctx, make_client, write_event) -> None:
    payload = {"pull_request": {"number": 5}}
    ctx = make_ctx(event_name="pull_request", event_path=write_event(payload))
    async with make_client(lambda request: httpx.Response(500)) as client:
        result = await check_blocking_issues(ctx, _blocking_agent(), client)
    assert result.outcome is Outcome.ALLOWED


@pytest.mark.asyncio
async def test_blocking_issues_fails_open(make_ctx, make_client, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"issue": {"number": 12}}))
    async with make_client(lambda request: httpx.Response(404)) as client:
        result = await check_blocking_issues(ctx, _blocking_agent(), client)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True

    unreadable = await check_blocking_issues(make_ctx(event_path=""), _blocking_agent(), client)
    assert unreadable.allowed is True


@pytest.mark.asyncio
async def test_max_open_prs_fails_open_on_malformed_count(make_ctx, make_client) -> None:
    payload = {"total_count": "many"}
    async with make_client(lambda request: httpx.Response(200, json=payload)) as client:
        result = await check_max_open_prs(make_ctx(), _pr_agent(), client)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True
