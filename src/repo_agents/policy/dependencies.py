"""Blocking issue dependencies."""

import logging

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import EventPayloadError, GitHubAPIError, RepositoryFormatError
from repo_agents.events.context import ValidationContext
from repo_agents.events.payload import read_event_payload
from repo_agents.github.client import GitHubClient
from repo_agents.policy.result import BLOCKING_ISSUES, CheckResult

logger = logging.getLogger(__name__)


async def check_blocking_issues(
    ctx: ValidationContext,
    agent: AgentDefinition,
    client: GitHubClient,
) -> CheckResult:
    if agent.pre_flight is None or not agent.pre_flight.check_blocking_issues:
        return CheckResult.allow(BLOCKING_ISSUES)

    try:
        payload = read_event_payload(ctx.event_path)
    except EventPayloadError as exc:
        logger.warning("Failed to read event payload for blocking check: %s", exc)
        return CheckResult.unknown(
            BLOCKING_ISSUES, "Failed to read event payload", fail_open=True
        )

    issue = payload.get("issue")
    number = issue.get("number") if isinstance(issue, dict) else None
    if not isinstance(number, int) or isinstance(number, bool):
        return CheckResult.allow(BLOCKING_ISSUES, bypassed_event=ctx.event_name)

    try:
        ref = ctx.repo_ref
        blockers = await client.list_blocked_by(ref.owner, ref.repo, number)
    except (GitHubAPIError, RepositoryFormatError) as exc:
        logger.warning("Failed to fetch blocking issues for #%s: %s", number, exc)
        return CheckResult.unknown(
            BLOCKING_ISSUES, f"Blocking issue lookup failed: {exc}", fail_open=True
        )

    open_blockers = [
        {
            "number": item.get("number"),
            "title": str(item.get("title", "")),
            "state": str(item.get("state", "")),
            "html_url": str(item.get("html_url", "")),
        }
        for item in blockers
        if item.get("state") == "open"
    ]
    if open_blockers:
        listing = ", ".join(f"#{item['number']}: {item['title']}" for item in open_blockers)
        return CheckResult.deny(
            BLOCKING_ISSUES,
            f"Issue is blocked by {len(open_blockers)} open issue(s): {listing}",
            blockers=open_blockers,
            blocking_count=len(open_blockers),
        )
    return CheckResult.allow(BLOCKING_ISSUES, blocking_count=0)
