"""Minimum spacing between successful agent runs."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import GitHubAPIError, RepositoryFormatError
from repo_agents.events.context import ValidationContext
from repo_agents.events.payload import default_workflow_file
from repo_agents.github.client import GitHubClient
from repo_agents.policy.result import RATE_LIMIT, CheckResult

logger = logging.getLogger(__name__)


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


async def check_rate_limit(
    ctx: ValidationContext,
    agent: AgentDefinition,
    client: GitHubClient,
    *,
    now: datetime | None = None,
) -> CheckResult:
    limit_minutes = agent.rate_limit_minutes
    workflow_file = ctx.workflow_file or default_workflow_file(agent)
    current = now or datetime.now(UTC)

    try:
        ref = ctx.repo_ref
        runs = await client.get_recent_workflow_runs(ref.owner, ref.repo, workflow_file)
    except (GitHubAPIError, RepositoryFormatError) as exc:
        logger.warning("Failed to check rate limit for %s: %s", agent.name, exc)
        return CheckResult.unknown(
            RATE_LIMIT, f"Rate limit lookup failed: {exc}", fail_open=True
        )

    last_success = next((run for run in runs if run.conclusion == "success"), None)
    if last_success is None:
        return CheckResult.allow(RATE_LIMIT, workflow_file=workflow_file)

    try:
        last_run_at = _parse_iso(last_success.created_at)
    except ValueError:
        logger.warning("Unparseable workflow run timestamp: %r", last_success.created_at)
        return CheckResult.unknown(
            RATE_LIMIT, "Rate limit lookup returned an invalid timestamp", fail_open=True
        )

    minutes_since = (current - last_run_at).total_seconds() / 60
    if minutes_since < limit_minutes:
        remaining = math.ceil(limit_minutes - minutes_since)
        return CheckResult.deny(
            RATE_LIMIT,
            f"Rate limit: {remaining} minutes remaining",
            last_run=last_success.created_at,
            limit_minutes=limit_minutes,
        )
    return CheckResult.allow(RATE_LIMIT, last_run=last_success.created_at)
