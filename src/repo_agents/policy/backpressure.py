"""Cap on concurrently open, agent-created pull requests."""

import logging

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import GitHubAPIError, RepositoryFormatError
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient
from repo_agents.policy.result import MAX_OPEN_PRS, CheckResult

logger = logging.getLogger(__name__)

DEFAULT_SENTINEL_LABEL = "implementation-in-progress"


async def check_max_open_prs(
    ctx: ValidationContext,
    agent: AgentDefinition,
    client: GitHubClient,
    *,
    sentinel_label: str = DEFAULT_SENTINEL_LABEL,
) -> CheckResult:
    if not agent.max_open_prs or not agent.can_create_prs:
        return CheckResult.allow(MAX_OPEN_PRS)

    try:
        ref = ctx.repo_ref
        open_count = await client.count_open_prs(ref.owner, ref.repo, sentinel_label)
    except (GitHubAPIError, RepositoryFormatError) as exc:
        logger.warning("Failed to check max open PRs for %s: %s", agent.name, exc)
        return CheckResult.unknown(
            MAX_OPEN_PRS, f"Open PR count lookup failed: {exc}", fail_open=True
        )

    if open_count >= agent.max_open_prs:
        # No comment is posted; the agent runs again when one of those PRs closes.
        return CheckResult.deny(
            MAX_OPEN_PRS,
            f"Max open PRs limit reached: {open_count}/{agent.max_open_prs}",
            silent=True,
            current_count=open_count,
        )
    return CheckResult.allow(MAX_OPEN_PRS, current_count=open_count)
