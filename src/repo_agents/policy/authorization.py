"""Actor authorization.

Order matters and the first match wins:

1. explicit allow lists (allowed_users, allowed_actors)
2. membership in any allowed team
3. admin or write permission on the repository
4. actor owns the (personal) repository
5. org member without write access: denied as read-only
6. everyone else: denied

Lookups that fail count as negative results, so this check fails closed.
"""

import logging

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import RepositoryFormatError
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient
from repo_agents.policy.result import USER_AUTHORIZATION, CheckResult

logger = logging.getLogger(__name__)


async def check_user_authorization(
    ctx: ValidationContext,
    agent: AgentDefinition,
    client: GitHubClient,
) -> CheckResult:
    actor = ctx.actor
    if actor in agent.allowed_users or actor in agent.allowed_actors:
        return CheckResult.allow(USER_AUTHORIZATION, matched="allow_list")

    try:
        ref = ctx.repo_ref
    except RepositoryFormatError as exc:
        logger.warning("Authorization could not resolve repository: %s", exc)
        return CheckResult.unknown(USER_AUTHORIZATION, str(exc), fail_open=False)

    for team in agent.allowed_teams:
        if await client.is_team_member(ref.owner, team, actor):
            return CheckResult.allow(USER_AUTHORIZATION, matched="team", team=team)

    permission = await client.get_repository_permission(ref.owner, ref.repo, actor)
    if permission in ("admin", "write"):
        return CheckResult.allow(USER_AUTHORIZATION, matched="permission", permission=permission)

    if ref.owner == actor:
        return CheckResult.allow(USER_AUTHORIZATION, matched="owner", permission="admin")

    if await client.is_org_member(ref.owner, actor):
        return CheckResult.deny(
            USER_AUTHORIZATION,
            f"User {actor} has read-only access",
            permission=permission,
        )

    return CheckResult.deny(USER_AUTHORIZATION, f"User {actor} is not authorized")
