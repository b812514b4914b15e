"""Check registration for the validation pipeline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from datetime import datetime

from repo_agents.agents.types import AgentDefinition
from repo_agents.dedup.store import DeduplicationState, check_event_deduplication
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient
from repo_agents.policy.authorization import check_user_authorization
from repo_agents.policy.backpressure import DEFAULT_SENTINEL_LABEL, check_max_open_prs
from repo_agents.policy.bot_guard import check_bot_actor
from repo_agents.policy.dependencies import check_blocking_issues
from repo_agents.policy.labels import check_skip_labels, check_trigger_labels
from repo_agents.policy.rate_limit import check_rate_limit
from repo_agents.policy.result import (
    BLOCKING_ISSUES,
    BOT_ACTOR,
    EVENT_DEDUPLICATION,
    MAX_OPEN_PRS,
    RATE_LIMIT,
    SKIP_LABELS,
    TRIGGER_LABELS,
    USER_AUTHORIZATION,
    CheckResult,
)


@dataclass(slots=True)
class CheckInputs:
    ctx: ValidationContext
    agent: AgentDefinition
    client: GitHubClient
    dedup_state: DeduplicationState | None = None
    now: datetime | None = None
    sentinel_label: str = DEFAULT_SENTINEL_LABEL


CheckCallable = Callable[[CheckInputs], Awaitable[CheckResult]]


@dataclass(slots=True)
class CheckDef:
    name: str
    description: str
    handler: CheckCallable
    # Skipped by the pipeline unless a dedup state was supplied for the run.
    needs_dedup_state: bool = False


class CheckRegistry:
    """Ordered set of named checks; iteration order is registration order."""

    def __init__(self) -> None:
        self._checks: dict[str, CheckDef] = {}

    def register(
        self,
        name: str,
        description: str,
        handler: CheckCallable,
        *,
        needs_dedup_state: bool = False,
    ) -> None:
        if name in self._checks:
            raise ValueError(f"check already registered: {name}")
        self._checks[name] = CheckDef(
            name=name,
            description=description,
            handler=handler,
            needs_dedup_state=needs_dedup_state,
        )

    def names(self) -> list[str]:
        return list(self._checks)

    def __iter__(self) -> Iterator[CheckDef]:
        return iter(list(self._checks.values()))

    def __len__(self) -> int:
        return len(self._checks)


async def _bot_actor(inputs: CheckInputs) -> CheckResult:
    return check_bot_actor(inputs.ctx.actor, allow_bot_triggers=inputs.agent.allow_bot_triggers)


async def _trigger_labels(inputs: CheckInputs) -> CheckResult:
    return check_trigger_labels(inputs.ctx, inputs.agent)


async def _skip_labels(inputs: CheckInputs) -> CheckResult:
    return check_skip_labels(inputs.ctx, inputs.agent)


async def _event_dedup(inputs: CheckInputs) -> CheckResult:
    return check_event_deduplication(
        inputs.ctx, inputs.agent, inputs.dedup_state, now=inputs.now
    )


async def _authorization(inputs: CheckInputs) -> CheckResult:
    return await check_user_authorization(inputs.ctx, inputs.agent, inputs.client)


async def _rate_limit(inputs: CheckInputs) -> CheckResult:
    return await check_rate_limit(inputs.ctx, inputs.agent, inputs.client, now=inputs.now)


async def _max_open_prs(inputs: CheckInputs) -> CheckResult:
    return await check_max_open_prs(
        inputs.ctx, inputs.agent, inputs.client, sentinel_label=inputs.sentinel_label
    )


async def _blocking_issues(inputs: CheckInputs) -> CheckResult:
    return await check_blocking_issues(inputs.ctx, inputs.agent, inputs.client)


def build_default_registry() -> CheckRegistry:
    registry = CheckRegistry()
    registry.register(BOT_ACTOR, "Reject events triggered by bot accounts", _bot_actor)
    registry.register(
        TRIGGER_LABELS, "Require one of the trigger labels on issues", _trigger_labels
    )
    registry.register(SKIP_LABELS, "Skip issues/PRs carrying a skip label", _skip_labels)
    registry.register(
        EVENT_DEDUPLICATION,
        "Skip events already processed within the window",
        _event_dedup,
        needs_dedup_state=True,
    )
    registry.register(
        USER_AUTHORIZATION, "Require write access or an allow-list entry", _authorization
    )
    registry.register(RATE_LIMIT, "Minimum spacing between successful runs", _rate_limit)
    registry.register(MAX_OPEN_PRS, "Cap open agent pull requests", _max_open_prs)
    registry.register(BLOCKING_ISSUES, "Wait for blocking issues to close", _blocking_issues)
    return registry
