"""Sequential admission pipeline.

Checks run in registry order and the first effective deny is terminal. An
inconclusive (UNKNOWN) result only stops the run when its check fails closed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from repo_agents.agents.types import AgentDefinition
from repo_agents.dedup.store import DeduplicationState
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient
from repo_agents.policy.backpressure import DEFAULT_SENTINEL_LABEL
from repo_agents.policy.registry import CheckInputs, CheckRegistry
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

logger = logging.getLogger(__name__)

IssueType = Literal["missing_permission", "path_restriction", "rate_limit", "validation_error"]
Severity = Literal["error", "warning"]

_STATUS_FIELDS: dict[str, str] = {
    BOT_ACTOR: "bot_actor_check",
    TRIGGER_LABELS: "labels_check",
    SKIP_LABELS: "skip_labels_check",
    EVENT_DEDUPLICATION: "deduplication_check",
    USER_AUTHORIZATION: "user_authorization",
    RATE_LIMIT: "rate_limit_check",
    MAX_OPEN_PRS: "max_open_prs_check",
    BLOCKING_ISSUES: "blocking_issues_check",
}

_ISSUES: dict[str, tuple[IssueType, Severity, str]] = {
    BOT_ACTOR: (
        "validation_error",
        "warning",
        "Bot actor detected - skipping to prevent recursive loops",
    ),
    TRIGGER_LABELS: ("validation_error", "warning", "Required trigger labels not present"),
    SKIP_LABELS: ("validation_error", "warning", "Skip label present"),
    EVENT_DEDUPLICATION: ("validation_error", "warning", "Event already processed"),
    USER_AUTHORIZATION: ("missing_permission", "error", "User not authorized to trigger agent"),
    RATE_LIMIT: ("rate_limit", "warning", "Rate limit exceeded"),
    BLOCKING_ISSUES: ("validation_error", "warning", "Issue has open blocking dependencies"),
}


def _timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(UTC)).astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(slots=True)
class ValidationStatus:
    agent_loaded: bool = False
    bot_actor_check: bool = False
    labels_check: bool = False
    skip_labels_check: bool = False
    deduplication_check: bool = False
    user_authorization: bool = False
    rate_limit_check: bool = False
    max_open_prs_check: bool = False
    blocking_issues_check: bool = False

    def mark_passed(self, check: str) -> None:
        name = _STATUS_FIELDS.get(check)
        if name is not None:
            setattr(self, name, True)

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(slots=True)
class PermissionIssue:
    timestamp: str
    issue_type: IssueType
    severity: Severity
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(
        cls,
        result: CheckResult,
        ctx: ValidationContext,
        *,
        now: datetime | None = None,
    ) -> PermissionIssue:
        issue_type, severity, message = _ISSUES.get(
            result.check, ("validation_error", "warning", f"Check {result.check} failed")
        )
        if result.check not in _ISSUES and result.reason:
            message = result.reason
        return cls(
            timestamp=_timestamp(now),
            issue_type=issue_type,
            severity=severity,
            message=message,
            context={"actor": ctx.actor, "reason": result.reason, **result.details},
        )

    @classmethod
    def validation_error(cls, message: str, *, now: datetime | None = None) -> PermissionIssue:
        return cls(
            timestamp=_timestamp(now),
            issue_type="validation_error",
            severity="error",
            message=message,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ValidationOutcome:
    allowed: bool
    reason: str = ""
    failing_check: str | None = None
    status: ValidationStatus = field(default_factory=ValidationStatus)
    issues: list[PermissionIssue] = field(default_factory=list)
    results: list[CheckResult] = field(default_factory=list)

    @property
    def bot_triggered(self) -> bool:
        return self.failing_check == BOT_ACTOR

    @property
    def rate_limited(self) -> bool:
        return self.failing_check == RATE_LIMIT

    @property
    def pr_limited(self) -> bool:
        return self.failing_check == MAX_OPEN_PRS

    @property
    def blocked_by_issues(self) -> bool:
        return self.failing_check == BLOCKING_ISSUES

    @property
    def duplicate(self) -> bool:
        return self.failing_check == EVENT_DEDUPLICATION

    def flags(self) -> dict[str, bool]:
        return {
            "bot_triggered": self.bot_triggered,
            "rate_limited": self.rate_limited,
            "pr_limited": self.pr_limited,
            "blocked_by_issues": self.blocked_by_issues,
            "duplicate": self.duplicate,
        }


class ValidationPipeline:
    def __init__(self, registry: CheckRegistry, client: GitHubClient) -> None:
        self._registry = registry
        self._client = client

    async def run(
        self,
        ctx: ValidationContext,
        agent: AgentDefinition,
        *,
        dedup_state: DeduplicationState | None = None,
        now: datetime | None = None,
        sentinel_label: str = DEFAULT_SENTINEL_LABEL,
    ) -> ValidationOutcome:
        outcome = ValidationOutcome(allowed=False, status=ValidationStatus(agent_loaded=True))
        inputs = CheckInputs(
            ctx=ctx,
            agent=agent,
            client=self._client,
            dedup_state=dedup_state,
            now=now,
            sentinel_label=sentinel_label,
        )

        for check in self._registry:
            if check.needs_dedup_state and dedup_state is None:
                continue
            result = await check.handler(inputs)
            outcome.results.append(result)

            if not result.allowed:
                logger.info("Agent %s skipped by %s: %s", agent.name, check.name, result.reason)
                if not result.silent:
                    outcome.issues.append(PermissionIssue.from_result(result, ctx, now=now))
                outcome.reason = result.reason
                outcome.failing_check = check.name
                return outcome

            if not result.determined:
                logger.warning(
                    "Check %s inconclusive for %s, continuing: %s",
                    check.name,
                    agent.name,
                    result.reason,
                )
            outcome.status.mark_passed(check.name)

        outcome.allowed = True
        logger.info("All validation checks passed for %s", agent.name)
        return outcome
