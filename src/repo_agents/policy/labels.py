"""Trigger and skip label gates.

Both use OR semantics. They differ on an unreadable payload: trigger labels
deny, skip labels allow. That asymmetry is long-standing behavior and is kept
as-is until its intent is settled.
"""

import logging

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import EventPayloadError
from repo_agents.events.context import ValidationContext
from repo_agents.events.payload import payload_labels, read_event_payload
from repo_agents.policy.result import SKIP_LABELS, TRIGGER_LABELS, CheckResult

logger = logging.getLogger(__name__)

SKIP_LABEL_EVENTS = ("issues", "pull_request")


def check_trigger_labels(ctx: ValidationContext, agent: AgentDefinition) -> CheckResult:
    if not agent.trigger_labels:
        return CheckResult.allow(TRIGGER_LABELS)
    # pull_request, schedule, workflow_dispatch and friends are not label-gated
    if ctx.event_name != "issues":
        return CheckResult.allow(TRIGGER_LABELS, bypassed_event=ctx.event_name)

    try:
        payload = read_event_payload(ctx.event_path)
    except EventPayloadError as exc:
        logger.warning("Failed to read event labels: %s", exc)
        return CheckResult.unknown(
            TRIGGER_LABELS, "Failed to read event labels", fail_open=False
        )

    present = payload_labels(payload, ("issue",))
    matched = [label for label in agent.trigger_labels if label in present]
    if not matched:
        required = ", ".join(agent.trigger_labels)
        return CheckResult.deny(
            TRIGGER_LABELS,
            f"Missing required trigger label (need at least one of: {required})",
            present_labels=present,
            required_labels=list(agent.trigger_labels),
        )
    return CheckResult.allow(TRIGGER_LABELS, present_labels=present, matched_labels=matched)


def check_skip_labels(ctx: ValidationContext, agent: AgentDefinition) -> CheckResult:
    if not agent.skip_labels:
        return CheckResult.allow(SKIP_LABELS)
    if ctx.event_name not in SKIP_LABEL_EVENTS:
        return CheckResult.allow(SKIP_LABELS, bypassed_event=ctx.event_name)

    try:
        payload = read_event_payload(ctx.event_path)
    except EventPayloadError as exc:
        logger.warning("Failed to read event labels for skip check: %s", exc)
        return CheckResult.unknown(
            SKIP_LABELS, "Failed to read event labels", fail_open=True
        )

    present = payload_labels(payload, ("issue", "pull_request"))
    matched = [label for label in agent.skip_labels if label in present]
    if matched:
        return CheckResult.deny(
            SKIP_LABELS,
            f"Skipped due to label(s): {', '.join(matched)}",
            present_labels=present,
            matched_labels=matched,
        )
    return CheckResult.allow(SKIP_LABELS, present_labels=present, matched_labels=[])
