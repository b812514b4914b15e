"""Event payload access."""

from __future__ import annotations

import base64
import json
import re
from pathlib import Path
from typing import Any

from repo_agents.agents.types import AgentDefinition
from repo_agents.dedup.keys import issue_or_pr_number
from repo_agents.errors import EventPayloadError
from repo_agents.events.context import ValidationContext


def read_event_payload(event_path: str) -> dict[str, Any]:
    if not event_path:
        raise EventPayloadError("event payload path is empty")
    try:
        raw = Path(event_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise EventPayloadError(f"failed to read event payload {event_path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EventPayloadError(f"event payload {event_path} is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise EventPayloadError(f"event payload {event_path} must be a JSON object")
    return payload


def payload_labels(payload: dict[str, Any], sections: tuple[str, ...]) -> list[str]:
    """Label names from the first section present (issue, pull_request, ...)."""
    for section in sections:
        item = payload.get(section)
        if not isinstance(item, dict):
            continue
        labels: list[str] = []
        raw_labels = item.get("labels")
        if isinstance(raw_labels, list):
            for entry in raw_labels:
                if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                    labels.append(entry["name"])
                elif isinstance(entry, str):
                    labels.append(entry)
        return labels
    return []


def get_issue_or_pr_number(ctx: ValidationContext) -> int | None:
    try:
        payload = read_event_payload(ctx.event_path)
    except EventPayloadError:
        return None
    return issue_or_pr_number(payload)


def encode_event_payload(ctx: ValidationContext) -> str | None:
    # Actions step outputs cannot carry newlines, hence base64.
    try:
        raw = Path(ctx.event_path).read_bytes()
    except OSError:
        return None
    return base64.b64encode(raw).decode("ascii")


def slugify_agent_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def default_workflow_file(agent: AgentDefinition) -> str:
    return f"agent-{slugify_agent_name(agent.name)}.yml"
