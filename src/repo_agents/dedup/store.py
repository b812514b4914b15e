"""Deduplication over a persisted record set.

Every function here is a pure transformation of ``DeduplicationState``; loading
and saving the state is the caller's job (see ``repo_agents.dedup.artifacts``).
Only one writer per run is supported, there is no locking.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from repo_agents.agents.types import AgentDefinition
from repo_agents.dedup.keys import build_event_key, issue_or_pr_number
from repo_agents.errors import EventPayloadError
from repo_agents.events.context import ValidationContext
from repo_agents.events.payload import read_event_payload
from repo_agents.policy.result import ACTION_DEDUPLICATION, EVENT_DEDUPLICATION, CheckResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
DEFAULT_WINDOW_MS = DAY_MS
DEFAULT_MAX_AGE_MS = 7 * DAY_MS

_WINDOW_RE = re.compile(r"^(\d+)([hdwm])$")
_UNIT_MS = {"h": HOUR_MS, "d": DAY_MS, "w": 7 * DAY_MS, "m": 30 * DAY_MS}
_TARGET_FIELDS = ("issue_number", "pr_number")


def parse_time_window(window: str) -> int:
    """Window string such as ``24h``/``7d``/``2w``/``1m`` in milliseconds; 24h otherwise."""
    match = _WINDOW_RE.match(window or "")
    if not match:
        return DEFAULT_WINDOW_MS
    return int(match.group(1)) * _UNIT_MS[match.group(2)]


def _iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(slots=True)
class DeduplicationRecord:
    key: str
    timestamp: str
    agent_name: str
    action_type: str | None = None
    event_type: str | None = None
    issue_number: int | None = None
    details: dict[str, Any] | None = None

    def age_ms(self, now: datetime) -> float | None:
        recorded = _parse_timestamp(self.timestamp)
        if recorded is None:
            return None
        return (now - recorded).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "key": self.key,
            "timestamp": self.timestamp,
            "agent_name": self.agent_name,
        }
        for name in ("action_type", "event_type", "issue_number", "details"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeduplicationRecord:
        issue_number = data.get("issue_number")
        details = data.get("details")
        return cls(
            key=str(data["key"]),
            timestamp=str(data["timestamp"]),
            agent_name=str(data["agent_name"]),
            action_type=data.get("action_type"),
            event_type=data.get("event_type"),
            issue_number=issue_number if isinstance(issue_number, int) else None,
            details=details if isinstance(details, dict) else None,
        )


@dataclass(slots=True)
class DeduplicationState:
    schema_version: str = SCHEMA_VERSION
    records: list[DeduplicationRecord] = field(default_factory=list)
    last_cleanup: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "records": [record.to_dict() for record in self.records],
            "last_cleanup": self.last_cleanup,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeduplicationState:
        raw_records = data.get("records")
        if not isinstance(raw_records, list):
            raise ValueError("deduplication state is missing a records list")
        records: list[DeduplicationRecord] = []
        for item in raw_records:
            if not isinstance(item, dict):
                continue
            try:
                records.append(DeduplicationRecord.from_dict(item))
            except KeyError as exc:
                logger.warning("Dropping deduplication record missing %s", exc)
        return cls(
            schema_version=str(data.get("schema_version", SCHEMA_VERSION)),
            records=records,
            last_cleanup=str(data.get("last_cleanup", "")),
        )


def init_deduplication_state(now: datetime | None = None) -> DeduplicationState:
    return DeduplicationState(last_cleanup=_iso(now or datetime.now(UTC)))


def cleanup_deduplication_state(
    state: DeduplicationState,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    *,
    now: datetime | None = None,
) -> DeduplicationState:
    current = now or datetime.now(UTC)
    kept: list[DeduplicationRecord] = []
    for record in state.records:
        age = record.age_ms(current)
        if age is not None and age <= max_age_ms:
            kept.append(record)
    dropped = len(state.records) - len(kept)
    if dropped:
        logger.info("Deduplication cleanup dropped %d record(s)", dropped)
    return replace(state, records=kept, last_cleanup=_iso(current))


def create_deduplication_record(
    agent: AgentDefinition,
    key: str,
    *,
    action_type: str | None = None,
    event_type: str | None = None,
    issue_number: int | None = None,
    details: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> DeduplicationRecord:
    return DeduplicationRecord(
        key=key,
        timestamp=_iso(now or datetime.now(UTC)),
        agent_name=agent.name,
        action_type=action_type,
        event_type=event_type,
        issue_number=issue_number,
        details=details,
    )


def append_record(state: DeduplicationState, record: DeduplicationRecord) -> DeduplicationState:
    return replace(state, records=[*state.records, record])


def _serialize_details(details: dict[str, Any] | None) -> str:
    return json.dumps(details or {}, sort_keys=True, separators=(",", ":"), default=str)


def action_key(agent_name: str, action_type: str, details: dict[str, Any]) -> str:
    return f"{agent_name}:action:{action_type}:{_serialize_details(details)}"


def _target_id(details: dict[str, Any] | None, fallback: int | None = None) -> object | None:
    for name in _TARGET_FIELDS:
        value = (details or {}).get(name)
        if value is not None:
            return value
    return fallback


def _event_key(ctx: ValidationContext, agent: AgentDefinition) -> tuple[str, int | None]:
    """Raises EventPayloadError when the payload cannot be read."""
    events = agent.deduplication.events if agent.deduplication else None
    fields = events.key_fields if events else ()
    payload = read_event_payload(ctx.event_path)
    key = build_event_key(agent.name, fields, ctx.event_name, payload)
    return key, issue_or_pr_number(payload)


def check_event_deduplication(
    ctx: ValidationContext,
    agent: AgentDefinition,
    state: DeduplicationState | None,
    *,
    now: datetime | None = None,
) -> CheckResult:
    events = agent.deduplication.events if agent.deduplication else None
    if events is None or not events.enabled:
        return CheckResult.allow(EVENT_DEDUPLICATION)

    try:
        key, issue_number = _event_key(ctx, agent)
    except EventPayloadError as exc:
        logger.warning("Event deduplication skipped, payload unreadable: %s", exc)
        return CheckResult.unknown(
            EVENT_DEDUPLICATION, "Failed to read event payload", fail_open=True
        )

    if state is None:
        return CheckResult.allow(EVENT_DEDUPLICATION, key=key, issue_number=issue_number)

    current = now or datetime.now(UTC)
    window_ms = parse_time_window(events.window)
    for record in reversed(state.records):
        if record.key != key or record.event_type != ctx.event_name:
            continue
        age = record.age_ms(current)
        if age is not None and age < window_ms:
            return CheckResult.deny(
                EVENT_DEDUPLICATION,
                f"Event already processed at {record.timestamp}",
                key=key,
                previous=record.timestamp,
            )
    return CheckResult.allow(EVENT_DEDUPLICATION, key=key, issue_number=issue_number)


def event_record_for_run(
    ctx: ValidationContext,
    agent: AgentDefinition,
    *,
    now: datetime | None = None,
) -> DeduplicationRecord | None:
    """Record to persist after a successful run, or None when event dedup is off."""
    events = agent.deduplication.events if agent.deduplication else None
    if events is None or not events.enabled:
        return None
    key, issue_number = _event_key(ctx, agent)
    return create_deduplication_record(
        agent,
        key,
        event_type=ctx.event_name,
        issue_number=issue_number,
        now=now,
    )


def check_action_deduplication(
    agent: AgentDefinition,
    action_type: str,
    details: dict[str, Any],
    state: DeduplicationState | None,
    *,
    now: datetime | None = None,
) -> CheckResult:
    actions = agent.deduplication.actions if agent.deduplication else None
    rule = actions.for_action(action_type) if actions else None
    if rule is None or not rule.enabled:
        return CheckResult.allow(ACTION_DEDUPLICATION)

    key = action_key(agent.name, action_type, details)
    if state is None:
        return CheckResult.allow(ACTION_DEDUPLICATION, key=key)

    current = now or datetime.now(UTC)
    window_ms = parse_time_window(rule.window)
    wanted_details = _serialize_details(details)
    wanted_target = _target_id(details)
    for record in reversed(state.records):
        if record.agent_name != agent.name or record.action_type != action_type:
            continue
        age = record.age_ms(current)
        if age is None or age >= window_ms:
            continue
        if rule.match == "exact":
            duplicate = _serialize_details(record.details) == wanted_details
        else:
            duplicate = wanted_target is not None and (
                _target_id(record.details, record.issue_number) == wanted_target
            )
        if duplicate:
            return CheckResult.deny(
                ACTION_DEDUPLICATION,
                f"Action {action_type} already performed at {record.timestamp}",
                key=key,
                match=rule.match,
                previous=record.timestamp,
            )
    return CheckResult.allow(ACTION_DEDUPLICATION, key=key)
