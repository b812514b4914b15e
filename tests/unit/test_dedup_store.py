from datetime import UTC, datetime, timedelta

import pytest

from repo_agents.agents.loader import load_agent_definition
from repo_agents.dedup.store import (
    DeduplicationRecord,
    DeduplicationState,
    append_record,
    check_action_deduplication,
    check_event_deduplication,
    cleanup_deduplication_state,
    create_deduplication_record,
    event_record_for_run,
    init_deduplication_state,
    parse_time_window,
)
from repo_agents.policy.result import Outcome

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
HOUR_MS = 60 * 60 * 1000


@pytest.mark.parametrize(
    ("window", "expected"),
    [
        ("1h", HOUR_MS),
        ("24h", 24 * HOUR_MS),
        ("7d", 7 * 24 * HOUR_MS),
        ("2w", 14 * 24 * HOUR_MS),
        ("1m", 30 * 24 * HOUR_MS),
        ("bogus", 24 * HOUR_MS),
        ("", 24 * HOUR_MS),
        ("1.5h", 24 * HOUR_MS),
    ],
)
def test_parse_time_window(window: str, expected: int) -> None:
    assert parse_time_window(window) == expected


def _event_agent(window: str = "1h"):
    return load_agent_definition(
        {"name": "agent", "deduplication": {"events": {"enabled": True, "window": window}}}
    )


def _seen_state(key: str, at: datetime, event_type: str = "issues") -> DeduplicationState:
    agent = _event_agent()
    record = create_deduplication_record(
        agent, key, event_type=event_type, issue_number=123, now=at
    )
    return append_record(init_deduplication_state(now=at), record)


def test_event_seen_within_window_is_denied(make_ctx, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"action": "opened", "issue": {"number": 123}}))
    state = _seen_state("agent:event:issues:issue:123:action:opened", T0)

    denied = check_event_deduplication(
        ctx, _event_agent(), state, now=T0 + timedelta(minutes=30)
    )
    assert denied.outcome is Outcome.DENIED
    assert denied.reason == "Event already processed at 2026-03-01T12:00:00.000Z"

    allowed = check_event_deduplication(ctx, _event_agent(), state, now=T0 + timedelta(hours=2))
    assert allowed.allowed is True
    assert allowed.details["key"] == "agent:event:issues:issue:123:action:opened"


def test_event_with_other_event_type_is_not_duplicate(make_ctx, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"action": "opened", "issue": {"number": 123}}))
    state = _seen_state("agent:event:issues:issue:123:action:opened", T0, event_type="pull_request")
    result = check_event_deduplication(ctx, _event_agent(), state, now=T0)
    assert result.allowed is True


def test_event_dedup_disabled_or_stateless(make_ctx, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"action": "opened", "issue": {"number": 123}}))
    state = _seen_state("agent:event:issues:issue:123:action:opened", T0)
    plain = load_agent_definition({"name": "agent"})
    assert check_event_deduplication(ctx, plain, state, now=T0).allowed is True
    assert check_event_deduplication(ctx, _event_agent(), None, now=T0).allowed is True


def test_event_dedup_fails_open_on_unreadable_payload(make_ctx) -> None:
    state = _seen_state("agent:event:issues", T0)
    result = check_event_deduplication(make_ctx(event_path=""), _event_agent(), state, now=T0)
    assert result.outcome is Outcome.UNKNOWN
    assert result.allowed is True


def test_malformed_record_timestamp_is_ignored(make_ctx, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"action": "opened", "issue": {"number": 123}}))
    state = DeduplicationState(
        records=[
            DeduplicationRecord(
                key="agent:event:issues:issue:123:action:opened",
                timestamp="yesterday-ish",
                agent_name="agent",
                event_type="issues",
            )
        ]
    )
    assert check_event_deduplication(ctx, _event_agent(), state, now=T0).allowed is True


def test_event_record_for_run(make_ctx, write_event) -> None:
    ctx = make_ctx(event_path=write_event({"action": "opened", "issue": {"number": 123}}))
    record = event_record_for_run(ctx, _event_agent(), now=T0)
    assert record is not None
    assert record.key == "agent:event:issues:issue:123:action:opened"
    assert record.event_type == "issues"
    assert record.issue_number == 123
    assert event_record_for_run(ctx, load_agent_definition({"name": "agent"})) is None


def test_cleanup_drops_old_records() -> None:
    agent = _event_agent()
    state = init_deduplication_state(now=T0 - timedelta(days=30))
    old = create_deduplication_record(agent, "old", now=T0 - timedelta(days=10))
    state = append_record(state, old)
    new = create_deduplication_record(agent, "new", now=T0 - timedelta(days=1))
    state = append_record(state, new)

    cleaned = cleanup_deduplication_state(state, now=T0)
    assert [record.key for record in cleaned.records] == ["new"]
    assert cleaned.last_cleanup == "2026-03-01T12:00:00.000Z"
    assert [record.key for record in state.records] == ["old", "new"]


def test_append_record_returns_new_state() -> None:
    state = init_deduplication_state(now=T0)
    updated = append_record(state, create_deduplication_record(_event_agent(), "k", now=T0))
    assert state.records == []
    assert len(updated.records) == 1


def _action_agent(match: str, window: str = "24h"):
    return load_agent_definition(
        {
            "name": "agent",
            "deduplication": {
                "actions": {"add-comment": {"enabled": True, "window": window, "match": match}}
            },
        }
    )


def _action_state(details: dict, at: datetime = T0) -> DeduplicationState:
    record = create_deduplication_record(
        _action_agent("exact"),
        "agent:action:add-comment:x",
        action_type="add-comment",
        details=details,
        now=at,
    )
    return append_record(init_deduplication_state(now=at), record)


def test_action_exact_match() -> None:
    state = _action_state({"issue_number": 5, "body": "hello"})
    agent = _action_agent("exact")

    denied = check_action_deduplication(
        agent, "add-comment", {"body": "hello", "issue_number": 5}, state, now=T0
    )
    assert denied.outcome is Outcome.DENIED
    assert denied.reason == "Action add-comment already performed at 2026-03-01T12:00:00.000Z"
    assert denied.details["key"] == 'agent:action:add-comment:{"body":"hello","issue_number":5}'

    other_body = check_action_deduplication(
        agent, "add-comment", {"issue_number": 5, "body": "bye"}, state, now=T0
    )
    assert other_body.allowed is True


def test_action_similar_match_compares_target() -> None:
    state = _action_state({"issue_number": 5, "body": "hello"})
    agent = _action_agent("similar")

    same_issue = check_action_deduplication(
        agent, "add-comment", {"issue_number": 5, "body": "different"}, state, now=T0
    )
    assert same_issue.outcome is Outcome.DENIED

    other_issue = check_action_deduplication(
        agent, "add-comment", {"issue_number": 6, "body": "hello"}, state, now=T0
    )
    assert other_issue.allowed is True


def test_action_outside_window_or_unconfigured_type() -> None:
    state = _action_state({"issue_number": 5})
    agent = _action_agent("exact", window="1h")
    later = T0 + timedelta(hours=2)
    details = {"issue_number": 5}
    assert check_action_deduplication(agent, "add-comment", details, state, now=later).allowed
    assert check_action_deduplication(agent, "add-label", details, state, now=T0).allowed


def test_state_round_trips_through_dict() -> None:
    state = _action_state({"issue_number": 5})
    restored = DeduplicationState.from_dict(state.to_dict())
    assert restored == state
    assert state.to_dict()["schema_version"] == "1.0.0"


def test_state_from_dict_requires_records() -> None:
    with pytest.raises(ValueError):
        DeduplicationState.from_dict({"schema_version": "1.0.0"})
