from repo_agents.dedup.keys import KeyField, build_event_key, classify_key_field


def test_default_fields_build_documented_key() -> None:
    payload = {"action": "opened", "issue": {"number": 123}}
    key = build_event_key("agent", ("event_type", "issue_number", "action"), "issues", payload)
    assert key == "agent:event:issues:issue:123:action:opened"


def test_pr_number_counts_as_issue_number() -> None:
    payload = {"action": "synchronize", "pull_request": {"number": 7}}
    key = build_event_key("a", ("event_type", "issue_number"), "pull_request", payload)
    assert key == "a:event:pull_request:issue:7"


def test_absent_parts_are_omitted() -> None:
    key = build_event_key("a", ("event_type", "issue_number", "action"), "schedule", {})
    assert key == "a:event:schedule"


def test_custom_payload_path() -> None:
    payload = {"comment": {"id": 99}, "action": "created"}
    key = build_event_key("a", ("action", "comment.id"), "issue_comment", payload)
    assert key == "a:event:action:created:comment.id:99"


def test_classify_key_field() -> None:
    assert classify_key_field("event_type") is KeyField.EVENT_TYPE
    assert classify_key_field(" action ") is KeyField.ACTION
    assert classify_key_field("sender.login") is KeyField.PAYLOAD
