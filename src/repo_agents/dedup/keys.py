"""Composite key construction for event deduplication."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

DEFAULT_EVENT_KEY_FIELDS = ("event_type", "issue_number", "action")


class KeyField(str, Enum):
    EVENT_TYPE = "event_type"
    ISSUE_NUMBER = "issue_number"
    ACTION = "action"
    PAYLOAD = "payload"


def classify_key_field(token: str) -> KeyField:
    """Map a configured token to its key-field kind; unknown tokens are payload paths."""
    clean = token.strip()
    for kind in (KeyField.EVENT_TYPE, KeyField.ISSUE_NUMBER, KeyField.ACTION):
        if clean == kind.value:
            return kind
    return KeyField.PAYLOAD


def _lookup_path(payload: Mapping[str, Any], path: str) -> Any:
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def issue_or_pr_number(payload: Mapping[str, Any]) -> int | None:
    for section in ("issue", "pull_request"):
        item = payload.get(section)
        if isinstance(item, Mapping):
            number = item.get("number")
            if isinstance(number, int) and not isinstance(number, bool):
                return number
    return None


def build_event_key(
    agent_name: str,
    fields: Iterable[str],
    event_name: str,
    payload: Mapping[str, Any],
) -> str:
    parts: list[str] = []
    for token in fields:
        kind = classify_key_field(token)
        if kind is KeyField.EVENT_TYPE:
            parts.append(event_name)
        elif kind is KeyField.ISSUE_NUMBER:
            number = issue_or_pr_number(payload)
            if number is not None:
                parts.append(f"issue:{number}")
        elif kind is KeyField.ACTION:
            action = payload.get("action")
            if isinstance(action, str) and action:
                parts.append(f"action:{action}")
        else:
            path = token.strip()
            value = _lookup_path(payload, path)
            if value is not None:
                parts.append(f"{path}:{value}")
    return ":".join([agent_name, "event", *parts])
