"""Validation audit artifacts.

Matrix jobs cannot export step outputs, so the validate step writes its
decision to ``validation-audit/result.json`` for the execution job and a
record of which checks passed to ``validation-audit/audit.json``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from repo_agents.policy.pipeline import PermissionIssue, ValidationOutcome, ValidationStatus

logger = logging.getLogger(__name__)

AUDIT_DIR = "validation-audit"
AUDIT_FILE = "audit.json"
RESULT_FILE = "result.json"


@dataclass(slots=True)
class ValidationResult:
    should_run: bool
    skip_reason: str | None = None
    bot_triggered: bool = False
    rate_limited: bool = False
    pr_limited: bool = False
    blocked_by_issues: bool = False
    duplicate: bool = False
    progress_comment_id: str | None = None
    progress_issue_number: str | None = None
    target_issue_number: str | None = None
    event_payload: str | None = None

    @classmethod
    def from_outcome(
        cls,
        outcome: ValidationOutcome,
        *,
        progress_comment_id: int | None = None,
        progress_issue_number: int | None = None,
        target_issue_number: int | None = None,
        event_payload: str | None = None,
    ) -> ValidationResult:
        return cls(
            should_run=outcome.allowed,
            skip_reason=None if outcome.allowed else (outcome.reason or None),
            progress_comment_id=_as_str(progress_comment_id),
            progress_issue_number=_as_str(progress_issue_number),
            target_issue_number=_as_str(target_issue_number),
            event_payload=event_payload,
            **outcome.flags(),
        )

    @classmethod
    def from_error(cls, message: str) -> ValidationResult:
        return cls(should_run=False, skip_reason=f"Validation error: {message}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_str(value: int | None) -> str | None:
    return None if value is None else str(value)


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return path


def write_audit(
    artifacts_dir: str | Path,
    agent_name: str,
    status: ValidationStatus,
    issues: list[PermissionIssue],
    *,
    now: datetime | None = None,
) -> Path:
    moment = (now or datetime.now(UTC)).astimezone(UTC)
    payload = {
        "timestamp": moment.isoformat().replace("+00:00", "Z"),
        "agent": agent_name,
        "validation": status.to_dict(),
        "issues": [issue.to_dict() for issue in issues],
    }
    path = _write_json(Path(artifacts_dir) / AUDIT_DIR / AUDIT_FILE, payload)
    logger.debug("Wrote validation audit to %s", path)
    return path


def write_validation_result(artifacts_dir: str | Path, result: ValidationResult) -> Path:
    return _write_json(Path(artifacts_dir) / AUDIT_DIR / RESULT_FILE, result.to_dict())
