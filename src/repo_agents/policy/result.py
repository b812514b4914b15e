"""Check outcomes shared by every admission gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

BOT_ACTOR = "bot_actor"
TRIGGER_LABELS = "trigger_labels"
SKIP_LABELS = "skip_labels"
EVENT_DEDUPLICATION = "event_deduplication"
USER_AUTHORIZATION = "user_authorization"
RATE_LIMIT = "rate_limit"
MAX_OPEN_PRS = "max_open_prs"
BLOCKING_ISSUES = "blocking_issues"
ACTION_DEDUPLICATION = "action_deduplication"


class Outcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class CheckResult:
    """Result of one gate.

    UNKNOWN means the gate could not decide (unreadable payload, API failure);
    ``fail_open`` records which way that inconclusive result falls.
    """

    check: str
    outcome: Outcome
    reason: str = ""
    fail_open: bool = True
    silent: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        if self.outcome is Outcome.UNKNOWN:
            return self.fail_open
        return self.outcome is Outcome.ALLOWED

    @property
    def determined(self) -> bool:
        return self.outcome is not Outcome.UNKNOWN

    @classmethod
    def allow(cls, check: str, reason: str = "", **details: Any) -> CheckResult:
        return cls(check=check, outcome=Outcome.ALLOWED, reason=reason, details=details)

    @classmethod
    def deny(cls, check: str, reason: str, *, silent: bool = False, **details: Any) -> CheckResult:
        return cls(
            check=check,
            outcome=Outcome.DENIED,
            reason=reason,
            silent=silent,
            details=details,
        )

    @classmethod
    def unknown(cls, check: str, reason: str, *, fail_open: bool, **details: Any) -> CheckResult:
        return cls(
            check=check,
            outcome=Outcome.UNKNOWN,
            reason=reason,
            fail_open=fail_open,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "check": self.check,
            "outcome": self.outcome.value,
            "allowed": self.allowed,
            "reason": self.reason,
            "fail_open": self.fail_open,
            "silent": self.silent,
            "details": self.details,
        }
