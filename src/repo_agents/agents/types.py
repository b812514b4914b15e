"""Agent definition models.

The markdown parser hands us a plain mapping; everything the admission checks
read is validated here once, at load time.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from repo_agents.dedup.keys import DEFAULT_EVENT_KEY_FIELDS

MatchMode = Literal["exact", "similar"]

_RULE_KEYS = {"enabled", "window", "match"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class EventTypes(_Frozen):
    types: tuple[str, ...] = ()


class ScheduleTrigger(_Frozen):
    cron: str


class TriggerConfig(_Frozen):
    issues: EventTypes | None = None
    pull_request: EventTypes | None = None
    discussion: EventTypes | None = None
    schedule: tuple[ScheduleTrigger, ...] = ()
    workflow_dispatch: bool | dict[str, Any] | None = None
    repository_dispatch: EventTypes | None = None


class PreFlightConfig(_Frozen):
    check_blocking_issues: bool = False


class DedupRule(_Frozen):
    enabled: bool = False
    window: str = "24h"
    match: MatchMode = "exact"


class EventDedupConfig(_Frozen):
    enabled: bool = False
    window: str = "24h"
    key_fields: tuple[str, ...] = DEFAULT_EVENT_KEY_FIELDS

    @field_validator("key_fields")
    @classmethod
    def _non_empty_fields(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(item.strip() for item in value if item.strip())
        if not cleaned:
            raise ValueError("key_fields must contain at least one field")
        return cleaned


class ActionDedupConfig(_Frozen):
    """Either one rule for every action type, or one rule per action type."""

    default: DedupRule | None = None
    per_action: dict[str, DedupRule] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _tag_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "default" in data or "per_action" in data:
            return data
        if _RULE_KEYS & set(data):
            return {"default": data}
        return {"per_action": data}

    def for_action(self, action_type: str) -> DedupRule | None:
        rule = self.per_action.get(action_type)
        if rule is not None:
            return rule
        return self.default


class DeduplicationConfig(_Frozen):
    events: EventDedupConfig | None = None
    actions: ActionDedupConfig | None = None


class AgentDefinition(_Frozen):
    name: str = Field(min_length=1)
    on: TriggerConfig = Field(default_factory=TriggerConfig)
    outputs: dict[str, Any] = Field(default_factory=dict)
    allowed_users: tuple[str, ...] = ()
    allowed_actors: tuple[str, ...] = ()
    allowed_teams: tuple[str, ...] = ()
    allow_bot_triggers: bool = False
    trigger_labels: tuple[str, ...] = ()
    skip_labels: tuple[str, ...] = ()
    rate_limit_minutes: float = Field(default=5, ge=0)
    max_open_prs: int | None = Field(default=None, ge=1)
    pre_flight: PreFlightConfig | None = None
    deduplication: DeduplicationConfig | None = None
    context: dict[str, Any] | None = None
    progress_comment: bool | None = None
    markdown: str = ""

    @property
    def can_create_prs(self) -> bool:
        value = self.outputs.get("create-pr")
        return value is not None and value is not False

    @property
    def has_context(self) -> bool:
        return bool(self.context)
