import pytest

from repo_agents.policy.registry import CheckInputs, CheckRegistry, build_default_registry
from repo_agents.policy.result import CheckResult


def test_default_registry_order() -> None:
    registry = build_default_registry()
    assert registry.names() == [
        "bot_actor",
        "trigger_labels",
        "skip_labels",
        "event_deduplication",
        "user_authorization",
        "rate_limit",
        "max_open_prs",
        "blocking_issues",
    ]
    needs_state = {check.name: check.needs_dedup_state for check in registry}
    assert needs_state["event_deduplication"] is True
    assert needs_state["rate_limit"] is False


def test_registries_are_independent() -> None:
    first = build_default_registry()
    second = CheckRegistry()
    assert len(first) == 8
    assert len(second) == 0


def test_register_rejects_duplicates() -> None:
    async def _always(inputs: CheckInputs) -> CheckResult:
        return CheckResult.allow("custom")

    registry = CheckRegistry()
    registry.register("custom", "Always allow", _always)
    with pytest.raises(ValueError, match="already registered"):
        registry.register("custom", "Again", _always)
    assert [check.name for check in registry] == ["custom"]
