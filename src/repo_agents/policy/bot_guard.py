"""Bot-loop prevention."""

from repo_agents.policy.result import BOT_ACTOR, CheckResult

BOT_SUFFIX = "[bot]"
KNOWN_BOT_ACTORS = frozenset(
    {
        "github-actions",
        "dependabot",
        "renovate",
        "greenkeeper",
        "snyk-bot",
        "codecov",
        "semantic-release-bot",
    }
)


def is_bot_actor(actor: str) -> bool:
    lowered = actor.strip().lower()
    return lowered.endswith(BOT_SUFFIX) or lowered in KNOWN_BOT_ACTORS


def check_bot_actor(actor: str, *, allow_bot_triggers: bool = False) -> CheckResult:
    if allow_bot_triggers:
        return CheckResult.allow(BOT_ACTOR, is_bot=False)
    if is_bot_actor(actor):
        return CheckResult.deny(
            BOT_ACTOR,
            (
                f"Actor {actor} appears to be a bot. Bot-triggered runs are skipped to "
                "prevent recursive loops; set allow_bot_triggers: true to allow them."
            ),
            is_bot=True,
        )
    return CheckResult.allow(BOT_ACTOR, is_bot=False)
