"""Workflow-step driver for progress comment transitions.

Called once per lifecycle boundary, each time in a fresh process, so the
current state is re-read from the rendered comment before every update.
A failed update is logged and reported, never raised: progress reporting must
not fail the workflow it reports on.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from repo_agents.agents.types import AgentDefinition
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient
from repo_agents.progress.comments import find_progress_comment, update_progress_comment
from repo_agents.progress.state import (
    ProgressCommentState,
    Stage,
    Status,
    parse_progress_state,
    set_final_comment,
    should_use_progress_comment,
    update_progress_state,
)

logger = logging.getLogger(__name__)

DEFAULT_FINAL_COMMENT_PATH = "/tmp/outputs/add-comment.json"


@dataclass(slots=True)
class ProgressUpdate:
    updated: bool
    error: str | None = None
    state: ProgressCommentState | None = None


def read_final_comment(path: str | Path = DEFAULT_FINAL_COMMENT_PATH) -> str | None:
    """Body of the agent's add-comment output, if it produced one."""
    try:
        decoded = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(decoded, dict):
        return None
    body = decoded.get("body")
    return body if isinstance(body, str) and body else None


async def run_progress(
    client: GitHubClient,
    ctx: ValidationContext,
    agent: AgentDefinition,
    *,
    comment_id: int | None,
    issue_number: int | None,
    stage: Stage | str,
    status: Status | str,
    error: str | None = None,
    final_comment: str | None = None,
) -> ProgressUpdate:
    if not should_use_progress_comment(agent):
        return ProgressUpdate(updated=False)
    if not comment_id or not issue_number:
        logger.info("No progress comment info for %s, skipping update", agent.name)
        return ProgressUpdate(updated=False)

    try:
        ref = ctx.repo_ref
        existing = await find_progress_comment(
            client, ref.owner, ref.repo, issue_number, ctx.run_id, agent.name
        )
        if existing is None:
            logger.info("Progress comment not found on #%s", issue_number)
            return ProgressUpdate(updated=False)

        state = parse_progress_state(
            existing.body,
            agent.name,
            ctx.run_id,
            ctx.workflow_run_url,
            has_context=agent.has_context,
        )
        if final_comment:
            state = set_final_comment(state, final_comment)
        else:
            state = update_progress_state(state, stage, status, error)

        await update_progress_comment(client, ref.owner, ref.repo, comment_id, state)
    except Exception as exc:
        logger.warning("Failed to update progress comment: %s", exc, exc_info=True)
        return ProgressUpdate(updated=False, error=str(exc))

    logger.info("Updated progress comment, current stage %s", state.current_stage.value)
    return ProgressUpdate(updated=True, state=state)
