"""Progress comment create/find/update against the issues API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from repo_agents.errors import GitHubAPIError, ProgressCommentError
from repo_agents.github.client import GitHubClient
from repo_agents.progress.state import (
    ProgressCommentState,
    format_progress_comment,
    progress_marker,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProgressComment:
    id: int
    body: str
    html_url: str = ""

    @classmethod
    def from_api(cls, payload: Any) -> ProgressComment:
        if not isinstance(payload, dict):
            raise ProgressCommentError("Unexpected GitHub response: expected comment object")
        comment_id = payload.get("id")
        if not isinstance(comment_id, int) or isinstance(comment_id, bool):
            raise ProgressCommentError("Unexpected GitHub response: comment has no id")
        return cls(
            id=comment_id,
            body=str(payload.get("body", "") or ""),
            html_url=str(payload.get("html_url", "") or ""),
        )


async def find_progress_comment(
    client: GitHubClient,
    owner: str,
    repo: str,
    issue_number: int,
    run_id: str,
    agent_name: str,
) -> ProgressComment | None:
    """The comment carrying this run's marker, or None (also when listing fails)."""
    marker = progress_marker(run_id, agent_name)
    try:
        comments = await client.list_issue_comments(owner, repo, issue_number)
    except GitHubAPIError as exc:
        logger.warning("Failed to list comments on #%s: %s", issue_number, exc)
        return None

    for item in comments:
        body = item.get("body")
        if isinstance(body, str) and marker in body:
            try:
                return ProgressComment.from_api(item)
            except ProgressCommentError:
                continue
    return None


async def create_progress_comment(
    client: GitHubClient,
    owner: str,
    repo: str,
    issue_number: int,
    state: ProgressCommentState,
) -> ProgressComment:
    payload = await client.api_request(
        f"repos/{owner}/{repo}/issues/{issue_number}/comments",
        method="POST",
        body={"body": format_progress_comment(state)},
    )
    comment = ProgressComment.from_api(payload)
    logger.info("Created progress comment %s on #%s", comment.id, issue_number)
    return comment


async def update_progress_comment(
    client: GitHubClient,
    owner: str,
    repo: str,
    comment_id: int,
    state: ProgressCommentState,
) -> ProgressComment:
    payload = await client.api_request(
        f"repos/{owner}/{repo}/issues/comments/{comment_id}",
        method="PATCH",
        body={"body": format_progress_comment(state)},
    )
    return ProgressComment.from_api(payload)
