"""Progress comment lifecycle."""

from repo_agents.progress.state import (
    ProgressCommentState,
    Stage,
    Status,
    create_initial_progress_state,
    format_progress_comment,
    set_final_comment,
    update_progress_state,
)

__all__ = [
    "ProgressCommentState",
    "Stage",
    "Status",
    "create_initial_progress_state",
    "format_progress_comment",
    "set_final_comment",
    "update_progress_state",
]
