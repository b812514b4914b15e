"""Progress comment state machine.

A single issue/PR comment tracks one workflow run through the stages
validation -> context -> agent -> outputs -> complete. ``failed`` is a sink
reachable from any stage and ``skipped`` stages are passed over when advancing.
Everything in this module is pure; the API side lives in ``progress.comments``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum

from repo_agents.agents.types import AgentDefinition


class Stage(str, Enum):
    VALIDATION = "validation"
    CONTEXT = "context"
    AGENT = "agent"
    OUTPUTS = "outputs"
    COMPLETE = "complete"
    FAILED = "failed"


class Status(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.VALIDATION,
    Stage.CONTEXT,
    Stage.AGENT,
    Stage.OUTPUTS,
    Stage.COMPLETE,
)
TABLE_STAGES: tuple[Stage, ...] = STAGE_ORDER[:-1]

STATUS_EMOJI: dict[Status, str] = {
    Status.PENDING: "⏳",
    Status.RUNNING: "🔄",
    Status.SUCCESS: "✅",
    Status.FAILED: "❌",
    Status.SKIPPED: "⏭️",
}
STAGE_LABELS: dict[Stage, str] = {
    Stage.VALIDATION: "Validation",
    Stage.CONTEXT: "Context",
    Stage.AGENT: "Agent",
    Stage.OUTPUTS: "Outputs",
    Stage.COMPLETE: "Complete",
    Stage.FAILED: "Failed",
}

MARKER_PREFIX = "<!-- repo-agents-progress:"
MARKER_SUFFIX = " -->"

_ROW_RE = re.compile(r"^\|\s*(?P<label>[A-Za-z]+)\s*\|\s*(?P<emoji>[^|]+?)\s*\|$")
_ERROR_RE = re.compile(r"^> \*\*Error:\*\* (?P<error>.*)$")
_EMOJI_STATUS = {emoji.rstrip("\ufe0f"): status for status, emoji in STATUS_EMOJI.items()}
_LABEL_STAGE = {label: stage for stage, label in STAGE_LABELS.items()}


def progress_marker(run_id: str, agent_name: str) -> str:
    return f"{MARKER_PREFIX}{run_id}:{agent_name}{MARKER_SUFFIX}"


@dataclass(frozen=True, slots=True)
class ProgressCommentState:
    agent_name: str
    workflow_run_id: str
    workflow_run_url: str
    stages: dict[Stage, Status] = field(default_factory=dict)
    current_stage: Stage = Stage.VALIDATION
    error: str | None = None
    final_comment: str | None = None

    @property
    def marker(self) -> str:
        return progress_marker(self.workflow_run_id, self.agent_name)

    def status_of(self, stage: Stage) -> Status:
        return self.stages.get(stage, Status.PENDING)


def create_initial_progress_state(
    agent_name: str,
    workflow_run_id: str,
    workflow_run_url: str,
    has_context: bool,
) -> ProgressCommentState:
    # Validation already passed by the time the comment is created.
    stages = {stage: Status.PENDING for stage in Stage}
    stages[Stage.VALIDATION] = Status.SUCCESS
    stages[Stage.CONTEXT] = Status.PENDING if has_context else Status.SKIPPED
    return ProgressCommentState(
        agent_name=agent_name,
        workflow_run_id=workflow_run_id,
        workflow_run_url=workflow_run_url,
        stages=stages,
        current_stage=Stage.CONTEXT if has_context else Stage.AGENT,
    )


def _next_stage(stages: dict[Stage, Status], after: Stage) -> Stage | None:
    if after not in STAGE_ORDER:
        return None
    for candidate in STAGE_ORDER[STAGE_ORDER.index(after) + 1 :]:
        if stages.get(candidate) != Status.SKIPPED:
            return candidate
    return None


def update_progress_state(
    state: ProgressCommentState,
    stage: Stage | str,
    status: Status | str,
    error: str | None = None,
) -> ProgressCommentState:
    """Return a new state with ``stage`` set to ``status``.

    ``running`` makes the stage current, ``success`` advances to the next
    non-skipped stage and ``failed`` moves to the failed sink with ``error``.
    ``pending`` and ``skipped`` only record the status.
    """
    stage = Stage(stage)
    status = Status(status)
    stages = {**state.stages, stage: status}
    current = state.current_stage
    new_error = state.error

    if status is Status.RUNNING:
        current = stage
    elif status is Status.SUCCESS:
        current = _next_stage(stages, stage) or current
    elif status is Status.FAILED:
        current = Stage.FAILED
        new_error = error

    return replace(state, stages=stages, current_stage=current, error=new_error)


def set_final_comment(state: ProgressCommentState, comment: str) -> ProgressCommentState:
    """Replace the table with ``comment``; the run is considered complete."""
    return replace(state, final_comment=comment, current_stage=Stage.COMPLETE)


def _header(state: ProgressCommentState) -> str:
    if state.current_stage is Stage.FAILED or state.status_of(state.current_stage) is Status.FAILED:
        icon = "❌"
    elif state.current_stage is Stage.COMPLETE:
        icon = "✅"
    else:
        icon = "🤖"
    return f"### {icon} Agent: {state.agent_name}"


def format_progress_comment(state: ProgressCommentState) -> str:
    if state.final_comment:
        return f"{state.marker}\n{state.final_comment}"

    rows = [
        f"| {STAGE_LABELS[stage]} | {STATUS_EMOJI[state.stages[stage]]} |"
        for stage in TABLE_STAGES
        if stage in state.stages
    ]
    table = "| Stage | Status |\n|-------|--------|\n" + "\n".join(rows)
    error_section = f"\n\n> **Error:** {state.error}" if state.error else ""
    footer = f"*[View workflow run]({state.workflow_run_url})*"
    return f"{state.marker}\n{_header(state)}\n\n{table}\n{error_section}\n\n---\n{footer}"


def should_use_progress_comment(agent: AgentDefinition) -> bool:
    if agent.progress_comment is not None:
        return agent.progress_comment
    return agent.on.issues is not None or agent.on.pull_request is not None


def _current_from_stages(stages: dict[Stage, Status], header: str) -> Stage:
    if any(stages.get(stage) is Status.FAILED for stage in TABLE_STAGES):
        return Stage.FAILED
    if "✅ Agent:" in header:
        return Stage.COMPLETE
    for stage in TABLE_STAGES:
        if stages.get(stage) is Status.RUNNING:
            return stage
    for stage in STAGE_ORDER:
        if stages.get(stage) is Status.PENDING:
            return stage
    return Stage.COMPLETE


def parse_progress_state(
    body: str,
    agent_name: str,
    workflow_run_id: str,
    workflow_run_url: str,
    *,
    has_context: bool = True,
) -> ProgressCommentState:
    """Recover a state from a previously rendered comment body.

    A body with no stage rows is either a final comment (text after the marker
    line) or unrecognized, in which case the initial state is returned.
    """
    stages = {stage: Status.PENDING for stage in Stage}
    parsed = 0
    header = ""
    error: str | None = None
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if line.startswith("### "):
            header = line
            continue
        error_match = _ERROR_RE.match(line)
        if error_match:
            error = error_match.group("error")
            continue
        row = _ROW_RE.match(line)
        if not row:
            continue
        stage = _LABEL_STAGE.get(row.group("label"))
        status = _EMOJI_STATUS.get(row.group("emoji").rstrip("\ufe0f"))
        if stage is None or status is None:
            continue
        stages[stage] = status
        parsed += 1

    if not parsed:
        initial = create_initial_progress_state(
            agent_name, workflow_run_id, workflow_run_url, has_context
        )
        first_line, _, rest = body.partition("\n")
        final = rest.strip()
        if progress_marker(workflow_run_id, agent_name) in first_line and final:
            return set_final_comment(initial, final)
        return initial
    current = _current_from_stages(stages, header)
    if current is Stage.COMPLETE:
        stages[Stage.COMPLETE] = Status.SUCCESS
    return ProgressCommentState(
        agent_name=agent_name,
        workflow_run_id=workflow_run_id,
        workflow_run_url=workflow_run_url,
        stages=stages,
        current_stage=current,
        error=error,
    )
