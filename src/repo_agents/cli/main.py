"""Click CLI group: validate, progress, dedup-cleanup and record-event commands."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from repo_agents.agents.loader import load_agent_file
from repo_agents.agents.types import AgentDefinition
from repo_agents.audit import ValidationResult, write_audit, write_validation_result
from repo_agents.config import Settings, get_settings, validate_settings_for_env
from repo_agents.dedup.artifacts import load_state, save_state
from repo_agents.dedup.store import (
    append_record,
    cleanup_deduplication_state,
    event_record_for_run,
    parse_time_window,
)
from repo_agents.errors import (
    AgentDefinitionError,
    EventPayloadError,
    GitHubAPIError,
    ProgressCommentError,
    RepoAgentsError,
)
from repo_agents.events.context import ValidationContext
from repo_agents.events.payload import encode_event_payload, get_issue_or_pr_number
from repo_agents.github.client import GitHubClient
from repo_agents.logging import bind_context, clear_context, configure_logging
from repo_agents.policy.pipeline import PermissionIssue, ValidationPipeline, ValidationStatus
from repo_agents.policy.registry import build_default_registry
from repo_agents.progress.comments import create_progress_comment
from repo_agents.progress.stage import read_final_comment, run_progress
from repo_agents.progress.state import (
    Stage,
    Status,
    create_initial_progress_state,
    should_use_progress_comment,
)

logger = logging.getLogger(__name__)

_PATH = click.Path(path_type=Path, dir_okay=False)


def _bootstrap() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    try:
        validate_settings_for_env(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    return settings


def _load_agent(path: Path) -> AgentDefinition:
    try:
        return load_agent_file(path)
    except AgentDefinitionError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_result(result: ValidationResult, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    click.echo(f"should-run: {str(result.should_run).lower()}")
    if result.skip_reason:
        click.echo(f"skip-reason: {result.skip_reason}")
    if result.progress_comment_id:
        click.echo(f"progress-comment-id: {result.progress_comment_id}")


async def _create_progress_comment(
    client: GitHubClient,
    ctx: ValidationContext,
    agent: AgentDefinition,
    issue_number: int | None,
) -> int | None:
    if not should_use_progress_comment(agent):
        return None
    if not issue_number:
        logger.info("Progress comment: no issue/PR number in event, skipping")
        return None
    state = create_initial_progress_state(
        agent.name, ctx.run_id, ctx.workflow_run_url, agent.has_context
    )
    try:
        ref = ctx.repo_ref
        comment = await create_progress_comment(client, ref.owner, ref.repo, issue_number, state)
    except (GitHubAPIError, ProgressCommentError) as exc:
        logger.warning("Failed to create progress comment: %s", exc)
        return None
    return comment.id


async def _run_validate(
    settings: Settings,
    agent: AgentDefinition,
    ctx: ValidationContext,
    dedup_state_path: Path | None,
) -> ValidationResult:
    dedup_state = load_state(dedup_state_path) if dedup_state_path else None
    async with GitHubClient.from_settings(settings) as client:
        pipeline = ValidationPipeline(build_default_registry(), client)
        outcome = await pipeline.run(
            ctx,
            agent,
            dedup_state=dedup_state,
            sentinel_label=settings.pr_sentinel_label,
        )
        write_audit(settings.artifacts_dir, agent.name, outcome.status, outcome.issues)
        if not outcome.allowed:
            return ValidationResult.from_outcome(outcome)

        target = get_issue_or_pr_number(ctx)
        comment_id = await _create_progress_comment(client, ctx, agent, target)
        return ValidationResult.from_outcome(
            outcome,
            progress_comment_id=comment_id,
            progress_issue_number=target if comment_id is not None else None,
            target_issue_number=target,
            event_payload=encode_event_payload(ctx),
        )


@click.group()
def cli() -> None:
    """repo-agents runtime CLI."""


@cli.command()
@click.option("--agent", "agent_path", type=_PATH, required=True, help="Parsed agent JSON.")
@click.option("--dedup-state", "dedup_state_path", type=_PATH, default=None)
@click.option("--workflow-file", type=str, default=None, help="Workflow file for rate limiting.")
@click.option("--json", "json_output", is_flag=True, help="Print the result as JSON.")
def validate(
    agent_path: Path,
    dedup_state_path: Path | None,
    workflow_file: str | None,
    json_output: bool,
) -> None:
    """Run the admission checks for one agent and write the audit artifacts."""
    settings = _bootstrap()
    agent: AgentDefinition | None = None
    try:
        agent = load_agent_file(agent_path)
        ctx = ValidationContext.from_settings(settings, workflow_file=workflow_file)
        clear_context()
        bind_context(agent=agent.name, run_id=ctx.run_id, repository=ctx.repository)
        result = asyncio.run(_run_validate(settings, agent, ctx, dedup_state_path))
    except RepoAgentsError as exc:
        logger.error("Validation failed: %s", exc)
        issue = PermissionIssue.validation_error(f"Validation error: {exc}")
        status = ValidationStatus(agent_loaded=agent is not None)
        write_audit(settings.artifacts_dir, agent.name if agent else "unknown", status, [issue])
        result = ValidationResult.from_error(str(exc))
        write_validation_result(settings.artifacts_dir, result)
        _echo_result(result, json_output)
        raise SystemExit(1) from exc

    write_validation_result(settings.artifacts_dir, result)
    _echo_result(result, json_output)


@cli.command()
@click.option("--agent", "agent_path", type=_PATH, required=True)
@click.option("--comment-id", type=int, default=None)
@click.option("--issue-number", type=int, default=None)
@click.option("--stage", type=click.Choice([stage.value for stage in Stage]), required=True)
@click.option(
    "--status",
    type=click.Choice([status.value for status in Status if status is not Status.PENDING]),
    required=True,
)
@click.option("--error", "error_text", type=str, default=None)
@click.option("--final-comment-file", type=_PATH, default=None)
def progress(
    agent_path: Path,
    comment_id: int | None,
    issue_number: int | None,
    stage: str,
    status: str,
    error_text: str | None,
    final_comment_file: Path | None,
) -> None:
    """Apply one stage transition to the run's progress comment."""
    settings = _bootstrap()
    try:
        agent = load_agent_file(agent_path)
    except AgentDefinitionError as exc:
        logger.warning("Progress update skipped: %s", exc)
        return
    ctx = ValidationContext.from_settings(settings)
    clear_context()
    bind_context(agent=agent.name, run_id=ctx.run_id, repository=ctx.repository)
    final_comment = read_final_comment(final_comment_file) if final_comment_file else None

    async def _update() -> None:
        async with GitHubClient.from_settings(settings) as client:
            update = await run_progress(
                client,
                ctx,
                agent,
                comment_id=comment_id,
                issue_number=issue_number,
                stage=stage,
                status=status,
                error=error_text,
                final_comment=final_comment,
            )
        click.echo("updated" if update.updated else f"not updated: {update.error or 'skipped'}")

    asyncio.run(_update())


@cli.command("dedup-cleanup")
@click.option("--state", "state_path", type=_PATH, required=True)
@click.option("--max-age", type=str, default=None, help="Window such as 7d (default from env).")
def dedup_cleanup(state_path: Path, max_age: str | None) -> None:
    """Drop deduplication records older than the max age."""
    settings = _bootstrap()
    max_age_ms = parse_time_window(max_age or settings.dedup_max_age)
    state = cleanup_deduplication_state(load_state(state_path), max_age_ms)
    save_state(state_path, state)
    click.echo(f"kept {len(state.records)} record(s)")


@cli.command("record-event")
@click.option("--agent", "agent_path", type=_PATH, required=True)
@click.option("--state", "state_path", type=_PATH, required=True)
def record_event(agent_path: Path, state_path: Path) -> None:
    """Record the current event as processed after a successful run."""
    settings = _bootstrap()
    agent = _load_agent(agent_path)
    ctx = ValidationContext.from_settings(settings)
    try:
        record = event_record_for_run(ctx, agent)
    except EventPayloadError as exc:
        raise click.ClickException(str(exc)) from exc
    if record is None:
        click.echo("event deduplication disabled")
        return
    save_state(state_path, append_record(load_state(state_path), record))
    click.echo(f"recorded {record.key}")
