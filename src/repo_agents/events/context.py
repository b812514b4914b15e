"""Per-run validation context."""

from __future__ import annotations

from dataclasses import dataclass

from repo_agents.config import Settings, get_settings
from repo_agents.github.repository import RepositoryRef


@dataclass(frozen=True, slots=True)
class ValidationContext:
    actor: str
    repository: str
    event_name: str
    event_path: str
    run_id: str
    server_url: str = "https://github.com"
    workflow_file: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        workflow_file: str | None = None,
    ) -> ValidationContext:
        settings = settings or get_settings()
        return cls(
            actor=settings.github_actor,
            repository=settings.github_repository,
            event_name=settings.github_event_name,
            event_path=settings.github_event_path,
            run_id=str(settings.github_run_id),
            server_url=settings.github_server_url.rstrip("/"),
            workflow_file=workflow_file,
        )

    @property
    def repo_ref(self) -> RepositoryRef:
        return RepositoryRef.parse(self.repository)

    @property
    def workflow_run_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.repository}/actions/runs/{self.run_id}"
