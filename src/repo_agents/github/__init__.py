"""GitHub access package."""

from repo_agents.github.client import GitHubClient, RepositoryPermission, WorkflowRun
from repo_agents.github.repository import RepositoryRef

__all__ = ["GitHubClient", "RepositoryPermission", "RepositoryRef", "WorkflowRun"]
