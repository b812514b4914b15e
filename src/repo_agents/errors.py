"""repo-agents exception hierarchy.

All repo-agents exceptions inherit from RepoAgentsError,
enabling structured error handling and cleaner catch clauses.
"""


class RepoAgentsError(Exception):
    """Base exception for all repo-agents errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class GitHubAPIError(RepoAgentsError):
    """Error communicating with the GitHub API."""

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        if retryable is None:
            retryable = status_code is None or status_code == 429 or status_code >= 500
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class AgentDefinitionError(RepoAgentsError):
    """Agent definition failed validation at load time."""


class RepositoryFormatError(RepoAgentsError, ValueError):
    """Repository string is not in owner/repo form."""


class EventPayloadError(RepoAgentsError):
    """Event payload file is missing, undecodable or not valid JSON."""


class ProgressCommentError(RepoAgentsError):
    """Progress comment could not be created or updated."""

    def __init__(self, message: str = "", *, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)
