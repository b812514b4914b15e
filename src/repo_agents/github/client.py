"""Async GitHub REST client used by the admission checks and progress comments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from repo_agents.config import Settings, get_settings
from repo_agents.errors import GitHubAPIError

logger = logging.getLogger(__name__)

RepositoryPermission = Literal["admin", "write", "read", "none"]
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

_PERMISSION_ALIASES: dict[str, RepositoryPermission] = {
    "admin": "admin",
    "maintain": "write",
    "write": "write",
    "triage": "read",
    "read": "read",
}


def _github_headers(token: str) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": "repo-agents-runtime/1.0",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _as_int(value: object, *, field: str) -> int:
    if isinstance(value, bool):
        raise GitHubAPIError(f"Unexpected GitHub response type for {field}", retryable=False)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError as exc:
            raise GitHubAPIError(
                f"Unexpected GitHub response value for {field}: {value}", retryable=False
            ) from exc
    raise GitHubAPIError(f"Unexpected GitHub response type for {field}", retryable=False)


@dataclass(slots=True)
class WorkflowRun:
    id: int
    name: str
    status: str
    conclusion: str | None
    created_at: str
    head_branch: str = ""


class GitHubClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GitHubClient:
        settings = settings or get_settings()
        return cls(
            settings.github_token.strip(),
            base_url=settings.github_api_base_url,
            timeout=settings.github_http_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                headers=_github_headers(self._token),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http

    async def api_request(
        self,
        path: str,
        method: HttpMethod = "GET",
        body: object | None = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body.

        Returns None for empty responses (204 and friends). Raises GitHubAPIError
        for transport failures and non-2xx responses.
        """
        url = "/" + path.lstrip("/")
        try:
            resp = await self._client().request(method, url, json=body, params=params)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request failed: {method} {url}: {exc}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            raise GitHubAPIError(
                f"GitHub API request failed: {method} {url} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.content.strip():
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub API returned invalid JSON for {method} {url}",
                status_code=resp.status_code,
                retryable=False,
            ) from exc

    async def get_repository_permission(
        self, owner: str, repo: str, username: str
    ) -> RepositoryPermission:
        try:
            payload = await self.api_request(
                f"repos/{owner}/{repo}/collaborators/{username}/permission"
            )
        except GitHubAPIError as exc:
            logger.warning("Permission lookup failed for %s on %s/%s: %s", username, owner, repo, exc)
            return "none"
        if not isinstance(payload, dict):
            return "none"
        return _PERMISSION_ALIASES.get(str(payload.get("permission", "")).lower(), "none")

    async def is_org_member(self, org: str, username: str) -> bool:
        # 204 when the user is a member, 404 (or 302 for non-member requesters) otherwise
        try:
            await self.api_request(f"orgs/{org}/members/{username}")
        except GitHubAPIError as exc:
            logger.debug("Org membership lookup for %s in %s: %s", username, org, exc)
            return False
        return True

    async def is_team_member(self, org: str, team: str, username: str) -> bool:
        try:
            payload = await self.api_request(f"orgs/{org}/teams/{team}/memberships/{username}")
        except GitHubAPIError as exc:
            logger.debug("Team membership lookup for %s in %s/%s: %s", username, org, team, exc)
            return False
        return isinstance(payload, dict) and payload.get("state") == "active"

    async def count_open_prs(self, owner: str, repo: str, label: str | None = None) -> int:
        query = f"repo:{owner}/{repo} is:pr is:open"
        if label:
            query += f' label:"{label}"'
        payload = await self.api_request("search/issues", params={"q": query, "per_page": 1})
        if not isinstance(payload, dict):
            raise GitHubAPIError("Unexpected GitHub response: expected object for search")
        return _as_int(payload.get("total_count") or 0, field="total_count")

    async def get_recent_workflow_runs(
        self, owner: str, repo: str, workflow_file: str, limit: int = 5
    ) -> list[WorkflowRun]:
        payload = await self.api_request(
            f"repos/{owner}/{repo}/actions/workflows/{workflow_file}/runs",
            params={"status": "completed", "per_page": max(1, min(limit, 100))},
        )
        if not isinstance(payload, dict):
            raise GitHubAPIError("Unexpected GitHub response: expected object for workflow runs")
        raw_runs = payload.get("workflow_runs")
        if not isinstance(raw_runs, list):
            return []
        runs: list[WorkflowRun] = []
        for item in raw_runs:
            if not isinstance(item, dict):
                continue
            runs.append(
                WorkflowRun(
                    id=_as_int(item.get("id") or 0, field="workflow_runs.id"),
                    name=str(item.get("name", "")),
                    status=str(item.get("status", "")),
                    conclusion=item.get("conclusion"),
                    created_at=str(item.get("created_at", "")),
                    head_branch=str(item.get("head_branch", "") or ""),
                )
            )
        runs.sort(key=lambda run: run.created_at, reverse=True)
        return runs[:limit]

    async def list_issue_comments(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        per_page: int = 100,
        max_pages: int = 10,
    ) -> list[dict[str, Any]]:
        comments: list[dict[str, Any]] = []
        page = 1
        while page <= max_pages:
            payload = await self.api_request(
                f"repos/{owner}/{repo}/issues/{number}/comments",
                params={"per_page": per_page, "page": page},
            )
            if not isinstance(payload, list):
                break
            chunk = [item for item in payload if isinstance(item, dict)]
            comments.extend(chunk)
            if len(payload) < per_page:
                break
            page += 1
        return comments

    async def list_blocked_by(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        payload = await self.api_request(
            f"repos/{owner}/{repo}/issues/{number}/dependencies/blocked_by"
        )
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]
