import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from repo_agents.config import get_settings
from repo_agents.events.context import ValidationContext
from repo_agents.github.client import GitHubClient


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path):
    os.environ["APP_ENV"] = "dev"
    os.environ["GITHUB_TOKEN"] = "test-token"
    os.environ["GITHUB_REPOSITORY"] = "acme/widgets"
    os.environ["GITHUB_ACTOR"] = "alice"
    os.environ["GITHUB_RUN_ID"] = "12345"
    os.environ["GITHUB_API_BASE_URL"] = "https://api.github.test"
    os.environ["GITHUB_SERVER_URL"] = "https://github.com"
    os.environ["REPO_AGENTS_ARTIFACTS_DIR"] = str(tmp_path / "artifacts")
    os.environ.pop("GITHUB_EVENT_PATH", None)
    os.environ.pop("GITHUB_EVENT_NAME", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def write_event(tmp_path: Path) -> Callable[[dict[str, Any]], str]:
    def _write(payload: dict[str, Any], name: str = "event.json") -> str:
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_ctx() -> Callable[..., ValidationContext]:
    def _make(
        event_name: str = "issues",
        event_path: str = "",
        actor: str = "alice",
        repository: str = "acme/widgets",
        **kwargs: Any,
    ) -> ValidationContext:
        return ValidationContext(
            actor=actor,
            repository=repository,
            event_name=event_name,
            event_path=event_path,
            run_id=kwargs.pop("run_id", "12345"),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], GitHubClient]:
    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> GitHubClient:
        return GitHubClient(
            "test-token",
            base_url="https://api.github.test",
            transport=httpx.MockTransport(handler),
        )

    return _make
