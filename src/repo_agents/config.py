"""Runtime configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")
    log_json: bool | None = Field(alias="LOG_JSON", default=None)

    # GitHub Actions environment
    github_token: str = Field(alias="GITHUB_TOKEN", default="")
    github_api_base_url: str = Field(alias="GITHUB_API_BASE_URL", default="https://api.github.com")
    github_server_url: str = Field(alias="GITHUB_SERVER_URL", default="https://github.com")
    github_repository: str = Field(alias="GITHUB_REPOSITORY", default="")
    github_actor: str = Field(alias="GITHUB_ACTOR", default="")
    github_event_name: str = Field(alias="GITHUB_EVENT_NAME", default="")
    github_event_path: str = Field(alias="GITHUB_EVENT_PATH", default="")
    github_run_id: str = Field(alias="GITHUB_RUN_ID", default="0")
    github_http_timeout_seconds: float = Field(alias="GITHUB_HTTP_TIMEOUT_SECONDS", default=10.0)

    artifacts_dir: str = Field(
        alias="REPO_AGENTS_ARTIFACTS_DIR", default="/tmp/repo-agents-artifacts"
    )
    dedup_max_age: str = Field(alias="REPO_AGENTS_DEDUP_MAX_AGE", default="7d")
    pr_sentinel_label: str = Field(
        alias="REPO_AGENTS_PR_SENTINEL_LABEL", default="implementation-in-progress"
    )


def validate_settings_for_env(settings: Settings) -> None:
    if settings.app_env != "prod":
        return

    missing: list[str] = []
    required_non_empty = {
        "GITHUB_TOKEN": settings.github_token,
        "GITHUB_REPOSITORY": settings.github_repository,
        "GITHUB_API_BASE_URL": settings.github_api_base_url,
        "GITHUB_SERVER_URL": settings.github_server_url,
    }
    for key, value in required_non_empty.items():
        if not value.strip():
            missing.append(key)
    if settings.github_http_timeout_seconds <= 0:
        missing.append("GITHUB_HTTP_TIMEOUT_SECONDS(positive value)")

    if missing:
        keys = ", ".join(sorted(set(missing)))
        raise ValueError(f"invalid production configuration: {keys}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
