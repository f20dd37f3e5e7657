# src/review_bot/config.py
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    # GitLab
    gitlab_url: str = "https://gitlab.com"
    gitlab_token: str | None = None
    gitlab_webhook_secret: str | None = None

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_token: str | None = None
    github_webhook_secret: str | None = None

    # Trigger
    trigger_phrase: str = "@claude"
    direct_prompt: str = ""
    verify_actor: bool = True

    # Publishing
    reviewer_name: str = "Claude"
    post_delay: float = 0.1
    fallback_to_plain_comment: bool = True
    pipeline_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pipeline_url", "ci_pipeline_url"),
    )

    log_dir: str | None = None
    log_level: str = "INFO"
