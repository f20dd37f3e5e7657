# tests/unit/test_config.py
import pytest


def test_settings_loads_from_env(monkeypatch):
    monkeypatch.setenv("GITLAB_TOKEN", "test-token")
    monkeypatch.setenv("GITLAB_WEBHOOK_SECRET", "test-secret")
    monkeypatch.setenv("TRIGGER_PHRASE", "@bot")
    monkeypatch.setenv("CI_PIPELINE_URL", "https://gitlab.com/g/r/-/pipelines/1")

    # Re-import to pick up env vars
    from review_bot.config import Settings
    settings = Settings()

    assert settings.gitlab_token == "test-token"
    assert settings.gitlab_webhook_secret == "test-secret"
    assert settings.trigger_phrase == "@bot"
    assert settings.pipeline_url == "https://gitlab.com/g/r/-/pipelines/1"


def test_settings_defaults(monkeypatch):
    for name in ("TRIGGER_PHRASE", "DIRECT_PROMPT", "POST_DELAY", "CI_PIPELINE_URL", "PIPELINE_URL"):
        monkeypatch.delenv(name, raising=False)

    from review_bot.config import Settings
    settings = Settings(_env_file=None, gitlab_token="x")

    assert settings.trigger_phrase == "@claude"
    assert settings.direct_prompt == ""
    assert settings.post_delay == 0.1
    assert settings.fallback_to_plain_comment is True
    assert settings.pipeline_url is None
