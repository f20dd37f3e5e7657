# tests/integration/conftest.py
import pytest
from review_bot.config import Settings


def pytest_collection_modifyitems(items):
    """Add 'integration' marker to all tests in this directory."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        gitlab_token="test-token",
        gitlab_webhook_secret="test-secret",
        github_token="gh-token",
        github_webhook_secret="gh-secret",
        trigger_phrase="@claude",
        direct_prompt="",
        verify_actor=False,
        post_delay=0,
    )
