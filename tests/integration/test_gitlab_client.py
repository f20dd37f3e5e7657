# tests/integration/test_gitlab_client.py
import json
import pytest
from review_bot.errors import AdapterConfigError, CommentNotFoundError
from review_bot.platforms.gitlab import GitLabClient
from review_bot.review.diff import DiffPosition


MR_URL = "https://gitlab.com/api/v4/projects/123/merge_requests/45"


@pytest.fixture
def client():
    return GitLabClient(token="test-token", project_id=123, mr_iid=45, base_url="https://gitlab.com")


def test_requires_merge_request_iid():
    with pytest.raises(AdapterConfigError):
        GitLabClient(token="test-token", project_id=123, mr_iid=None)


def test_requires_token():
    with pytest.raises(AdapterConfigError):
        GitLabClient(token=None, project_id=123, mr_iid=45)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_project_path_is_url_encoded(httpx_mock):
    httpx_mock.add_response(url="https://gitlab.com/api/v4/projects/group%2Frepo/merge_requests/3/notes", json={"id": 9})

    client = GitLabClient(token="test-token", project_id="group/repo", mr_iid=3)

    assert await client.create_comment("hello") == 9


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_diff_refs(httpx_mock, client):
    httpx_mock.add_response(
        url=MR_URL,
        json={"iid": 45, "diff_refs": {"base_sha": "abc", "head_sha": "def", "start_sha": "abc"}},
    )

    refs = await client.get_diff_refs()
    again = await client.get_diff_refs()

    assert refs.base_sha == "abc"
    assert refs.head_sha == "def"
    assert again is refs
    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_diff_for_single_file(httpx_mock, client):
    httpx_mock.add_response(
        url="https://gitlab.com/api/v4/projects/123/repository/compare?from=abc&to=def",
        json={"diffs": [
            {"old_path": "a.py", "new_path": "a.py", "diff": "@@ -1 +1 @@\n-a\n+b\n"},
            {"old_path": "src/main.py", "new_path": "src/main.py", "diff": "@@ -1 +1,2 @@\n x\n+y\n"},
        ]},
    )

    diff = await client.get_diff("abc", "def", "src/main.py")

    assert diff == "@@ -1 +1,2 @@\n x\n+y\n"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_diff_whole_compare_has_file_headers(httpx_mock, client):
    httpx_mock.add_response(
        url="https://gitlab.com/api/v4/projects/123/repository/compare?from=abc&to=def",
        json={"diffs": [{"old_path": "a.py", "new_path": "a.py", "diff": "@@ -1 +1 @@\n-a\n+b\n"}]},
    )

    diff = await client.get_diff("abc", "def")

    assert diff.startswith("--- a/a.py\n+++ b/a.py\n@@")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_inline_comment_on_removed_line(httpx_mock, client):
    httpx_mock.add_response(
        url=MR_URL,
        json={"diff_refs": {"base_sha": "abc", "head_sha": "def", "start_sha": "abc"}},
    )
    httpx_mock.add_response(
        url=f"{MR_URL}/discussions",
        method="POST",
        json={"id": "discussion-1", "notes": [{"id": 777}]},
    )

    note_id = await client.create_inline_comment("src/main.py", DiffPosition(old_line=10), "Consider error handling")

    assert note_id == 777
    request = httpx_mock.get_requests()[-1]
    payload = json.loads(request.content)
    assert payload["body"] == "Consider error handling"
    assert payload["position"]["old_line"] == 10
    assert "new_line" not in payload["position"]
    assert payload["position"]["head_sha"] == "def"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_comment(httpx_mock, client):
    httpx_mock.add_response(url=f"{MR_URL}/notes/42", method="PUT", json={"id": 42})

    await client.update_comment(42, "done")

    assert json.loads(httpx_mock.get_request().content) == {"body": "done"}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_missing_comment(httpx_mock, client):
    httpx_mock.add_response(url=f"{MR_URL}/notes/42", method="PUT", status_code=404)

    with pytest.raises(CommentNotFoundError):
        await client.update_comment(42, "done")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_member_access_level(httpx_mock, client):
    httpx_mock.add_response(
        url="https://gitlab.com/api/v4/projects/123/members/all?query=dev",
        json=[{"username": "developer", "access_level": 50}, {"username": "dev", "access_level": 30}],
    )

    assert await client.get_member_access_level("dev") == 30


@pytest.mark.integration
@pytest.mark.asyncio
async def test_user_type(httpx_mock, client):
    httpx_mock.add_response(
        url="https://gitlab.com/api/v4/users?username=dev",
        json=[{"username": "dev", "user_type": "user"}],
    )

    assert await client.get_user_type("dev") == "user"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_compare_is_fetched_once_per_refs(httpx_mock, client):
    httpx_mock.add_response(
        url="https://gitlab.com/api/v4/projects/123/repository/compare?from=abc&to=def",
        json={"diffs": [
            {"old_path": "a.py", "new_path": "a.py", "diff": "@@ -1 +1 @@\n-a\n+b\n"},
            {"old_path": "b.py", "new_path": "b.py", "diff": "@@ -1 +1,2 @@\n x\n+y\n"},
        ]},
    )

    assert await client.get_diff("abc", "def", "a.py") == "@@ -1 +1 @@\n-a\n+b\n"
    assert await client.get_diff("abc", "def", "b.py") == "@@ -1 +1,2 @@\n x\n+y\n"
    assert len(httpx_mock.get_requests()) == 1
