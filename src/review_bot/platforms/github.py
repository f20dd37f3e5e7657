from typing import Any
import httpx
from review_bot.errors import AdapterConfigError, CommentNotFoundError
from review_bot.review.diff import DiffPosition, file_diff
from .base import DiffRefs, PlatformAdapter


class GitHubClient(PlatformAdapter):
    def __init__(
        self,
        token: str | None,
        repository: str | None,
        pr_number: int | None,
        api_url: str = "https://api.github.com",
    ):
        if not token:
            raise AdapterConfigError("GitHub token is required")
        if not repository or "/" not in repository:
            raise AdapterConfigError("GitHub repository must be given as owner/repo")
        if not pr_number:
            raise AdapterConfigError("Pull request number is required")
        self.token = token
        self.repository = repository
        self.pr_number = pr_number
        self.api_url = api_url.rstrip("/")
        self._diff_refs: DiffRefs | None = None
        self._compare: dict[tuple[str, str], str] = {}

    @property
    def ref(self) -> str:
        return f"{self.repository}#{self.pr_number}"

    @property
    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.repository}"

    def _headers(self, accept: str = "application/vnd.github+json") -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def get_pull(self) -> dict[str, Any]:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self._repo_url}/pulls/{self.pr_number}",
                headers=self._headers(),
                timeout=30.0,
            )
            response.raise_for_status()
            return response.json()

    async def get_diff_refs(self) -> DiffRefs:
        if self._diff_refs is None:
            pull = await self.get_pull()
            self._diff_refs = DiffRefs(base_sha=pull["base"]["sha"], head_sha=pull["head"]["sha"])
        return self._diff_refs

    async def get_diff(self, base: str, head: str, file_path: str | None = None) -> str:
        """Compare diff, fetched once per base/head pair and split per file on demand."""
        diff_text = self._compare.get((base, head))
        if diff_text is None:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self._repo_url}/compare/{base}...{head}",
                    headers=self._headers(accept="application/vnd.github.diff"),
                    timeout=30.0,
                )
                response.raise_for_status()
                diff_text = self._compare[(base, head)] = response.text

        if file_path is None:
            return diff_text
        return file_diff(diff_text, file_path)

    async def create_comment(self, body: str) -> int:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self._repo_url}/issues/{self.pr_number}/comments",
                headers=self._headers(),
                json={"body": body},
                timeout=30.0,
            )
            response.raise_for_status()
            return response.json()["id"]

    async def update_comment(self, comment_id: int, body: str) -> None:
        async with httpx.AsyncClient() as client:
            response = await client.patch(
                f"{self._repo_url}/issues/comments/{comment_id}",
                headers=self._headers(),
                json={"body": body},
                timeout=30.0,
            )
            if response.status_code == 404:
                raise CommentNotFoundError(comment_id)
            response.raise_for_status()

    async def create_inline_comment(self, file_path: str, position: DiffPosition, body: str) -> int:
        refs = await self.get_diff_refs()
        if position.new_line is not None:
            line, side = position.new_line, "RIGHT"
        else:
            line, side = position.old_line, "LEFT"

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self._repo_url}/pulls/{self.pr_number}/comments",
                headers=self._headers(),
                json={
                    "body": body,
                    "commit_id": refs.head_sha,
                    "path": file_path,
                    "line": line,
                    "side": side,
                },
                timeout=30.0,
            )
            response.raise_for_status()
            return response.json()["id"]
