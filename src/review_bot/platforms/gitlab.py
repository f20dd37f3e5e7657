from typing import Any
from urllib.parse import quote
import httpx
from review_bot.errors import AdapterConfigError, CommentNotFoundError
from review_bot.review.diff import DiffPosition
from .base import DiffRefs, PlatformAdapter


DEVELOPER_ACCESS = 30


class GitLabClient(PlatformAdapter):
    def __init__(
        self,
        token: str | None,
        project_id: int | str | None,
        mr_iid: int | None,
        base_url: str = "https://gitlab.com",
    ):
        if not token:
            raise AdapterConfigError("GitLab token is required")
        if not project_id:
            raise AdapterConfigError("GitLab project ID is required")
        if not mr_iid:
            raise AdapterConfigError("Merge request IID is required")
        self.token = token
        self.project_id = project_id
        self.mr_iid = mr_iid
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api/v4"
        self._diff_refs: DiffRefs | None = None
        self._compare: dict[tuple[str, str], list[dict[str, Any]]] = {}

    @property
    def ref(self) -> str:
        return f"{self.project_id}!{self.mr_iid}"

    @property
    def _project(self) -> str:
        return quote(str(self.project_id), safe="")

    @property
    def _mr_url(self) -> str:
        return f"{self.api_url}/projects/{self._project}/merge_requests/{self.mr_iid}"

    def _headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self.token}

    async def get_mr_info(self) -> dict[str, Any]:
        async with httpx.AsyncClient() as client:
            response = await client.get(self._mr_url, headers=self._headers(), timeout=30.0)
            response.raise_for_status()
            return response.json()

    async def get_diff_refs(self) -> DiffRefs:
        if self._diff_refs is None:
            refs = (await self.get_mr_info()).get("diff_refs") or {}
            if not refs.get("base_sha") or not refs.get("head_sha"):
                raise ValueError(f"Merge request {self.ref} has no diff refs")
            self._diff_refs = DiffRefs(
                base_sha=refs["base_sha"],
                head_sha=refs["head_sha"],
                start_sha=refs.get("start_sha"),
            )
        return self._diff_refs

    async def get_diff(self, base: str, head: str, file_path: str | None = None) -> str:
        diffs = self._compare.get((base, head))
        if diffs is None:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.api_url}/projects/{self._project}/repository/compare",
                    params={"from": base, "to": head},
                    headers=self._headers(),
                    timeout=30.0,
                )
                response.raise_for_status()
                diffs = self._compare[(base, head)] = response.json().get("diffs", [])

        if file_path is not None:
            for entry in diffs:
                if file_path in (entry.get("new_path"), entry.get("old_path")):
                    return entry.get("diff", "")
            return ""

        return "".join(
            f"--- a/{entry['old_path']}\n+++ b/{entry['new_path']}\n{entry.get('diff', '')}"
            for entry in diffs
        )

    async def create_comment(self, body: str) -> int:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self._mr_url}/notes",
                headers=self._headers(),
                json={"body": body},
                timeout=30.0,
            )
            response.raise_for_status()
            return response.json()["id"]

    async def update_comment(self, comment_id: int, body: str) -> None:
        async with httpx.AsyncClient() as client:
            response = await client.put(
                f"{self._mr_url}/notes/{comment_id}",
                headers=self._headers(),
                json={"body": body},
                timeout=30.0,
            )
            if response.status_code == 404:
                raise CommentNotFoundError(comment_id)
            response.raise_for_status()

    async def create_inline_comment(self, file_path: str, position: DiffPosition, body: str) -> int:
        refs = await self.get_diff_refs()
        payload: dict[str, Any] = {
            "position_type": "text",
            "old_path": file_path,
            "new_path": file_path,
            "base_sha": refs.base_sha,
            "head_sha": refs.head_sha,
            "start_sha": refs.start_sha or refs.base_sha,
        }
        if position.old_line is not None:
            payload["old_line"] = position.old_line
        if position.new_line is not None:
            payload["new_line"] = position.new_line

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self._mr_url}/discussions",
                headers=self._headers(),
                json={"body": body, "position": payload},
                timeout=30.0,
            )
            response.raise_for_status()
            notes = response.json().get("notes") or [{}]
            return notes[0].get("id", 0)

    async def get_member_access_level(self, username: str) -> int:
        """Access level of `username` on the project (0 when not a member)."""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/projects/{self._project}/members/all",
                params={"query": username},
                headers=self._headers(),
                timeout=30.0,
            )
            response.raise_for_status()
            members = response.json()

        for member in members:
            if member.get("username") == username:
                return member.get("access_level", 0)
        return 0

    async def get_user_type(self, username: str) -> str | None:
        """`user` for humans; bots and service accounts report something else."""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/users",
                params={"username": username},
                headers=self._headers(),
                timeout=30.0,
            )
            response.raise_for_status()
            users = response.json()
        return users[0].get("user_type") if users else None
