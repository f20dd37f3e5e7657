from abc import ABC, abstractmethod
from dataclasses import dataclass
from review_bot.review.diff import DiffPosition


@dataclass(frozen=True)
class DiffRefs:
    base_sha: str
    head_sha: str
    start_sha: str | None = None


class PlatformAdapter(ABC):
    """Comment and diff operations against one merge/pull request."""

    @property
    @abstractmethod
    def ref(self) -> str:
        """Short human-readable reference, e.g. `group/repo!12`."""

    @abstractmethod
    async def get_diff_refs(self) -> DiffRefs:
        pass

    @abstractmethod
    async def get_diff(self, base: str, head: str, file_path: str | None = None) -> str:
        pass

    @abstractmethod
    async def create_comment(self, body: str) -> int:
        pass

    @abstractmethod
    async def update_comment(self, comment_id: int, body: str) -> None:
        """Raises CommentNotFoundError when the comment is gone."""

    @abstractmethod
    async def create_inline_comment(self, file_path: str, position: DiffPosition, body: str) -> int:
        pass
