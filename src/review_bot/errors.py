# src/review_bot/errors.py


class ReviewBotError(Exception):
    """Base class for errors that abort a review run."""


class PrerequisiteError(ReviewBotError):
    """Diff or merge request context needed to position comments could not be fetched."""


class AdapterConfigError(ReviewBotError):
    """The platform cannot be addressed (missing token, project or MR/PR reference)."""


class CommentNotFoundError(ReviewBotError):
    """The tracking comment no longer exists on the platform."""

    def __init__(self, comment_id: int):
        super().__init__(f"Comment {comment_id} not found")
        self.comment_id = comment_id
