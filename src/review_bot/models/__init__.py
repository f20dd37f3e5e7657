from .review import Finding, ReviewSummary, PostOutcome, FinalReport, Recommendation, Severity
from .webhook import (
    GitLabMREvent,
    GitLabNoteEvent,
    GitHubPullRequestEvent,
    GitHubIssueCommentEvent,
    GitHubReviewCommentEvent,
)

__all__ = [
    "Finding",
    "ReviewSummary",
    "PostOutcome",
    "FinalReport",
    "Recommendation",
    "Severity",
    "GitLabMREvent",
    "GitLabNoteEvent",
    "GitHubPullRequestEvent",
    "GitHubIssueCommentEvent",
    "GitHubReviewCommentEvent",
]
