from pydantic import BaseModel
from review_bot.review.trigger import TriggerEvent


class GitLabUser(BaseModel):
    username: str
    name: str | None = None


class GitLabProject(BaseModel):
    id: int
    path_with_namespace: str
    web_url: str


class GitLabMergeRequest(BaseModel):
    iid: int
    title: str
    description: str | None = None
    source_branch: str
    target_branch: str
    state: str
    action: str | None = None


class GitLabMREvent(BaseModel):
    object_kind: str  # "merge_request"
    user: GitLabUser
    project: GitLabProject
    object_attributes: GitLabMergeRequest

    def to_trigger_event(self) -> TriggerEvent:
        return TriggerEvent.merge_request(
            title=self.object_attributes.title,
            description=self.object_attributes.description,
        )


class GitLabNote(BaseModel):
    id: int | None = None
    note: str
    noteable_type: str


class GitLabNoteEvent(BaseModel):
    object_kind: str  # "note"
    user: GitLabUser
    project: GitLabProject
    merge_request: GitLabMergeRequest | None = None
    object_attributes: GitLabNote

    def to_trigger_event(self) -> TriggerEvent:
        return TriggerEvent.note(self.object_attributes.note)


class GitHubUser(BaseModel):
    login: str
    type: str = "User"


class GitHubRepository(BaseModel):
    full_name: str


class GitHubPullRequest(BaseModel):
    number: int
    title: str
    body: str | None = None


class GitHubPullRequestEvent(BaseModel):
    action: str
    sender: GitHubUser
    repository: GitHubRepository
    pull_request: GitHubPullRequest

    def to_trigger_event(self) -> TriggerEvent:
        return TriggerEvent.pull_request(title=self.pull_request.title, body=self.pull_request.body)


class GitHubComment(BaseModel):
    id: int
    body: str | None = None


class GitHubIssue(BaseModel):
    number: int
    title: str
    pull_request: dict | None = None  # present only when the issue is a PR


class GitHubIssueCommentEvent(BaseModel):
    action: str
    sender: GitHubUser
    repository: GitHubRepository
    issue: GitHubIssue
    comment: GitHubComment

    def to_trigger_event(self) -> TriggerEvent:
        return TriggerEvent.issue_comment(self.comment.body)


class GitHubReviewCommentEvent(BaseModel):
    action: str
    sender: GitHubUser
    repository: GitHubRepository
    pull_request: GitHubPullRequest
    comment: GitHubComment

    def to_trigger_event(self) -> TriggerEvent:
        return TriggerEvent.pull_request_review_comment(self.comment.body)
