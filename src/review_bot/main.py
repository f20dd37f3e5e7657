# src/review_bot/main.py
import re
import hmac
import hashlib
import logging
from contextlib import asynccontextmanager
from enum import Enum
from functools import lru_cache
from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, model_validator

from review_bot.config import Settings
from review_bot.errors import AdapterConfigError, PrerequisiteError
from review_bot.models.webhook import (
    GitHubIssueCommentEvent,
    GitHubPullRequestEvent,
    GitHubReviewCommentEvent,
    GitLabMREvent,
    GitLabNoteEvent,
)
from review_bot.platforms.base import PlatformAdapter
from review_bot.platforms.github import GitHubClient
from review_bot.platforms.gitlab import DEVELOPER_ACCESS, GitLabClient
from review_bot.review.engine import ProgressStep, ReviewPublisher, coerce_comment_id
from review_bot.review.parser import parse_response
from review_bot.review.trigger import TriggerConfig, should_run


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    return Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger().setLevel(get_settings().log_level.upper())
    logger.info("AI Review Bot starting...")
    yield
    logger.info("AI Review Bot shutting down...")


app = FastAPI(title="AI Review Bot", lifespan=lifespan)


class Platform(str, Enum):
    GITLAB = "gitlab"
    GITHUB = "github"


class WebhookResponse(BaseModel):
    status: str
    message: str | None = None
    contains_trigger: bool | None = None
    tracking_id: int | None = None


class TargetRequest(BaseModel):
    platform: Platform = Platform.GITLAB
    url: str | None = None
    project_id: int | str | None = None
    mr_iid: int | None = None
    repository: str | None = None
    pr_number: int | None = None

    @model_validator(mode="after")
    def check_params(self):
        if self.url:
            return self
        if self.platform == Platform.GITLAB and not (self.project_id and self.mr_iid):
            raise ValueError("Either url or project_id+mr_iid required")
        if self.platform == Platform.GITHUB and not (self.repository and self.pr_number):
            raise ValueError("Either url or repository+pr_number required")
        return self


class ReviewRequest(TargetRequest):
    response: str
    tracking_id: int | str | None = None


class ReviewResponse(BaseModel):
    status: str
    ref: str | None = None
    tracking_id: int | None = None
    total: int | None = None
    posted: int | None = None
    failed: int | None = None
    recommendation: str | None = None
    error: str | None = None


class StepModel(BaseModel):
    name: str
    completed: bool = False


class ProgressRequest(TargetRequest):
    tracking_id: int | str | None = None
    steps: list[StepModel]


def parse_gitlab_mr_url(url: str) -> tuple[str, int]:
    """Parse GitLab MR URL -> (project_path, mr_iid)."""
    match = re.match(r"https?://[^/]+/(.+?)/-/merge_requests/(\d+)", url)
    if not match:
        raise ValueError(f"Invalid GitLab MR URL: {url}")
    return match.group(1), int(match.group(2))


def parse_github_pr_url(url: str) -> tuple[str, int]:
    """Parse GitHub PR URL -> (owner/repo, pr_number)."""
    match = re.match(r"https?://[^/]+/([^/]+/[^/]+)/pull/(\d+)", url)
    if not match:
        raise ValueError(f"Invalid GitHub PR URL: {url}")
    return match.group(1), int(match.group(2))


def build_adapter(settings: Settings, target: TargetRequest) -> PlatformAdapter:
    """Address the MR/PR named by the request. Raises AdapterConfigError or ValueError."""
    if target.platform == Platform.GITLAB:
        project_id, mr_iid = target.project_id, target.mr_iid
        if target.url:
            project_id, mr_iid = parse_gitlab_mr_url(target.url)
        return GitLabClient(
            token=settings.gitlab_token,
            project_id=project_id,
            mr_iid=mr_iid,
            base_url=settings.gitlab_url,
        )

    repository, pr_number = target.repository, target.pr_number
    if target.url:
        repository, pr_number = parse_github_pr_url(target.url)
    return GitHubClient(
        token=settings.github_token,
        repository=repository,
        pr_number=pr_number,
        api_url=settings.github_api_url,
    )


def build_publisher(settings: Settings, adapter: PlatformAdapter) -> ReviewPublisher:
    return ReviewPublisher(
        adapter=adapter,
        reviewer_name=settings.reviewer_name,
        post_delay=settings.post_delay,
        fallback_to_plain_comment=settings.fallback_to_plain_comment,
        pipeline_url=settings.pipeline_url,
        log_dir=settings.log_dir,
    )


def trigger_config(settings: Settings) -> TriggerConfig:
    return TriggerConfig(
        trigger_phrase=settings.trigger_phrase,
        direct_prompt=settings.direct_prompt or "",
    )


def verify_github_signature(secret: str | None, payload: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = "sha256=" + hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def check_gitlab_actor(gitlab: GitLabClient, username: str) -> str | None:
    """Return the reason the actor may not invoke the bot, or None if allowed."""
    user_type = await gitlab.get_user_type(username)
    if user_type != "user":
        return f"Workflow initiated by non-human actor: {username} (type: {user_type})"
    level = await gitlab.get_member_access_level(username)
    if level < DEVELOPER_ACCESS:
        return f"Actor {username} has insufficient permissions: {level}"
    return None


async def start_tracking(settings: Settings, adapter: PlatformAdapter) -> WebhookResponse:
    tracking_id = await build_publisher(settings, adapter).start_tracking()
    return WebhookResponse(
        status="accepted",
        message="Tracking comment created",
        contains_trigger=True,
        tracking_id=tracking_id,
    )


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


@app.post("/webhook/gitlab", response_model=WebhookResponse)
async def gitlab_webhook(
    request: Request,
    x_gitlab_token: str = Header(...),
):
    settings = get_settings()

    if not settings.gitlab_webhook_secret or x_gitlab_token != settings.gitlab_webhook_secret:
        raise HTTPException(status_code=401, detail="Invalid webhook token")

    body = await request.json()
    object_kind = body.get("object_kind")

    if object_kind == "merge_request":
        event = GitLabMREvent(**body)
        mr_iid = event.object_attributes.iid
    elif object_kind == "note":
        event = GitLabNoteEvent(**body)
        if event.object_attributes.noteable_type != "MergeRequest" or not event.merge_request:
            return WebhookResponse(status="ignored", message="Event not relevant")
        mr_iid = event.merge_request.iid
    else:
        return WebhookResponse(status="ignored", message="Event not relevant")

    if not should_run(event.to_trigger_event(), trigger_config(settings)):
        return WebhookResponse(status="ignored", message="No trigger found", contains_trigger=False)

    try:
        gitlab = GitLabClient(
            token=settings.gitlab_token,
            project_id=event.project.id,
            mr_iid=mr_iid,
            base_url=settings.gitlab_url,
        )
        if settings.verify_actor:
            reason = await check_gitlab_actor(gitlab, event.user.username)
            if reason:
                logger.warning(reason)
                return WebhookResponse(status="ignored", message=reason, contains_trigger=True)
        return await start_tracking(settings, gitlab)
    except AdapterConfigError as e:
        return WebhookResponse(status="error", message=str(e), contains_trigger=True)
    except Exception as e:
        logger.exception(f"Failed to start review for MR !{mr_iid}: {e}")
        return WebhookResponse(status="error", message=str(e), contains_trigger=True)


@app.post("/webhook/github", response_model=WebhookResponse)
async def github_webhook(
    request: Request,
    x_github_event: str = Header(...),
    x_hub_signature_256: str | None = Header(None),
):
    settings = get_settings()

    payload = await request.body()
    if not verify_github_signature(settings.github_webhook_secret, payload, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    body = await request.json()

    if x_github_event == "pull_request":
        event = GitHubPullRequestEvent(**body)
        pr_number = event.pull_request.number
    elif x_github_event == "issue_comment":
        event = GitHubIssueCommentEvent(**body)
        if not event.issue.pull_request:
            return WebhookResponse(status="ignored", message="Event not relevant")
        pr_number = event.issue.number
    elif x_github_event == "pull_request_review_comment":
        event = GitHubReviewCommentEvent(**body)
        pr_number = event.pull_request.number
    else:
        return WebhookResponse(status="ignored", message="Event not relevant")

    if not should_run(event.to_trigger_event(), trigger_config(settings)):
        return WebhookResponse(status="ignored", message="No trigger found", contains_trigger=False)

    if settings.verify_actor and event.sender.type != "User":
        reason = f"Workflow initiated by non-human actor: {event.sender.login} (type: {event.sender.type})"
        logger.warning(reason)
        return WebhookResponse(status="ignored", message=reason, contains_trigger=True)

    try:
        github = GitHubClient(
            token=settings.github_token,
            repository=event.repository.full_name,
            pr_number=pr_number,
            api_url=settings.github_api_url,
        )
        return await start_tracking(settings, github)
    except AdapterConfigError as e:
        return WebhookResponse(status="error", message=str(e), contains_trigger=True)
    except Exception as e:
        logger.exception(f"Failed to start review for PR #{pr_number}: {e}")
        return WebhookResponse(status="error", message=str(e), contains_trigger=True)


@app.post("/api/review", response_model=ReviewResponse)
async def publish_review(request: ReviewRequest):
    """Parse assistant output and publish it as inline comments plus a summary."""
    settings = get_settings()

    try:
        adapter = build_adapter(settings, request)
    except (AdapterConfigError, ValueError) as e:
        return ReviewResponse(status="error", error=str(e))

    publisher = build_publisher(settings, adapter)
    tracking_id = coerce_comment_id(request.tracking_id)
    summary = parse_response(request.response)

    try:
        report = await publisher.publish(summary, tracking_id=tracking_id)
    except PrerequisiteError as e:
        return ReviewResponse(status="error", ref=adapter.ref, tracking_id=tracking_id, error=str(e))
    except Exception as e:
        logger.exception(f"Review publishing failed for {adapter.ref}: {e}")
        tracking_id = await publisher.report_failure(e, tracking_id)
        return ReviewResponse(status="error", ref=adapter.ref, tracking_id=tracking_id, error=str(e))

    return ReviewResponse(
        status="completed",
        ref=adapter.ref,
        tracking_id=report.tracking_id,
        total=report.total,
        posted=report.posted,
        failed=report.failed,
        recommendation=report.recommendation.value,
    )


@app.post("/api/progress", response_model=ReviewResponse)
async def update_progress(request: ProgressRequest):
    """Render a step checklist into the tracking comment."""
    settings = get_settings()

    try:
        adapter = build_adapter(settings, request)
        publisher = build_publisher(settings, adapter)
        steps = [ProgressStep(name=s.name, completed=s.completed) for s in request.steps]
        tracking_id = await publisher.update_progress(steps, coerce_comment_id(request.tracking_id))
    except (AdapterConfigError, ValueError) as e:
        return ReviewResponse(status="error", error=str(e))
    except Exception as e:
        logger.exception(f"Progress update failed: {e}")
        return ReviewResponse(status="error", error=str(e))

    return ReviewResponse(status="completed", ref=adapter.ref, tracking_id=tracking_id)
