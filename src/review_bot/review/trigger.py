# src/review_bot/review/trigger.py
import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    MERGE_REQUEST = "merge_request"
    NOTE = "note"
    PULL_REQUEST = "pull_request"
    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"


# Fields checked for the trigger phrase, in order, per event kind.
FIELD_ORDER: Mapping[EventKind, tuple[str, ...]] = MappingProxyType({
    EventKind.MERGE_REQUEST: ("description", "title"),
    EventKind.NOTE: ("note",),
    EventKind.PULL_REQUEST: ("body", "title"),
    EventKind.ISSUE_COMMENT: ("body",),
    EventKind.PULL_REQUEST_REVIEW_COMMENT: ("body",),
})


@dataclass(frozen=True)
class TriggerEvent:
    kind: EventKind
    fields: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def merge_request(cls, title: str | None = None, description: str | None = None) -> "TriggerEvent":
        return cls(EventKind.MERGE_REQUEST, {"title": title or "", "description": description or ""})

    @classmethod
    def note(cls, note: str | None = None) -> "TriggerEvent":
        return cls(EventKind.NOTE, {"note": note or ""})

    @classmethod
    def pull_request(cls, title: str | None = None, body: str | None = None) -> "TriggerEvent":
        return cls(EventKind.PULL_REQUEST, {"title": title or "", "body": body or ""})

    @classmethod
    def issue_comment(cls, body: str | None = None) -> "TriggerEvent":
        return cls(EventKind.ISSUE_COMMENT, {"body": body or ""})

    @classmethod
    def pull_request_review_comment(cls, body: str | None = None) -> "TriggerEvent":
        return cls(EventKind.PULL_REQUEST_REVIEW_COMMENT, {"body": body or ""})


@dataclass(frozen=True)
class TriggerConfig:
    trigger_phrase: str = "@claude"
    direct_prompt: str = ""


def trigger_pattern(phrase: str) -> re.Pattern:
    """Match `phrase` only as a whole token: `@claude,` yes, `@claudette` no."""
    return re.compile(rf"(^|\s){re.escape(phrase)}([\s.,!?;:]|$)")


def should_run(event: TriggerEvent, config: TriggerConfig) -> bool:
    """Decide whether an event invokes the assistant."""
    if config.direct_prompt:
        logger.info("Direct prompt provided, triggering action")
        return True

    pattern = trigger_pattern(config.trigger_phrase)
    for name in FIELD_ORDER[event.kind]:
        if pattern.search(event.fields.get(name) or ""):
            logger.info(f"{event.kind.value} {name} contains trigger phrase '{config.trigger_phrase}'")
            return True

    logger.info(f"No trigger was met for {config.trigger_phrase}")
    return False
