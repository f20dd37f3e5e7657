from .diff import parse_diff, file_diff, locate, DiffFile, DiffPosition, NotFound
from .parser import parse_response
from .trigger import should_run, TriggerConfig, TriggerEvent, EventKind

__all__ = [
    "parse_diff",
    "file_diff",
    "locate",
    "DiffFile",
    "DiffPosition",
    "NotFound",
    "parse_response",
    "should_run",
    "TriggerConfig",
    "TriggerEvent",
    "EventKind",
]
