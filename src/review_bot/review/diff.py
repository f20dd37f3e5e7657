# src/review_bot/review/diff.py
import re
from dataclasses import dataclass
from enum import Enum
from unidiff import PatchSet


HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class DiffFile:
    path: str
    diff: str


def parse_diff(diff_text: str) -> list[DiffFile]:
    """Split a multi-file unified diff (with ---/+++ headers) into per-file entries."""
    patch = PatchSet(diff_text)
    files = []

    for patched_file in patch:
        files.append(DiffFile(
            path=patched_file.path,
            diff="".join(str(hunk) for hunk in patched_file),
        ))

    return files


def file_diff(diff_text: str, path: str) -> str:
    """Return the hunks for `path` from a multi-file diff, or "" if the file is not in it."""
    for diff_file in parse_diff(diff_text):
        if diff_file.path == path:
            return diff_file.diff
    return ""


class LineKind(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    content: str


@dataclass(frozen=True)
class DiffHunk:
    old_start: int
    old_len: int
    new_start: int
    new_len: int
    lines: tuple[DiffLine, ...] = ()


@dataclass(frozen=True)
class DiffPosition:
    old_line: int | None = None
    new_line: int | None = None

    def __post_init__(self):
        if self.old_line is None and self.new_line is None:
            raise ValueError("DiffPosition needs at least one of old_line/new_line")


@dataclass(frozen=True)
class NotFound:
    """The target line is not covered by any hunk of the diff."""
    target_line: int

    def fallback(self) -> DiffPosition:
        # Best effort: treat the line as an addition in the post-image.
        return DiffPosition(new_line=self.target_line)


def parse_hunks(diff_text: str) -> list[DiffHunk]:
    """Parse every @@ block of a single-file unified diff.

    Body lines are consumed until both sides' lengths are used up, so file
    headers between hunks of a multi-file diff are never mistaken for
    additions or removals.
    """
    hunks: list[DiffHunk] = []
    lines = diff_text.splitlines()
    i = 0

    while i < len(lines):
        match = HUNK_HEADER.match(lines[i])
        i += 1
        if not match:
            continue

        old_start, old_len, new_start, new_len = (
            int(match.group(1)),
            int(match.group(2)) if match.group(2) is not None else 1,
            int(match.group(3)),
            int(match.group(4)) if match.group(4) is not None else 1,
        )
        old_left, new_left = old_len, new_len
        body: list[DiffLine] = []

        while i < len(lines) and (old_left > 0 or new_left > 0):
            raw = lines[i]
            if raw.startswith("\\"):
                i += 1
                continue
            if HUNK_HEADER.match(raw):
                break
            if raw.startswith("-"):
                body.append(DiffLine(LineKind.REMOVED, raw[1:]))
                old_left -= 1
            elif raw.startswith("+"):
                body.append(DiffLine(LineKind.ADDED, raw[1:]))
                new_left -= 1
            else:
                # GitLab strips the leading space of blank context lines.
                body.append(DiffLine(LineKind.CONTEXT, raw[1:]))
                old_left -= 1
                new_left -= 1
            i += 1

        hunks.append(DiffHunk(old_start, old_len, new_start, new_len, tuple(body)))

    return hunks


def locate(diff_text: str, target_line: int) -> DiffPosition | NotFound:
    """Map a file line to the (old_line, new_line) anchor a platform expects.

    Removals are matched as old-file lines, additions as new-file lines and
    context lines as either. The first line that matches wins.
    """
    for hunk in parse_hunks(diff_text):
        old_line = hunk.old_start - 1
        new_line = hunk.new_start - 1

        for line in hunk.lines:
            if line.kind is LineKind.REMOVED:
                old_line += 1
                if old_line == target_line:
                    return DiffPosition(old_line=old_line)
            elif line.kind is LineKind.ADDED:
                new_line += 1
                if new_line == target_line:
                    return DiffPosition(new_line=new_line)
            else:
                old_line += 1
                new_line += 1
                if target_line in (old_line, new_line):
                    return DiffPosition(old_line=old_line, new_line=new_line)

    return NotFound(target_line)
