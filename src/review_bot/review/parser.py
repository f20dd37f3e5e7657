# src/review_bot/review/parser.py
import re
import logging
from dataclasses import dataclass
from review_bot.models.review import Finding, ReviewSummary, Severity, derive_recommendation


logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"^```[^\n]*\n(.*?)^```", re.DOTALL | re.MULTILINE)
HEADING = re.compile(r"^#{1,6}\s", re.MULTILINE)
SUMMARY_HEADING = re.compile(
    r"^#{1,6}[ \t]*(?:Overall[ \t]+)?Summary[ \t]*:?[ \t]*$", re.IGNORECASE | re.MULTILINE
)
LEADING_TAG = re.compile(r"^\[(\w+)\]\s*")

# Optional list bullet, then an optional backtick-quoted path.
_ENTRY_PREFIX = r"^[ \t]*(?:[-*+][ \t]+)?"
_ENTRY_TAIL = r"[ \t]+LINE:[ \t]*(?P<line>[-+]?\w+)[ \t]*-[ \t]*"
# A full entry header of any shape; prose that merely mentions LINE: is not one.
ENTRY_BOUNDARY = re.compile(
    _ENTRY_PREFIX + r"(?:FILE:[ \t]*)?`?[^\s`]+`?" + _ENTRY_TAIL, re.MULTILINE | re.IGNORECASE
)


@dataclass(frozen=True)
class Candidate:
    file: str
    line: int
    severity: Severity
    text: str
    span: tuple[int, int]


def _severity(token: str | None) -> Severity | None:
    if not token:
        return None
    try:
        return Severity(token.lower())
    except ValueError:
        return None


def _positive_int(value: str) -> int | None:
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number > 0 else None


class FindingPattern:
    """One recognised shape of a line-anchored review entry.

    An entry's text runs from the end of its header to the next line that looks
    like an entry (of any shape), the next markdown heading, or the end of the
    region.
    """

    def __init__(self, name: str, header: str, bracketed: bool):
        self.name = name
        self.header = re.compile(header, re.MULTILINE | re.IGNORECASE)
        self.bracketed = bracketed

    def match(self, text: str, regions: list[tuple[int, int]]) -> list[Candidate]:
        candidates = []
        for start, end in regions:
            for header in self.header.finditer(text, start, end):
                stop = end
                for boundary in (ENTRY_BOUNDARY, HEADING):
                    found = boundary.search(text, header.end(), stop)
                    if found:
                        stop = found.start()
                candidate = self._build(header, text[header.end():stop], (header.start(), stop))
                if candidate:
                    candidates.append(candidate)
        return candidates

    def _build(self, header: re.Match, body: str, span: tuple[int, int]) -> Candidate | None:
        line = _positive_int(header.group("line"))
        body = body.strip()
        if line is None or not body:
            return None

        if self.bracketed:
            severity = _severity(header.group("severity")) or Severity.SUGGESTION
        else:
            tag = LEADING_TAG.match(body)
            severity = _severity(tag.group(1)) if tag else None
            if severity is not None:
                body = body[tag.end():].strip()
            else:
                severity = Severity.SUGGESTION
            if not body:
                return None

        return Candidate(
            file=header.group("file").strip("`"),
            line=line,
            severity=severity,
            text=body,
            span=span,
        )


PATTERNS = (
    FindingPattern(
        "anchored",
        _ENTRY_PREFIX + r"(?P<file>`?[^\s`]+`?)" + _ENTRY_TAIL + r"\[(?P<severity>\w+)\][ \t]*",
        bracketed=True,
    ),
    FindingPattern(
        "file-prefixed",
        _ENTRY_PREFIX + r"FILE:[ \t]*(?P<file>`?[^\s`]+`?)" + _ENTRY_TAIL + r"\[(?P<severity>\w+)\][ \t]*",
        bracketed=True,
    ),
    FindingPattern(
        "untagged",
        _ENTRY_PREFIX + r"(?:FILE:[ \t]*)?(?P<file>`?[^\s`]+`?)" + _ENTRY_TAIL,
        bracketed=False,
    ),
)


def _scan(text: str) -> list[Candidate]:
    """Try fenced blocks first, then the whole text; first pattern with hits wins."""
    fenced = [(m.start(1), m.end(1)) for m in FENCED_BLOCK.finditer(text)]
    scopes = [fenced] if fenced else []
    scopes.append([(0, len(text))])

    for regions in scopes:
        for pattern in PATTERNS:
            candidates = pattern.match(text, regions)
            if candidates:
                logger.info(f"Matched {len(candidates)} findings with '{pattern.name}' pattern")
                return candidates
    return []


def _extract_narrative(text: str, candidates: list[Candidate]) -> str:
    heading = SUMMARY_HEADING.search(text)
    if heading:
        following = HEADING.search(text, heading.end())
        end = following.start() if following else len(text)
        return text[heading.end():end].strip()

    remaining = text
    for candidate in sorted(candidates, key=lambda c: c.span[0], reverse=True):
        start, end = candidate.span
        remaining = remaining[:start] + remaining[end:]
    remaining = re.sub(r"^```[^\n]*\n\s*^```[ \t]*$", "", remaining, flags=re.MULTILINE)
    return re.sub(r"\n{3,}", "\n\n", remaining).strip()


def parse_response(text: str) -> ReviewSummary:
    """Turn free-text assistant output into findings, narrative and recommendation.

    Never raises: anything unparseable becomes narrative with no findings.
    """
    text = text or ""
    try:
        candidates = _scan(text)
        findings = tuple(
            Finding(file=c.file, line=c.line, text=c.text, severity=c.severity)
            for c in candidates
        )
        return ReviewSummary(
            findings=findings,
            narrative=_extract_narrative(text, candidates),
            recommendation=derive_recommendation(findings),
        )
    except Exception as e:
        logger.exception(f"Failed to parse review response: {e}")
        return ReviewSummary(narrative=text.strip())
