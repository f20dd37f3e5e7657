from enum import Enum
from pydantic import BaseModel, ConfigDict, PositiveInt


class Severity(str, Enum):
    SUGGESTION = "suggestion"
    ISSUE = "issue"
    CRITICAL = "critical"


class Recommendation(str, Enum):
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    COMMENT = "comment"


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    line: PositiveInt
    text: str
    severity: Severity = Severity.SUGGESTION


class ReviewSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    findings: tuple[Finding, ...] = ()
    narrative: str = ""
    recommendation: Recommendation = Recommendation.APPROVE


class PostOutcome(BaseModel):
    """Result of posting one finding. Exactly one of external_id / error is set."""
    model_config = ConfigDict(frozen=True)

    finding: Finding
    external_id: int | None = None
    error: str | None = None
    fallback_id: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FinalReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcomes: tuple[PostOutcome, ...] = ()
    recommendation: Recommendation = Recommendation.APPROVE
    tracking_id: int | None = None
    body: str = ""

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def posted(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def by_severity(self) -> dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for outcome in self.outcomes:
            counts[outcome.finding.severity] += 1
        return counts


def derive_recommendation(findings: tuple[Finding, ...] | list[Finding]) -> Recommendation:
    """Critical blocks, all-suggestions (or nothing) approves, anything else comments."""
    if any(f.severity == Severity.CRITICAL for f in findings):
        return Recommendation.REQUEST_CHANGES
    if all(f.severity == Severity.SUGGESTION for f in findings):
        return Recommendation.APPROVE
    return Recommendation.COMMENT
