# src/review_bot/review/engine.py
import re
import json
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from review_bot.errors import CommentNotFoundError, PrerequisiteError
from review_bot.models.review import (
    FinalReport,
    Finding,
    PostOutcome,
    Recommendation,
    ReviewSummary,
    Severity,
)
from review_bot.platforms.base import PlatformAdapter
from .diff import NotFound, locate


logger = logging.getLogger(__name__)

SEVERITY_EMOJI = {
    Severity.CRITICAL: "🚨",
    Severity.ISSUE: "⚠️",
    Severity.SUGGESTION: "💡",
}

RECOMMENDATION_EMOJI = {
    Recommendation.APPROVE: "✅",
    Recommendation.REQUEST_CHANGES: "🔄",
    Recommendation.COMMENT: "📝",
}

RECOMMENDATION_LABEL = {
    Recommendation.APPROVE: "✅ Approve",
    Recommendation.REQUEST_CHANGES: "🔄 Request Changes",
    Recommendation.COMMENT: "📝 Comment Only",
}


@dataclass
class ProgressStep:
    name: str
    completed: bool = False


def coerce_comment_id(value: int | str | None) -> int | None:
    """Normalise a tracking id read from env/CI output; anything unusable is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    value = value.strip()
    if not (value.isascii() and value.isdigit()) or int(value) == 0:
        return None
    return int(value)


class ReviewPublisher:
    def __init__(
        self,
        adapter: PlatformAdapter,
        reviewer_name: str = "Claude",
        post_delay: float = 0.1,
        fallback_to_plain_comment: bool = True,
        pipeline_url: str | None = None,
        log_dir: str | None = None,
    ):
        self.adapter = adapter
        self.reviewer_name = reviewer_name
        self.post_delay = post_delay
        self.fallback_to_plain_comment = fallback_to_plain_comment
        self.pipeline_url = pipeline_url
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    async def publish(self, summary: ReviewSummary, tracking_id: int | None = None) -> FinalReport:
        """Post every finding inline, then write the summary to the tracking comment.

        A failure to fetch diff context is fatal: the tracking comment is set to a
        failure state and the error propagates. A failure to post one finding is
        recorded and the remaining findings are still posted. Once posting has
        started a report is always returned, even if the tracking comment cannot
        be written.
        """
        try:
            diffs = await self._fetch_diffs(summary.findings)
        except Exception as e:
            logger.error(f"Could not fetch diff context for {self.adapter.ref}: {e}")
            await self.report_failure(e, tracking_id)
            raise PrerequisiteError(f"Could not fetch diff context for {self.adapter.ref}: {e}") from e

        outcomes: list[PostOutcome] = []
        for index, finding in enumerate(summary.findings):
            if index and self.post_delay:
                await asyncio.sleep(self.post_delay)
            outcomes.append(await self._post_finding(finding, diffs[finding.file]))

        body = self._format_report(summary, outcomes)
        try:
            tracking_id = await self._write_tracking(body, tracking_id)
        except Exception as e:
            logger.error(f"Could not write review summary to tracking comment on {self.adapter.ref}: {e}")

        report = FinalReport(
            outcomes=tuple(outcomes),
            recommendation=summary.recommendation,
            tracking_id=tracking_id,
            body=body,
        )
        logger.info(
            f"Review published on {self.adapter.ref}: "
            f"{report.posted}/{report.total} posted, {report.failed} failed"
        )
        self._save_report(report)
        return report

    async def start_tracking(self, job_link: str | None = None) -> int:
        """Create the initial "working on it" tracking comment."""
        body = f"🤖 {self.reviewer_name} is working on this..."
        if job_link or self.pipeline_url:
            body += f"\n\n[View job details]({job_link or self.pipeline_url})"
        comment_id = await self.adapter.create_comment(body)
        logger.info(f"Created tracking comment {comment_id} on {self.adapter.ref}")
        return comment_id

    async def update_progress(self, steps: list[ProgressStep], tracking_id: int | None) -> int:
        checklist = "\n".join(f"- [{'x' if step.completed else ' '}] {step.name}" for step in steps)
        body = f"🤖 {self.reviewer_name} is working on this..."
        if self.pipeline_url:
            body += f"\n\n[View job details]({self.pipeline_url})"
        body += f"\n\n---\n{checklist}"
        done = sum(1 for step in steps if step.completed)
        logger.info(f"Progress on {self.adapter.ref}: {done}/{len(steps)} steps completed")
        return await self._write_tracking(body, tracking_id)

    async def report_failure(self, error: BaseException, tracking_id: int | None) -> int | None:
        """Put the tracking comment into a terminal failure state. Never raises."""
        body = (
            f"🤖 {self.reviewer_name} Review Failed\n\n"
            f"❌ **Error:** {error}\n\n"
        )
        if self.pipeline_url:
            body += f"Please check the [pipeline logs]({self.pipeline_url}) for more details.\n\n"
        body += f"---\n❌ **Review failed** | 📅 *{self._now()}*"
        try:
            return await self._write_tracking(body, tracking_id)
        except Exception as e:
            logger.error(f"Failed to write failure state to tracking comment: {e}")
            return tracking_id

    async def _fetch_diffs(self, findings: tuple[Finding, ...]) -> dict[str, str]:
        if not findings:
            return {}
        refs = await self.adapter.get_diff_refs()
        diffs: dict[str, str] = {}
        for finding in findings:
            if finding.file not in diffs:
                diffs[finding.file] = await self.adapter.get_diff(refs.base_sha, refs.head_sha, finding.file)
        return diffs

    async def _post_finding(self, finding: Finding, diff_text: str) -> PostOutcome:
        position = locate(diff_text, finding.line)
        if isinstance(position, NotFound):
            logger.warning(
                f"{finding.file}:{finding.line} is not in the diff; "
                f"assuming an added line in the new file"
            )
            position = position.fallback()

        logger.info(f"Posting inline comment on {finding.file}:{finding.line}")
        try:
            comment_id = await self.adapter.create_inline_comment(
                finding.file, position, self._format_comment(finding)
            )
            return PostOutcome(finding=finding, external_id=comment_id)
        except Exception as e:
            logger.error(f"Failed to post inline comment on {finding.file}:{finding.line}: {e}")
            fallback_id = await self._post_plain(finding) if self.fallback_to_plain_comment else None
            return PostOutcome(finding=finding, error=str(e) or type(e).__name__, fallback_id=fallback_id)

    async def _post_plain(self, finding: Finding) -> int | None:
        body = f"**`{finding.file}` line {finding.line}**\n\n{self._format_comment(finding)}"
        try:
            return await self.adapter.create_comment(body)
        except Exception as e:
            logger.error(f"Plain comment fallback failed for {finding.file}:{finding.line}: {e}")
            return None

    async def _write_tracking(self, body: str, tracking_id: int | None) -> int:
        if tracking_id is not None:
            try:
                await self.adapter.update_comment(tracking_id, body)
                logger.info(f"Updated tracking comment {tracking_id}")
                return tracking_id
            except CommentNotFoundError:
                logger.warning(f"Tracking comment {tracking_id} not found, creating a new one")
            except Exception as e:
                logger.warning(f"Failed to update tracking comment {tracking_id}, creating a new one: {e}")

        comment_id = await self.adapter.create_comment(body)
        logger.info(f"Created tracking comment {comment_id}")
        return comment_id

    def _format_comment(self, finding: Finding) -> str:
        emoji = SEVERITY_EMOJI[finding.severity]
        return (
            f"{emoji} **{finding.severity.value.upper()}**\n\n"
            f"{finding.text}\n\n"
            f"*- {self.reviewer_name} AI Code Review*"
        )

    def _format_report(self, summary: ReviewSummary, outcomes: list[PostOutcome]) -> str:
        failures = [o for o in outcomes if not o.ok]
        counts = {severity: 0 for severity in Severity}
        for outcome in outcomes:
            counts[outcome.finding.severity] += 1

        lines = [
            f"{RECOMMENDATION_EMOJI[summary.recommendation]} **{self.reviewer_name} Code Review Complete**",
            "",
            "## Summary",
            "",
            summary.narrative or "_No summary provided._",
        ]

        if failures:
            lines += ["", "## Failed items", ""]
            for outcome in failures:
                f = outcome.finding
                lines.append(
                    f"- `{f.file}:{f.line}` **[{f.severity.value.upper()}]** {f.text} "
                    f"_(not posted: {outcome.error})_"
                )

        lines += [
            "",
            "## Review Statistics",
            "",
            f"- **Total findings:** {len(outcomes)}",
            f"- **Inline comments posted:** {len(outcomes) - len(failures)}",
            f"- **Failed:** {len(failures)}",
            f"- **Critical:** {counts[Severity.CRITICAL]}",
            f"- **Issues:** {counts[Severity.ISSUE]}",
            f"- **Suggestions:** {counts[Severity.SUGGESTION]}",
            f"- **Recommendation:** {RECOMMENDATION_LABEL[summary.recommendation]}",
            "",
            "---",
        ]

        footer = f"🤖 *Automated review by {self.reviewer_name}* | 📅 *{self._now()}*"
        if self.pipeline_url:
            footer += f" | 🔗 [Pipeline]({self.pipeline_url})"
        lines.append(footer)
        return "\n".join(lines)

    def _now(self) -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    def _save_report(self, report: FinalReport) -> None:
        """Save the final report of one run as JSON next to earlier runs."""
        if not self.log_dir:
            return
        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            ref = re.sub(r"[^\w.-]+", "_", self.adapter.ref)
            log_path = self.log_dir / f"{timestamp}_{ref}.json"
            data = report.model_dump(mode="json")
            data.update(total=report.total, posted=report.posted, failed=report.failed)
            log_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            logger.info(f"Review report saved: {log_path}")
        except Exception as e:
            logger.warning(f"Failed to save review report: {e}")
