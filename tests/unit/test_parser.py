# tests/unit/test_parser.py
import pytest
from review_bot.models.review import Recommendation, Severity
from review_bot.review.parser import PATTERNS, parse_response


def test_parses_file_prefixed_findings_in_order():
    summary = parse_response(
        "FILE: a.ts LINE: 3 - [ISSUE] fix this\nFILE: b.ts LINE: 9 - [CRITICAL] bug here"
    )

    assert [(f.file, f.line, f.severity) for f in summary.findings] == [
        ("a.ts", 3, Severity.ISSUE),
        ("b.ts", 9, Severity.CRITICAL),
    ]
    assert [f.text for f in summary.findings] == ["fix this", "bug here"]
    assert summary.recommendation == Recommendation.REQUEST_CHANGES


def test_untagged_entry_defaults_to_suggestion():
    summary = parse_response("util.ts LINE: 5 - do X better")

    assert len(summary.findings) == 1
    finding = summary.findings[0]
    assert finding.file == "util.ts"
    assert finding.line == 5
    assert finding.text == "do X better"
    assert finding.severity == Severity.SUGGESTION
    assert summary.recommendation == Recommendation.APPROVE


def test_untagged_entry_recovers_leading_severity_tag():
    summary = parse_response("util.ts LINE: 5 -\n[critical] null dereference")

    assert summary.findings[0].severity == Severity.CRITICAL
    assert summary.findings[0].text == "null dereference"


def test_severity_is_case_insensitive_and_unknown_tags_default():
    summary = parse_response(
        "a.py LINE: 1 - [Issue] one\n"
        "b.py LINE: 2 - [NIT] two\n"
    )

    assert [f.severity for f in summary.findings] == [Severity.ISSUE, Severity.SUGGESTION]
    assert summary.recommendation == Recommendation.COMMENT


def test_bullets_and_backticks_are_accepted():
    summary = parse_response(
        "- `src/app.py` LINE: 12 - [ISSUE] missing await\n"
        "* src/db.py LINE: 40 - [SUGGESTION] add an index\n"
    )

    assert [(f.file, f.line) for f in summary.findings] == [("src/app.py", 12), ("src/db.py", 40)]


def test_summary_section_becomes_narrative():
    response = (
        "## Findings\n"
        "src/app.ts LINE: 4 - [critical] SQL injection\n"
        "\n"
        "## Overall Summary\n"
        "Solid change, one blocker.\n"
        "\n"
        "## Notes\n"
        "Nothing else.\n"
    )

    summary = parse_response(response)

    assert summary.narrative == "Solid change, one blocker."
    assert summary.findings[0].text == "SQL injection"


def test_narrative_without_summary_heading_drops_findings():
    response = "Looks mostly fine.\n\nmain.py LINE: 2 - [ISSUE] unused import\n"

    summary = parse_response(response)

    assert summary.narrative == "Looks mostly fine."


def test_fenced_block_is_scanned_first():
    response = (
        "Here is my review.\n"
        "\n"
        "```\n"
        "a.py LINE: 3 - [ISSUE] inside block\n"
        "```\n"
        "\n"
        "b.py LINE: 7 - [CRITICAL] outside block\n"
    )

    summary = parse_response(response)

    assert [f.file for f in summary.findings] == ["a.py"]
    assert summary.recommendation == Recommendation.COMMENT
    assert "Here is my review." in summary.narrative
    assert "inside block" not in summary.narrative


def test_first_matching_pattern_wins_without_merging():
    summary = parse_response("a.py LINE: 1 - [ISSUE] tagged\nb.py LINE: 2 - untagged one\n")

    assert [f.file for f in summary.findings] == ["a.py"]
    assert summary.findings[0].text == "tagged"


@pytest.mark.parametrize("line", ["0", "-2", "abc"])
def test_invalid_line_numbers_are_skipped(line):
    summary = parse_response(
        f"a.py LINE: {line} - [ISSUE] bad line\nc.py LINE: 5 - [ISSUE] good line"
    )

    assert [(f.file, f.line) for f in summary.findings] == [("c.py", 5)]


def test_multiline_entry_text():
    summary = parse_response(
        "a.py LINE: 1 - [ISSUE] first line\n  continued here\nb.py LINE: 2 - [ISSUE] next"
    )

    assert summary.findings[0].text == "first line\n  continued here"


def test_no_findings_means_whole_response_is_narrative():
    summary = parse_response("Great work, nothing to add.")

    assert summary.findings == ()
    assert summary.narrative == "Great work, nothing to add."
    assert summary.recommendation == Recommendation.APPROVE


def test_empty_response():
    summary = parse_response("")

    assert summary.findings == ()
    assert summary.narrative == ""
    assert summary.recommendation == Recommendation.APPROVE


def test_parse_failure_is_swallowed(monkeypatch):
    def boom(text, regions):
        raise RuntimeError("boom")

    monkeypatch.setattr(PATTERNS[0], "match", boom)

    summary = parse_response("a.py LINE: 1 - [ISSUE] x")

    assert summary.findings == ()
    assert summary.narrative == "a.py LINE: 1 - [ISSUE] x"


def test_prose_mentioning_line_does_not_end_entry():
    summary = parse_response(
        "FILE: a.ts LINE: 3 - [ISSUE] Off by one.\n"
        "See LINE: 5 for the loop bound.\n"
        "FILE: b.ts LINE: 8 - [SUGGESTION] rename"
    )

    assert [f.file for f in summary.findings] == ["a.ts", "b.ts"]
    assert summary.findings[0].text == "Off by one.\nSee LINE: 5 for the loop bound."
    assert "loop bound" not in summary.narrative
