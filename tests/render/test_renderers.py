"""
Tests for the report renderers: checklist, table, diff and JSON.
"""

import json

import pytest

from checkdoc.ir.enums import ReportFormat
from checkdoc.passes.p10_parse import parse_document
from checkdoc.policy.collector import evaluate_rules, sort_violations
from checkdoc.policy.scoring import score
from checkdoc.render import parse_report, render, render_checklist, render_diff, render_table


PLAIN_VERBS = {
    "id": "plain-verbs",
    "severity": "SHOULD",
    "evaluator": "pattern_forbidden",
    "params": {"patterns": [r"\butili[sz]e\b"]},
    "message": "Use a plain verb instead of '{match}'",
    "fix_template": "use",
}

NO_TODO = {
    "id": "no-todo",
    "severity": "MUST",
    "evaluator": "pattern_forbidden",
    "params": {"patterns": [r"\bTODO\b"]},
    "message": "Placeholder '{match}'",
    "description": "No leftover placeholders",
}

NEEDS_SUMMARY = {
    "id": "needs-summary",
    "severity": "MUST",
    "evaluator": "pattern_required",
    "params": {"pattern": "^summary:"},
    "message": "No summary line",
    "fix_template": "Summary: TBD",
}


def report_for(ruleset, text, source="doc.md"):
    document = parse_document(text, source=source)
    outcomes = evaluate_rules(ruleset, document)
    violations = sort_violations(v for o in outcomes for v in o.violations)
    return score(violations, ruleset, outcomes, source=source)


@pytest.fixture
def report(ruleset_from):
    ruleset = ruleset_from(PLAIN_VERBS, NO_TODO, name="house", version="1.0")
    return report_for(ruleset, "We utilize tools.\n\nTODO: finish.\n")


class TestChecklist:
    """Checklist renderer."""

    def test_header(self, report):
        output = render_checklist(report)
        assert "COMPLIANCE CHECKLIST: doc.md" in output
        assert "Rule set: house v1.0" in output

    def test_rule_lines(self, report):
        lines = render_checklist(report).splitlines()
        assert "[ ] plain-verbs [SHOULD] failed (1 finding)" in lines
        assert "[ ] no-todo [MUST] failed (1 finding)" in lines
        assert "      No leftover placeholders" in lines
        assert "    - L3: Placeholder 'TODO'" in lines
        assert "    - L1: Use a plain verb instead of 'utilize'" in lines

    def test_summary(self, report):
        output = render_checklist(report)
        assert "MUST compliance: 0/1 rules passed (0.0%)" in output
        assert output.endswith("Violations: MUST 1, SHOULD 1, MAY 0\n")

    def test_passed_rule(self, ruleset_from):
        output = render_checklist(report_for(ruleset_from(NO_TODO), "All done.\n"))
        assert "[x] no-todo [MUST] passed" in output
        assert "MUST compliance: 1/1 rules passed (100.0%)" in output

    def test_no_applicable_rules(self, ruleset_from):
        output = render_checklist(report_for(ruleset_from(PLAIN_VERBS), ""))
        assert "[-] plain-verbs [SHOULD] not applicable" in output
        assert "MUST compliance: 100.0% (no applicable rules)" in output

    def test_no_enabled_rules(self, ruleset_from):
        assert "(no enabled rules)" in render_checklist(report_for(ruleset_from(), "Text.\n"))


class TestTable:
    """Markdown table renderer."""

    def test_header_and_rows(self, report):
        lines = render_table(report).splitlines()
        assert lines[0].startswith("| Rule")
        assert lines[1].startswith("|---")
        assert any(line.startswith("| plain-verbs") and "failed" in line for line in lines)
        assert any(line.startswith("| no-todo") and "L3: Placeholder 'TODO'" in line for line in lines)
        assert lines[-1] == "MUST compliance: 0/1 rules passed (0.0%)"

    def test_rows_are_aligned(self, report):
        table = render_table(report).splitlines()[:4]
        assert len({len(line) for line in table}) == 1

    def test_passed_rule_row(self, ruleset_from):
        output = render_table(report_for(ruleset_from(NO_TODO), "Done.\n"))
        row = next(line for line in output.splitlines() if line.startswith("| no-todo"))
        assert "passed" in row
        assert row.rstrip(" |").endswith("-")

    def test_pipes_escaped(self, ruleset_from):
        rule = dict(NO_TODO, message="a|b")
        output = render_table(report_for(ruleset_from(rule), "TODO\n"))
        assert "a\\|b" in output


class TestDiff:
    """Unified diff of suggested fixes."""

    def test_rewrite_hunk(self, report):
        assert render_diff(report) == (
            "--- a/doc.md\n"
            "+++ b/doc.md\n"
            "@@ -1,1 +1,1 @@ plain-verbs\n"
            "-We utilize tools.\n"
            "+We use tools.\n"
        )

    def test_insertion_after_rewrite(self, ruleset_from):
        ruleset = ruleset_from(PLAIN_VERBS, NEEDS_SUMMARY)
        output = render_diff(report_for(ruleset, "We utilize tools.\n\nBody.\n"))
        assert output == (
            "--- a/doc.md\n"
            "+++ b/doc.md\n"
            "@@ -1,1 +1,1 @@ plain-verbs\n"
            "-We utilize tools.\n"
            "+We use tools.\n"
            "@@ -3,0 +4,1 @@ needs-summary\n"
            "+Summary: TBD\n"
        )

    def test_several_fixes_on_one_line(self, ruleset_from):
        output = render_diff(report_for(ruleset_from(PLAIN_VERBS), "We utilize and utilise.\n"))
        assert "+We use and use." in output.splitlines()

    def test_overlapping_fixes_keep_first(self, ruleset_from):
        phrase = dict(PLAIN_VERBS, id="a-phrase", params={"patterns": ["utilize tools"]}, fix_template="use tools")
        output = render_diff(report_for(ruleset_from(PLAIN_VERBS, phrase), "We utilize tools.\n"))
        assert "@@ -1,1 +1,1 @@ a-phrase" in output
        assert "+We use tools." in output

    def test_no_fixes(self, ruleset_from):
        output = render_diff(report_for(ruleset_from(NO_TODO), "TODO\n"))
        assert output == "No suggested fixes for doc.md.\n"


class TestRender:
    """Format dispatch and purity."""

    def test_json(self, report):
        output = render(report, ReportFormat.JSON)
        data = json.loads(output)
        assert data["summary_percentage"] == 0.0
        assert data["total_applicable_must_rules"] == 1
        assert parse_report(output) == report

    def test_format_by_name(self, report):
        assert render(report, "table") == render_table(report)

    def test_unknown_format(self, report):
        with pytest.raises(ValueError):
            render(report, "html")

    @pytest.mark.parametrize("fmt", list(ReportFormat))
    def test_deterministic_and_pure(self, report, fmt):
        before = report.model_copy(deep=True)
        first = render(report, fmt)
        second = render(report, fmt)
        assert first == second
        assert report == before
