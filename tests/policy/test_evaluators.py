"""
Tests for the built-in evaluators.

Each test parses a small document, evaluates one rule and inspects
the resulting outcome.
"""

import re
import time

import pytest
import regex

from checkdoc.core.errors import EvaluationTimeout
from checkdoc.ir.enums import CountMetric, RuleStatus
from checkdoc.passes.p10_parse import parse_document
from checkdoc.policy.collector import evaluate_rule
from checkdoc.policy.evaluators import Deadline, format_message, measure, term_regex
from checkdoc.policy.loader import parse_rule


def run(rule_data, text):
    rule = parse_rule({"id": "r", "severity": "MUST", **rule_data})
    return evaluate_rule(rule, parse_document(text))


def forbidden(text, fix=None, **params):
    data = {"evaluator": "pattern_forbidden", "params": params, "message": "Found '{match}'"}
    if fix is not None:
        data["fix_template"] = fix
    return run(data, text)


class TestHelpers:
    """Message templates, term regexes and the deadline."""

    def test_format_message_fills_known_placeholders(self):
        assert format_message("{match} at {line}", match="very", line=3) == "very at 3"

    def test_format_message_keeps_unknown_placeholders(self):
        assert format_message("{match} in {where}", match="x") == "x in {where}"

    def test_format_message_tolerates_stray_braces(self):
        assert format_message("use { carefully", match="x") == "use { carefully"

    def test_term_regex_is_word_bounded(self):
        word = re.compile(term_regex("just"))
        assert word.search("it is just fine")
        assert not word.search("adjusted")

    def test_term_regex_spans_whitespace(self):
        assert re.search(term_regex("in the dark"), "in\nthe   dark")

    def test_term_regex_with_symbols(self):
        assert re.search(term_regex("C++"), "we use C++ here")

    def test_deadline_expires(self):
        deadline = Deadline("slow", 0.01)
        time.sleep(0.05)
        with pytest.raises(EvaluationTimeout) as exc:
            deadline.check()
        assert exc.value.rule_id == "slow"

    def test_deadline_without_limit(self):
        Deadline("r", None).check()
        assert Deadline("r", None).remaining() is None

    def test_deadline_interrupts_backtracking(self):
        nested = regex.compile(r"^(a+)+\1$")
        started = time.monotonic()
        with pytest.raises(EvaluationTimeout):
            Deadline("nested", 0.2).search(nested, "a" * 40 + "!")
        assert time.monotonic() - started < 5

    def test_deadline_finditer_yields_matches(self):
        found = Deadline("r", 1.0).finditer(regex.compile("o"), "foo")
        assert [m.start() for m in found] == [1, 2]

    def test_measure_sentences(self):
        unit = parse_document("One. Two! Three?\n").units[0]
        assert measure(unit, CountMetric.SENTENCES) == 3
        assert measure(unit, CountMetric.WORDS) == 3


class TestPatternForbidden:
    """pattern_forbidden evaluator."""

    def test_one_violation_per_match(self):
        outcome = forbidden("We basically agree.\n\nIt is very good.\n", terms=["basically", "very"])
        assert outcome.status == RuleStatus.FAILED
        assert [v.matched_text for v in outcome.violations] == ["basically", "very"]
        assert [str(v.location) for v in outcome.violations] == ["L1", "L3"]
        assert outcome.violations[0].message == "Found 'basically'"

    def test_columns(self):
        violation = forbidden("We basically agree.\n", terms=["basically"]).violations[0]
        assert violation.column == 3
        assert violation.end_column == 12
        assert violation.line_text == "We basically agree."

    def test_case_insensitive_by_default(self):
        assert len(forbidden("VERY good\n", terms=["very"]).violations) == 1

    def test_case_sensitive(self):
        outcome = forbidden("very good\n", terms=["Very"], case_sensitive=True)
        assert outcome.status == RuleStatus.PASSED

    def test_code_blocks_skipped_by_default(self):
        outcome = forbidden("```\nTODO\n```\n", patterns=["TODO"])
        assert outcome.status == RuleStatus.NOT_APPLICABLE

    def test_code_blocks_when_asked(self):
        outcome = forbidden("```\nTODO\n```\n", patterns=["TODO"], unit_kinds=["code_block"])
        assert str(outcome.violations[0].location) == "L2"
        assert outcome.violations[0].column == 0

    def test_literal_fix(self):
        violation = forbidden("We utilize tools.\n", fix="use", patterns=[r"\butili[sz]e\b"]).violations[0]
        assert violation.suggested_fix == "use"

    def test_group_reference_fix(self):
        violation = forbidden("About 50 percent done.\n", fix=r"\1%", patterns=[r"(\d+) percent"]).violations[0]
        assert violation.suggested_fix == "50%"
        assert (violation.column, violation.end_column) == (6, 16)

    def test_match_placeholder_in_fix(self):
        violation = forbidden("very good\n", fix="[{match}]", terms=["very"]).violations[0]
        assert violation.suggested_fix == "[very]"

    def test_match_across_lines(self):
        outcome = forbidden("They dance in\nthe dark.\n", fix="x", terms=["dance in the dark"])
        violation = outcome.violations[0]
        assert str(violation.location) == "L1-2"
        assert violation.matched_text == "dance in\nthe dark"
        assert violation.line_text is None
        assert violation.suggested_fix is None

    def test_section_scope(self):
        text = "## Objectives\n\n- understand X\n\n## Content\n\n- understand Y\n"
        outcome = forbidden(text, terms=["understand"], section="^objectives$")
        assert [str(v.location) for v in outcome.violations] == ["L3"]

    def test_missing_section_not_applicable(self):
        outcome = forbidden("Some text\n", terms=["text"], section="^objectives$")
        assert outcome.status == RuleStatus.NOT_APPLICABLE

    def test_empty_document_not_applicable(self):
        assert forbidden("", terms=["x"]).status == RuleStatus.NOT_APPLICABLE


class TestPatternRequired:
    """pattern_required evaluator."""

    def required(self, text, fix=None, message="Missing {pattern}", **params):
        data = {"evaluator": "pattern_required", "params": params, "message": message}
        if fix is not None:
            data["fix_template"] = fix
        return run(data, text)

    def test_present(self):
        outcome = self.required("Target audience: nurses\n", pattern=r"(target )?audience\s*:")
        assert outcome.status == RuleStatus.PASSED

    def test_absent_anchors_at_last_line(self):
        outcome = self.required("# Title\n\nBody text.\n", fix="Audience: TBD", pattern="audience:")
        assert len(outcome.violations) == 1
        violation = outcome.violations[0]
        assert str(violation.location) == "L3"
        assert violation.suggested_fix == "Audience: TBD"
        assert violation.message == "Missing audience:"

    def test_absent_in_section(self):
        outcome = self.required("## Summary\n\nNothing here.\n", pattern="key point", section="^summary$")
        assert str(outcome.violations[0].location) == "L3"

    def test_missing_section_fails(self):
        outcome = self.required("Body.\n", pattern="x", section="^summary$")
        assert outcome.status == RuleStatus.FAILED
        assert outcome.violations[0].location is None

    def test_min_matches(self):
        outcome = self.required(
            "An example.\n\nNo match.\n",
            message="Found {count} of {min}",
            pattern="example",
            min_matches=2,
        )
        assert outcome.violations[0].message == "Found 1 of 2"


class TestCountBound:
    """count_bound evaluator."""

    def bound(self, text, message="{count} {metric}", **params):
        return run({"evaluator": "count_bound", "params": params, "message": message}, text)

    def test_word_limit_boundary(self):
        at_limit = " ".join(["word"] * 150) + "\n"
        over_limit = " ".join(["word"] * 151) + "\n"
        assert self.bound(at_limit, metric="words", max=150).status == RuleStatus.PASSED
        outcome = self.bound(over_limit, metric="words", max=150)
        assert outcome.status == RuleStatus.FAILED
        assert outcome.violations[0].message == "151 words"
        assert str(outcome.violations[0].location) == "L1"

    def test_per_section_units(self):
        text = "### Q1\n\n- a\n- b\n\n### Q2\n\n- a\n- b\n- c\n"
        outcome = self.bound(
            text,
            message="{section} has {count}",
            metric="units",
            per="section",
            section_level=3,
            unit_kinds=["list_item"],
            min=3,
        )
        assert len(outcome.violations) == 1
        assert outcome.violations[0].message == "Q1 has 2"
        assert str(outcome.violations[0].location) == "L1"

    def test_per_document(self):
        outcome = self.bound("One two.\n\nThree.\n", metric="words", per="document", max=2)
        violation = outcome.violations[0]
        assert violation.message == "3 words"
        assert violation.location is None

    def test_sentences(self):
        outcome = self.bound("One. Two! Three?\n", metric="sentences", max=2)
        assert outcome.violations[0].message == "3 sentences"

    def test_min_only(self):
        assert self.bound("Four words right here.\n", metric="words", min=4).status == RuleStatus.PASSED

    def test_no_units_not_applicable(self):
        outcome = self.bound("# Only a heading\n", metric="words", max=10)
        assert outcome.status == RuleStatus.NOT_APPLICABLE


class TestStructuralOrder:
    """structural_order evaluator."""

    def order(self, text, headings, **params):
        params["headings"] = headings
        return run({
            "evaluator": "structural_order",
            "params": params,
            "message": "'{heading}' {problem}",
        }, text)

    def test_in_order(self):
        text = "## Objectives\n\n## Content\n\n## Assessment\n"
        outcome = self.order(text, ["## Objectives", "## Content", "## Assessment"])
        assert outcome.status == RuleStatus.PASSED

    def test_reversed_pair_is_one_violation(self):
        text = "## Assessment\n\nQuiz.\n\n## Objectives\n\nGoals.\n"
        outcome = self.order(text, ["## Objectives", "## Assessment"])
        assert len(outcome.violations) == 1
        violation = outcome.violations[0]
        assert violation.message == "'## Assessment' appears before '## Objectives'"
        assert str(violation.location) == "L1"

    def test_missing_heading(self):
        outcome = self.order("## Objectives\n", ["## Objectives", "## Assessment"])
        assert [v.message for v in outcome.violations] == ["'## Assessment' missing"]
        assert outcome.violations[0].location is None

    def test_level_must_match(self):
        outcome = self.order("### Objectives\n", ["## Objectives"])
        assert outcome.violations[0].message == "'## Objectives' missing"

    def test_plain_titles_ignore_case_and_level(self):
        outcome = self.order("# objectives\n\n### Assessment\n", ["Objectives", "Assessment"])
        assert outcome.status == RuleStatus.PASSED

    def test_regex_entries(self):
        outcome = self.order("## Learning objectives\n\n## Quiz\n", ["objectives", "quiz|assessment"], regex=True)
        assert outcome.status == RuleStatus.PASSED


class TestHeadingHierarchy:
    """heading_hierarchy evaluator."""

    def hierarchy(self, text, **params):
        return run({
            "evaluator": "heading_hierarchy",
            "params": params,
            "message": "'{heading}' is level {level}, expected {expected}",
        }, text)

    def test_skipped_level(self):
        outcome = self.hierarchy("# A\n\n### C\n")
        assert len(outcome.violations) == 1
        assert outcome.violations[0].message == "'C' is level 3, expected 2"
        assert str(outcome.violations[0].location) == "L3"

    def test_going_back_up_is_fine(self):
        assert self.hierarchy("# A\n\n## B\n\n### C\n\n## D\n").status == RuleStatus.PASSED

    def test_first_level(self):
        outcome = self.hierarchy("## A\n", first_level=1)
        assert outcome.violations[0].message == "'A' is level 2, expected 1"

    def test_no_headings_not_applicable(self):
        assert self.hierarchy("Just text.\n").status == RuleStatus.NOT_APPLICABLE
