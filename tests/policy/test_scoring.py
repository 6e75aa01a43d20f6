"""
Tests for compliance scoring.
"""

import pytest
from pydantic import ValidationError

from checkdoc.core.engine import check
from checkdoc.ir.enums import EvaluatorKind, RuleStatus
from checkdoc.passes.p10_parse import parse_document
from checkdoc.policy import evaluators
from checkdoc.policy.collector import collect, evaluate_rules, sort_violations
from checkdoc.policy.scoring import score


def forbid(rule_id, term, severity="MUST"):
    return {
        "id": rule_id,
        "severity": severity,
        "evaluator": "pattern_forbidden",
        "params": {"terms": [term]},
        "message": "'{match}'",
    }


def report_for(ruleset, text):
    document = parse_document(text)
    outcomes = evaluate_rules(ruleset, document)
    violations = sort_violations(v for o in outcomes for v in o.violations)
    return score(violations, ruleset, outcomes, source="doc.md")


class TestScore:
    """MUST-rule accounting."""

    def test_half_of_must_rules_pass(self, ruleset_from):
        ruleset = ruleset_from(forbid("no-alpha", "alpha"), forbid("no-beta", "beta"))
        report = report_for(ruleset, "alpha\n")
        assert report.total_applicable_must_rules == 2
        assert report.passed_must_rules == 1
        assert report.summary_percentage == 50.0
        assert not report.passed
        assert not report.no_applicable_rules

    def test_percentage_counts_rules_not_violations(self, ruleset_from):
        ruleset = ruleset_from(forbid("no-alpha", "alpha"), forbid("no-beta", "beta"))
        report = report_for(ruleset, "alpha alpha alpha\n")
        assert len(report.violations) == 3
        assert report.summary_percentage == 50.0

    def test_rounded_to_two_places(self, ruleset_from):
        ruleset = ruleset_from(forbid("a", "alpha"), forbid("b", "beta"), forbid("c", "gamma"))
        report = report_for(ruleset, "alpha beta\n")
        assert report.summary_percentage == 33.33

    def test_all_pass(self, ruleset_from):
        report = report_for(ruleset_from(forbid("no-alpha", "alpha")), "fine\n")
        assert report.summary_percentage == 100.0
        assert report.passed
        assert not report.no_applicable_rules

    def test_should_violations_do_not_lower_score(self, ruleset_from):
        ruleset = ruleset_from(forbid("no-alpha", "alpha"), forbid("soft", "fine", severity="SHOULD"))
        report = report_for(ruleset, "fine\n")
        assert report.summary_percentage == 100.0
        assert report.passed
        assert report.severity_counts == {"MUST": 0, "SHOULD": 1, "MAY": 0}

    def test_only_should_rules(self, ruleset_from):
        report = report_for(ruleset_from(forbid("soft", "word", severity="SHOULD")), "word\n")
        assert report.total_applicable_must_rules == 0
        assert report.summary_percentage == 100.0
        assert report.no_applicable_rules

    def test_not_applicable_must_rule_excluded(self, ruleset_from):
        ruleset = ruleset_from(
            {"id": "hierarchy", "severity": "MUST", "evaluator": "heading_hierarchy"},
            forbid("no-alpha", "alpha"),
        )
        report = report_for(ruleset, "alpha\n")
        statuses = {r.rule_id: r.status for r in report.rule_results}
        assert statuses == {"hierarchy": RuleStatus.NOT_APPLICABLE, "no-alpha": RuleStatus.FAILED}
        assert report.total_applicable_must_rules == 1
        assert report.summary_percentage == 0.0

    def test_errored_rule_counts_as_failed_must(self, ruleset_from, monkeypatch):
        def boom(rule, document, deadline):
            raise RuntimeError("bad state")
        monkeypatch.setitem(evaluators.EVALUATORS, EvaluatorKind.HEADING_HIERARCHY, boom)

        ruleset = ruleset_from(
            {"id": "hierarchy", "severity": "SHOULD", "evaluator": "heading_hierarchy"},
            forbid("no-alpha", "alpha"),
        )
        report = report_for(ruleset, "fine\n")
        assert report.total_applicable_must_rules == 2
        assert report.passed_must_rules == 1
        assert report.summary_percentage == 50.0
        assert report.rule_results[0].status == RuleStatus.ERROR

    def test_rule_results_follow_ruleset_order(self, ruleset_from):
        ruleset = ruleset_from(forbid("z", "x"), forbid("a", "y", severity="MAY"))
        report = report_for(ruleset, "x\n")
        assert [(r.rule_id, r.status, r.violation_count) for r in report.rule_results] == [
            ("z", RuleStatus.FAILED, 1),
            ("a", RuleStatus.PASSED, 0),
        ]

    def test_without_outcomes(self, ruleset_from):
        ruleset = ruleset_from(forbid("no-alpha", "alpha"), forbid("no-beta", "beta"))
        violations = collect(ruleset, parse_document("beta\n"))
        report = score(violations, ruleset)
        assert [r.status for r in report.rule_results] == [RuleStatus.PASSED, RuleStatus.FAILED]
        assert report.summary_percentage == 50.0

    def test_collected_violations_keep_applicability(self, ruleset_from):
        ruleset = ruleset_from({
            "id": "paragraph-length",
            "severity": "MUST",
            "evaluator": "count_bound",
            "params": {"metric": "words", "max": 50},
        })
        report = score(collect(ruleset, parse_document("")), ruleset)

        assert report.rule_results[0].status == RuleStatus.NOT_APPLICABLE
        assert report.total_applicable_must_rules == 0
        assert report.no_applicable_rules
        assert report == check("", ruleset).report

    def test_report_metadata(self, ruleset_from):
        report = report_for(ruleset_from(forbid("a", "x"), name="house", version="3"), "x\n")
        assert report.ruleset_name == "house"
        assert report.ruleset_version == "3"
        assert report.source == "doc.md"

    def test_report_is_immutable(self, ruleset_from):
        report = report_for(ruleset_from(forbid("a", "x")), "x\n")
        with pytest.raises(ValidationError):
            report.summary_percentage = 100.0
