"""
Compliance Scorer — Turns violations into a ComplianceReport.

Compliance percentage = passed MUST rules / applicable MUST rules * 100.

A rule that failed to evaluate counts as an applicable, failed MUST
rule whatever its declared severity. With no applicable MUST rules the
percentage is 100 and the report says so explicitly instead of
presenting it as a pass.
"""

from typing import Iterable, Optional

from checkdoc.core.logging import LogChannel, get_logger
from checkdoc.ir.enums import RuleStatus, Severity
from checkdoc.ir.schema import ComplianceReport, RuleResult, Violation
from checkdoc.policy.collector import RuleOutcome, sort_violations
from checkdoc.policy.models import RuleSet

log = get_logger(LogChannel.SCORE)


def score(
    violations: Iterable[Violation],
    ruleset: RuleSet,
    outcomes: Optional[list[RuleOutcome]] = None,
    source: str = "<document>",
) -> ComplianceReport:
    """
    Score a run.

    Args:
        violations: All violations of the run
        ruleset: The rule set that produced them
        outcomes: Per-rule outcomes from evaluate_rules(). Defaults to
            the outcomes collect() attached to ``violations``; with
            neither, every enabled rule is assumed applicable
        source: Document label for the report

    Returns:
        A fresh ComplianceReport
    """
    if outcomes is None:
        outcomes = getattr(violations, "outcomes", None)
    violations = sort_violations(violations)
    statuses = _rule_statuses(violations, ruleset, outcomes)

    results: list[RuleResult] = []
    applicable_must = 0
    passed_must = 0
    for rule in ruleset.enabled_rules():
        status = statuses[rule.id]
        count = sum(1 for v in violations if v.rule_id == rule.id)
        results.append(RuleResult(
            rule_id=rule.id,
            severity=rule.severity,
            description=rule.description,
            status=status,
            violation_count=count,
        ))

        if status == RuleStatus.ERROR or (rule.is_must and status != RuleStatus.NOT_APPLICABLE):
            applicable_must += 1
            if status == RuleStatus.PASSED:
                passed_must += 1

    if applicable_must:
        percentage = round(passed_must / applicable_must * 100, 2)
    else:
        percentage = 100.0

    severity_counts = {s.value: 0 for s in Severity}
    for v in violations:
        severity_counts[v.severity.value] += 1

    log.info(
        "scored",
        applicable_must=applicable_must,
        passed_must=passed_must,
        percentage=percentage,
        violations=len(violations),
    )

    return ComplianceReport(
        ruleset_name=ruleset.name,
        ruleset_version=ruleset.version,
        source=source,
        total_applicable_must_rules=applicable_must,
        passed_must_rules=passed_must,
        summary_percentage=percentage,
        no_applicable_rules=applicable_must == 0,
        violations=tuple(violations),
        rule_results=tuple(results),
        severity_counts=severity_counts,
    )


def _rule_statuses(
    violations: list[Violation],
    ruleset: RuleSet,
    outcomes: Optional[list[RuleOutcome]],
) -> dict[str, RuleStatus]:
    if outcomes is not None:
        statuses = {o.rule.id: o.status for o in outcomes}
    else:
        statuses = {}

    for rule in ruleset.enabled_rules():
        if rule.id in statuses:
            continue
        own = [v for v in violations if v.rule_id == rule.id]
        if any(v.is_error for v in own):
            statuses[rule.id] = RuleStatus.ERROR
        elif own:
            statuses[rule.id] = RuleStatus.FAILED
        else:
            statuses[rule.id] = RuleStatus.PASSED
    return statuses
