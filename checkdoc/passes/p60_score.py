"""
Pass 60 — Compliance Scoring

Builds the ComplianceReport from the collected violations and
per-rule outcomes.
"""

from checkdoc.core.context import CheckContext
from checkdoc.core.logging import get_pass_logger
from checkdoc.policy.scoring import score as score_violations

PASS_NAME = "p60_score"
log = get_pass_logger(PASS_NAME)


def score(ctx: CheckContext) -> CheckContext:
    """Score ctx.violations into ctx.report."""
    report = score_violations(
        ctx.violations,
        ctx.ruleset,
        outcomes=ctx.outcomes,
        source=ctx.request.source,
    )

    if report.no_applicable_rules:
        ctx.add_diagnostic(
            level="info",
            code="NO_APPLICABLE_RULES",
            message="No MUST rule applied to this document",
            source=PASS_NAME,
        )

    log.verbose(
        "report_built",
        rules=len(report.rule_results),
        no_applicable_rules=report.no_applicable_rules,
    )

    ctx.report = report
    ctx.add_trace(
        pass_name=PASS_NAME,
        action="scored_report",
        after=f"{report.summary_percentage:.1f}%",
    )

    return ctx
