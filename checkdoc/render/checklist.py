"""
Checklist Renderer — One pass/fail entry per rule.

Findings are listed under the rule that produced them, followed by
the MUST-rule compliance summary.
"""

from checkdoc.ir.enums import RuleStatus
from checkdoc.ir.schema import ComplianceReport, Violation

STATUS_MARKS = {
    RuleStatus.PASSED: "[x]",
    RuleStatus.FAILED: "[ ]",
    RuleStatus.NOT_APPLICABLE: "[-]",
    RuleStatus.ERROR: "[!]",
}

STATUS_LABELS = {
    RuleStatus.PASSED: "passed",
    RuleStatus.FAILED: "failed",
    RuleStatus.NOT_APPLICABLE: "not applicable",
    RuleStatus.ERROR: "evaluation error",
}


def format_summary(report: ComplianceReport) -> str:
    """One-line MUST compliance summary, shared by the text formats."""
    if report.no_applicable_rules:
        return "MUST compliance: 100.0% (no applicable rules)"
    return (
        f"MUST compliance: {report.passed_must_rules}/{report.total_applicable_must_rules} "
        f"rules passed ({report.summary_percentage:.1f}%)"
    )


def format_finding(violation: Violation) -> str:
    where = str(violation.location) if violation.location else "document"
    text = f"{where}: {violation.message}"
    if violation.matched_text and violation.matched_text not in violation.message:
        text += f' ("{violation.matched_text}")'
    return text


def render_checklist(report: ComplianceReport) -> str:
    """Render the report as a checklist."""
    lines: list[str] = []

    lines.append("═" * 70)
    lines.append(f"COMPLIANCE CHECKLIST: {report.source}")
    lines.append(f"Rule set: {report.ruleset_name} v{report.ruleset_version}")
    lines.append("═" * 70)
    lines.append("")

    if not report.rule_results:
        lines.append("  (no enabled rules)")
        lines.append("")

    for result in report.rule_results:
        mark = STATUS_MARKS[result.status]
        label = STATUS_LABELS[result.status]
        if result.status == RuleStatus.FAILED:
            plural = "s" if result.violation_count != 1 else ""
            label = f"{label} ({result.violation_count} finding{plural})"
        lines.append(f"{mark} {result.rule_id} [{result.severity.value}] {label}")
        if result.description:
            lines.append(f"      {result.description}")

        if result.status in (RuleStatus.FAILED, RuleStatus.ERROR):
            for violation in report.violations_for(result.rule_id):
                lines.append(f"    - {format_finding(violation)}")

    lines.append("")
    lines.append("─" * 70)
    lines.append(format_summary(report))
    counts = report.severity_counts
    lines.append(
        "Violations: "
        + ", ".join(f"{name} {counts.get(name, 0)}" for name in ("MUST", "SHOULD", "MAY"))
    )

    return "\n".join(lines) + "\n"
