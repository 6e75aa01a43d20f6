"""
Table Renderer — rule | severity | status | finding.

Emits a Markdown table: one row per finding, or one row for a rule
without findings.
"""

from checkdoc.ir.schema import ComplianceReport
from checkdoc.render.checklist import STATUS_LABELS, format_finding, format_summary

HEADERS = ("Rule", "Severity", "Status", "Finding")


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_table(report: ComplianceReport) -> str:
    """Render the report as a Markdown table followed by the summary."""
    rows: list[tuple[str, str, str, str]] = []
    for result in report.rule_results:
        status = STATUS_LABELS[result.status]
        findings = report.violations_for(result.rule_id)
        if not findings:
            rows.append((result.rule_id, result.severity.value, status, "-"))
            continue
        for violation in findings:
            rows.append((
                result.rule_id,
                violation.severity.value,
                status,
                format_finding(violation),
            ))

    rows = [tuple(_cell(c) for c in row) for row in rows]
    widths = [
        max([len(HEADERS[i])] + [len(row[i]) for row in rows])
        for i in range(len(HEADERS))
    ]

    def line(cells) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    lines = [
        line(HEADERS),
        "|" + "|".join("-" * (w + 2) for w in widths) + "|",
    ]
    lines.extend(line(row) for row in rows)
    lines.append("")
    lines.append(format_summary(report))

    return "\n".join(lines) + "\n"
