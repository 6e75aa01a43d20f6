"""
JSON Report — Machine-readable report output.

The JSON form is the report model itself, so it parses back into an
equal ComplianceReport.
"""

from checkdoc.ir.schema import ComplianceReport


def render_json(report: ComplianceReport, indent: int = 2) -> str:
    return report.model_dump_json(indent=indent) + "\n"


def parse_report(text: str) -> ComplianceReport:
    """Read a report back from render_json() output."""
    return ComplianceReport.model_validate_json(text)
