"""Render — Presentation of compliance reports.

Renderers never mutate the report. Same report, same bytes.
"""

from typing import Callable, Union

from checkdoc.ir.enums import ReportFormat
from checkdoc.ir.schema import ComplianceReport
from checkdoc.render.checklist import render_checklist
from checkdoc.render.diff import render_diff
from checkdoc.render.json_report import parse_report, render_json
from checkdoc.render.table import render_table

RENDERERS: dict[ReportFormat, Callable[[ComplianceReport], str]] = {
    ReportFormat.CHECKLIST: render_checklist,
    ReportFormat.DIFF: render_diff,
    ReportFormat.TABLE: render_table,
    ReportFormat.JSON: render_json,
}


def render(report: ComplianceReport, format: Union[ReportFormat, str] = ReportFormat.CHECKLIST) -> str:
    """
    Render a report in the requested format.

    Raises:
        ValueError: If the format is unknown
    """
    return RENDERERS[ReportFormat(format)](report)


__all__ = [
    "parse_report",
    "render",
    "render_checklist",
    "render_diff",
    "render_json",
    "render_table",
    "RENDERERS",
]
