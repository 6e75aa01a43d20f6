"""
IR — Intermediate Representation

Documents, violations and reports are immutable models.
Rendered output is a view of the report.
"""

from checkdoc.ir.enums import (
    CheckStatus,
    CountMetric,
    CountScope,
    DiagnosticLevel,
    EvaluatorKind,
    ReportFormat,
    RuleStatus,
    Severity,
    UnitKind,
)
from checkdoc.ir.schema import (
    CheckResult,
    ComplianceReport,
    Diagnostic,
    Document,
    Location,
    RuleResult,
    TraceEntry,
    Unit,
    Violation,
)

__all__ = [
    # Enums
    "CheckStatus",
    "CountMetric",
    "CountScope",
    "DiagnosticLevel",
    "EvaluatorKind",
    "ReportFormat",
    "RuleStatus",
    "Severity",
    "UnitKind",
    # Schema
    "CheckResult",
    "ComplianceReport",
    "Diagnostic",
    "Document",
    "Location",
    "RuleResult",
    "TraceEntry",
    "Unit",
    "Violation",
]
