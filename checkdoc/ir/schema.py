"""
IR Schema — Pydantic models for documents, violations and reports.

Every model here is frozen: a Document is immutable input to a run,
Violations never change after creation, and a ComplianceReport is
derived fresh on every run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from checkdoc import __report_version__
from checkdoc.ir.enums import (
    CheckStatus,
    DiagnosticLevel,
    RuleStatus,
    Severity,
    UnitKind,
)


class Location(BaseModel):
    """A 1-based, inclusive line range in the source document."""

    model_config = ConfigDict(frozen=True)

    start_line: int = Field(..., ge=1, description="First line of the range")
    end_line: int = Field(..., ge=1, description="Last line of the range")

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"L{self.start_line}"
        return f"L{self.start_line}-{self.end_line}"


# ============================================================================
# Document
# ============================================================================

class Unit(BaseModel):
    """An addressable block of a parsed document."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Position in document order")
    kind: UnitKind
    text: str = Field(..., description="Unit text without Markdown markers")
    location: Location
    lines: tuple[str, ...] = Field(
        default=(),
        description="Raw source lines the unit spans",
    )
    level: Optional[int] = Field(None, description="Heading level (headings only)")
    section: Optional[str] = Field(
        None,
        description="Text of the nearest heading above this unit",
    )
    language: Optional[str] = Field(None, description="Code block info string")


class Document(BaseModel):
    """A parsed document: ordered units plus source metadata."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(default="<document>", description="Path or label of the input")
    units: tuple[Unit, ...] = ()
    line_count: int = 0

    def units_of(self, kinds) -> list[Unit]:
        """Units whose kind is in ``kinds``, in document order."""
        kinds = set(kinds)
        return [u for u in self.units if u.kind in kinds]

    @property
    def headings(self) -> list[Unit]:
        return [u for u in self.units if u.kind == UnitKind.HEADING]

    @property
    def is_empty(self) -> bool:
        return not self.units


# ============================================================================
# Findings
# ============================================================================

class Violation(BaseModel):
    """A recorded failure of a Document against a Rule."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    message: str
    location: Optional[Location] = Field(
        None,
        description="Where the violation is; None for rule-level failures",
    )
    matched_text: str = ""
    suggested_fix: Optional[str] = Field(
        None,
        description="Replacement for matched_text, or text to insert",
    )
    line_text: Optional[str] = Field(
        None,
        description="Original source line the match sits on",
    )
    column: Optional[int] = Field(None, description="0-based match start within line_text")
    end_column: Optional[int] = Field(None, description="0-based match end within line_text")
    is_error: bool = Field(
        default=False,
        description="True when this records a RuleEvaluationError",
    )

    @property
    def sort_key(self) -> tuple:
        """Document position first, then rule id."""
        line = self.location.start_line if self.location else 0
        return (line, self.column or 0, self.rule_id, self.matched_text)


class RuleResult(BaseModel):
    """Per-rule outcome of a check run."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    description: str = ""
    status: RuleStatus
    violation_count: int = 0


class ComplianceReport(BaseModel):
    """
    The scored result of checking one document against one rule set.

    A pure function of (RuleSet, Document); recomputed every run.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=__report_version__, description="Report schema version")
    ruleset_name: str
    ruleset_version: str
    source: str = "<document>"

    total_applicable_must_rules: int = 0
    passed_must_rules: int = 0
    summary_percentage: float = 100.0
    no_applicable_rules: bool = Field(
        default=False,
        description="True when no MUST rule applied; 100% is then not a pass",
    )

    violations: tuple[Violation, ...] = ()
    rule_results: tuple[RuleResult, ...] = ()
    severity_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def must_violations(self) -> list[Violation]:
        return [v for v in self.violations if v.severity == Severity.MUST]

    @property
    def passed(self) -> bool:
        """True when no MUST violation was recorded."""
        return not self.must_violations

    def violations_for(self, rule_id: str) -> list[Violation]:
        return [v for v in self.violations if v.rule_id == rule_id]


# ============================================================================
# Run metadata
# ============================================================================

class TraceEntry(BaseModel):
    """A single pipeline trace entry."""

    pass_name: str
    action: str
    before: Optional[str] = None
    after: Optional[str] = None
    timestamp: datetime


class Diagnostic(BaseModel):
    """A diagnostic message emitted by a pass or the engine."""

    level: DiagnosticLevel
    code: str
    message: str
    source: str


class CheckResult(BaseModel):
    """The complete output of one check run."""

    run_id: str
    status: CheckStatus = CheckStatus.SUCCESS
    report: Optional[ComplianceReport] = None
    rendered: Optional[str] = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    trace: list[TraceEntry] = Field(default_factory=list)
    processing_duration_ms: float = 0.0

    @property
    def error_message(self) -> Optional[str]:
        """Message of the first error diagnostic, if any."""
        for diag in self.diagnostics:
            if diag.level == DiagnosticLevel.ERROR:
                return diag.message
        return None
