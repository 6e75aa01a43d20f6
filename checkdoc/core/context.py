"""
CheckContext — Mutable state passed between pipeline passes.

Each pass reads prior artifacts and mutates only its own fields.
The artifacts themselves (Document, Violations, Report) are immutable.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union
from uuid import uuid4

from checkdoc.ir.enums import CheckStatus, DiagnosticLevel, ReportFormat
from checkdoc.ir.schema import (
    CheckResult,
    ComplianceReport,
    Diagnostic,
    Document,
    TraceEntry,
    Violation,
)
from checkdoc.policy.models import CheckSettings, RuleSet


@dataclass
class CheckRequest:
    """Input to the check pipeline."""

    text: Union[str, bytes]
    ruleset: RuleSet
    source: str = "<document>"
    format: ReportFormat = ReportFormat.CHECKLIST
    settings: Optional[CheckSettings] = None
    run_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.run_id is None:
            self.run_id = str(uuid4())
        if self.settings is None:
            self.settings = self.ruleset.settings.with_env()
        self.format = ReportFormat(self.format)


@dataclass
class CheckContext:
    """
    Per-run state threaded through the passes.

    Passes read anything but write only the artifacts they produce:
    p00 normalized_text, p10 document, p50 outcomes and violations,
    p60 report, p70 rendered.
    """

    request: CheckRequest
    raw_text: Union[str, bytes]
    normalized_text: str = ""

    document: Optional[Document] = None
    outcomes: list = field(default_factory=list)  # list[RuleOutcome]
    violations: list[Violation] = field(default_factory=list)
    report: Optional[ComplianceReport] = None
    rendered: Optional[str] = None

    trace: list[TraceEntry] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    status: CheckStatus = CheckStatus.SUCCESS
    start_time: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_request(cls, request: CheckRequest) -> "CheckContext":
        return cls(request=request, raw_text=request.text)

    @property
    def ruleset(self) -> RuleSet:
        return self.request.ruleset

    @property
    def settings(self) -> CheckSettings:
        return self.request.settings

    def add_trace(
        self,
        pass_name: str,
        action: str,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> None:
        entry = TraceEntry(pass_name=pass_name, action=action, before=before, after=after, timestamp=datetime.now())
        self.trace.append(entry)

    def add_diagnostic(self, level: str, code: str, message: str, source: str) -> None:
        """Record a diagnostic. ``level`` is a DiagnosticLevel value."""
        self.diagnostics.append(
            Diagnostic(level=DiagnosticLevel(level), code=code, message=message, source=source)
        )

    def to_result(self) -> CheckResult:
        """Package the run. The report and rendering are None if a pass failed first."""
        elapsed = datetime.now() - self.start_time
        return CheckResult(
            run_id=self.request.run_id,
            status=self.status,
            report=self.report,
            rendered=self.rendered,
            diagnostics=list(self.diagnostics),
            trace=list(self.trace),
            processing_duration_ms=elapsed.total_seconds() * 1000,
        )
