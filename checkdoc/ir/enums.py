"""
IR Enums — Severities, unit kinds, evaluator kinds and status codes.

No stringly-typed constants scattered across passes.
"""

from enum import Enum


# ============================================================================
# Rules
# ============================================================================

class Severity(str, Enum):
    """
    Rule severity, per RFC 2119.

    Only MUST rules count towards the compliance percentage.
    """

    MUST = "MUST"
    SHOULD = "SHOULD"
    MAY = "MAY"


class EvaluatorKind(str, Enum):
    """Closed set of built-in predicate evaluators."""

    PATTERN_FORBIDDEN = "pattern_forbidden"
    PATTERN_REQUIRED = "pattern_required"
    COUNT_BOUND = "count_bound"
    STRUCTURAL_ORDER = "structural_order"
    HEADING_HIERARCHY = "heading_hierarchy"


class CountMetric(str, Enum):
    """What a count_bound rule counts."""

    WORDS = "words"
    SENTENCES = "sentences"
    CHARACTERS = "characters"
    LINES = "lines"
    UNITS = "units"


class CountScope(str, Enum):
    """Granularity at which a count_bound rule aggregates."""

    UNIT = "unit"
    SECTION = "section"
    DOCUMENT = "document"


# ============================================================================
# Document
# ============================================================================

class UnitKind(str, Enum):
    """Addressable block types of a parsed document."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE_BLOCK = "code_block"
    LIST_ITEM = "list_item"


# ============================================================================
# Results
# ============================================================================

class RuleStatus(str, Enum):
    """Outcome of one rule in a check run."""

    PASSED = "passed"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"
    ERROR = "error"


class ReportFormat(str, Enum):
    """Output formats supported by the renderer."""

    CHECKLIST = "checklist"
    DIFF = "diff"
    TABLE = "table"
    JSON = "json"


class CheckStatus(str, Enum):
    """Overall status of a check run."""

    SUCCESS = "success"
    ERROR = "error"


class DiagnosticLevel(str, Enum):
    """Severity of a pipeline diagnostic."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
