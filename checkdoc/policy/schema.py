"""
Rule Set Schema — Pydantic models for rule set files.

A rule set file (YAML or JSON) contains:
- Metadata (name, version, description)
- Settings (time limit per rule, worker count, parse strictness)
- Composition (includes, overrides)
- Rules, each with typed params for its evaluator kind
"""

from __future__ import annotations

import regex
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from checkdoc.ir.enums import CountMetric, CountScope, EvaluatorKind, Severity, UnitKind


# Units most text rules look at. Code is excluded unless asked for.
PROSE_UNITS = [UnitKind.HEADING, UnitKind.PARAGRAPH, UnitKind.LIST_ITEM]


def _check_regex(pattern: str) -> str:
    try:
        regex.compile(pattern)
    except regex.error as e:
        raise ValueError(f"invalid regex {pattern!r}: {e}") from e
    return pattern


class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ============================================================================
# Evaluator params
# ============================================================================

class PatternForbiddenParams(_Params):
    """Forbidden regexes and/or literal terms."""

    patterns: list[str] = Field(default_factory=list, description="Forbidden regexes")
    terms: list[str] = Field(default_factory=list, description="Forbidden words/phrases (word-bounded)")
    case_sensitive: bool = False
    unit_kinds: list[UnitKind] = Field(default_factory=lambda: list(PROSE_UNITS))
    section: Optional[str] = Field(None, description="Only check units under this heading (regex)")

    @field_validator("patterns")
    @classmethod
    def _valid_patterns(cls, v: list[str]) -> list[str]:
        return [_check_regex(p) for p in v]

    @field_validator("section")
    @classmethod
    def _valid_section(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v) if v is not None else v

    @model_validator(mode="after")
    def _has_something_to_forbid(self) -> "PatternForbiddenParams":
        if not self.patterns and not self.terms:
            raise ValueError("pattern_forbidden needs 'patterns' or 'terms'")
        return self


class PatternRequiredParams(_Params):
    """A pattern that must appear within a scope."""

    pattern: str
    case_sensitive: bool = False
    unit_kinds: list[UnitKind] = Field(default_factory=lambda: list(PROSE_UNITS))
    section: Optional[str] = Field(None, description="Scope: units under this heading (regex)")
    min_matches: int = Field(default=1, ge=1, description="Units that must match")

    @field_validator("pattern")
    @classmethod
    def _valid_pattern(cls, v: str) -> str:
        return _check_regex(v)

    @field_validator("section")
    @classmethod
    def _valid_section(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v) if v is not None else v


class CountBoundParams(_Params):
    """An inclusive [min, max] bound on a count."""

    metric: CountMetric
    per: CountScope = CountScope.UNIT
    unit_kinds: list[UnitKind] = Field(default_factory=lambda: [UnitKind.PARAGRAPH])
    section_level: int = Field(default=2, ge=1, le=6, description="Heading level that opens a section")
    min: Optional[int] = Field(None, ge=0)
    max: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _valid_bounds(self) -> "CountBoundParams":
        if self.min is None and self.max is None:
            raise ValueError("count_bound needs 'min' and/or 'max'")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min ({self.min}) is greater than max ({self.max})")
        if self.metric == CountMetric.UNITS and self.per == CountScope.UNIT:
            raise ValueError("metric 'units' needs per: section or per: document")
        return self


class StructuralOrderParams(_Params):
    """Headings that must all exist, in this order."""

    headings: list[str] = Field(..., min_length=1)
    level: Optional[int] = Field(None, ge=1, le=6, description="Only match headings of this level")
    regex: bool = Field(default=False, description="Treat entries as regexes instead of titles")

    @model_validator(mode="after")
    def _valid_regexes(self) -> "StructuralOrderParams":
        if self.regex:
            for h in self.headings:
                _check_regex(h)
        return self


class HeadingHierarchyParams(_Params):
    """Headings must not skip levels."""

    first_level: Optional[int] = Field(None, ge=1, le=6, description="Required level of the first heading")


PARAMS_MODELS: dict[EvaluatorKind, type[_Params]] = {
    EvaluatorKind.PATTERN_FORBIDDEN: PatternForbiddenParams,
    EvaluatorKind.PATTERN_REQUIRED: PatternRequiredParams,
    EvaluatorKind.COUNT_BOUND: CountBoundParams,
    EvaluatorKind.STRUCTURAL_ORDER: StructuralOrderParams,
    EvaluatorKind.HEADING_HIERARCHY: HeadingHierarchyParams,
}


# ============================================================================
# Rules and rule sets
# ============================================================================

class RuleSpec(BaseModel):
    """One rule as written in a rule set file. Params are validated separately."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(..., min_length=1)
    severity: Severity
    evaluator: EvaluatorKind
    params: dict = Field(default_factory=dict)
    message: str = ""
    description: str = ""
    fix_template: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("fix_template", "fixTemplate"),
    )
    enabled: bool = True
    category: str = "general"
    tags: list[str] = Field(default_factory=list)
    applies_when: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("applies_when", "appliesWhen"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _strip_id(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("severity", mode="before")
    @classmethod
    def _upper_severity(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("applies_when")
    @classmethod
    def _valid_applies_when(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v) if v is not None else v


class SettingsSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rule_timeout: float = Field(default=2.0, gt=0)
    max_workers: int = Field(default=1, ge=1)
    strict_fences: bool = True


class OverrideSpec(BaseModel):
    """Toggle a rule by id. Severity cannot be overridden."""

    model_config = ConfigDict(extra="forbid")

    id: str
    enabled: bool


class RuleSetSpec(BaseModel):
    """Top level of a rule set file. Rules stay raw so errors carry their index."""

    model_config = ConfigDict(extra="forbid")

    name: str = "unnamed"
    version: str = "1.0"
    description: str = ""
    settings: SettingsSpec = Field(default_factory=SettingsSpec)
    includes: list[str] = Field(default_factory=list)
    overrides: list[OverrideSpec] = Field(default_factory=list)
    rules: list[dict] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v):
        return str(v) if isinstance(v, (int, float)) else v
