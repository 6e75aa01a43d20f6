"""
Predicate Evaluators — Built-in rule checks.

Each evaluator is a pure function of (rule, document, deadline):
no I/O, no hidden state. Results are deterministic for a given input.

The registry is closed: a rule names its evaluator by EvaluatorKind
and carries typed params for it. Rule sets cannot add evaluators.
"""

import regex
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from checkdoc.core.errors import EvaluationTimeout
from checkdoc.ir.enums import CountMetric, CountScope, EvaluatorKind, UnitKind
from checkdoc.ir.schema import Document, Location, Unit
from checkdoc.policy.models import Rule

WORD_PATTERN = regex.compile(r"\w+(?:['’-]\w+)*")
SENTENCE_END = regex.compile(r"[.!?]+(?=\s|$)")
EXCERPT_CHARS = 60


@dataclass(frozen=True)
class Finding:
    """A violation candidate, before the collector tags it with severity."""
    message: str
    location: Optional[Location] = None
    matched_text: str = ""
    suggested_fix: Optional[str] = None
    line_text: Optional[str] = None
    column: Optional[int] = None
    end_column: Optional[int] = None


@dataclass
class Evaluation:
    """What an evaluator returns: findings, and whether the rule applied at all."""
    findings: list[Finding] = field(default_factory=list)
    applicable: bool = True


class Deadline:
    """
    Per-rule time limit.

    Evaluators call check() between steps and run rule patterns through
    search()/finditer(), which hand the remaining time to the regex
    engine. A match that backtracks past the limit is interrupted there
    and surfaces as EvaluationTimeout.
    """

    def __init__(self, rule_id: str, limit: Optional[float]) -> None:
        self.rule_id = rule_id
        self.limit = limit
        self._expires = time.monotonic() + limit if limit else None

    def _expired(self) -> EvaluationTimeout:
        return EvaluationTimeout(self.rule_id, self.limit)

    def check(self) -> None:
        if self._expires is not None and time.monotonic() > self._expires:
            raise self._expired()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None without a limit."""
        if self._expires is None:
            return None
        left = self._expires - time.monotonic()
        if left <= 0:
            raise self._expired()
        return left

    def search(self, pattern: "regex.Pattern", text: str):
        try:
            return pattern.search(text, timeout=self.remaining(), concurrent=True)
        except TimeoutError:
            raise self._expired() from None

    def finditer(self, pattern: "regex.Pattern", text: str) -> Iterator:
        try:
            for m in pattern.finditer(text, timeout=self.remaining(), concurrent=True):
                yield m
                self.check()
        except TimeoutError:
            raise self._expired() from None


EvaluatorFn = Callable[[Rule, Document, Deadline], Evaluation]


# ============================================================================
# Helpers
# ============================================================================

class _TemplateValues(dict):
    """format_map mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def format_message(template: str, **values) -> str:
    """Fill {placeholders} in a rule message; unknown ones stay verbatim."""
    try:
        return template.format_map(_TemplateValues(values))
    except (ValueError, IndexError, AttributeError):
        # Stray braces or attribute/index access in the template
        return template


def excerpt(text: str, limit: int = EXCERPT_CHARS) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _flags(case_sensitive: bool) -> int:
    return 0 if case_sensitive else regex.IGNORECASE


def term_regex(term: str) -> str:
    """Word-bounded regex for a literal term; inner spaces match any whitespace."""
    words = [regex.escape(w) for w in term.split()]
    body = r"\s+".join(words)
    start = r"\b" if regex.match(r"\w", term) else ""
    end = r"\b" if regex.search(r"\w$", term) else ""
    return f"{start}{body}{end}"


def heading_sections(document: Document, level: int) -> list[tuple[Unit, list[Unit]]]:
    """Sections opened by headings of ``level``, each with the units under it."""
    sections: list[tuple[Unit, list[Unit]]] = []
    current: Optional[tuple[Unit, list[Unit]]] = None
    for unit in document.units:
        if unit.kind == UnitKind.HEADING and unit.level is not None and unit.level <= level:
            current = (unit, []) if unit.level == level else None
            if current is not None:
                sections.append(current)
            continue
        if current is not None:
            current[1].append(unit)
    return sections


def matching_sections(
    document: Document,
    pattern: str,
    deadline: Deadline,
) -> list[tuple[Unit, list[Unit]]]:
    """Sections whose heading matches ``pattern``; a section ends at the next heading of same or higher rank."""
    heading = regex.compile(pattern, regex.IGNORECASE)
    sections: list[tuple[Unit, list[Unit]]] = []
    units = document.units
    for i, unit in enumerate(units):
        if unit.kind != UnitKind.HEADING or not deadline.search(heading, unit.text):
            continue
        body: list[Unit] = []
        for follower in units[i + 1:]:
            if follower.kind == UnitKind.HEADING and (follower.level or 0) <= (unit.level or 0):
                break
            body.append(follower)
        sections.append((unit, body))
    return sections


def _scoped_units(document: Document, kinds, section: Optional[str], deadline: Deadline) -> Optional[list[Unit]]:
    """Units of ``kinds`` in scope, or None when the scoping section is absent."""
    kinds = set(kinds)
    if section is None:
        return document.units_of(kinds)
    sections = matching_sections(document, section, deadline)
    if not sections:
        return None
    return [u for _, body in sections for u in body if u.kind in kinds]


def measure(unit: Unit, metric: CountMetric) -> int:
    """Size of one unit under a count metric."""
    if metric == CountMetric.WORDS:
        return len(WORD_PATTERN.findall(unit.text))
    if metric == CountMetric.SENTENCES:
        pieces = SENTENCE_END.split(unit.text)
        return sum(1 for p in pieces if WORD_PATTERN.search(p))
    if metric == CountMetric.CHARACTERS:
        return len(unit.text)
    if metric == CountMetric.LINES:
        return unit.location.end_line - unit.location.start_line + 1
    return 1


def _offset_to_line(unit: Unit, joined: str, offset: int) -> tuple[int, int]:
    """Map an offset in "\\n".join(unit.lines) to (line index in unit, column)."""
    line_index = joined.count("\n", 0, offset)
    line_start = joined.rfind("\n", 0, offset) + 1
    return line_index, offset - line_start


# ============================================================================
# Evaluators
# ============================================================================

def evaluate_pattern_forbidden(rule: Rule, document: Document, deadline: Deadline) -> Evaluation:
    """One finding per match of a forbidden regex or term."""
    params = rule.params
    units = _scoped_units(document, params.unit_kinds, params.section, deadline)
    if not units:
        return Evaluation(applicable=False)

    flags = _flags(params.case_sensitive)
    compiled = [regex.compile(p, flags) for p in params.patterns]
    compiled += [regex.compile(term_regex(t), flags) for t in params.terms]

    findings: list[Finding] = []
    for unit in units:
        joined = "\n".join(unit.lines)
        for pattern in compiled:
            deadline.check()
            for m in deadline.finditer(pattern, joined):
                if not m.group(0):
                    continue
                findings.append(_match_finding(rule, unit, joined, m))
    return Evaluation(findings=findings)


def _match_finding(rule: Rule, unit: Unit, joined: str, m) -> Finding:
    start_idx, column = _offset_to_line(unit, joined, m.start())
    end_idx, end_column = _offset_to_line(unit, joined, m.end())
    start_line = unit.location.start_line + start_idx
    location = Location(start_line=start_line, end_line=unit.location.start_line + end_idx)

    line_text = None
    suggested_fix = None
    if start_idx == end_idx:
        line_text = unit.lines[start_idx]
        if rule.fix_template is not None:
            suggested_fix = m.expand(rule.fix_template).replace("{match}", m.group(0))
    else:
        end_column = None

    message = format_message(
        rule.message,
        rule_id=rule.id,
        match=m.group(0),
        unit=unit.kind.value,
        section=unit.section or "",
        line=start_line,
    )
    return Finding(
        message=message,
        location=location,
        matched_text=m.group(0),
        suggested_fix=suggested_fix,
        line_text=line_text,
        column=column,
        end_column=end_column if line_text is not None else None,
    )


def evaluate_pattern_required(rule: Rule, document: Document, deadline: Deadline) -> Evaluation:
    """One finding when fewer than min_matches units in scope match."""
    params = rule.params
    required = regex.compile(params.pattern, _flags(params.case_sensitive))

    anchor: Optional[Location] = None
    if params.section is None:
        units = document.units_of(params.unit_kinds)
        if document.line_count:
            anchor = Location(start_line=document.line_count, end_line=document.line_count)
    else:
        sections = matching_sections(document, params.section, deadline)
        units = []
        for heading, body in sections:
            units.extend(u for u in body if u.kind in set(params.unit_kinds))
        if sections:
            heading, body = sections[0]
            last = body[-1] if body else heading
            anchor = Location(start_line=last.location.end_line, end_line=last.location.end_line)

    matched = 0
    for unit in units:
        deadline.check()
        if deadline.search(required, unit.text):
            matched += 1
            if matched >= params.min_matches:
                return Evaluation()

    message = format_message(
        rule.message,
        rule_id=rule.id,
        pattern=params.pattern,
        count=matched,
        min=params.min_matches,
        section=params.section or "document",
    )
    return Evaluation(findings=[
        Finding(
            message=message,
            location=anchor,
            suggested_fix=rule.fix_template,
        )
    ])


def evaluate_count_bound(rule: Rule, document: Document, deadline: Deadline) -> Evaluation:
    """Findings for every scope whose count falls outside [min, max]."""
    params = rule.params
    kinds = set(params.unit_kinds)

    scopes: list[tuple[Optional[Unit], list[Unit]]]
    if params.per == CountScope.UNIT:
        scopes = [(u, [u]) for u in document.units_of(kinds)]
    elif params.per == CountScope.SECTION:
        scopes = [
            (heading, [u for u in body if u.kind in kinds])
            for heading, body in heading_sections(document, params.section_level)
        ]
    else:
        scopes = [(None, document.units_of(kinds))]

    if not scopes:
        return Evaluation(applicable=False)

    findings: list[Finding] = []
    for anchor, units in scopes:
        deadline.check()
        if params.metric == CountMetric.UNITS:
            count = len(units)
        else:
            count = sum(measure(u, params.metric) for u in units)

        too_few = params.min is not None and count < params.min
        too_many = params.max is not None and count > params.max
        if not (too_few or too_many):
            continue

        message = format_message(
            rule.message,
            rule_id=rule.id,
            count=count,
            min=params.min if params.min is not None else "-",
            max=params.max if params.max is not None else "-",
            metric=params.metric.value,
            unit=anchor.kind.value if anchor is not None else "document",
            section=(anchor.text if anchor is not None and anchor.kind == UnitKind.HEADING else "document"),
        )
        findings.append(Finding(
            message=message,
            location=anchor.location if anchor is not None else None,
            matched_text=excerpt(anchor.text) if anchor is not None else "",
        ))
    return Evaluation(findings=findings)


def evaluate_structural_order(rule: Rule, document: Document, deadline: Deadline) -> Evaluation:
    """Findings for missing required headings and headings out of order."""
    params = rule.params
    headings = [
        h for h in document.headings
        if params.level is None or h.level == params.level
    ]

    def matches(entry: str, heading: Unit) -> bool:
        if params.regex:
            return deadline.search(regex.compile(entry, regex.IGNORECASE), heading.text) is not None
        title = entry.lstrip("#").strip()
        if entry.startswith("#") and heading.level != len(entry) - len(entry.lstrip("#")):
            return False
        return heading.text.strip().casefold() == title.casefold()

    positions: list[Optional[Unit]] = []
    for entry in params.headings:
        deadline.check()
        positions.append(next((h for h in headings if matches(entry, h)), None))

    findings: list[Finding] = []
    for entry, found in zip(params.headings, positions):
        if found is None:
            findings.append(Finding(
                message=format_message(
                    rule.message, rule_id=rule.id, heading=entry,
                    problem="missing", expected=" > ".join(params.headings),
                ),
            ))

    # A present heading is out of order if it comes before any heading
    # required earlier in the sequence.
    for i, found in enumerate(positions):
        if found is None:
            continue
        earlier = [
            (params.headings[j], positions[j])
            for j in range(i)
            if positions[j] is not None and positions[j].index > found.index
        ]
        if earlier:
            entry, _ = earlier[0]
            findings.append(Finding(
                message=format_message(
                    rule.message, rule_id=rule.id, heading=params.headings[i],
                    problem=f"appears before '{entry}'",
                    expected=" > ".join(params.headings),
                ),
                location=found.location,
                matched_text=found.text,
            ))
    return Evaluation(findings=findings)


def evaluate_heading_hierarchy(rule: Rule, document: Document, deadline: Deadline) -> Evaluation:
    """Findings for headings that skip a level."""
    params = rule.params
    headings = document.headings
    if not headings:
        return Evaluation(applicable=False)

    findings: list[Finding] = []
    first = headings[0]
    if params.first_level is not None and first.level != params.first_level:
        findings.append(Finding(
            message=format_message(
                rule.message, rule_id=rule.id, heading=first.text,
                level=first.level, expected=params.first_level,
            ),
            location=first.location,
            matched_text=first.text,
        ))

    for previous, heading in zip(headings, headings[1:]):
        deadline.check()
        if heading.level > previous.level + 1:
            findings.append(Finding(
                message=format_message(
                    rule.message, rule_id=rule.id, heading=heading.text,
                    level=heading.level, expected=previous.level + 1,
                ),
                location=heading.location,
                matched_text=heading.text,
            ))
    return Evaluation(findings=findings)


EVALUATORS: dict[EvaluatorKind, EvaluatorFn] = {
    EvaluatorKind.PATTERN_FORBIDDEN: evaluate_pattern_forbidden,
    EvaluatorKind.PATTERN_REQUIRED: evaluate_pattern_required,
    EvaluatorKind.COUNT_BOUND: evaluate_count_bound,
    EvaluatorKind.STRUCTURAL_ORDER: evaluate_structural_order,
    EvaluatorKind.HEADING_HIERARCHY: evaluate_heading_hierarchy,
}


def get_evaluator(kind: EvaluatorKind) -> EvaluatorFn:
    return EVALUATORS[kind]
