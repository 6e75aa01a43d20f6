"""
Diff Renderer — Suggested fixes as unified-diff hunks.

Two kinds of fix:
- Rewrites: the matched text on one line is replaced (pattern rules
  with a fix template). Several rewrites on one line are merged;
  overlapping ones after the first are dropped.
- Insertions: text added after a line (required-pattern rules).

Hunk headers carry real document line numbers.
"""

from dataclasses import dataclass, field

from checkdoc.ir.schema import ComplianceReport, Violation


@dataclass
class _Hunk:
    line: int
    original: list[str]
    replacement: list[str]
    rule_ids: list[str] = field(default_factory=list)


def _rewrite(line_text: str, fixes: list[Violation]) -> tuple[str, list[str]]:
    """Apply non-overlapping fixes to one line, right to left."""
    applied: list[Violation] = []
    for fix in sorted(fixes, key=lambda v: (v.column, v.rule_id)):
        if applied and fix.column < applied[-1].end_column:
            continue
        applied.append(fix)

    text = line_text
    for fix in reversed(applied):
        text = text[: fix.column] + fix.suggested_fix + text[fix.end_column:]
    return text, sorted({f.rule_id for f in applied})


def _collect_hunks(report: ComplianceReport) -> list[_Hunk]:
    rewrites: dict[int, list[Violation]] = {}
    inserts: list[Violation] = []
    for violation in report.violations:
        if violation.suggested_fix is None:
            continue
        if violation.line_text is not None and violation.column is not None and violation.end_column is not None:
            rewrites.setdefault(violation.location.start_line, []).append(violation)
        else:
            inserts.append(violation)

    hunks: list[tuple[tuple, _Hunk]] = []
    for line_no, fixes in rewrites.items():
        original = fixes[0].line_text
        fixed, rule_ids = _rewrite(original, fixes)
        if fixed != original:
            hunks.append(((line_no, 0), _Hunk(line_no, [original], [fixed], rule_ids)))

    for violation in inserts:
        after = violation.location.end_line if violation.location else 0
        hunks.append((
            (after, 1, violation.rule_id),
            _Hunk(after, [], violation.suggested_fix.split("\n"), [violation.rule_id]),
        ))

    return [hunk for _, hunk in sorted(hunks, key=lambda pair: pair[0])]


def render_diff(report: ComplianceReport) -> str:
    """Render suggested fixes as a unified diff against the source."""
    hunks = _collect_hunks(report)
    if not hunks:
        return f"No suggested fixes for {report.source}.\n"

    lines = [f"--- a/{report.source}", f"+++ b/{report.source}"]
    offset = 0
    for hunk in hunks:
        rules = ", ".join(hunk.rule_ids)
        if hunk.original:
            old = f"-{hunk.line},{len(hunk.original)}"
            new = f"+{hunk.line + offset},{len(hunk.replacement)}"
        else:
            old = f"-{hunk.line},0"
            new = f"+{hunk.line + offset + 1},{len(hunk.replacement)}"
        lines.append(f"@@ {old} {new} @@ {rules}")
        lines.extend(f"-{text}" for text in hunk.original)
        lines.extend(f"+{text}" for text in hunk.replacement)
        offset += len(hunk.replacement) - len(hunk.original)

    return "\n".join(lines) + "\n"
