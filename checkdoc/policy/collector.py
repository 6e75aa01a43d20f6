"""
Violation Collector — Runs every rule's evaluator over a document.

Each rule yields a RuleOutcome: either its findings (ok) or the
RuleEvaluationError that stopped it (error). One broken rule never
blocks the others; its error becomes a MUST-severity violation.

Rules may be evaluated on a thread pool. Output order does not depend
on evaluation order: violations are sorted by document position, then
rule id.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

import regex

from checkdoc.core.errors import EvaluationTimeout, RuleEvaluationError
from checkdoc.core.logging import LogChannel, get_logger
from checkdoc.ir.enums import RuleStatus, Severity
from checkdoc.ir.schema import Document, Violation
from checkdoc.policy.evaluators import Deadline, Evaluation, get_evaluator
from checkdoc.policy.models import CheckSettings, Rule, RuleSet

log = get_logger(LogChannel.EVALUATE)

# Extra wait past the deadline before the waiting side gives up on a rule
TIMEOUT_GRACE = 0.5


@dataclass
class RuleOutcome:
    """Result of evaluating one rule: ok(violations) or error."""
    rule: Rule
    violations: list[Violation] = field(default_factory=list)
    applicable: bool = True
    error: Optional[RuleEvaluationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> RuleStatus:
        if self.error is not None:
            return RuleStatus.ERROR
        if not self.applicable:
            return RuleStatus.NOT_APPLICABLE
        return RuleStatus.FAILED if self.violations else RuleStatus.PASSED


class CollectedViolations(list):
    """Sorted violations of one run, carrying the rule outcomes behind them.

    score() reads the outcomes to tell a rule that did not apply from
    one that passed.
    """

    def __init__(self, violations, outcomes: list[RuleOutcome]) -> None:
        super().__init__(sort_violations(violations))
        self.outcomes = outcomes


def collect(
    ruleset: RuleSet,
    document: Document,
    settings: Optional[CheckSettings] = None,
) -> CollectedViolations:
    """
    Evaluate all enabled rules and return their violations.

    Returns:
        Violations sorted by (line, column, rule id)
    """
    outcomes = evaluate_rules(ruleset, document, settings)
    return CollectedViolations((v for o in outcomes for v in o.violations), outcomes)


def evaluate_rules(
    ruleset: RuleSet,
    document: Document,
    settings: Optional[CheckSettings] = None,
) -> list[RuleOutcome]:
    """
    Evaluate all enabled rules. Outcomes come back in rule-set order.
    """
    settings = settings or ruleset.settings
    rules = ruleset.enabled_rules()

    log.verbose(
        "starting_evaluation",
        rules=len(rules),
        units=len(document.units),
        workers=settings.max_workers,
    )

    if settings.max_workers <= 1 or len(rules) <= 1:
        outcomes = [_run_guarded(rule, document, settings.rule_timeout) for rule in rules]
    else:
        outcomes = _evaluate_parallel(rules, document, settings)

    failed = sum(1 for o in outcomes if o.status == RuleStatus.FAILED)
    errors = sum(1 for o in outcomes if o.status == RuleStatus.ERROR)
    log.info("evaluated", rules=len(outcomes), failed=failed, errors=errors)

    return outcomes


def evaluate_rule(rule: Rule, document: Document, timeout: Optional[float] = None) -> RuleOutcome:
    """Evaluate one rule, converting any failure into an error outcome."""
    deadline = Deadline(rule.id, timeout)
    try:
        if rule.applies_when and not _applies(rule, document, deadline):
            log.debug("rule_not_applicable", rule_id=rule.id, reason="applies_when")
            return RuleOutcome(rule=rule, applicable=False)

        evaluator = get_evaluator(rule.evaluator)
        evaluation: Evaluation = evaluator(rule, document, deadline)
    except RuleEvaluationError as e:
        return _error_outcome(rule, e)
    except Exception as e:
        return _error_outcome(rule, RuleEvaluationError(rule.id, f"{type(e).__name__}: {e}"))

    violations = [
        Violation(
            rule_id=rule.id,
            severity=rule.severity,
            message=f.message,
            location=f.location,
            matched_text=f.matched_text,
            suggested_fix=f.suggested_fix,
            line_text=f.line_text,
            column=f.column,
            end_column=f.end_column,
        )
        for f in evaluation.findings
    ]
    for v in violations:
        log.verbose("rule_matched", rule_id=rule.id, location=str(v.location), matched_text=v.matched_text[:50])

    return RuleOutcome(rule=rule, violations=violations, applicable=evaluation.applicable)


def sort_violations(violations) -> list[Violation]:
    """Deterministic order: document position, then rule id."""
    return sorted(violations, key=lambda v: v.sort_key)


def _applies(rule: Rule, document: Document, deadline: Deadline) -> bool:
    trigger = regex.compile(rule.applies_when, regex.IGNORECASE)
    return any(deadline.search(trigger, unit.text) for unit in document.units)


def _error_outcome(rule: Rule, error: RuleEvaluationError) -> RuleOutcome:
    log.warning(
        "rule_evaluation_failed",
        rule_id=rule.id,
        error=error.reason,
        error_type=type(error).__name__,
    )
    violation = Violation(
        rule_id=rule.id,
        severity=Severity.MUST,
        message=str(error),
        is_error=True,
    )
    return RuleOutcome(rule=rule, violations=[violation], error=error)


def _run_guarded(rule: Rule, document: Document, timeout: Optional[float]) -> RuleOutcome:
    """
    Evaluate a rule on a daemon thread and stop waiting after the time limit.

    Rule patterns match with the GIL released and stop themselves at the
    deadline, so the wait below always gets control back. A rule still
    running after the grace period is reported as EvaluationTimeout and
    its daemon thread is left to finish on its own.
    """
    if not timeout:
        return evaluate_rule(rule, document)

    box: list[RuleOutcome] = []
    worker = threading.Thread(
        target=lambda: box.append(evaluate_rule(rule, document, timeout)),
        name=f"checkdoc-rule-{rule.id}",
        daemon=True,
    )
    worker.start()
    worker.join(timeout + TIMEOUT_GRACE)
    if worker.is_alive() or not box:
        return _error_outcome(rule, EvaluationTimeout(rule.id, timeout))
    return box[0]


def _evaluate_parallel(rules: list[Rule], document: Document, settings: CheckSettings) -> list[RuleOutcome]:
    with ThreadPoolExecutor(
        max_workers=settings.max_workers,
        thread_name_prefix="checkdoc-rule",
    ) as executor:
        futures = [
            executor.submit(_run_guarded, rule, document, settings.rule_timeout)
            for rule in rules
        ]
        return [future.result() for future in futures]
