"""
Pass 50 — Rule Evaluation

Evaluates every enabled rule against the parsed document.

This pass:
- Runs each rule's evaluator (optionally on a thread pool)
- Records per-rule outcomes for scoring
- Records violations in deterministic order
- Turns rule failures into MUST violations instead of aborting
"""

from checkdoc.core.context import CheckContext
from checkdoc.core.logging import get_pass_logger
from checkdoc.policy.collector import evaluate_rules, sort_violations

PASS_NAME = "p50_evaluate"
log = get_pass_logger(PASS_NAME)


def evaluate(ctx: CheckContext) -> CheckContext:
    """Evaluate the rule set against ctx.document."""
    outcomes = evaluate_rules(ctx.ruleset, ctx.document, ctx.settings)

    ctx.outcomes = outcomes
    ctx.violations = sort_violations(v for o in outcomes for v in o.violations)

    for outcome in outcomes:
        if outcome.error is not None:
            ctx.add_diagnostic(
                level="warning",
                code="RULE_EVALUATION_ERROR",
                message=str(outcome.error),
                source=PASS_NAME,
            )

    log.verbose("violations_collected", violations=len(ctx.violations))

    ctx.add_trace(
        pass_name=PASS_NAME,
        action="evaluated_rules",
        after=f"{len(outcomes)} rules, {len(ctx.violations)} violations",
    )

    return ctx
