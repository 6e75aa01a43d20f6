"""
Errors — Exception taxonomy for checkdoc.

Load-time and parse-time errors are fatal.
Evaluation errors are recovered per rule and surfaced as violations.
"""

from typing import Optional


class CheckdocError(Exception):
    """Base class for all checkdoc errors."""


class RuleParseError(CheckdocError):
    """A rule set is malformed. Aborts before any evaluation."""

    def __init__(self, message: str, rule_index: Optional[int] = None) -> None:
        self.message = message
        self.rule_index = rule_index
        if rule_index is not None:
            message = f"rule #{rule_index}: {message}"
        super().__init__(message)


class DuplicateRuleIdError(RuleParseError):
    """Two rules in one rule set share an id."""

    def __init__(self, rule_id: str, rule_index: Optional[int] = None) -> None:
        self.rule_id = rule_id
        super().__init__(f"duplicate rule id '{rule_id}'", rule_index)


class DocumentParseError(CheckdocError):
    """The input document cannot be parsed into units."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        self.message = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class RuleEvaluationError(CheckdocError):
    """
    A single rule failed to evaluate.

    Never propagates out of a check run: the collector converts it
    into a MUST-severity violation naming the rule.
    """

    def __init__(self, rule_id: str, reason: str) -> None:
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"rule '{rule_id}' failed to evaluate: {reason}")


class EvaluationTimeout(RuleEvaluationError):
    """A rule exceeded its evaluation time limit."""

    def __init__(self, rule_id: str, limit: float) -> None:
        self.limit = limit
        super().__init__(rule_id, f"exceeded time limit of {limit:g}s")


class SettingsError(CheckdocError):
    """A run setting from the environment is not a valid value."""
