"""
Policy Models — Data structures for rules and rule sets.

Rules and rule sets are frozen once loaded. Evaluator parameters are
typed per evaluator kind (see checkdoc.policy.schema).
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from pydantic import BaseModel, ValidationError

from checkdoc.core.errors import SettingsError
from checkdoc.ir.enums import EvaluatorKind, Severity
from checkdoc.policy.schema import SettingsSpec

# Settings field -> environment variable
ENV_SETTINGS = {
    "rule_timeout": "CHECKDOC_RULE_TIMEOUT",
    "max_workers": "CHECKDOC_MAX_WORKERS",
}


@dataclass(frozen=True)
class CheckSettings:
    """Run settings. Rule sets may set them; CLI and env override."""
    rule_timeout: float = 2.0    # seconds per rule
    max_workers: int = 1         # >1 evaluates rules on a thread pool
    strict_fences: bool = True   # unterminated ``` fence is a parse error

    def merged(self, **overrides) -> "CheckSettings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def with_env(self) -> "CheckSettings":
        """
        Apply CHECKDOC_RULE_TIMEOUT / CHECKDOC_MAX_WORKERS if set.

        Values are validated like a rule set's settings block.

        Raises:
            SettingsError: If a variable holds an invalid value
        """
        raw = {
            key: os.environ[var].strip()
            for key, var in ENV_SETTINGS.items()
            if os.environ.get(var, "").strip()
        }
        if not raw:
            return self
        try:
            parsed = SettingsSpec.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            key = str(first["loc"][0])
            raise SettingsError(f"{ENV_SETTINGS[key]}={raw[key]!r}: {first['msg']}") from e
        return self.merged(**{key: getattr(parsed, key) for key in raw})


@dataclass(frozen=True)
class Rule:
    """A single compliance rule.

    Severity is fixed at creation; overrides may only toggle ``enabled``.
    """
    id: str
    severity: Severity
    evaluator: EvaluatorKind
    params: BaseModel
    message: str
    description: str = ""
    fix_template: Optional[str] = None
    enabled: bool = True
    category: str = "general"
    tags: tuple[str, ...] = ()
    # Rule only applies when some unit matches this regex
    applies_when: Optional[str] = None

    @property
    def is_must(self) -> bool:
        return self.severity == Severity.MUST


@dataclass(frozen=True)
class RuleSet:
    """An ordered, immutable collection of rules."""
    name: str
    version: str
    rules: tuple[Rule, ...]
    description: str = ""
    settings: CheckSettings = field(default_factory=CheckSettings)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))

    def __len__(self) -> int:
        return len(self.rules)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def enabled_rules(self) -> list[Rule]:
        """Rules that take part in a run, in rule-set order."""
        return [r for r in self.rules if r.enabled]

