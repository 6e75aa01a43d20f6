"""
Rule Set Loader — Load and validate rule sets from YAML or JSON.

A source may be:
1. A path to a .yaml/.yml/.json file
2. The name of a bundled rule set (see list_rulesets())
3. Rule set text (YAML or JSON; YAML is a JSON superset)

Rule sets may include other rule sets and toggle rules via overrides.
Loading is all-or-nothing: the first malformed rule aborts the load.
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from checkdoc.core.errors import DuplicateRuleIdError, RuleParseError
from checkdoc.core.logging import LogChannel, get_logger
from checkdoc.policy.models import CheckSettings, Rule, RuleSet
from checkdoc.policy.schema import PARAMS_MODELS, RuleSetSpec, RuleSpec

# Bundled rule set directory
RULESETS_DIR = Path(__file__).parent / "rulesets"

RULESET_SUFFIXES = (".yaml", ".yml", ".json")

log = get_logger(LogChannel.LOAD)


def load_ruleset(source: Union[str, Path]) -> RuleSet:
    """
    Load a rule set from a path, a bundled name, or rule set text.

    Args:
        source: Path, bundled rule set name, or YAML/JSON text

    Returns:
        Parsed, immutable RuleSet

    Raises:
        FileNotFoundError: If a path-like source doesn't exist
        RuleParseError: If the rule set is malformed
        DuplicateRuleIdError: If two rules share an id
    """
    # A JSON object is text even on one line with slashes in its patterns
    if isinstance(source, str) and source.lstrip().startswith("{"):
        return load_ruleset_from_text(source)

    path = _resolve_path(source)
    if path is not None:
        return load_ruleset_from_path(path)

    if isinstance(source, Path) or _looks_like_path(source):
        raise FileNotFoundError(f"Rule set not found: {source}")

    return load_ruleset_from_text(source)


def load_ruleset_from_path(path: Union[str, Path]) -> RuleSet:
    """Load a rule set file. Includes resolve relative to its directory."""
    path = Path(path)
    data = _read_file(path)
    ruleset = parse_ruleset(data, base_dir=path.parent, _seen=(path.resolve(),))
    log.info("ruleset_loaded", name=ruleset.name, rules=len(ruleset), path=str(path))
    return ruleset


def load_ruleset_from_text(text: str, base_dir: Optional[Path] = None) -> RuleSet:
    """Load a rule set from YAML or JSON text."""
    data = _parse_text(text, "<text>")
    ruleset = parse_ruleset(data, base_dir=base_dir or Path.cwd())
    log.info("ruleset_loaded", name=ruleset.name, rules=len(ruleset), path="<text>")
    return ruleset


def parse_ruleset(
    data: dict,
    base_dir: Optional[Path] = None,
    _seen: tuple[Path, ...] = (),
) -> RuleSet:
    """
    Parse a rule set from an already-decoded mapping.

    Included rules come first, in include order, then the file's own
    rules. Overrides apply after composition.
    """
    if not isinstance(data, dict):
        raise RuleParseError(
            f"rule set must be a mapping, got {type(data).__name__}"
        )

    try:
        parsed = RuleSetSpec.model_validate(data)
    except ValidationError as e:
        raise _to_parse_error(e, nested_under="rules") from e

    rules: list[Rule] = []
    for include in parsed.includes:
        rules.extend(_load_include(include, base_dir, _seen).rules)

    offset = len(rules)
    for index, rule_data in enumerate(parsed.rules):
        rules.append(parse_rule(rule_data, index=offset + index))

    seen_ids: set[str] = set()
    for index, rule in enumerate(rules):
        if rule.id in seen_ids:
            raise DuplicateRuleIdError(rule.id, index)
        seen_ids.add(rule.id)

    for override in parsed.overrides:
        rules = _apply_override(rules, override.id, override.enabled)

    settings = CheckSettings(
        rule_timeout=parsed.settings.rule_timeout,
        max_workers=parsed.settings.max_workers,
        strict_fences=parsed.settings.strict_fences,
    )

    return RuleSet(
        name=parsed.name,
        version=parsed.version,
        description=parsed.description,
        settings=settings,
        rules=tuple(rules),
    )


def parse_rule(data: dict, index: Optional[int] = None) -> Rule:
    """
    Parse a single rule from a dictionary.

    Raises:
        RuleParseError: With the rule's index, on any malformed field
    """
    if not isinstance(data, dict):
        raise RuleParseError(f"rule must be a mapping, got {type(data).__name__}", index)

    try:
        parsed = RuleSpec.model_validate(data)
    except ValidationError as e:
        raise _to_parse_error(e, rule_index=index, rule_id=data.get("id")) from e

    params_model = PARAMS_MODELS[parsed.evaluator]
    try:
        params = params_model.model_validate(parsed.params)
    except ValidationError as e:
        raise _to_parse_error(e, rule_index=index, rule_id=parsed.id, prefix="params") from e

    return Rule(
        id=parsed.id,
        severity=parsed.severity,
        evaluator=parsed.evaluator,
        params=params,
        message=parsed.message or parsed.description or parsed.id,
        description=parsed.description,
        fix_template=parsed.fix_template,
        enabled=parsed.enabled,
        category=parsed.category,
        tags=tuple(parsed.tags),
        applies_when=parsed.applies_when,
    )


def list_rulesets() -> list[str]:
    """List bundled rule set names."""
    if not RULESETS_DIR.exists():
        return []
    return sorted(
        p.stem for p in RULESETS_DIR.iterdir() if p.suffix in RULESET_SUFFIXES
    )


# ============================================================================
# Helpers
# ============================================================================

def _resolve_path(source: Union[str, Path]) -> Optional[Path]:
    """Find the file a source refers to, or None if it is not a file."""
    if isinstance(source, Path):
        return source if source.is_file() else None
    if "\n" in source or len(source) > 1024:
        return None
    candidate = Path(source)
    if candidate.is_file():
        return candidate
    for suffix in RULESET_SUFFIXES:
        bundled = RULESETS_DIR / f"{source}{suffix}"
        if bundled.is_file():
            return bundled
    return None


def _looks_like_path(source: str) -> bool:
    if "\n" in source:
        return False
    return source.endswith(RULESET_SUFFIXES) or "/" in source or "\\" in source


def _read_file(path: Path) -> dict:
    if not path.is_file():
        raise FileNotFoundError(f"Rule set not found: {path}")
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return _parse_text(text, str(path))


def _parse_text(text: str, origin: str):
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleParseError(f"{origin}: invalid YAML/JSON: {e}") from e
    if data is None:
        raise RuleParseError(f"{origin}: rule set is empty")
    return data


def _load_include(include: str, base_dir: Optional[Path], seen: tuple[Path, ...]) -> RuleSet:
    path = Path(include)
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    if not path.is_file():
        bundled = _resolve_path(include)
        if bundled is None:
            raise RuleParseError(f"included rule set not found: {include}")
        path = bundled

    resolved = path.resolve()
    if resolved in seen:
        raise RuleParseError(f"include cycle through {include}")

    log.verbose("ruleset_include", include=include, path=str(path))
    data = _read_file(path)
    return parse_ruleset(data, base_dir=path.parent, _seen=seen + (resolved,))


def _apply_override(rules: list[Rule], rule_id: str, enabled: bool) -> list[Rule]:
    for i, rule in enumerate(rules):
        if rule.id == rule_id:
            rules[i] = replace(rule, enabled=enabled)
            return rules
    raise RuleParseError(f"override targets unknown rule id '{rule_id}'")


def _to_parse_error(
    error: ValidationError,
    rule_index: Optional[int] = None,
    rule_id: Optional[str] = None,
    prefix: Optional[str] = None,
    nested_under: Optional[str] = None,
) -> RuleParseError:
    """Turn the first pydantic error into a one-line RuleParseError."""
    first = error.errors()[0]
    loc = [str(part) for part in first.get("loc", ())]

    # Errors on rules[i] at the rule set level carry their own index
    if nested_under and len(loc) >= 2 and loc[0] == nested_under and loc[1].isdigit():
        rule_index = int(loc[1])
        loc = loc[2:]

    if prefix:
        loc = [prefix] + loc
    field_path = ".".join(loc)

    if first.get("type") == "missing":
        message = f"missing required field '{field_path}'"
    else:
        message = first.get("msg", "invalid value")
        if field_path:
            message = f"{field_path}: {message}"
    if rule_id:
        message = f"{message} (rule '{rule_id}')"
    return RuleParseError(message, rule_index)
