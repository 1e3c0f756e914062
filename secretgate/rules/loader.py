"""Rules document loading for secretgate.

Rules documents are YAML (or TOML with the same schema). Loading is all or
nothing: any structural problem raises :class:`LoadError` and no RuleSet is
returned.
"""

from __future__ import annotations

import re
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from secretgate.exceptions import LoadError, LoadErrorKind
from secretgate.logging import get_logger
from secretgate.rules.models import (
    AllowlistEntry,
    AllowlistKind,
    Rule,
    RuleKind,
    RuleSet,
    compile_glob,
)

logger = get_logger("rules.loader")

_REGEX_TARGETS = {"match": AllowlistKind.MATCH, "line": AllowlistKind.LINE}


def default_rules_path() -> Path:
    """Return the path of the bundled rules document."""
    return Path(str(resources.files("secretgate") / "data" / "default_rules.yaml"))


def _malformed(message: str, rule_id: str | None = None) -> LoadError:
    return LoadError(message, kind=LoadErrorKind.MALFORMED_DOCUMENT, rule_id=rule_id)


def _compile(pattern: Any, where: str, flags: int = 0, rule_id: str | None = None) -> re.Pattern[str]:
    """Compile a regex from the document, mapping failures to LoadError."""
    if not isinstance(pattern, str) or not pattern:
        raise _malformed(f"{where}: pattern must be a non-empty string", rule_id)
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise LoadError(
            f"{where}: invalid regular expression {pattern!r}: {exc}",
            kind=LoadErrorKind.INVALID_PATTERN,
            rule_id=rule_id,
        ) from None


def _string_list(value: Any, where: str, rule_id: str | None = None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise _malformed(f"{where} must be a list of strings", rule_id)
    return list(value)


def _blocks(value: Any, where: str, rule_id: str | None = None) -> list[dict[str, Any]]:
    """Normalize an allowlist section (mapping or list of mappings)."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list) and all(isinstance(v, dict) for v in value):
        return value
    raise _malformed(f"{where} must be a mapping or a list of mappings", rule_id)


def _parse_allowlist_block(
    block: dict[str, Any],
    where: str,
    scope: str | None,
) -> list[AllowlistEntry]:
    """Parse one allowlist block into entries bound to ``scope``."""
    description = block.get("description", "") or ""
    target_name = block.get("regex_target", "match")
    if target_name not in _REGEX_TARGETS:
        raise _malformed(f"{where}: regex_target must be 'match' or 'line', got {target_name!r}", scope)
    target = _REGEX_TARGETS[target_name]

    entries: list[AllowlistEntry] = []
    for glob in _string_list(block.get("paths"), f"{where}.paths", scope):
        try:
            compiled = compile_glob(glob)
        except ValueError as exc:
            raise LoadError(f"{where}.paths: {exc}", kind=LoadErrorKind.INVALID_PATTERN, rule_id=scope) from None
        entries.append(AllowlistEntry(AllowlistKind.PATH, compiled, glob, scope, description))

    for regex in _string_list(block.get("regexes"), f"{where}.regexes", scope):
        compiled = _compile(regex, f"{where}.regexes", rule_id=scope)
        entries.append(AllowlistEntry(target, compiled, regex, scope, description))

    for word in _string_list(block.get("stopwords"), f"{where}.stopwords", scope):
        compiled = re.compile(re.escape(word), re.IGNORECASE)
        entries.append(AllowlistEntry(AllowlistKind.MATCH, compiled, word, scope, description))

    return entries


def _parse_rule(data: dict[str, Any], index: int) -> Rule:
    """Parse one rule declaration.

    Raises:
        LoadError: If required fields are missing or a pattern is invalid.
    """
    rule_id = data.get("id")
    if not isinstance(rule_id, str) or not rule_id.strip():
        raise _malformed(f"rules[{index}] is missing required 'id' field")

    pattern_text = data.get("pattern", data.get("regex"))
    if pattern_text is None:
        raise _malformed(f"Rule '{rule_id}' is missing required 'pattern' field", rule_id)

    case_insensitive = data.get("case_insensitive", False)
    if not isinstance(case_insensitive, bool):
        raise _malformed(f"Rule '{rule_id}': case_insensitive must be a boolean", rule_id)
    flags = re.IGNORECASE if case_insensitive else 0
    pattern = _compile(pattern_text, f"Rule '{rule_id}'", flags, rule_id)

    secret_group = data.get("secret_group", 0)
    if not isinstance(secret_group, int) or isinstance(secret_group, bool) or secret_group < 0:
        raise _malformed(f"Rule '{rule_id}': secret_group must be a non-negative integer", rule_id)
    if secret_group > pattern.groups:
        raise _malformed(
            f"Rule '{rule_id}': secret_group {secret_group} exceeds the pattern's {pattern.groups} groups",
            rule_id,
        )

    entropy = data.get("entropy")
    if entropy is not None and (isinstance(entropy, bool) or not isinstance(entropy, (int, float)) or entropy < 0):
        raise _malformed(f"Rule '{rule_id}': entropy must be a non-negative number", rule_id)

    allowlist: list[AllowlistEntry] = []
    for n, block in enumerate(_blocks(data.get("allowlist"), f"Rule '{rule_id}' allowlist", rule_id)):
        allowlist.extend(_parse_allowlist_block(block, f"Rule '{rule_id}' allowlist[{n}]", rule_id))

    return Rule(
        id=rule_id,
        pattern=pattern,
        description=str(data.get("description", "") or ""),
        tags=frozenset(_string_list(data.get("tags"), f"Rule '{rule_id}' tags", rule_id)),
        keywords=tuple(k.lower() for k in _string_list(data.get("keywords"), f"Rule '{rule_id}' keywords", rule_id)),
        kind=RuleKind.ENTROPY if entropy is not None else RuleKind.REGEX,
        entropy=float(entropy) if entropy is not None else None,
        secret_group=secret_group,
        allowlist=tuple(allowlist),
    )


def load(document: dict[str, Any]) -> RuleSet:
    """Build a RuleSet from a parsed rules document.

    Args:
        document: Mapping produced by the YAML or TOML parser.

    Returns:
        The immutable RuleSet.

    Raises:
        LoadError: On duplicate ids, invalid patterns or malformed structure.
    """
    if not isinstance(document, dict):
        raise _malformed("Rules document must contain a mapping at top level")

    rules_data = document.get("rules")
    if not isinstance(rules_data, list):
        raise _malformed("Rules document must contain a 'rules' list")

    rules: list[Rule] = []
    seen: set[str] = set()
    for index, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            raise _malformed(f"rules[{index}] must be a mapping")
        rule = _parse_rule(rule_data, index)
        if rule.id in seen:
            raise LoadError(
                f"Duplicate rule id '{rule.id}'",
                kind=LoadErrorKind.DUPLICATE_RULE_ID,
                rule_id=rule.id,
            )
        seen.add(rule.id)
        rules.append(rule)

    allowlist: list[AllowlistEntry] = []
    for n, block in enumerate(_blocks(document.get("allowlist"), "allowlist")):
        where = f"allowlist[{n}]"
        scoped = _string_list(block.get("rules"), f"{where}.rules")
        if "rules" in block and not scoped:
            raise _malformed(f"{where}.rules must name at least one rule; omit it for a global block")
        unknown = [rule_id for rule_id in scoped if rule_id not in seen]
        if unknown:
            raise _malformed(f"{where}: rules {unknown} are not defined")
        for scope in scoped or [None]:
            allowlist.extend(_parse_allowlist_block(block, where, scope))

    ruleset = RuleSet(rules=tuple(rules), allowlist=tuple(allowlist), title=str(document.get("title", "") or ""))
    logger.debug("Loaded %d rules and %d top-level allowlist entries", len(rules), len(allowlist))
    return ruleset


def load_text(text: str, fmt: str = "yaml") -> RuleSet:
    """Parse rules document text in ``fmt`` ("yaml" or "toml") into a RuleSet."""
    try:
        if fmt == "toml":
            document = tomllib.loads(text)
        else:
            document = yaml.safe_load(text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise _malformed(f"Rules document is not valid {fmt.upper()}: {exc}") from None
    return load(document)


def load_file(path: str | Path | None = None) -> RuleSet:
    """Load a rules document from disk (bundled defaults when ``path`` is None).

    Raises:
        LoadError: If the file is missing, unreadable or invalid.
    """
    path = default_rules_path() if path is None else Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(
            f"Cannot read rules document {path}",
            kind=LoadErrorKind.MALFORMED_DOCUMENT,
            details={"error": str(exc)},
        ) from exc

    fmt = "toml" if path.suffix.lower() == ".toml" else "yaml"
    logger.info("Loading rules from %s", path)
    return load_text(text, fmt)
