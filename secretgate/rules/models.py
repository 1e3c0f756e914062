"""In-memory rule model: detection rules, allowlist entries, rule sets.

Everything here is immutable once constructed. A :class:`RuleSet` is loaded
once per invocation and passed explicitly to the scanner and the allowlist
filter, so units can be scanned in parallel without shared mutable state.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from secretgate.exceptions import LoadError, LoadErrorKind


class RuleKind(enum.Enum):
    """Closed set of rule variants."""

    REGEX = "regex"
    ENTROPY = "entropy"


class AllowlistKind(enum.Enum):
    """What an allowlist entry is evaluated against."""

    PATH = "path"  # glob over the repository-relative path
    MATCH = "match"  # regex over the matched text
    LINE = "line"  # regex over the full line


def compile_glob(glob: str) -> re.Pattern[str]:
    """Translate a path glob into an anchored, case-sensitive regex.

    ``**`` matches any number of path segments (``**/`` may also match none),
    ``*`` matches a run of non-separator characters and ``?`` a single one.

    Raises:
        ValueError: If the glob is empty.
    """
    if not glob:
        raise ValueError("empty path glob")

    parts: list[str] = []
    i = 0
    n = len(glob)
    while i < n:
        if glob.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif glob.startswith("**", i):
            parts.append(".*")
            i += 2
        elif glob[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif glob[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


@dataclass(frozen=True)
class AllowlistEntry:
    """A single suppression rule.

    ``rule_id`` of ``None`` makes the entry global; otherwise it only
    suppresses candidates produced by that rule.
    """

    kind: AllowlistKind
    pattern: re.Pattern[str]
    source: str
    rule_id: str | None = None
    description: str = ""

    @property
    def is_global(self) -> bool:
        return self.rule_id is None

    def applies_to(self, rule_id: str) -> bool:
        """Whether this entry is in scope for candidates of ``rule_id``."""
        return self.rule_id is None or self.rule_id == rule_id

    def matches(self, path: str, text: str, line: str) -> bool:
        """Check the entry against one candidate's path, matched text and line."""
        if self.kind is AllowlistKind.PATH:
            return self.pattern.match(path) is not None
        if self.kind is AllowlistKind.MATCH:
            return self.pattern.search(text) is not None
        return self.pattern.search(line) is not None


@dataclass(frozen=True)
class Rule:
    """A detection rule."""

    id: str
    pattern: re.Pattern[str]
    description: str = ""
    tags: frozenset[str] = field(default_factory=frozenset)
    keywords: tuple[str, ...] = ()
    kind: RuleKind = RuleKind.REGEX
    entropy: float | None = None
    secret_group: int = 0
    allowlist: tuple[AllowlistEntry, ...] = ()

    @property
    def case_insensitive(self) -> bool:
        return bool(self.pattern.flags & re.IGNORECASE)


@dataclass(frozen=True)
class RuleSet:
    """Ordered rules plus the top-level allowlist.

    Top-level allowlist entries are global unless they carry a ``rule_id``.
    """

    rules: tuple[Rule, ...]
    allowlist: tuple[AllowlistEntry, ...] = ()
    title: str = ""

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise LoadError(
                    f"Duplicate rule id '{rule.id}'",
                    kind=LoadErrorKind.DUPLICATE_RULE_ID,
                    rule_id=rule.id,
                )
            seen.add(rule.id)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def ids(self) -> list[str]:
        return [rule.id for rule in self.rules]

    def get(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def entries_for(self, rule_id: str) -> list[AllowlistEntry]:
        """All allowlist entries in scope for candidates of ``rule_id``."""
        entries = [entry for entry in self.allowlist if entry.applies_to(rule_id)]
        rule = self.get(rule_id)
        if rule is not None:
            entries.extend(rule.allowlist)
        return entries
