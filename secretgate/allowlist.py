"""Allowlist filtering of raw match candidates.

A candidate is suppressed when any in-scope entry matches it: global entries
apply to every rule, scoped entries only to candidates of their own rule.
Suppression is a plain union over entries, so evaluation order never changes
the outcome and filtering the result again is a no-op.

Suppressed candidates are counted but never reported, so a correctly
allowlisted secret does not leak into logs or reports. Their text is kept per
line only so a report snippet for the same line can mask it.
"""

from __future__ import annotations

from collections.abc import Iterable

from secretgate.logging import get_logger
from secretgate.rules.models import AllowlistEntry, RuleSet
from secretgate.types import Finding, MatchCandidate

logger = get_logger("allowlist")


def is_suppressed(candidate: MatchCandidate, entries: Iterable[AllowlistEntry]) -> bool:
    """Whether any of ``entries`` suppresses ``candidate``."""
    return any(entry.matches(candidate.path, candidate.text, candidate.line_text) for entry in entries)


class AllowlistFilter:
    """Turns candidates into findings for one RuleSet."""

    def __init__(self, ruleset: RuleSet) -> None:
        self.ruleset = ruleset
        self.suppressed = 0
        self.suppressed_texts: dict[tuple[str, str, int], set[str]] = {}
        self._entries: dict[str, list[AllowlistEntry]] = {}

    def entries_for(self, rule_id: str) -> list[AllowlistEntry]:
        if rule_id not in self._entries:
            self._entries[rule_id] = self.ruleset.entries_for(rule_id)
        return self._entries[rule_id]

    def filter(self, candidates: Iterable[MatchCandidate]) -> list[Finding]:
        """Drop allowlisted candidates and return the rest as findings.

        ``suppressed`` and ``suppressed_texts`` are reset and then describe
        the candidates dropped by this call.
        """
        self.suppressed = 0
        self.suppressed_texts = {}
        findings: list[Finding] = []
        for candidate in candidates:
            if is_suppressed(candidate, self.entries_for(candidate.rule_id)):
                self.suppressed += 1
                key = (candidate.path, candidate.origin, candidate.line)
                self.suppressed_texts.setdefault(key, set()).add(candidate.text)
                continue
            findings.append(Finding.from_candidate(candidate))

        if self.suppressed:
            logger.info("Allowlist suppressed %d candidates", self.suppressed)
        return findings


def filter_candidates(candidates: Iterable[MatchCandidate], ruleset: RuleSet) -> list[Finding]:
    """Functional form of :meth:`AllowlistFilter.filter`."""
    return AllowlistFilter(ruleset).filter(candidates)
