"""Rule application over content units.

:func:`scan_unit` is the pure per-unit step: every rule's pattern is applied
line by line and each non-overlapping match yields one
:class:`MatchCandidate`. :class:`Scanner` fans units out over a pool of
worker processes and merges the results in the calling process.

WARNING: rules come from user documents. Python's ``re`` has no match
timeout and keeps the GIL while matching, so a pathological pattern cannot be
interrupted from another thread. Workers are separate processes, and the
whole pool is terminated once the scan deadline passes.
"""

from __future__ import annotations

import math
import multiprocessing
import os
import queue
import re
import signal
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from secretgate.constants import BINARY_SNIFF_BYTES, DEFAULT_MAX_UNIT_BYTES
from secretgate.exceptions import PatternError, ScanTimeoutError
from secretgate.logging import get_logger
from secretgate.rules.models import Rule, RuleKind, RuleSet
from secretgate.types import ContentUnit, MatchCandidate, UnitError

logger = get_logger("scanner")


def shannon_entropy(text: str) -> float:
    """Shannon entropy of ``text`` in bits per character."""
    if not text:
        return 0.0
    length = len(text)
    return -sum((n / length) * math.log2(n / length) for n in Counter(text).values())


def is_binary(content: bytes) -> bool:
    """Sniff content the way git does: a NUL byte near the start means binary."""
    return b"\0" in content[:BINARY_SNIFF_BYTES]


@dataclass
class UnitResult:
    """Outcome of scanning one unit."""

    path: str
    candidates: list[MatchCandidate] = field(default_factory=list)
    errors: list[UnitError] = field(default_factory=list)
    skipped: bool = False
    skip_reason: str = ""


@dataclass
class ScanStats:
    """Counters accumulated over one ``Scanner.scan`` call."""

    units_scanned: int = 0
    units_skipped: int = 0
    errors: list[UnitError] = field(default_factory=list)


def _keyword_hit(rule: Rule, lowered: str) -> bool:
    return not rule.keywords or any(keyword in lowered for keyword in rule.keywords)


def _match_line(
    rule: Rule,
    unit: ContentUnit,
    line: str,
    line_no: int,
    line_offset: int,
) -> list[MatchCandidate]:
    """Apply one rule to one line."""
    found: list[MatchCandidate] = []
    for match in rule.pattern.finditer(line):
        group = rule.secret_group
        text = match.group(group)
        if text is None:
            # Optional secret group did not participate
            group = 0
            text = match.group(0)
        if not text:
            continue
        if rule.kind is RuleKind.ENTROPY and rule.entropy is not None and shannon_entropy(text) < rule.entropy:
            continue

        # Byte offsets: surrogateescape round-trips undecodable bytes exactly
        start = line_offset + len(line[: match.start(group)].encode("utf-8", "surrogateescape"))
        end = start + len(text.encode("utf-8", "surrogateescape"))
        found.append(
            MatchCandidate(
                rule_id=rule.id,
                path=unit.path,
                line=line_no,
                text=text,
                span=(start, end),
                line_text=line,
                origin=unit.origin,
            )
        )
    return found


def scan_unit(
    unit: ContentUnit,
    ruleset: RuleSet,
    max_unit_bytes: int = DEFAULT_MAX_UNIT_BYTES,
) -> UnitResult:
    """Scan a single content unit against every rule.

    Binary and oversize units are skipped. A rule that raises while matching
    is recorded as an error for this unit and the remaining rules still run.

    Args:
        unit: Content unit to scan.
        ruleset: Rules to apply.
        max_unit_bytes: Size ceiling; larger units are skipped.

    Returns:
        UnitResult with candidates in line order.
    """
    result = UnitResult(path=unit.path)

    if unit.size > max_unit_bytes:
        result.skipped = True
        result.skip_reason = f"{unit.size} bytes exceeds {max_unit_bytes}"
        return result
    if is_binary(unit.content):
        result.skipped = True
        result.skip_reason = "binary content"
        return result

    text = unit.content.decode("utf-8", "surrogateescape")
    lowered = text.lower()
    rules = [rule for rule in ruleset if _keyword_hit(rule, lowered)]
    if not rules:
        return result

    lines: list[tuple[int, int, str, str]] = []
    offset = 0
    for line_no, raw in enumerate(text.split("\n"), start=1):
        line = raw[:-1] if raw.endswith("\r") else raw
        lines.append((line_no, offset, line, line.lower()))
        offset += len(raw.encode("utf-8", "surrogateescape")) + 1

    for rule in rules:
        try:
            for line_no, line_offset, line, line_lower in lines:
                if not _keyword_hit(rule, line_lower):
                    continue
                result.candidates.extend(_match_line(rule, unit, line, line_no, line_offset))
        except (re.error, RecursionError, MemoryError) as exc:
            error = PatternError(f"pattern error: {exc}", rule_id=rule.id, path=unit.path)
            result.errors.append(UnitError.from_error(error, unit.origin))

    result.candidates.sort(key=lambda c: (c.line, c.span[0]))
    return result


# Per-process state installed by the pool initializer
_worker_ruleset: RuleSet | None = None
_worker_max_unit_bytes: int = DEFAULT_MAX_UNIT_BYTES


def _init_worker(ruleset: RuleSet, max_unit_bytes: int) -> None:
    global _worker_ruleset, _worker_max_unit_bytes
    # Ctrl-C is handled by the parent, which terminates the pool
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    _worker_ruleset = ruleset
    _worker_max_unit_bytes = max_unit_bytes


def _scan_in_worker(unit: ContentUnit) -> UnitResult:
    assert _worker_ruleset is not None
    return scan_unit(unit, _worker_ruleset, _worker_max_unit_bytes)


class Scanner:
    """Apply a RuleSet to a stream of units using a bounded process pool."""

    def __init__(
        self,
        ruleset: RuleSet,
        max_unit_bytes: int = DEFAULT_MAX_UNIT_BYTES,
        max_workers: int | None = None,
    ) -> None:
        self.ruleset = ruleset
        self.max_unit_bytes = max_unit_bytes
        self.max_workers = max_workers or min(8, os.cpu_count() or 1)
        self.stats = ScanStats()

    def _collect(self, result: UnitResult, candidates: list[MatchCandidate]) -> None:
        if result.skipped:
            self.stats.units_skipped += 1
            logger.info("Skipping %s: %s", result.path, result.skip_reason, extra={"path": result.path})
        else:
            self.stats.units_scanned += 1
        for error in result.errors:
            logger.warning(
                "Rule %s failed on %s: %s",
                error.rule_id,
                error.path,
                error.message,
                extra={"path": error.path, "rule_id": error.rule_id, "origin": error.origin},
            )
        self.stats.errors.extend(result.errors)
        candidates.extend(result.candidates)

    def scan(self, units: Iterable[ContentUnit], timeout: float | None = None) -> list[MatchCandidate]:
        """Scan all units and return every raw candidate.

        At most ``2 * max_workers`` units are in flight, so memory stays
        bounded however many units the source yields. When the deadline
        passes the worker processes are terminated, so a runaway pattern
        cannot keep the scan alive.

        Args:
            units: Units to scan (consumed once).
            timeout: Wall-clock limit in seconds for the whole scan.

        Returns:
            Candidates from all units (merge order is unspecified).

        Raises:
            ScanTimeoutError: If the deadline passes before scanning finishes.
        """
        self.stats = ScanStats()
        candidates: list[MatchCandidate] = []
        limit = self.max_workers * 2
        in_flight = 0
        deadline = None if timeout is None else time.monotonic() + timeout
        # Filled by the pool's result thread: a UnitResult or the exception a worker raised
        results: queue.SimpleQueue[UnitResult | BaseException] = queue.SimpleQueue()

        def remaining() -> float | None:
            if deadline is None:
                return None
            left = deadline - time.monotonic()
            if left <= 0:
                raise ScanTimeoutError("Scan exceeded its time limit", timeout_seconds=timeout or 0)
            return left

        def collect_next() -> None:
            while True:
                try:
                    item = results.get(timeout=remaining())
                except queue.Empty:
                    continue  # remaining() raises once the deadline has passed
                if isinstance(item, BaseException):
                    raise item
                self._collect(item, candidates)
                return

        pool = multiprocessing.get_context().Pool(
            processes=self.max_workers,
            initializer=_init_worker,
            initargs=(self.ruleset, self.max_unit_bytes),
        )
        try:
            for unit in units:
                while in_flight >= limit:
                    collect_next()
                    in_flight -= 1
                pool.apply_async(_scan_in_worker, (unit,), callback=results.put, error_callback=results.put)
                in_flight += 1
                remaining()

            while in_flight:
                collect_next()
                in_flight -= 1
        except BaseException:
            # A worker stuck inside a regex only stops when its process is killed
            pool.terminate()
            pool.join()
            raise
        pool.close()
        pool.join()

        logger.info(
            "Scanned %d units (%d skipped), %d candidates",
            self.stats.units_scanned,
            self.stats.units_skipped,
            len(candidates),
        )
        return candidates
