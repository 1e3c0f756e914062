"""Verdict engine and report rendering.

Any surviving finding fails the gate; there is no severity weighting.
Reports only ever carry redacted secret text.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from secretgate.constants import DEFAULT_REDACT_PREFIX, Verdict
from secretgate.types import Finding, UnitError


@dataclass(frozen=True)
class ScanReport:
    """Immutable result of one gate invocation."""

    findings: tuple[Finding, ...]
    verdict: Verdict
    units_scanned: int = 0
    units_skipped: int = 0
    units_errored: int = 0
    candidates: int = 0
    suppressed: int = 0
    errors: tuple[UnitError, ...] = ()
    duration_seconds: float = 0.0
    # Allowlisted texts on lines that also hold a finding, keyed like same_line_secrets
    masked_texts: dict[tuple[str, str, int], frozenset[str]] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def counts(self) -> dict[str, int]:
        return {
            "units_scanned": self.units_scanned,
            "units_skipped": self.units_skipped,
            "units_errored": self.units_errored,
            "candidates": self.candidates,
            "suppressed": self.suppressed,
            "findings": len(self.findings),
        }

    def same_line_secrets(self) -> dict[tuple[str, str, int], set[str]]:
        """Matched texts grouped by (path, origin, line).

        A line can hold several findings as well as allowlisted matches; each
        snippet must mask all of them.
        """
        grouped: dict[tuple[str, str, int], set[str]] = {key: set(texts) for key, texts in self.masked_texts.items()}
        for finding in self.findings:
            grouped.setdefault((finding.path, finding.origin, finding.line), set()).add(finding.text)
        return grouped

    def to_dict(self, redact_prefix: int = DEFAULT_REDACT_PREFIX) -> dict[str, Any]:
        """Machine-readable report; secrets appear only in redacted form."""
        secrets = self.same_line_secrets()
        return {
            "verdict": self.verdict.value,
            "counts": self.counts,
            "findings": [
                finding.to_dict(redact_prefix, secrets[(finding.path, finding.origin, finding.line)])
                for finding in self.findings
            ],
            "errors": [error.to_dict() for error in self.errors],
            "duration_seconds": self.duration_seconds,
        }


def decide(
    findings: Iterable[Finding],
    *,
    units_scanned: int = 0,
    units_skipped: int = 0,
    candidates: int | None = None,
    suppressed: int = 0,
    errors: Iterable[UnitError] = (),
    duration_seconds: float = 0.0,
    suppressed_texts: Mapping[tuple[str, str, int], Iterable[str]] | None = None,
) -> ScanReport:
    """Aggregate findings into a report with a pass/fail verdict.

    Findings are sorted by (path, line, rule id, offset) so output is
    reproducible regardless of scan completion order. ``suppressed_texts``
    holds allowlisted matches by (path, origin, line); only those sharing a
    line with a finding are kept, for masking.
    """
    ordered = tuple(sorted(findings, key=lambda f: f.sort_key))
    finding_lines = {(f.path, f.origin, f.line) for f in ordered}
    masked = {key: frozenset(texts) for key, texts in (suppressed_texts or {}).items() if key in finding_lines}
    error_list = tuple(errors)
    return ScanReport(
        findings=ordered,
        verdict=Verdict.FAIL if ordered else Verdict.PASS,
        units_scanned=units_scanned,
        units_skipped=units_skipped,
        units_errored=len({(e.path, e.origin) for e in error_list if e.rule_id is None}),
        candidates=len(ordered) + suppressed if candidates is None else candidates,
        suppressed=suppressed,
        errors=error_list,
        duration_seconds=duration_seconds,
        masked_texts=masked,
    )


def render_json(report: ScanReport, redact_prefix: int = DEFAULT_REDACT_PREFIX) -> str:
    """Serialize a report as indented JSON."""
    return json.dumps(report.to_dict(redact_prefix), indent=2, sort_keys=True)


def render_text(report: ScanReport, console: Console, redact_prefix: int = DEFAULT_REDACT_PREFIX) -> None:
    """Print a human-readable report."""
    if report.findings:
        table = Table(title="Potential secrets", show_lines=False)
        table.add_column("Path", style="cyan")
        table.add_column("Line", justify="right")
        table.add_column("Rule", style="magenta")
        table.add_column("Snippet", overflow="fold")
        secrets = report.same_line_secrets()
        for finding in report.findings:
            location = finding.path
            if finding.origin.startswith("commit:"):
                location = f"{finding.path} @ {finding.origin[7:19]}"
            others = secrets[(finding.path, finding.origin, finding.line)]
            snippet = finding.redacted_snippet(redact_prefix, others)
            table.add_row(escape(location), str(finding.line), finding.rule_id, escape(snippet))
        console.print(table)

    for error in report.errors:
        scope = f" [{error.rule_id}]" if error.rule_id else ""
        console.print(f"[yellow]skipped[/yellow] {escape(error.path + scope)}: {escape(error.message)}")

    summary = (
        f"{report.units_scanned} scanned, {report.units_skipped} skipped, "
        f"{report.suppressed} allowlisted, {len(report.findings)} findings"
    )
    if report.passed:
        console.print(f"[green]PASS[/green] no secrets detected ({summary})")
    else:
        console.print(f"[red]FAIL[/red] potential secrets detected ({summary})")
