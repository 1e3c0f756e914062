"""Value types passed between the content sources, scanner and filter."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields

from secretgate.constants import DEFAULT_REDACT_PREFIX, SNIPPET_MAX_CHARS
from secretgate.exceptions import ContentReadError, PatternError


def redact(text: str, prefix: int = DEFAULT_REDACT_PREFIX) -> str:
    """Keep at most ``prefix`` leading characters of ``text`` and mask the rest.

    Secrets shorter than twice the prefix only keep half of their length so
    short values are never mostly revealed.
    """
    if not text:
        return ""
    keep = min(prefix, len(text) // 2)
    return text[:keep] + "*" * min(len(text) - keep, 8)


def mask_line(line: str, secrets: Iterable[str], prefix: int = DEFAULT_REDACT_PREFIX) -> str:
    """Redact every occurrence of ``secrets`` in ``line``.

    Occurrences that overlap or touch are merged and redacted as one run, so
    no part of either secret is left in the clear.
    """
    spans: list[tuple[int, int]] = []
    for secret in set(secrets) - {""}:
        start = line.find(secret)
        while start != -1:
            spans.append((start, start + len(secret)))
            start = line.find(secret, start + 1)

    merged: list[list[int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])

    parts: list[str] = []
    pos = 0
    for start, end in merged:
        parts.append(line[pos:start])
        parts.append(redact(line[start:end], prefix))
        pos = end
    parts.append(line[pos:])
    return "".join(parts)


@dataclass(frozen=True)
class ContentUnit:
    """One (path, content) pair read for a single scan."""

    path: str  # repository-relative, forward slashes
    content: bytes
    origin: str  # "staged", "working-tree" or "commit:<sha>"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UnitError:
    """A unit (or rule/unit pair) that could not be processed."""

    path: str
    message: str
    origin: str = ""
    rule_id: str | None = None

    @classmethod
    def from_error(cls, error: ContentReadError | PatternError, origin: str) -> UnitError:
        """Record a per-unit failure that does not stop the scan."""
        rule_id = error.rule_id if isinstance(error, PatternError) else None
        return cls(path=error.path, message=error.message, origin=origin, rule_id=rule_id)

    def to_dict(self) -> dict[str, str | None]:
        return {"path": self.path, "origin": self.origin, "rule_id": self.rule_id, "message": self.message}


@dataclass(frozen=True)
class MatchCandidate:
    """A raw rule match, before allowlisting."""

    rule_id: str
    path: str
    line: int
    text: str
    span: tuple[int, int]  # byte offsets in the unit's content
    line_text: str
    origin: str = ""

    @property
    def sort_key(self) -> tuple[str, int, str, int]:
        return (self.path, self.line, self.rule_id, self.span[0])


@dataclass(frozen=True)
class Finding(MatchCandidate):
    """A match that survived allowlisting."""

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> Finding:
        if isinstance(candidate, Finding):
            return candidate
        return cls(**{f.name: getattr(candidate, f.name) for f in fields(MatchCandidate)})

    def redacted_snippet(self, prefix: int = DEFAULT_REDACT_PREFIX, also: Iterable[str] = ()) -> str:
        """The matched line with the secret masked, trimmed for display.

        ``also`` lists other matched texts on the same line (other findings and
        allowlisted matches); they are masked too.
        """
        # Mask before stripping: matched text may begin or end with whitespace
        snippet = mask_line(self.line_text, [self.text, *also], prefix).strip()
        if len(snippet) > SNIPPET_MAX_CHARS:
            snippet = snippet[: SNIPPET_MAX_CHARS - 3] + "..."
        return snippet

    def to_dict(self, prefix: int = DEFAULT_REDACT_PREFIX, also: Iterable[str] = ()) -> dict[str, object]:
        """Serializable form; never contains the raw secret."""
        return {
            "path": self.path,
            "line": self.line,
            "rule_id": self.rule_id,
            "redacted_snippet": self.redacted_snippet(prefix, also),
            "origin": self.origin,
        }
