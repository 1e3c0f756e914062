"""secretgate exception hierarchy."""

from enum import Enum
from typing import Any


class SecretGateError(Exception):
    """Base exception for all secretgate errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(SecretGateError):
    """Error in secretgate settings."""

    pass


class LoadErrorKind(Enum):
    """Structural problems found while loading a rules document."""

    DUPLICATE_RULE_ID = "duplicate_rule_id"
    INVALID_PATTERN = "invalid_pattern"
    MALFORMED_DOCUMENT = "malformed_document"


class LoadError(SecretGateError):
    """Rules document could not be turned into a RuleSet."""

    def __init__(
        self,
        message: str,
        kind: LoadErrorKind,
        rule_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = {"kind": kind.value}
        if rule_id is not None:
            merged["rule_id"] = rule_id
        merged.update(details or {})
        super().__init__(message, merged)
        self.kind = kind
        self.rule_id = rule_id


class ContentReadError(SecretGateError):
    """A content unit could not be read."""

    def __init__(self, message: str, path: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.path = path


class PatternError(SecretGateError):
    """A rule's pattern raised while being evaluated against a unit."""

    def __init__(self, message: str, rule_id: str, path: str) -> None:
        super().__init__(message, {"rule_id": rule_id, "path": path})
        self.rule_id = rule_id
        self.path = path


class GitError(SecretGateError):
    """Error in git operations."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.command = command
        self.exit_code = exit_code


class ScanTimeoutError(SecretGateError):
    """Scanning did not finish before the wall-clock deadline."""

    def __init__(self, message: str, timeout_seconds: float) -> None:
        super().__init__(message, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds
