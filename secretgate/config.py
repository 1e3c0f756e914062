"""secretgate settings management using Pydantic."""

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, ValidationError, field_validator

from secretgate.constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_LEAK_EXIT_CODE,
    DEFAULT_MAX_UNIT_BYTES,
    DEFAULT_REDACT_PREFIX,
    ERROR_EXIT_CODE,
    RULES_ENV_VAR,
)
from secretgate.exceptions import ConfigurationError


class ScanConfig(BaseModel):
    """Scanner resource limits."""

    max_unit_bytes: int = Field(default=DEFAULT_MAX_UNIT_BYTES, ge=1)
    workers: int | None = Field(default=None, ge=1, le=64)
    timeout_seconds: float | None = Field(default=None, gt=0)
    default_range: str = "HEAD"


class OutputConfig(BaseModel):
    """Report and exit status settings."""

    format: str = Field(default="text", pattern="^(text|json)$")
    redact_prefix: int = Field(default=DEFAULT_REDACT_PREFIX, ge=0, le=16)
    exit_code: int = Field(default=DEFAULT_LEAK_EXIT_CODE, ge=1, le=125)

    @field_validator("exit_code")
    @classmethod
    def _distinct_from_error_code(cls, value: int) -> int:
        if value == ERROR_EXIT_CODE:
            raise ValueError(f"exit_code {value} is reserved for gate errors")
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="warning", pattern="^(debug|info|warning|error)$")
    directory: str | None = None
    json_output: bool = True


class SecretGateConfig(BaseModel):
    """Complete secretgate settings."""

    rules_path: str | None = None
    scan: ScanConfig = Field(default_factory=ScanConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "SecretGateConfig":
        """Load settings from a YAML file.

        Args:
            config_path: Path to config file. Defaults to .secretgate/config.yaml

        Returns:
            SecretGateConfig instance (defaults when the file is absent)

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        config_path = Path(DEFAULT_CONFIG_PATH) if config_path is None else Path(config_path)

        if not config_path.exists():
            return cls()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read settings file {config_path}", {"error": str(e)}) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {config_path} must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecretGateConfig":
        """Create settings from a dictionary.

        Raises:
            ConfigurationError: If validation fails
        """
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError("Invalid secretgate settings", {"errors": e.errors()}) from e

    def save(self, config_path: str | Path | None = None) -> None:
        """Save settings to a YAML file.

        Args:
            config_path: Path to save config. Defaults to .secretgate/config.yaml
        """
        config_path = Path(DEFAULT_CONFIG_PATH) if config_path is None else Path(config_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary."""
        return self.model_dump()

    def resolve_rules_path(self, explicit: str | Path | None = None) -> Path | None:
        """Pick the rules document to load.

        Order: explicit argument, ``SECRETGATE_RULES``, ``rules_path``.
        ``None`` means the bundled default rules.
        """
        if explicit:
            return Path(explicit)
        env_value = os.environ.get(RULES_ENV_VAR)
        if env_value:
            return Path(env_value)
        if self.rules_path:
            return Path(self.rules_path)
        return None
