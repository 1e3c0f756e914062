"""secretgate rule model and rules document loader."""

from secretgate.rules.loader import default_rules_path, load, load_file, load_text
from secretgate.rules.models import (
    AllowlistEntry,
    AllowlistKind,
    Rule,
    RuleKind,
    RuleSet,
    compile_glob,
)

__all__ = [
    "AllowlistEntry",
    "AllowlistKind",
    "Rule",
    "RuleKind",
    "RuleSet",
    "compile_glob",
    "default_rules_path",
    "load",
    "load_file",
    "load_text",
]
