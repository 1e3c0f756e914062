"""secretgate CLI commands."""

from secretgate.commands.rules_cmd import rules_group
from secretgate.commands.scan import protect, scan
from secretgate.commands.selftest import selftest

__all__ = [
    "protect",
    "rules_group",
    "scan",
    "selftest",
]
