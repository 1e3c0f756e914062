"""secretgate constants and enumerations."""

from enum import Enum

# Exit status when the gate itself broke (bad rules, not a repo, timeout).
# Kept distinct from the "secrets found" status so hooks can tell them apart.
ERROR_EXIT_CODE = 2
DEFAULT_LEAK_EXIT_CODE = 1

DEFAULT_MAX_UNIT_BYTES = 5 * 1024 * 1024
DEFAULT_REDACT_PREFIX = 4
SNIPPET_MAX_CHARS = 120

# Same window git uses when deciding whether a blob is binary
BINARY_SNIFF_BYTES = 8000

DEFAULT_CONFIG_PATH = ".secretgate/config.yaml"
RULES_ENV_VAR = "SECRETGATE_RULES"


class GateMode(Enum):
    """Invocation modes for the gate."""

    PRE_COMMIT = "pre-commit"
    SCAN = "scan"
    CI = "ci"


class Verdict(Enum):
    """Overall outcome of a scan."""

    PASS = "pass"
    FAIL = "fail"


class GateState(Enum):
    """Gate runner lifecycle states."""

    IDLE = "idle"
    LOADING = "loading"
    SCANNING = "scanning"
    FILTERING = "filtering"
    DECIDING = "deciding"
    DONE = "done"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a gate run ended in the FAILED state."""

    LOAD_ERROR = "load_error"
    SOURCE_ERROR = "source_error"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class Origin(Enum):
    """Where a content unit came from."""

    STAGED = "staged"
    WORKING_TREE = "working-tree"
    COMMIT = "commit"


# Directories never descended into when walking a plain directory tree
SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "__pycache__",
        "node_modules",
        ".venv",
        "venv",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
    }
)
