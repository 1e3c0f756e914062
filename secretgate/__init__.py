"""secretgate - rule-driven secret scanning gate for commits and CI.

Loads a rules document, scans staged content, a working tree or a commit
range, and fails the gate when a non-allowlisted secret is found.
"""

__version__ = "0.1.0"

from secretgate.constants import GateMode, GateState, Verdict
from secretgate.exceptions import SecretGateError

__all__ = [
    "__version__",
    "GateMode",
    "GateState",
    "Verdict",
    "SecretGateError",
]
