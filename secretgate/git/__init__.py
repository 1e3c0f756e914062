"""secretgate git package -- git command execution and content queries.

Re-exports core classes for convenient access:
    from secretgate.git import GitContent, GitRunner
"""

from secretgate.git.base import GitRunner
from secretgate.git.ops import GitContent

__all__ = [
    "GitRunner",
    "GitContent",
]
