"""GitContent -- read-only queries that enumerate and read scannable content."""

from pathlib import Path

from secretgate.exceptions import GitError
from secretgate.git.base import GitRunner
from secretgate.logging import get_logger

logger = get_logger("git.ops")

# Added, copied, modified or renamed: paths whose new content exists
_CONTENT_FILTER = "--diff-filter=ACMR"


class GitContent(GitRunner):
    """Enumerate paths in the index, the working tree and history, and read blobs."""

    def __init__(self, repo_path: str | Path = ".", timeout: int = 60) -> None:
        super().__init__(repo_path, timeout)

    def has_head(self) -> bool:
        """Check whether the repository has at least one commit."""
        try:
            self._run("rev-parse", "--verify", "--quiet", "HEAD")
        except GitError:
            return False
        return True

    def staged_paths(self) -> list[str]:
        """Paths whose staged content differs from HEAD (deletions excluded).

        In a repository without commits every staged path is new.
        """
        if self.has_head():
            return self._run_z("diff", "--cached", "--name-only", _CONTENT_FILTER, "-z")
        return self._run_z("ls-files", "--cached", "-z")

    def read_staged(self, path: str) -> bytes:
        """Read the index (staged) content of ``path``."""
        return self._run_bytes("cat-file", "blob", f":{path}")

    def listed_paths(self) -> list[str]:
        """Tracked plus untracked-but-not-ignored paths in the working tree."""
        return self._run_z("ls-files", "-z", "--cached", "--others", "--exclude-standard")

    def rev_list(self, revision_range: str) -> list[str]:
        """Commits in ``revision_range``, oldest first."""
        return [line for line in self._run("rev-list", "--reverse", revision_range).splitlines() if line]

    def changed_paths(self, commit: str) -> list[str]:
        """Paths whose content changed in ``commit`` (root commits included)."""
        return self._run_z(
            "diff-tree", "--root", "--no-commit-id", "-r", "--name-only", "--no-renames", _CONTENT_FILTER, "-z", commit
        )

    def read_at(self, commit: str, path: str) -> bytes:
        """Read ``path`` as of ``commit``."""
        return self._run_bytes("cat-file", "blob", f"{commit}:{path}")
