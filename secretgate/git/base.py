"""GitRunner base class -- low-level git command execution."""

import os
import subprocess
from pathlib import Path

from secretgate.exceptions import GitError
from secretgate.logging import get_logger

logger = get_logger("git.base")


class GitRunner:
    """Low-level git command runner with repository validation.

    Provides the subprocess execution layer. ``repo_path`` is normalized to
    the top level of the working tree so every path git reports is relative
    to it. Content queries live in GitContent which inherits this class.
    """

    def __init__(self, repo_path: str | Path = ".", timeout: int = 60) -> None:
        """Initialize git runner.

        Args:
            repo_path: Path inside the git repository
            timeout: Per-command timeout in seconds

        Raises:
            GitError: If the path is not inside a git working tree
        """
        self.timeout = timeout
        self.repo_path = self._resolve_toplevel(Path(repo_path).resolve())

    def _resolve_toplevel(self, path: Path) -> Path:
        """Find the working tree root containing ``path``."""
        try:
            result = subprocess.run(
                ["git", "-C", str(path), "rev-parse", "--show-toplevel"],
                capture_output=True,
                timeout=self.timeout,
            )
        except (FileNotFoundError, OSError, subprocess.TimeoutExpired) as e:
            raise GitError("git is not available", details={"error": str(e)}) from e

        if result.returncode != 0:
            raise GitError(
                f"Not a git repository: {path}",
                command="git rev-parse --show-toplevel",
                exit_code=result.returncode,
                details={"path": str(path)},
            )
        return Path(os.fsdecode(result.stdout.strip())).resolve()

    def _exec(self, args: tuple[str, ...]) -> subprocess.CompletedProcess:
        cmd = ["git", "-C", str(self.repo_path), *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(
                f"Git command timed out after {self.timeout}s: {' '.join(args)}",
                command=" ".join(cmd),
                exit_code=-1,
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode("utf-8", "replace").strip() if e.stderr else ""
            raise GitError(
                f"Git command failed: {stderr or str(e)}",
                command=" ".join(cmd),
                exit_code=e.returncode,
            ) from e

    def _run(self, *args: str) -> str:
        """Run a git command and return its stdout decoded like a file name.

        Bytes that are not valid UTF-8 survive as surrogates (``os.fsdecode``),
        so a path read back from git can be handed to git or ``open`` unchanged.

        Raises:
            GitError: If the command fails or times out
        """
        return os.fsdecode(self._run_bytes(*args))

    def _run_bytes(self, *args: str) -> bytes:
        """Run a git command and return its raw stdout (blob content)."""
        return self._exec(args).stdout

    def _run_z(self, *args: str) -> list[str]:
        """Run a git command printing NUL-separated names (``-z``)."""
        return [item for item in self._run(*args).split("\0") if item]
