"""Content sources: what a scan reads.

Every source yields :class:`ContentUnit` objects lazily and exactly once.
Enumeration is sequential (it follows the order of the index, the tree walk or
the commit range). A unit that cannot be read is recorded in ``errors`` and
skipped; enumeration itself failing (not a repository, unknown revision)
raises :class:`GitError`.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from secretgate.constants import SKIP_DIRS, Origin
from secretgate.exceptions import ContentReadError, GitError
from secretgate.git import GitContent
from secretgate.logging import get_logger
from secretgate.types import ContentUnit, UnitError

logger = get_logger("sources")


class ContentSource(ABC):
    """Base class for a single-pass sequence of content units."""

    def __init__(self) -> None:
        self.errors: list[UnitError] = []
        self.skipped = 0
        self._consumed = False

    def provide_units(self) -> Iterator[ContentUnit]:
        """Return the unit iterator. May only be called once.

        Raises:
            RuntimeError: If the source was already consumed.
        """
        if self._consumed:
            raise RuntimeError(f"{type(self).__name__} has already been consumed")
        self._consumed = True
        return self._units()

    def __iter__(self) -> Iterator[ContentUnit]:
        return self.provide_units()

    @abstractmethod
    def _units(self) -> Iterator[ContentUnit]:
        """Yield units; implemented by each variant."""

    def _record_error(self, path: str, exc: Exception, origin: str) -> None:
        logger.warning("Cannot read %s (%s): %s", path, origin, exc, extra={"path": path, "origin": origin})
        error = ContentReadError(f"cannot read: {exc}", path=path)
        self.errors.append(UnitError.from_error(error, origin))


class StagedSource(ContentSource):
    """Index content of paths staged for commit.

    Reads the staged blob, not the working-tree file: the two may differ
    when a file was edited after ``git add``.
    """

    def __init__(self, repo_path: str | Path = ".", paths: list[str] | None = None) -> None:
        super().__init__()
        self.git = GitContent(repo_path)
        self.paths = paths

    def _units(self) -> Iterator[ContentUnit]:
        staged = self.git.staged_paths()
        if self.paths is not None:
            wanted = set(self.paths)
            staged = [p for p in staged if p in wanted]
        logger.info("Scanning %d staged paths", len(staged))

        for path in staged:
            try:
                content = self.git.read_staged(path)
            except GitError as exc:
                self._record_error(path, exc, Origin.STAGED.value)
                continue
            yield ContentUnit(path=path, content=content, origin=Origin.STAGED.value)


class WorkingTreeSource(ContentSource):
    """Files on disk under ``root``.

    Inside a git repository the listing comes from ``git ls-files`` so ignore
    rules apply and paths are relative to the repository top. Outside git
    (or with ``use_git=False``) the tree is walked, skipping VCS and cache
    directories, and paths are relative to ``root``. Symlinks are never
    followed.
    """

    def __init__(
        self,
        root: str | Path = ".",
        files: list[str] | None = None,
        use_git: bool = True,
        max_unit_bytes: int | None = None,
    ) -> None:
        super().__init__()
        self.root = Path(root).resolve()
        self.files = files
        self.max_unit_bytes = max_unit_bytes
        self.base = self.root
        self._git: GitContent | None = None

        if use_git:
            try:
                self._git = GitContent(self.root)
                self.base = self._git.repo_path
            except GitError:
                logger.debug("%s is not inside a git repository; walking the tree", self.root)

    def _explicit_paths(self, files: list[str]) -> list[Path]:
        """Resolve an explicit file list, dropping anything outside ``root``."""
        collected: list[Path] = []
        for fp in files:
            candidate = Path(fp)
            if not candidate.is_absolute():
                candidate = Path.cwd() / candidate
            if candidate.is_symlink():
                logger.debug("Skipping symlink %s", fp, extra={"path": fp})
                continue
            try:
                resolved = candidate.resolve()
            except (OSError, ValueError):
                logger.debug("Could not resolve path: %s", fp)
                continue
            if resolved.is_relative_to(self.root) and resolved.is_file():
                collected.append(resolved)
            else:
                logger.debug("Skipping file outside scan boundary: %s", fp)
        return sorted(set(collected))

    def _walk(self) -> Iterator[Path]:
        for dirpath, dirs, filenames in os.walk(self.root, followlinks=False):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
            for fname in sorted(filenames):
                yield Path(dirpath) / fname

    def _listed(self) -> Iterator[Path]:
        assert self._git is not None
        for rel in sorted(set(self._git.listed_paths())):
            path = self.base / rel
            if path == self.root or path.is_relative_to(self.root):
                yield path

    def _candidates(self) -> Iterator[Path]:
        if self.files is not None:
            yield from self._explicit_paths(self.files)
        elif self._git is not None:
            yield from self._listed()
        else:
            yield from self._walk()

    def _units(self) -> Iterator[ContentUnit]:
        origin = Origin.WORKING_TREE.value
        for path in self._candidates():
            rel = path.relative_to(self.base).as_posix()
            if path.is_symlink() or not path.is_file():
                # Deleted-but-tracked files, submodules and links
                logger.debug("Skipping non-regular file %s", rel)
                continue
            try:
                if self.max_unit_bytes is not None and path.stat().st_size > self.max_unit_bytes:
                    logger.info(
                        "Skipping %s: larger than %d bytes",
                        rel,
                        self.max_unit_bytes,
                        extra={"path": rel, "origin": origin},
                    )
                    self.skipped += 1
                    continue
                content = path.read_bytes()
            except OSError as exc:
                self._record_error(rel, exc, origin)
                continue
            yield ContentUnit(path=rel, content=content, origin=origin)


class HistoricalSource(ContentSource):
    """Content across a commit range.

    Yields one unit per (path, commit) where the path's content changed in
    that commit, with the content as of that commit.
    """

    def __init__(self, repo_path: str | Path = ".", revision_range: str = "HEAD") -> None:
        super().__init__()
        self.git = GitContent(repo_path)
        self.revision_range = revision_range

    def _units(self) -> Iterator[ContentUnit]:
        commits = self.git.rev_list(self.revision_range)
        logger.info("Scanning %d commits in %s", len(commits), self.revision_range)

        for commit in commits:
            origin = f"{Origin.COMMIT.value}:{commit}"
            for path in self.git.changed_paths(commit):
                try:
                    content = self.git.read_at(commit, path)
                except GitError as exc:
                    self._record_error(path, exc, origin)
                    continue
                yield ContentUnit(path=path, content=content, origin=origin)
