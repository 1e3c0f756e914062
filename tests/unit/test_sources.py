"""Tests for content sources."""

import os
import sys
from pathlib import Path

import pytest

from secretgate.exceptions import GitError
from secretgate.sources import HistoricalSource, StagedSource, WorkingTreeSource
from tests.conftest import commit, run_git, stage


def _paths(source) -> list[str]:
    return [unit.path for unit in source]


class TestStagedSource:
    """Tests for index content."""

    @pytest.mark.smoke
    def test_reads_staged_content_not_working_tree(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "config.py", "TOKEN = 'staged'\n")
        (tmp_repo / "config.py").write_text("TOKEN = 'edited after add'\n")

        units = list(StagedSource(tmp_repo))

        assert len(units) == 1
        assert units[0].path == "config.py"
        assert units[0].content == b"TOKEN = 'staged'\n"
        assert units[0].origin == "staged"

    def test_only_staged_paths(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "a.txt", "a\n")
        (tmp_repo / "untracked.txt").write_text("not staged\n")
        assert _paths(StagedSource(tmp_repo)) == ["a.txt"]

    def test_deletions_excluded(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "old.txt", "old\n")
        commit(tmp_repo)
        run_git("rm", "-q", "old.txt", cwd=tmp_repo)
        stage(tmp_repo, "new.txt", "new\n")

        assert _paths(StagedSource(tmp_repo)) == ["new.txt"]

    def test_nested_and_spaced_paths(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "dir one/file name.txt", "x\n")
        assert _paths(StagedSource(tmp_repo)) == ["dir one/file name.txt"]

    @pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem accepting non-UTF-8 names")
    def test_non_utf8_path_round_trips(self, tmp_repo: Path) -> None:
        odd_name = os.fsdecode(b"caf\xe9.txt")
        stage(tmp_repo, odd_name, "latin-1 name\n")

        units = list(StagedSource(tmp_repo))

        assert [u.path for u in units] == [odd_name]
        assert units[0].content == b"latin-1 name\n"

    def test_path_filter(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "a.txt", "a\n")
        stage(tmp_repo, "b.txt", "b\n")
        assert _paths(StagedSource(tmp_repo, paths=["b.txt"])) == ["b.txt"]

    def test_repository_without_commits(self, plain_dir: Path) -> None:
        run_git("init", "-q", cwd=plain_dir)
        stage(plain_dir, "first.txt", "hello\n")
        assert _paths(StagedSource(plain_dir)) == ["first.txt"]

    def test_from_subdirectory(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "pkg/mod.py", "x = 1\n")
        assert _paths(StagedSource(tmp_repo / "pkg")) == ["pkg/mod.py"]

    def test_not_a_repository(self, plain_dir: Path) -> None:
        with pytest.raises(GitError):
            StagedSource(plain_dir)

    def test_single_pass(self, tmp_repo: Path) -> None:
        source = StagedSource(tmp_repo)
        list(source.provide_units())
        with pytest.raises(RuntimeError):
            source.provide_units()


class TestWorkingTreeSource:
    """Tests for on-disk content."""

    def test_respects_gitignore(self, tmp_repo: Path) -> None:
        (tmp_repo / ".gitignore").write_text("*.log\nbuild/\n")
        (tmp_repo / "debug.log").write_text("ignored\n")
        (tmp_repo / "build").mkdir()
        (tmp_repo / "build" / "out.txt").write_text("ignored\n")
        (tmp_repo / "app.py").write_text("kept\n")

        paths = _paths(WorkingTreeSource(tmp_repo))

        assert "app.py" in paths
        assert ".gitignore" in paths
        assert "debug.log" not in paths
        assert "build/out.txt" not in paths

    def test_reads_working_tree_content(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "config.py", "staged\n")
        (tmp_repo / "config.py").write_text("on disk\n")

        units = {u.path: u for u in WorkingTreeSource(tmp_repo)}

        assert units["config.py"].content == b"on disk\n"
        assert units["config.py"].origin == "working-tree"

    def test_deleted_tracked_file_skipped(self, tmp_repo: Path) -> None:
        (tmp_repo / ".init").unlink()
        assert ".init" not in _paths(WorkingTreeSource(tmp_repo))

    def test_subdirectory_root(self, tmp_repo: Path) -> None:
        (tmp_repo / "pkg").mkdir()
        (tmp_repo / "pkg" / "a.py").write_text("a\n")
        (tmp_repo / "other.py").write_text("b\n")

        assert _paths(WorkingTreeSource(tmp_repo / "pkg")) == ["pkg/a.py"]

    def test_walk_outside_git(self, plain_dir: Path) -> None:
        (plain_dir / "a.txt").write_text("a\n")
        (plain_dir / "sub").mkdir()
        (plain_dir / "sub" / "b.txt").write_text("b\n")
        (plain_dir / "node_modules").mkdir()
        (plain_dir / "node_modules" / "dep.js").write_text("dep\n")
        (plain_dir / ".git").mkdir()
        (plain_dir / ".git" / "config").write_text("[core]\n")

        assert _paths(WorkingTreeSource(plain_dir)) == ["a.txt", "sub/b.txt"]

    def test_no_git_walks_repository(self, tmp_repo: Path) -> None:
        (tmp_repo / ".gitignore").write_text("*.log\n")
        (tmp_repo / "debug.log").write_text("walked anyway\n")

        paths = _paths(WorkingTreeSource(tmp_repo, use_git=False))

        assert "debug.log" in paths
        assert not any(p.startswith(".git/") for p in paths)

    def test_explicit_files(self, plain_dir: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
        (plain_dir / "a.txt").write_text("a\n")
        (plain_dir / "b.txt").write_text("b\n")
        outside = tmp_path_factory.mktemp("outside") / "c.txt"
        outside.write_text("c\n")

        source = WorkingTreeSource(
            plain_dir,
            files=[str(plain_dir / "b.txt"), str(outside), str(plain_dir / "missing.txt")],
        )

        assert _paths(source) == ["b.txt"]

    def test_oversize_skipped_before_read(self, plain_dir: Path) -> None:
        (plain_dir / "big.bin").write_bytes(b"x" * 1000)
        (plain_dir / "small.txt").write_text("ok\n")

        source = WorkingTreeSource(plain_dir, max_unit_bytes=100)

        assert _paths(source) == ["small.txt"]
        assert source.skipped == 1

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinks_not_followed(self, plain_dir: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
        target = tmp_path_factory.mktemp("elsewhere") / "secret.txt"
        target.write_text("outside\n")
        (plain_dir / "link.txt").symlink_to(target)
        (plain_dir / "real.txt").write_text("inside\n")

        assert _paths(WorkingTreeSource(plain_dir)) == ["real.txt"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_explicit_symlink_not_followed(self, plain_dir: Path) -> None:
        (plain_dir / "real.txt").write_text("inside\n")
        (plain_dir / "link.txt").symlink_to(plain_dir / "real.txt")

        source = WorkingTreeSource(plain_dir, files=[str(plain_dir / "link.txt")], use_git=False)

        assert _paths(source) == []

    @pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root can read anything")
    def test_unreadable_file_recorded(self, plain_dir: Path) -> None:
        locked = plain_dir / "locked.txt"
        locked.write_text("x\n")
        locked.chmod(0)
        (plain_dir / "ok.txt").write_text("ok\n")
        try:
            source = WorkingTreeSource(plain_dir)
            assert _paths(source) == ["ok.txt"]
            assert [e.path for e in source.errors] == ["locked.txt"]
        finally:
            locked.chmod(0o644)


class TestHistoricalSource:
    """Tests for commit range content."""

    def test_changed_paths_per_commit(self, tmp_repo: Path) -> None:
        stage(tmp_repo, "a.txt", "v1\n")
        first = commit(tmp_repo, "first")
        stage(tmp_repo, "a.txt", "v2\n")
        stage(tmp_repo, "b.txt", "b\n")
        second = commit(tmp_repo, "second")

        units = list(HistoricalSource(tmp_repo, f"{first}~1..HEAD"))

        assert [(u.path, u.content, u.origin) for u in units] == [
            ("a.txt", b"v1\n", f"commit:{first}"),
            ("a.txt", b"v2\n", f"commit:{second}"),
            ("b.txt", b"b\n", f"commit:{second}"),
        ]

    def test_full_history_includes_root_commit(self, tmp_repo: Path) -> None:
        assert ".init" in _paths(HistoricalSource(tmp_repo, "HEAD"))

    def test_deleted_paths_excluded(self, tmp_repo: Path) -> None:
        run_git("rm", "-q", ".init", cwd=tmp_repo)
        commit(tmp_repo, "remove")
        assert _paths(HistoricalSource(tmp_repo, "HEAD~1..HEAD")) == []

    def test_unknown_revision(self, tmp_repo: Path) -> None:
        source = HistoricalSource(tmp_repo, "no-such-branch..HEAD")
        with pytest.raises(GitError):
            list(source)
