"""Pytest configuration and fixtures for secretgate tests."""

import os
import subprocess
import textwrap
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from secretgate.rules import RuleSet, load_text
from secretgate.types import ContentUnit

# Scenario rule used throughout the tests
TEST_KEY_RULES = """
rules:
  - id: test-key
    description: Test API key
    pattern: 'sk-ant-[A-Za-z0-9-]{20,}'
"""

TEST_KEY = "sk-ant-REDACTED"


def run_git(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess:
    """Run git command safely without shell=True."""
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        check=True,
    )


def stage(repo: Path, rel_path: str, content: str) -> None:
    """Write ``content`` to ``rel_path`` and ``git add`` it."""
    target = repo / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    run_git("add", rel_path, cwd=repo)


def commit(repo: Path, message: str = "test commit") -> str:
    """Commit whatever is staged and return the new SHA."""
    run_git("commit", "-q", "--no-verify", "-m", message, cwd=repo)
    return run_git("rev-parse", "HEAD", cwd=repo).stdout.decode().strip()


@pytest.fixture
def tmp_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit.

    Yields:
        Path to the temporary repository
    """
    orig_dir = os.getcwd()
    os.chdir(tmp_path)

    run_git("init", "-q", "-b", "main", cwd=tmp_path)
    run_git("config", "user.email", "test@test.local", cwd=tmp_path)
    run_git("config", "user.name", "Test", cwd=tmp_path)
    run_git("config", "commit.gpgsign", "false", cwd=tmp_path)

    (tmp_path / ".init").write_text("init\n")
    run_git("add", ".init", cwd=tmp_path)
    run_git("commit", "-q", "-m", "init", cwd=tmp_path)

    yield tmp_path

    os.chdir(orig_dir)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's SECRETGATE_RULES from leaking into tests."""
    monkeypatch.delenv("SECRETGATE_RULES", raising=False)


@pytest.fixture
def write_rules(tmp_path_factory: pytest.TempPathFactory) -> Callable[..., Path]:
    """Factory writing a rules document outside any scanned tree."""
    rules_dir = tmp_path_factory.mktemp("rules-docs")

    def _write(text: str, name: str = "rules.yaml") -> Path:
        path = rules_dir / name
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def test_key_ruleset() -> RuleSet:
    """RuleSet with the single ``test-key`` rule."""
    return load_text(TEST_KEY_RULES)


def make_unit(path: str, content: str | bytes, origin: str = "staged") -> ContentUnit:
    """Build a ContentUnit from text or bytes."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return ContentUnit(path=path, content=data, origin=origin)
