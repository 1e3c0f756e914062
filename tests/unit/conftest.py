"""Shared fixtures for unit tests."""

from pathlib import Path

import pytest

from secretgate.logging import clear_scan_context, setup_logging
from secretgate.rules import RuleSet, load_file


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop the gate's log context and any handler bound to a CliRunner stream."""
    yield
    clear_scan_context()
    setup_logging(console_output=True, json_output=False)


@pytest.fixture(scope="session")
def default_ruleset() -> RuleSet:
    """The bundled rules document, loaded once."""
    return load_file()


@pytest.fixture
def plain_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A directory that is not inside any git repository."""
    return tmp_path_factory.mktemp("plain")
