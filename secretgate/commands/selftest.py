"""secretgate selftest command - check that the rules detect a known secret."""

import tempfile
from pathlib import Path

import click
from rich.console import Console

from secretgate.allowlist import filter_candidates
from secretgate.config import SecretGateConfig
from secretgate.constants import ERROR_EXIT_CODE
from secretgate.exceptions import LoadError
from secretgate.logging import get_logger
from secretgate.rules import RuleSet, load_file
from secretgate.scanner import Scanner
from secretgate.sources import WorkingTreeSource

console = Console()
logger = get_logger("commands.selftest")

# Assembled at runtime so this file never matches its own rule
SAMPLE_SECRET = "sk-" + "ant-api03-" + "testkey1234567890abcdefghijklmnop"
SAMPLE_FILENAME = "selftest.env"


def detects_sample(ruleset: RuleSet, secret: str = SAMPLE_SECRET) -> bool:
    """Scan a throwaway file holding ``secret`` and report whether it is caught."""
    with tempfile.TemporaryDirectory(prefix="secretgate-selftest-") as tmp:
        sample = Path(tmp) / SAMPLE_FILENAME
        sample.write_text(f"ANTHROPIC_API_KEY={secret}\n", encoding="utf-8")
        source = WorkingTreeSource(tmp, use_git=False)
        candidates = Scanner(ruleset, max_workers=1).scan(source)
        return bool(filter_candidates(candidates, ruleset))


@click.command()
@click.option(
    "--rules",
    "-r",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules document to verify",
)
@click.pass_context
def selftest(ctx: click.Context, rules: Path | None) -> None:
    """Verify the rules detect a synthetic API key."""
    ctx.ensure_object(dict)
    config: SecretGateConfig = ctx.obj.get("config") or SecretGateConfig()

    try:
        ruleset = load_file(config.resolve_rules_path(rules))
    except LoadError as e:
        console.print(f"[red]Invalid rules document:[/red] {e}")
        raise SystemExit(ERROR_EXIT_CODE) from None

    if detects_sample(ruleset):
        console.print("[green]OK[/green] rules detect the sample secret")
        raise SystemExit(0)

    console.print("[yellow]WARN[/yellow] rules did NOT detect the sample secret (check rules)")
    raise SystemExit(1)
