"""CLI commands for inspecting rules documents."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from secretgate.config import SecretGateConfig
from secretgate.constants import ERROR_EXIT_CODE
from secretgate.exceptions import LoadError
from secretgate.logging import get_logger
from secretgate.rules import RuleSet, load_file

console = Console()
logger = get_logger("commands.rules")


def _load(ctx: click.Context, path: Path | None) -> tuple[RuleSet, str]:
    """Load the rules document the gate would use, or exit with the error status."""
    ctx.ensure_object(dict)
    config: SecretGateConfig = ctx.obj.get("config") or SecretGateConfig()
    resolved = config.resolve_rules_path(path)
    label = str(resolved) if resolved is not None else "bundled default rules"
    try:
        return load_file(resolved), label
    except LoadError as e:
        console.print(f"[red]Invalid rules document[/red] {label}: {e}")
        raise SystemExit(ERROR_EXIT_CODE) from None


@click.group(name="rules")
def rules_group() -> None:
    """Validate and inspect rules documents."""
    pass


@rules_group.command(name="validate")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def validate_command(ctx: click.Context, path: Path | None) -> None:
    """Check that a rules document loads."""
    ruleset, label = _load(ctx, path)
    scoped = sum(len(rule.allowlist) for rule in ruleset)
    click.echo(
        f"OK: {label}: {len(ruleset)} rules, {len(ruleset.allowlist)} top-level allowlist entries, "
        f"{scoped} per-rule allowlist entries"
    )


@rules_group.command(name="list")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def list_command(ctx: click.Context, path: Path | None) -> None:
    """List the rules in a rules document."""
    ruleset, label = _load(ctx, path)

    table = Table(title=ruleset.title or label)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Description")
    table.add_column("Tags", style="dim")
    for rule in ruleset:
        table.add_row(rule.id, rule.kind.value, rule.description, ", ".join(sorted(rule.tags)))
    console.print(table)
