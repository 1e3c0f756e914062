"""secretgate command-line interface."""

from pathlib import Path

import click
from rich.console import Console

from secretgate import __version__
from secretgate.commands import protect, rules_group, scan, selftest
from secretgate.config import SecretGateConfig
from secretgate.constants import ERROR_EXIT_CODE
from secretgate.exceptions import ConfigurationError
from secretgate.logging import setup_logging

console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="secretgate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: .secretgate/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (overrides settings)",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for JSON log files",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_dir: Path | None,
) -> None:
    """secretgate - block commits and builds that contain secrets."""
    ctx.ensure_object(dict)

    try:
        config = SecretGateConfig.load(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(ERROR_EXIT_CODE) from None

    setup_logging(
        level=log_level or config.logging.level,
        log_dir=log_dir or config.logging.directory,
        json_output=config.logging.json_output,
    )
    ctx.obj["config"] = config


cli.add_command(scan)
cli.add_command(protect)
cli.add_command(rules_group)
cli.add_command(selftest)


if __name__ == "__main__":
    cli()
