"""secretgate scan and protect commands."""

import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape

from secretgate.config import SecretGateConfig
from secretgate.constants import ERROR_EXIT_CODE, GateMode
from secretgate.exceptions import ConfigurationError
from secretgate.gate import GateOutcome, GateRunner, SourceConfig
from secretgate.logging import get_logger
from secretgate.verdict import render_json, render_text

# Human-readable output goes to stderr; stdout is reserved for JSON reports
console = Console(stderr=True)
logger = get_logger("commands.scan")


def _apply_overrides(config: SecretGateConfig, overrides: dict[str, dict[str, Any]]) -> SecretGateConfig:
    """Merge command-line overrides into settings, re-validating the result."""
    data = config.to_dict()
    for section, values in overrides.items():
        data[section].update({k: v for k, v in values.items() if v is not None})
    return SecretGateConfig.from_dict(data)


def _emit(outcome: GateOutcome, config: SecretGateConfig, output_format: str, report_path: Path | None) -> None:
    if outcome.failed:
        console.print(f"[red]Error:[/red] {escape(outcome.error or '')}")
        if output_format == "json":
            reason = outcome.reason.value if outcome.reason else "internal"
            click.echo(json.dumps({"verdict": "error", "reason": reason, "error": outcome.error}, indent=2))
        return

    assert outcome.report is not None
    prefix = config.output.redact_prefix
    if report_path is not None:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(render_json(outcome.report, prefix) + "\n", encoding="utf-8")

    if output_format == "json":
        click.echo(render_json(outcome.report, prefix))
    else:
        render_text(outcome.report, console, prefix)


def run_scan(
    ctx: click.Context,
    mode: GateMode,
    source: Path,
    files: tuple[str, ...],
    rules: Path | None = None,
    revision_range: str | None = None,
    output_format: str | None = None,
    report_path: Path | None = None,
    exit_code: int | None = None,
    timeout: float | None = None,
    workers: int | None = None,
    max_file_size: int | None = None,
    redact_prefix: int | None = None,
    use_git: bool = True,
) -> None:
    """Shared body of ``scan`` and ``protect``; exits with the gate status."""
    ctx.ensure_object(dict)
    base_config = ctx.obj.get("config") or SecretGateConfig()

    try:
        config = _apply_overrides(
            base_config,
            {
                "scan": {"timeout_seconds": timeout, "workers": workers, "max_unit_bytes": max_file_size},
                "output": {"format": output_format, "exit_code": exit_code, "redact_prefix": redact_prefix},
            },
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(ERROR_EXIT_CODE) from None

    source_config = SourceConfig(
        path=source,
        files=files or None,
        revision_range=revision_range,
        use_git=use_git,
    )

    try:
        outcome = GateRunner(config).run(mode, source_config, rules_path=rules)
        _emit(outcome, config, config.output.format, report_path)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise SystemExit(130) from None

    raise SystemExit(outcome.exit_status)


_rules_option = click.option(
    "--rules",
    "-r",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules document (default: $SECRETGATE_RULES, settings, bundled rules)",
)
_format_option = click.option(
    "--format", "output_format", type=click.Choice(["text", "json"]), default=None, help="Report format"
)
_report_option = click.option(
    "--report", "report_path", type=click.Path(dir_okay=False, path_type=Path), help="Also write JSON report here"
)
_exit_code_option = click.option("--exit-code", type=int, default=None, help="Exit status when secrets are found")


@click.command()
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in GateMode]),
    default=GateMode.SCAN.value,
    help="What to scan: staged index, working tree, or a commit range",
)
@_rules_option
@click.option(
    "--source",
    "-s",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Repository or directory to scan",
)
@click.option("--range", "revision_range", default=None, help="Revision range for --mode ci (e.g. main..HEAD)")
@_format_option
@_report_option
@_exit_code_option
@click.option("--timeout", type=float, default=None, help="Wall-clock limit in seconds")
@click.option("--workers", type=int, default=None, help="Scanner worker processes")
@click.option("--max-file-size", type=int, default=None, help="Skip units larger than this many bytes")
@click.option("--redact-prefix", type=int, default=None, help="Characters of each secret left visible")
@click.option("--no-git", is_flag=True, help="Walk the directory instead of asking git for files")
@click.argument("files", nargs=-1)
@click.pass_context
def scan(
    ctx: click.Context,
    mode: str,
    rules: Path | None,
    source: Path,
    revision_range: str | None,
    output_format: str | None,
    report_path: Path | None,
    exit_code: int | None,
    timeout: float | None,
    workers: int | None,
    max_file_size: int | None,
    redact_prefix: int | None,
    no_git: bool,
    files: tuple[str, ...],
) -> None:
    """Scan content for secrets and exit nonzero if any are found.

    Exit status: 0 clean, 1 (or --exit-code) secrets found, 2 the gate
    itself failed.

    Examples:

        secretgate scan

        secretgate scan --mode pre-commit

        secretgate scan --mode ci --range origin/main..HEAD --format json
    """
    run_scan(
        ctx,
        GateMode(mode),
        source,
        files,
        rules=rules,
        revision_range=revision_range,
        output_format=output_format,
        report_path=report_path,
        exit_code=exit_code,
        timeout=timeout,
        workers=workers,
        max_file_size=max_file_size,
        redact_prefix=redact_prefix,
        use_git=not no_git,
    )


@click.command()
@_rules_option
@_format_option
@_report_option
@_exit_code_option
@click.pass_context
def protect(
    ctx: click.Context,
    rules: Path | None,
    output_format: str | None,
    report_path: Path | None,
    exit_code: int | None,
) -> None:
    """Scan staged changes (pre-commit hook entry point).

    Bypass a blocked commit with ``git commit --no-verify``.
    """
    run_scan(
        ctx,
        GateMode.PRE_COMMIT,
        Path("."),
        (),
        rules=rules,
        output_format=output_format,
        report_path=report_path,
        exit_code=exit_code,
    )
