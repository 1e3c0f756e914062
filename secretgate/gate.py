"""Gate runner: load rules, read content, scan, filter, decide.

The runner walks ``IDLE -> LOADING -> SCANNING -> FILTERING -> DECIDING ->
DONE``; any component error moves it to ``FAILED`` instead. ``FAILED`` always
maps to :data:`ERROR_EXIT_CODE`, which differs from the "secrets found"
status, so a hook can tell a broken tool from a detected leak.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

from secretgate.allowlist import AllowlistFilter
from secretgate.config import SecretGateConfig
from secretgate.constants import ERROR_EXIT_CODE, FailureReason, GateMode, GateState
from secretgate.exceptions import GitError, LoadError, ScanTimeoutError
from secretgate.logging import get_logger, set_scan_context
from secretgate.rules.loader import load_file
from secretgate.scanner import Scanner
from secretgate.sources import ContentSource, HistoricalSource, StagedSource, WorkingTreeSource
from secretgate.verdict import ScanReport, decide

logger = get_logger("gate")


@dataclass(frozen=True)
class SourceConfig:
    """Where to read content from."""

    path: Path = Path(".")
    files: tuple[str, ...] | None = None
    revision_range: str | None = None
    use_git: bool = True


@dataclass
class GateOutcome:
    """Terminal state of one gate run."""

    state: GateState
    exit_status: int
    report: ScanReport | None = None
    reason: FailureReason | None = None
    error: str | None = None
    transitions: list[GateState] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.state is GateState.FAILED


class GateRunner:
    """Run the scan pipeline for one invocation and map it to an exit status."""

    def __init__(self, config: SecretGateConfig | None = None) -> None:
        """Initialize gate runner.

        Args:
            config: secretgate settings (loads default if not provided)
        """
        self.config = config or SecretGateConfig.load()
        self.state = GateState.IDLE
        self._transitions: list[GateState] = [GateState.IDLE]

    def _transition(self, state: GateState) -> None:
        logger.debug("Gate %s -> %s", self.state.value, state.value, extra={"state": state.value})
        self.state = state
        self._transitions.append(state)

    def build_source(self, mode: GateMode, source_config: SourceConfig) -> ContentSource:
        """Pick the content source for ``mode``.

        Raises:
            GitError: If the mode needs a repository and none is found.
        """
        files = list(source_config.files) if source_config.files is not None else None
        if mode is GateMode.PRE_COMMIT:
            return StagedSource(source_config.path, paths=files)
        if mode is GateMode.CI:
            revision_range = source_config.revision_range or self.config.scan.default_range
            return HistoricalSource(source_config.path, revision_range=revision_range)
        return WorkingTreeSource(
            source_config.path,
            files=files,
            use_git=source_config.use_git,
            max_unit_bytes=self.config.scan.max_unit_bytes,
        )

    def _fail(self, reason: FailureReason, error: Exception) -> GateOutcome:
        logger.error(f"Gate failed ({reason.value}): {error}")
        self._transition(GateState.FAILED)
        return GateOutcome(
            state=GateState.FAILED,
            exit_status=ERROR_EXIT_CODE,
            reason=reason,
            error=str(error),
            transitions=list(self._transitions),
        )

    def run(
        self,
        mode: GateMode,
        source_config: SourceConfig | None = None,
        rules_path: str | Path | None = None,
    ) -> GateOutcome:
        """Run the gate once.

        Args:
            mode: Invocation mode selecting the content source
            source_config: Source location, explicit files and revision range
            rules_path: Rules document (falls back to env, settings, bundled rules)

        Returns:
            GateOutcome with the report (when DONE) and exit status
        """
        source_config = source_config or SourceConfig()
        self.state = GateState.IDLE
        self._transitions = [GateState.IDLE]
        set_scan_context(mode=mode.value)
        start = time.monotonic()
        timeout = self.config.scan.timeout_seconds

        try:
            self._transition(GateState.LOADING)
            ruleset = load_file(self.config.resolve_rules_path(rules_path))
            logger.info(f"Loaded {len(ruleset)} rules")

            self._transition(GateState.SCANNING)
            source = self.build_source(mode, source_config)
            scanner = Scanner(
                ruleset,
                max_unit_bytes=self.config.scan.max_unit_bytes,
                max_workers=self.config.scan.workers,
            )
            remaining = None if timeout is None else max(timeout - (time.monotonic() - start), 0.001)
            candidates = scanner.scan(source, timeout=remaining)

            self._transition(GateState.FILTERING)
            allowlist = AllowlistFilter(ruleset)
            findings = allowlist.filter(candidates)

            self._transition(GateState.DECIDING)
            report = decide(
                findings,
                units_scanned=scanner.stats.units_scanned,
                units_skipped=scanner.stats.units_skipped + source.skipped,
                candidates=len(candidates),
                suppressed=allowlist.suppressed,
                errors=[*source.errors, *scanner.stats.errors],
                duration_seconds=round(time.monotonic() - start, 3),
                suppressed_texts=allowlist.suppressed_texts,
            )
        except LoadError as e:
            return self._fail(FailureReason.LOAD_ERROR, e)
        except GitError as e:
            return self._fail(FailureReason.SOURCE_ERROR, e)
        except ScanTimeoutError as e:
            return self._fail(FailureReason.TIMEOUT, e)
        except Exception as e:  # noqa: BLE001 -- any other fault is a broken gate, never a pass
            logger.exception("Unexpected gate error")
            return self._fail(FailureReason.INTERNAL, e)

        self._transition(GateState.DONE)
        exit_status = 0 if report.passed else self.config.output.exit_code
        logger.info(f"Gate {report.verdict.value}: {len(report.findings)} findings ({report.duration_seconds}s)")
        return GateOutcome(
            state=GateState.DONE,
            exit_status=exit_status,
            report=report,
            transitions=list(self._transitions),
        )
