from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .context import SetupContext
from .errors import SetupError
from .lib.net import is_online
from .lib.prompt import Confirm, confirm as ask_confirm
from .lib.sudo import SudoLease
from .logging_utils import log_success
from .pipeline import Outcome, Step, StepResult, execute_step

logger = logging.getLogger(__name__)


class RunPhase(str, enum.Enum):
    INIT = "init"
    CONNECTIVITY_CHECKED = "connectivity_checked"
    PRIVILEGE_ACQUIRED = "privilege_acquired"
    PACKAGE_INDEX_FRESH = "package_index_fresh"
    RUNNING = "running"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunReport:
    phase: RunPhase = RunPhase.INIT
    results: List[StepResult] = field(default_factory=list)
    aborted_by: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.phase is RunPhase.DONE

    def outcome(self, step_id: str) -> Optional[Outcome]:
        for r in self.results:
            if r.step_id == step_id:
                return r.outcome
        return None


def step_aliases(step: Step) -> Set[str]:
    """Names a step can be selected by: 03_nodejs, nodejs, 03 and 3."""
    sid = step.step_id
    aliases = {sid}
    prefix, _, short = sid.partition("_")
    if short:
        aliases.add(short)
        aliases.add(short.replace("_", "-"))
    if prefix.isdigit():
        aliases.add(prefix)
        aliases.add(str(int(prefix)))
    return aliases


def resolve_selection(steps: Sequence[Step], names: Iterable[str]) -> Set[str]:
    wanted: Set[str] = set()
    for name in names:
        matches = [s.step_id for s in steps if name in step_aliases(s)]
        if not matches:
            raise ValueError(f"Unknown step: {name}")
        wanted.update(matches)
    return wanted


def select_steps(
    steps: Sequence[Step],
    only: Optional[Iterable[str]] = None,
    skip: Optional[Iterable[str]] = None,
) -> Set[str]:
    """Ids of the steps that should run."""
    selected = {s.step_id for s in steps}
    if only:
        selected = resolve_selection(steps, only)
    if skip:
        selected -= resolve_selection(steps, skip)
    return selected


class Orchestrator:
    """Runs the registry once: connectivity, sudo, index refresh, steps."""

    def __init__(
        self,
        ctx: SetupContext,
        steps: Sequence[Step],
        *,
        probe: Optional[Callable[[], bool]] = None,
        lease: Optional[SudoLease] = None,
        confirm: Optional[Confirm] = None,
    ) -> None:
        self.ctx = ctx
        self.steps = list(steps)
        self.probe = probe or (lambda: is_online(ctx.config.connectivity_hosts))
        self.lease = lease or SudoLease(
            interval=ctx.config.keepalive_interval,
            needs_sudo=False if ctx.dry_run else None,
        )
        self.confirm = confirm or (lambda q, d: ask_confirm(q, d, assume_yes=ctx.assume_yes))

    def _abort(self, report: RunReport, message: str, *, step_id: Optional[str] = None) -> RunReport:
        logger.error(message)
        report.phase = RunPhase.ABORTED
        report.aborted_by = step_id
        report.error = message
        return report

    def run(self, only: Optional[Iterable[str]] = None, skip: Optional[Iterable[str]] = None) -> RunReport:
        report = RunReport()
        selected = select_steps(self.steps, only, skip)

        logger.info("Checking internet connection...")
        if not self.probe():
            logger.info("Please check your connection and try again")
            return self._abort(report, "No internet connection detected")
        log_success(logger, "Internet connection OK")
        report.phase = RunPhase.CONNECTIVITY_CHECKED

        try:
            self.lease.acquire()
        except SetupError as e:
            if e.hint:
                logger.info("Try: %s", e.hint)
            return self._abort(report, str(e))
        self.lease.start()
        report.phase = RunPhase.PRIVILEGE_ACQUIRED

        try:
            try:
                self.ctx.apt.update()
            except SetupError as e:
                return self._abort(report, f"Package list update failed: {e}")
            report.phase = RunPhase.PACKAGE_INDEX_FRESH

            report.phase = RunPhase.RUNNING
            for step in self.steps:
                result = self._run_one(step, selected)
                report.results.append(result)
                if not result.failed:
                    continue
                if step.critical:
                    return self._abort(report, f"Required step {step.step_id} failed; stopping", step_id=step.step_id)
                logger.warning("Optional step %s failed; continuing", step.step_id)
        finally:
            self.lease.stop()

        report.phase = RunPhase.DONE
        return report

    def _run_one(self, step: Step, selected: Set[str]) -> StepResult:
        if step.step_id not in selected:
            logger.debug("Step %s not selected", step.step_id)
            return StepResult(step.step_id, Outcome.DECLINED)
        if step.prompt and not self.confirm(f"Install {step.title.lower()}?", step.prompt_default):
            logger.info("Skipping %s", step.title)
            return StepResult(step.step_id, Outcome.DECLINED)
        return execute_step(step, self.ctx)


def log_report(report: RunReport, steps: Sequence[Step]) -> None:
    titles = {s.step_id: s.title for s in steps}
    logger.info("Summary:")
    for r in report.results:
        line = f"  {r.step_id:<18} {r.outcome.value:<10} {titles.get(r.step_id, '')}"
        if r.outcome is Outcome.FAILED:
            logger.warning(line)
            if r.hint:
                logger.info("    manual: %s", r.hint)
        else:
            logger.info(line)
    if report.ok:
        log_success(logger, "Setup completed")
    else:
        logger.error("Setup aborted%s", f" at {report.aborted_by}" if report.aborted_by else "")
