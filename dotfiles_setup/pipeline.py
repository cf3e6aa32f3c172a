from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

from .errors import SetupError
from .logging_utils import log_success

if TYPE_CHECKING:
    from .context import SetupContext

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    SKIPPED = "skipped"
    INSTALLED = "installed"
    FAILED = "failed"
    DECLINED = "declined"


class Step(Protocol):
    """A single idempotent check-then-install step."""

    step_id: str
    title: str
    critical: bool
    prompt: bool
    prompt_default: bool

    def is_satisfied(self, ctx: "SetupContext") -> bool:
        ...

    def apply(self, ctx: "SetupContext") -> Optional[bool]:
        """Returning False means nothing was changed."""

    def verify(self, ctx: "SetupContext") -> bool:
        ...


@dataclass(frozen=True)
class StepResult:
    step_id: str
    outcome: Outcome
    error: Optional[str] = None
    hint: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED


def _check(step: Step, ctx: "SetupContext", which: str) -> bool:
    """Run a detection predicate; one that raises counts as false."""
    try:
        return bool(getattr(step, which)(ctx))
    except Exception as e:
        logger.debug("%s.%s raised %s; treating as not satisfied", step.step_id, which, e)
        return False


def execute_step(step: Step, ctx: "SetupContext") -> StepResult:
    """detect -> apply -> verify. Never raises for step failures."""

    if _check(step, ctx, "is_satisfied"):
        logger.info("%s: already satisfied", step.title)
        return StepResult(step.step_id, Outcome.SKIPPED)

    logger.info("Running step %s (%s)", step.step_id, step.title)
    try:
        changed = step.apply(ctx)
    except SetupError as e:
        logger.error("%s failed: %s", step.title, e)
        if e.hint:
            logger.info("To finish manually, run: %s", e.hint)
        return StepResult(step.step_id, Outcome.FAILED, error=str(e), hint=e.hint)
    except Exception as e:
        logger.exception("%s failed unexpectedly", step.title)
        return StepResult(step.step_id, Outcome.FAILED, error=str(e))

    if changed is False:
        logger.info("%s: nothing left to install", step.title)
        return StepResult(step.step_id, Outcome.SKIPPED)

    if ctx.dry_run:
        log_success(logger, "%s: done (dry run, not verified)", step.title)
        return StepResult(step.step_id, Outcome.INSTALLED)

    if not _check(step, ctx, "verify"):
        msg = f"{step.title}: post-condition not met after install"
        logger.error(msg)
        return StepResult(step.step_id, Outcome.FAILED, error=msg)

    log_success(logger, "%s: done", step.title)
    return StepResult(step.step_id, Outcome.INSTALLED)
