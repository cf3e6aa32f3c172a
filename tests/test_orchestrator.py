"""
Tests for the run orchestrator and the detect/apply/verify executor.
"""

from typing import List

import pytest

from dotfiles_setup.errors import CommandError, PreconditionError, SetupError
from dotfiles_setup.lib.sudo import SudoLease
from dotfiles_setup.orchestrator import (
    Orchestrator,
    RunPhase,
    resolve_selection,
    select_steps,
    step_aliases,
)
from dotfiles_setup.pipeline import Outcome, execute_step


class FakeStep:
    """Installs by flipping a flag; counts how often apply ran."""

    def __init__(
        self,
        step_id: str,
        *,
        critical: bool = True,
        prompt: bool = False,
        prompt_default: bool = True,
        fails: bool = False,
        installed: bool = False,
    ) -> None:
        self.step_id = step_id
        self.title = step_id.split("_", 1)[-1].title()
        self.critical = critical
        self.prompt = prompt
        self.prompt_default = prompt_default
        self.fails = fails
        self.installed = installed
        self.applied = 0

    def is_satisfied(self, ctx) -> bool:
        return self.installed

    def apply(self, ctx) -> None:
        self.applied += 1
        if self.fails:
            raise SetupError(f"{self.step_id} broke", hint=f"install {self.step_id} by hand")
        self.installed = True

    def verify(self, ctx) -> bool:
        return self.installed


class FailingLease(SudoLease):
    def acquire(self) -> None:
        raise PreconditionError("Could not obtain sudo credentials", hint="sudo -v")


def make_orchestrator(ctx, steps, *, online=True, answers=None, lease=None):
    asked: List[str] = []

    def confirm(question, default):
        asked.append(question)
        if answers is None:
            return default
        return answers.pop(0)

    orch = Orchestrator(
        ctx,
        steps,
        probe=lambda: online,
        lease=lease or SudoLease(needs_sudo=False),
        confirm=confirm,
    )
    orch.asked = asked
    return orch


class TestExecuteStep:
    def test_satisfied_step_is_skipped(self, make_ctx):
        step = FakeStep("01_git", installed=True)
        result = execute_step(step, make_ctx())

        assert result.outcome is Outcome.SKIPPED
        assert step.applied == 0

    def test_install_then_verify(self, make_ctx):
        step = FakeStep("01_git")
        result = execute_step(step, make_ctx())

        assert result.outcome is Outcome.INSTALLED
        assert step.applied == 1

    def test_failure_carries_hint(self, make_ctx):
        result = execute_step(FakeStep("01_git", fails=True), make_ctx())

        assert result.outcome is Outcome.FAILED
        assert result.hint == "install 01_git by hand"
        assert "broke" in result.error

    def test_unexpected_exception_is_a_failure(self, make_ctx):
        step = FakeStep("01_git")
        step.apply = lambda ctx: 1 / 0

        assert execute_step(step, make_ctx()).outcome is Outcome.FAILED

    def test_raising_detection_counts_as_unsatisfied(self, make_ctx):
        step = FakeStep("01_git")

        def boom(ctx):
            raise CommandError(["dpkg-query"], 127)

        step.is_satisfied = boom
        result = execute_step(step, make_ctx())

        assert result.outcome is Outcome.INSTALLED
        assert step.applied == 1

    def test_verify_false_after_apply_fails(self, make_ctx):
        step = FakeStep("01_git")
        step.verify = lambda ctx: False

        result = execute_step(step, make_ctx())

        assert result.outcome is Outcome.FAILED
        assert "post-condition" in result.error

    def test_dry_run_skips_verification(self, make_ctx):
        step = FakeStep("01_git")
        step.verify = lambda ctx: False

        assert execute_step(step, make_ctx(dry_run=True)).outcome is Outcome.INSTALLED


class TestRun:
    def test_offline_aborts_before_any_step(self, make_ctx, runner):
        steps = [FakeStep("00_a"), FakeStep("01_b")]
        report = make_orchestrator(make_ctx(), steps, online=False).run()

        assert report.phase is RunPhase.ABORTED
        assert report.results == []
        assert all(s.applied == 0 for s in steps)
        assert runner.calls == []

    def test_sudo_failure_aborts(self, make_ctx, runner):
        steps = [FakeStep("00_a")]
        report = make_orchestrator(make_ctx(), steps, lease=FailingLease(needs_sudo=True)).run()

        assert report.phase is RunPhase.ABORTED
        assert "sudo" in report.error
        assert steps[0].applied == 0
        assert not runner.ran("apt-get", "update")

    def test_index_refresh_failure_aborts(self, make_ctx, runner):
        runner.respond(["apt-get", "update"], returncode=100)

        def strict(argv, **kw):
            r = runner(argv, **kw)
            if r.returncode != 0:
                raise CommandError(argv, r.returncode)
            return r

        ctx = make_ctx()
        ctx.runner = strict
        steps = [FakeStep("00_a")]
        report = make_orchestrator(ctx, steps).run()

        assert report.phase is RunPhase.ABORTED
        assert "Package list update failed" in report.error
        assert steps[0].applied == 0

    def test_all_steps_run_in_order(self, make_ctx, runner):
        steps = [FakeStep("00_a"), FakeStep("01_b"), FakeStep("02_c")]
        report = make_orchestrator(make_ctx(), steps).run()

        assert report.ok
        assert [r.step_id for r in report.results] == ["00_a", "01_b", "02_c"]
        assert all(r.outcome is Outcome.INSTALLED for r in report.results)
        assert runner.calls.count(["apt-get", "update", "-qq"]) == 1

    def test_required_failure_stops_the_run(self, make_ctx):
        steps = [FakeStep("00_a"), FakeStep("01_b", fails=True), FakeStep("02_c")]
        report = make_orchestrator(make_ctx(), steps).run()

        assert report.phase is RunPhase.ABORTED
        assert report.aborted_by == "01_b"
        assert steps[2].applied == 0
        assert report.outcome("02_c") is None

    def test_optional_failure_continues(self, make_ctx):
        steps = [FakeStep("00_a", critical=False, fails=True), FakeStep("01_b")]
        report = make_orchestrator(make_ctx(), steps).run()

        assert report.ok
        assert report.outcome("00_a") is Outcome.FAILED
        assert report.outcome("01_b") is Outcome.INSTALLED

    def test_prompted_step_declined(self, make_ctx):
        steps = [FakeStep("08_apps", critical=False, prompt=True), FakeStep("09_extras", critical=False, prompt=True)]
        orch = make_orchestrator(make_ctx(), steps, answers=[False, True])
        report = orch.run()

        assert report.outcome("08_apps") is Outcome.DECLINED
        assert report.outcome("09_extras") is Outcome.INSTALLED
        assert steps[0].applied == 0
        assert len(orch.asked) == 2

    def test_prompt_default_used_with_yes(self, make_ctx):
        steps = [FakeStep("09_extras", critical=False, prompt=True, prompt_default=False)]
        report = make_orchestrator(make_ctx(), steps).run()

        assert report.outcome("09_extras") is Outcome.DECLINED

    def test_second_run_only_skips(self, make_ctx):
        steps = [FakeStep("00_a"), FakeStep("01_b"), FakeStep("02_c", critical=False)]
        first = make_orchestrator(make_ctx(), steps).run()
        second = make_orchestrator(make_ctx(), steps).run()

        assert first.ok and second.ok
        assert all(r.outcome is Outcome.SKIPPED for r in second.results)
        assert all(s.applied == 1 for s in steps)

    def test_unselected_steps_are_declined(self, make_ctx):
        steps = [FakeStep("00_a"), FakeStep("01_b"), FakeStep("02_c")]
        report = make_orchestrator(make_ctx(), steps).run(only=["b"])

        assert report.outcome("00_a") is Outcome.DECLINED
        assert report.outcome("01_b") is Outcome.INSTALLED
        assert steps[0].applied == 0


class TestSelection:
    def test_aliases(self):
        assert step_aliases(FakeStep("03_nodejs")) == {"03_nodejs", "nodejs", "03", "3"}
        assert "dev-tools" in step_aliases(FakeStep("07_dev_tools"))

    def test_only_and_skip(self):
        steps = [FakeStep("00_customization"), FakeStep("01_essentials"), FakeStep("02_shell")]

        assert select_steps(steps, only=["1", "shell"]) == {"01_essentials", "02_shell"}
        assert select_steps(steps, skip=["customization"]) == {"01_essentials", "02_shell"}
        assert select_steps(steps) == {"00_customization", "01_essentials", "02_shell"}

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown step: nope"):
            resolve_selection([FakeStep("00_a")], ["nope"])
