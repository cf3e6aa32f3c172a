"""
Tests for item-based steps and their partial-failure policies.
"""

import logging
from types import SimpleNamespace
from typing import Dict, List

import pytest

from dotfiles_setup.errors import SetupError, StepFailed
from dotfiles_setup.pipeline import Outcome, execute_step
from dotfiles_setup.steps import base
from dotfiles_setup.steps.base import ABORT, Item, ItemStep, apt_item, snap_or_apt_item


def fake_ctx(**kw):
    return SimpleNamespace(dry_run=kw.pop("dry_run", False), **kw)


class Board:
    """What is installed, plus a log of install attempts."""

    def __init__(self, broken=()) -> None:
        self.present: Dict[str, bool] = {}
        self.broken = set(broken)
        self.attempts: List[str] = []

    def item(self, name: str, *, required: bool = True) -> Item:
        def install(ctx) -> None:
            self.attempts.append(name)
            if name in self.broken:
                raise SetupError(f"{name} exploded")
            self.present[name] = True

        return Item(
            name=name,
            detect=lambda ctx: self.present.get(name, False),
            install=install,
            required=required,
            manual=f"apt install {name}",
        )


class ListStep(ItemStep):
    step_id = "99_list"
    title = "List"

    def __init__(self, board: Board, spec) -> None:
        self.board = board
        self.spec = spec
        self.finished = 0

    def items(self, ctx):
        return [self.board.item(name, required=req) for name, req in self.spec]

    def finish(self, ctx) -> None:
        self.finished += 1


class AbortingStep(ListStep):
    on_item_failure = ABORT


def test_installs_every_missing_item():
    board = Board()
    board.present["a"] = True
    step = ListStep(board, [("a", True), ("b", True)])

    assert not step.is_satisfied(fake_ctx())
    step.apply(fake_ctx())

    assert board.attempts == ["b"]
    assert step.is_satisfied(fake_ctx())
    assert step.verify(fake_ctx())
    assert step.finished == 1


def test_continue_policy_tries_the_rest_then_fails():
    board = Board(broken={"b"})
    step = ListStep(board, [("a", True), ("b", True), ("c", True)])

    with pytest.raises(StepFailed) as exc:
        step.apply(fake_ctx())

    assert board.attempts == ["a", "b", "c"]
    assert "b" in str(exc.value)
    assert exc.value.hint == "apt install b"
    assert step.finished == 1


def test_abort_policy_stops_at_first_required_failure():
    board = Board(broken={"b"})
    step = AbortingStep(board, [("a", True), ("b", True), ("c", True)])

    with pytest.raises(StepFailed):
        step.apply(fake_ctx())

    assert board.attempts == ["a", "b"]
    assert step.finished == 0


def test_best_effort_failure_only_warns(caplog):
    caplog.set_level(logging.INFO)
    board = Board(broken={"bun"})
    step = AbortingStep(board, [("node", True), ("bun", False), ("npm-config", False)])

    step.apply(fake_ctx())

    assert board.attempts == ["node", "bun", "npm-config"]
    assert step.verify(fake_ctx())
    assert "apt install bun" in caplog.text


def test_failing_best_effort_item_alone_is_a_skip():
    board = Board(broken={"cursor"})
    board.present["vscode"] = True
    step = ListStep(board, [("vscode", True), ("cursor", False)])

    first = execute_step(step, fake_ctx())
    second = execute_step(step, fake_ctx())

    assert first.outcome is Outcome.SKIPPED
    assert second.outcome is Outcome.SKIPPED
    assert board.attempts == ["cursor", "cursor"]


def test_best_effort_item_that_installs_counts_as_a_change():
    board = Board()
    board.present["vscode"] = True
    step = ListStep(board, [("vscode", True), ("cursor", False)])

    assert execute_step(step, fake_ctx()).outcome is Outcome.INSTALLED
    assert execute_step(step, fake_ctx()).outcome is Outcome.SKIPPED
    assert board.attempts == ["cursor"]


def test_install_that_does_not_stick_is_a_failure():
    item = Item(name="ghost", detect=lambda ctx: False, install=lambda ctx: None)

    class GhostStep(ItemStep):
        title = "Ghost"

        def items(self, ctx):
            return [item]

    with pytest.raises(StepFailed, match="ghost"):
        GhostStep().apply(fake_ctx())


def test_dry_run_does_not_verify_items():
    item = Item(name="ghost", detect=lambda ctx: False, install=lambda ctx: None)

    class GhostStep(ItemStep):
        title = "Ghost"

        def items(self, ctx):
            return [item]

    GhostStep().apply(fake_ctx(dry_run=True))


def test_not_applicable_step_is_satisfied():
    class NeverStep(ListStep):
        def applicable(self, ctx):
            return False

    step = NeverStep(Board(), [("a", True)])
    assert step.is_satisfied(fake_ctx())
    assert step.verify(fake_ctx())


def test_raising_detection_is_unsatisfied():
    def boom(ctx):
        raise OSError("dpkg database locked")

    item = Item(name="x", detect=boom, install=lambda ctx: None)
    assert not item.satisfied(fake_ctx())
    assert not item.verified(fake_ctx())


class TestFactories:
    def test_apt_item_prefers_command(self, runner, monkeypatch):
        monkeypatch.setattr(base, "command_exists", lambda name: name == "git")
        item = apt_item("git", command="git")

        assert item.satisfied(fake_ctx(run=runner))
        assert runner.calls == []

    def test_apt_item_installs(self, runner):
        apt = SimpleNamespace(update=lambda: None)
        item = apt_item("build-essential")
        item.install(fake_ctx(run=runner, apt=apt))

        assert runner.calls == [["apt-get", "install", "-y", "build-essential"]]
        assert item.manual == "sudo apt-get install -y build-essential"

    def test_snap_preferred(self, runner, monkeypatch):
        monkeypatch.setattr(base, "command_exists", lambda name: name == "snap")
        item = snap_or_apt_item("Postman", snap="postman", command="postman")
        item.install(fake_ctx(run=runner))

        assert runner.calls == [["snap", "install", "postman"]]

    def test_fallback_without_snap(self, runner, monkeypatch):
        monkeypatch.setattr(base, "command_exists", lambda name: False)
        used = []
        item = snap_or_apt_item("Discord", snap="discord", command="discord", fallback=lambda ctx: used.append(1))
        item.install(fake_ctx(run=runner))

        assert used == [1]
        assert runner.calls == []

    def test_no_snap_no_alternative(self, runner, monkeypatch):
        monkeypatch.setattr(base, "command_exists", lambda name: False)
        item = snap_or_apt_item("Steam", snap="steam", command="steam")

        with pytest.raises(SetupError):
            item.install(fake_ctx(run=runner))
