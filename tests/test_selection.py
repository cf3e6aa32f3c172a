"""
Tests for the interactive component menu.
"""

from typing import List

import pytest

from dotfiles_setup import main as cli
from dotfiles_setup.selection import choose_steps, confirm_selection, essential_ids, render_menu
from dotfiles_setup.steps import build_steps

ALL = {s.step_id for s in build_steps()}


def answers(*replies: str):
    queue: List[str] = list(replies)

    def ask(prompt: str) -> str:
        if not queue:
            raise EOFError
        return queue.pop(0)

    return ask


def choose(*replies: str, shown=None):
    out = shown if shown is not None else []
    return choose_steps(build_steps(), input_fn=answers(*replies), output=out.append)


def test_essentials_leave_out_extras():
    assert essential_ids(build_steps()) == ALL - {"09_extras"}


def test_enter_accepts_the_default():
    assert choose("") == ALL - {"09_extras"}


def test_toggle_by_number_and_name():
    chosen = choose("9", "nodejs", "")
    assert "09_extras" in chosen
    assert "03_nodejs" not in chosen


def test_toggling_twice_restores():
    assert choose("docker", "5", "") == ALL - {"09_extras"}


def test_select_all_none_and_essentials():
    assert choose("a", "") == ALL
    assert choose("a", "s", "") == ALL - {"09_extras"}


def test_empty_selection_is_refused():
    shown = []
    assert choose("d", "", "1", "", shown=shown) == {"01_essentials"}
    assert "Please select at least one component!" in shown


def test_invalid_choice_is_reported():
    shown = []
    choose("emacs", "", shown=shown)
    assert "Invalid choice. Please try again." in shown


@pytest.mark.parametrize("replies", [("q",), ("Q",), ()])
def test_quit_or_eof(replies):
    assert choose(*replies) is None


def test_menu_marks_selection():
    menu = render_menu(build_steps(), {"00_customization"})
    assert "00) ✓ " in menu
    assert "09) ✗ " in menu


def test_confirm_defaults_to_no():
    shown = []
    steps = build_steps()

    assert not confirm_selection(steps, {"02_shell"}, input_fn=answers(""), output=shown.append)
    assert confirm_selection(steps, {"02_shell"}, input_fn=answers("y"), output=shown.append)
    assert "02_shell" in shown[0]
    assert "03_nodejs" not in shown[0]


class TestMainMenu:
    @pytest.fixture
    def captured(self, monkeypatch):
        calls = []
        monkeypatch.setattr(cli, "run", lambda **kw: calls.append(kw) or 0)
        monkeypatch.setattr(cli, "stdin_is_interactive", lambda: True)
        return calls

    def test_menu_choice_becomes_the_selection(self, captured, monkeypatch):
        monkeypatch.setattr(cli, "choose_steps", lambda steps: {"02_shell", "01_essentials"})
        monkeypatch.setattr(cli, "confirm_selection", lambda steps, chosen: True)

        assert cli.main([]) == 0
        assert captured[0]["only"] == ["01_essentials", "02_shell"]
        assert captured[0]["preselected"] is True

    def test_declining_to_proceed_cancels(self, captured, monkeypatch, capsys):
        monkeypatch.setattr(cli, "choose_steps", lambda steps: {"02_shell"})
        monkeypatch.setattr(cli, "confirm_selection", lambda steps, chosen: False)

        assert cli.main([]) == 0
        assert captured == []
        assert "cancelled" in capsys.readouterr().out

    def test_quit_cancels(self, captured, monkeypatch):
        monkeypatch.setattr(cli, "choose_steps", lambda steps: None)

        assert cli.main([]) == 0
        assert captured == []

    @pytest.mark.parametrize("argv", [["--yes"], ["--only", "shell"], ["--skip", "java"]])
    def test_flags_bypass_the_menu(self, captured, monkeypatch, argv):
        def no_menu(steps):
            raise AssertionError("menu shown")

        monkeypatch.setattr(cli, "choose_steps", no_menu)

        assert cli.main(argv) == 0
        assert captured[0]["preselected"] is False

    def test_no_tty_keeps_the_default(self, captured, monkeypatch):
        monkeypatch.setattr(cli, "stdin_is_interactive", lambda: False)
        monkeypatch.setattr(cli, "choose_steps", lambda steps: pytest.fail("menu shown"))

        assert cli.main([]) == 0
        assert captured[0]["only"] == []
