from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Set

from .lib.prompt import confirm
from .orchestrator import resolve_selection
from .pipeline import Step

MENU_HELP = """\
Commands:
  <n> or <name>  toggle a component (e.g. 3 or nodejs)
  a              select all
  d              deselect all
  s              select essentials only
  Enter          confirm and continue
  q              quit"""


def essential_ids(steps: Sequence[Step]) -> Set[str]:
    """Everything except steps that ask first and default to no."""
    return {s.step_id for s in steps if not (s.prompt and not s.prompt_default)}


def render_menu(steps: Sequence[Step], selected: Set[str]) -> str:
    lines = ["Select which components to install:", ""]
    for s in steps:
        mark = "✓" if s.step_id in selected else "✗"
        number = s.step_id.partition("_")[0]
        lines.append(f"  {number}) {mark} {s.title}")
    lines.append("")
    lines.append(MENU_HELP)
    return "\n".join(lines)


def choose_steps(
    steps: Sequence[Step],
    *,
    input_fn: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> Optional[Set[str]]:
    """Interactive toggle menu. Returns the chosen step ids, or None on quit."""

    selected = essential_ids(steps)
    while True:
        output(render_menu(steps, selected))
        try:
            choice = input_fn("Your choice: ").strip()
        except EOFError:
            return None

        key = choice.lower()
        if not choice:
            if selected:
                return selected
            output("Please select at least one component!")
        elif key == "q":
            return None
        elif key == "a":
            selected = {s.step_id for s in steps}
        elif key == "d":
            selected = set()
        elif key == "s":
            selected = essential_ids(steps)
        else:
            try:
                toggled = resolve_selection(steps, [key])
            except ValueError:
                output("Invalid choice. Please try again.")
                continue
            selected ^= toggled


def confirm_selection(
    steps: Sequence[Step],
    chosen: Set[str],
    *,
    input_fn: Optional[Callable[[str], str]] = None,
    output: Callable[[str], None] = print,
) -> bool:
    lines: List[str] = ["", "Selected components:"]
    lines.extend(f"  ✓ {s.step_id}  {s.title}" for s in steps if s.step_id in chosen)
    output("\n".join(lines))
    return confirm("Proceed with installation?", False, input_fn=input_fn)
