from __future__ import annotations

import sys
from typing import Callable, Optional

Confirm = Callable[[str, bool], bool]


def stdin_is_interactive() -> bool:
    isatty = getattr(sys.stdin, "isatty", None)
    return bool(isatty and isatty())


def confirm(
    question: str,
    default: bool = False,
    *,
    assume_yes: bool = False,
    input_fn: Optional[Callable[[str], str]] = None,
) -> bool:
    """y/N question. Non-interactive sessions and --yes take the default."""

    if assume_yes or (input_fn is None and not stdin_is_interactive()):
        return default
    ask = input_fn or input
    suffix = "(Y/n)" if default else "(y/N)"
    try:
        reply = ask(f"{question} {suffix} ").strip().lower()
    except EOFError:
        return default
    if not reply:
        return default
    return reply in {"y", "yes"}
