from __future__ import annotations

from typing import Optional, Sequence


class SetupError(RuntimeError):
    """Base error. `hint` is a command the user can run to finish by hand."""

    def __init__(self, message: str, *, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.hint = hint


class PreconditionError(SetupError):
    pass


class DownloadError(SetupError):
    pass


class CommandError(SetupError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        joined = " ".join(self.argv)
        super().__init__(f"Command failed ({returncode}): {joined}\n{stderr}".rstrip())


class StepFailed(SetupError):
    pass
