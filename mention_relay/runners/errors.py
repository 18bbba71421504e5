"""Runner exceptions.

These exception types let the runtime tell task-level failures apart from
plumbing errors without scraping strings.
"""

from __future__ import annotations


class RunnerError(RuntimeError):
    """Base class for agent runner failures."""


class RunnerExitError(RunnerError):
    """The agent process exited without producing a final result."""

    def __init__(self, returncode: int, *, output_preview: str | None = None):
        self.returncode = int(returncode)
        self.output_preview = output_preview
        super().__init__(self.__str__())

    def __str__(self) -> str:
        preview = (self.output_preview or "").strip()
        if preview:
            return f"Agent exited with status {self.returncode}: {preview}"
        return f"Agent exited with status {self.returncode}"


class RunnerResultError(RunnerError):
    """The agent reported an error as its final result."""

    def __init__(self, message: str, *, session_id: str | None = None):
        self.message = message
        self.session_id = session_id
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"Agent reported an error: {self.message or 'unknown error'}"
