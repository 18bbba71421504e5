"""Base runner functionality shared by runner implementations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass
class RunState:
    """Accumulates state during a runner execution."""

    start_time: datetime = field(default_factory=datetime.now)
    session_id: str | None = None
    tool_count: int = 0
    saw_result: bool = False
    saw_error: bool = False

    @property
    def duration_s(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()


class BaseRunner:
    """Base class for CLI runners."""

    def __init__(
        self,
        working_dir: str,
        output_dir: Path | None = None,
        session_name: str | None = None,
    ):
        self.working_dir = working_dir
        self.output_dir = output_dir
        self.session_name = session_name
        self.output_file: Path | None = None
        self.log = logging.getLogger(f"runner.{session_name or 'default'}")

        if output_dir is not None and session_name:
            output_dir.mkdir(parents=True, exist_ok=True)
            self.output_file = output_dir / f"{session_name}.log"

    def _log_to_file(self, content: str) -> None:
        """Append content to the output log file."""
        if not self.output_file:
            return
        try:
            with open(self.output_file, "a") as f:
                f.write(content)
        except OSError:
            self.log.debug("Failed to write runner output log", exc_info=True)

    def _log_prompt(self, prompt: str) -> None:
        self._log_to_file(
            f"\n[{datetime.now().strftime('%H:%M:%S')}] Prompt: {prompt}\n"
        )

    def _log_response(self, text: str) -> None:
        self._log_to_file(
            f"\n[{datetime.now().strftime('%H:%M:%S')}] Response:\n{text}\n"
        )
