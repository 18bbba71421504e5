"""Runner registry.

This provides a single place to map an engine name to its concrete runner
implementation. Callers should depend on the `Runner` port.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from mention_relay.runners.claude.config import ClaudeConfig

if TYPE_CHECKING:
    from mention_relay.runners.ports import Runner


def create_runner(
    engine: str,
    *,
    working_dir: str,
    output_dir: Path | None = None,
    session_name: str | None = None,
    claude_config: ClaudeConfig | None = None,
) -> Runner:
    engine = (engine or "").strip().lower()

    if engine == "claude":
        from mention_relay.runners.claude.runner import ClaudeRunner

        return ClaudeRunner(
            working_dir,
            output_dir,
            session_name,
            config=claude_config,
        )

    raise ValueError(f"Unknown engine: {engine}")
